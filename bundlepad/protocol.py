"""Typed structures for communicating with the bundling engine."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple, Union


class FileResolver(Protocol):
    """Capability handed to the engine for one build attempt."""

    def resolve(self, specifier: str, importer: Optional[str] = None) -> str: ...

    def load(self, path: str) -> str: ...


@dataclass
class BuildRequest:
    input: List[str]
    external: List[str]
    platform: str
    treeshake: bool
    resolver: FileResolver
    cwd: str = "/"
    federation: bool = False

    def to_params(self) -> Dict[str, Any]:
        """Wire payload; the resolver stays on the host side."""

        return {
            "input": list(self.input),
            "external": list(self.external),
            "platform": self.platform,
            "treeshake": self.treeshake,
            "cwd": self.cwd,
            "federation": self.federation,
        }


@dataclass
class OutputOptions:
    dir: str
    format: str
    sourcemap: bool
    minify: bool
    entryFileNames: str
    chunkFileNames: str

    def to_params(self) -> Dict[str, Any]:
        return {
            "dir": self.dir,
            "format": self.format,
            "sourcemap": self.sourcemap,
            "minify": self.minify,
            "entryFileNames": self.entryFileNames,
            "chunkFileNames": self.chunkFileNames,
        }


@dataclass(frozen=True)
class OutputChunk:
    fileName: str
    content: str

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "OutputChunk":
        # Chunks carry ``code``; assets carry ``source``.
        content = data.get("code")
        if content is None:
            content = data.get("source", "")
        return OutputChunk(fileName=str(data["fileName"]), content=str(content))


@dataclass(frozen=True)
class BuildSuccess:
    chunks: Tuple[OutputChunk, ...]
    elapsed_ms: float
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class BuildFailure:
    error_text: str
    elapsed_ms: float
    ok: bool = field(default=False, init=False)


BuildResult = Union[BuildSuccess, BuildFailure]


class BundlerEngine(Protocol):
    """The external bundler as seen by the orchestrator.

    ``build`` returns an opaque handle that ``generate`` turns into output
    chunks. Either call may raise; the orchestrator reports the failure.
    """

    async def build(self, request: BuildRequest) -> Any: ...

    async def generate(self, handle: Any, options: OutputOptions) -> List[OutputChunk]: ...
