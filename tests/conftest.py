import asyncio
import re
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

sys.path.append(str(Path(__file__).resolve().parent.parent))

from bundlepad.protocol import BuildRequest, OutputChunk, OutputOptions  # noqa: E402

IMPORT_RE = re.compile(r"""(?:from|import)\s+['"]([^'"]+)['"]""")


class StubEngine:
    """Stand-in bundler: walks static imports through the resolver and
    concatenates the modules into a single entry chunk.

    Setting ``hold`` to an :class:`asyncio.Event` parks every build until the
    event is set.
    """

    def __init__(self) -> None:
        self.requests: List[BuildRequest] = []
        self.entry_contents: List[Optional[str]] = []
        self.options: List[OutputOptions] = []
        self.active = 0
        self.max_active = 0
        self.hold: Optional[asyncio.Event] = None

    async def build(self, request: BuildRequest) -> Dict[str, str]:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.requests.append(request)
        try:
            entry = request.input[0]
            try:
                self.entry_contents.append(request.resolver.load(entry))
            except Exception:
                self.entry_contents.append(None)
            if self.hold is not None:
                await self.hold.wait()
            modules: Dict[str, str] = {}
            self._collect(request, entry, modules)
        except BaseException:
            self.active -= 1
            raise
        return modules

    async def generate(self, handle: Dict[str, str], options: OutputOptions) -> List[OutputChunk]:
        try:
            self.options.append(options)
            entry = next(iter(handle))
            name = entry.rsplit("/", 1)[-1].split(".", 1)[0]
            body = "\n".join(handle[path] for path in reversed(list(handle)))
            return [OutputChunk(fileName=options.entryFileNames.replace("[name]", name), content=body)]
        finally:
            self.active -= 1

    def _collect(self, request: BuildRequest, path: str, modules: Dict[str, str]) -> None:
        resolved = request.resolver.resolve(path)
        if resolved in modules or resolved in request.external:
            return
        content = request.resolver.load(resolved)
        modules[resolved] = content
        for specifier in IMPORT_RE.findall(content):
            if specifier not in request.external:
                self._collect(request, specifier, modules)


@pytest.fixture
def engine() -> StubEngine:
    return StubEngine()
