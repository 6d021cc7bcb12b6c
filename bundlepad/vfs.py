"""In-memory virtual file system snapshots."""
from __future__ import annotations

from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Any, Dict, Literal, Mapping, Optional, get_args

from .errors import DuplicatePath, EntryPointProtected, InvalidPath, MalformedSnapshot

Language = Literal["typescript", "javascript", "css", "json"]

LANGUAGES = frozenset(get_args(Language))

_EXTENSION_LANGUAGES: Dict[str, Language] = {
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "css": "css",
    "json": "json",
}


def language_for_path(path: str) -> Language:
    """Return the editor language for *path* based on its extension.

    Unknown or missing extensions fall back to ``typescript``.
    """

    ext = path.rsplit(".", 1)[-1].lower() if "." in path else ""
    return _EXTENSION_LANGUAGES.get(ext, "typescript")


@dataclass(frozen=True)
class VirtualFile:
    path: str
    content: str
    language: Language


@dataclass(frozen=True)
class VirtualFileSystem:
    """Immutable snapshot of the playground's files.

    Every mutation returns a new snapshot and leaves ``self`` untouched, so a
    snapshot captured for a build never observes later edits.
    """

    files: Mapping[str, VirtualFile]
    entry_point: str
    active_file: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.files, MappingProxyType):
            object.__setattr__(self, "files", MappingProxyType(dict(self.files)))

    def __contains__(self, path: object) -> bool:
        return path in self.files

    def __len__(self) -> int:
        return len(self.files)

    def get(self, path: str) -> Optional[VirtualFile]:
        return self.files.get(path)

    def add_file(self, path: str, content: str = "") -> "VirtualFileSystem":
        if not path.startswith("/"):
            raise InvalidPath(path)
        if path in self.files:
            raise DuplicatePath(path)
        files = dict(self.files)
        files[path] = VirtualFile(path=path, content=content, language=language_for_path(path))
        return replace(self, files=files, active_file=path)

    def delete_file(self, path: str) -> "VirtualFileSystem":
        if path == self.entry_point:
            raise EntryPointProtected(path)
        files = dict(self.files)
        files.pop(path, None)
        active = self.entry_point if self.active_file == path else self.active_file
        return replace(self, files=files, active_file=active)

    def update_file_content(self, path: str, content: str) -> "VirtualFileSystem":
        # A missing path is ignored: the caller may be racing a delete.
        current = self.files.get(path)
        if current is None:
            return self
        files = dict(self.files)
        files[path] = replace(current, content=content)
        return replace(self, files=files)

    def set_active_file(self, path: Optional[str]) -> "VirtualFileSystem":
        return replace(self, active_file=path)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "files": {
                path: {"content": file.content, "language": file.language}
                for path, file in self.files.items()
            },
            "activeFile": self.active_file,
            "entryPoint": self.entry_point,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "VirtualFileSystem":
        """Rebuild a snapshot from its persisted layout.

        Raises :class:`MalformedSnapshot` when the layout would violate the
        snapshot invariants (entry point missing, relative paths, unknown
        languages, non-string content).
        """

        if not isinstance(data, Mapping):
            raise MalformedSnapshot("VFS snapshot must be an object")
        raw_files = data.get("files")
        if not isinstance(raw_files, Mapping):
            raise MalformedSnapshot("VFS snapshot has no file mapping")
        files: Dict[str, VirtualFile] = {}
        for path, entry in raw_files.items():
            if not isinstance(path, str) or not path.startswith("/"):
                raise MalformedSnapshot(f"invalid stored path {path!r}")
            if not isinstance(entry, Mapping) or not isinstance(entry.get("content"), str):
                raise MalformedSnapshot(f"invalid stored file {path}")
            language = entry.get("language", language_for_path(path))
            if language not in LANGUAGES:
                raise MalformedSnapshot(f"unknown language {language!r} for {path}")
            files[path] = VirtualFile(path=path, content=entry["content"], language=language)

        entry_point = data.get("entryPoint")
        if entry_point not in files:
            raise MalformedSnapshot(f"entry point {entry_point!r} is not a stored file")
        active = data.get("activeFile")
        if active is not None and active not in files:
            active = entry_point
        return VirtualFileSystem(files=files, entry_point=entry_point, active_file=active)


DEFAULT_ENTRY_POINT = "/main.tsx"

_DEFAULT_FILES = {
    "/main.tsx": """import React from 'react';
import Button from '/button.tsx';

export default function App() {
  return (
    <div>
      <Button />
    </div>
  );
}""",
    "/button.tsx": """export default () => {
  return <button>Hello world!</button>
}""",
}


def default_vfs() -> VirtualFileSystem:
    """Return the built-in two-file seed used when nothing is persisted."""

    files = {
        path: VirtualFile(path=path, content=content, language=language_for_path(path))
        for path, content in _DEFAULT_FILES.items()
    }
    return VirtualFileSystem(files=files, entry_point=DEFAULT_ENTRY_POINT, active_file=DEFAULT_ENTRY_POINT)
