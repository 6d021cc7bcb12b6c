"""File resolution over a captured VFS snapshot."""
from __future__ import annotations

from typing import Optional

from .errors import FileNotFoundInVFS
from .vfs import VirtualFileSystem


class VFSResolver:
    """Serve ``resolveId``/``load`` requests for one build attempt.

    Bound to a single immutable snapshot, so lookups made late in a build
    never see edits that arrived after the attempt started.
    """

    def __init__(self, vfs: VirtualFileSystem) -> None:
        self._vfs = vfs

    def resolve(self, specifier: str, importer: Optional[str] = None) -> str:  # noqa: ARG002 - engine hook signature
        return specifier

    def load(self, path: str) -> str:
        file = self._vfs.get(path)
        if file is None:
            raise FileNotFoundInVFS(path)
        return file.content
