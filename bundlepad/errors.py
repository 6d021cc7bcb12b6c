"""Error taxonomy for the playground core."""
from __future__ import annotations


class BundlepadError(Exception):
    """Base class for every error raised by :mod:`bundlepad`."""


class VFSError(BundlepadError):
    """A virtual file system mutation was rejected; the snapshot is unchanged."""


class InvalidPath(VFSError):
    def __init__(self, path: str) -> None:
        super().__init__(f"File path must start with /: {path!r}")
        self.path = path


class DuplicatePath(VFSError):
    def __init__(self, path: str) -> None:
        super().__init__(f"File already exists: {path}")
        self.path = path


class EntryPointProtected(VFSError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Cannot delete entry point file: {path}")
        self.path = path


class InvalidConfigValue(BundlepadError):
    """A build configuration field was unknown or outside its value set."""

    def __init__(self, key: str, value: object, reason: str) -> None:
        super().__init__(f"Invalid value for {key}: {value!r} ({reason})")
        self.key = key
        self.value = value


class MalformedSnapshot(BundlepadError):
    """A persisted snapshot could not be turned back into a valid object."""


class FileNotFoundInVFS(BundlepadError):
    """Raised by the file resolver when a build asks for an unknown path."""

    def __init__(self, path: str) -> None:
        super().__init__(f'File not found: "{path}"')
        self.path = path


class EngineError(BundlepadError):
    """The external bundling engine reported a failure or went away."""
