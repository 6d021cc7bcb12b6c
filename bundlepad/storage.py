"""Key/value blob stores and the persistence adapter built on them."""
from __future__ import annotations

import pathlib
from typing import Callable, Dict, Generic, Optional, Protocol, TypeVar

import orjson

from .loggingx import logger

T = TypeVar("T")

VFS_KEY = "bundlepad-vfs"
CONFIG_KEY = "bundlepad-config"
FEDERATION_KEY = "bundlepad-federation"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryStore:
    """Dictionary backed store for tests and throwaway sessions."""

    def __init__(self, initial: Dict[str, str] | None = None) -> None:
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value


class JsonFileStore:
    """Store every key as a string inside a single JSON object on disk.

    The whole file is rewritten on each :meth:`set`. A missing file reads as an
    empty store; an unreadable one raises so the adapter can fall back.
    """

    def __init__(self, path: pathlib.Path) -> None:
        self.path = pathlib.Path(path)

    def get(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read_for_update()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS))
        tmp.replace(self.path)

    def _read(self) -> Dict[str, object]:
        if not self.path.exists():
            return {}
        payload = orjson.loads(self.path.read_bytes())
        if not isinstance(payload, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        return payload

    def _read_for_update(self) -> Dict[str, object]:
        try:
            return self._read()
        except (OSError, ValueError) as exc:
            # orjson.JSONDecodeError is a ValueError.
            logger.warning("Discarding unreadable state file %s: %s", self.path, exc)
            return {}


class PersistenceAdapter(Generic[T]):
    """Load-once / save-in-full persistence of one serializable value.

    Storage failures and malformed blobs are logged and never propagated:
    ``load`` falls back to ``default()`` and ``save`` drops the write.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str,
        encode: Callable[[T], object],
        decode: Callable[[object], T],
        default: Callable[[], T],
    ) -> None:
        self.store = store
        self.key = key
        self._encode = encode
        self._decode = decode
        self._default = default

    def load(self) -> T:
        try:
            raw = self.store.get(self.key)
        except Exception as exc:
            logger.warning("Failed to read %s from storage: %s", self.key, exc)
            return self._default()
        if raw is None:
            return self._default()
        try:
            return self._decode(orjson.loads(raw))
        except Exception as exc:
            logger.warning("Ignoring malformed %s entry: %s", self.key, exc)
            return self._default()

    def save(self, value: T) -> None:
        try:
            blob = orjson.dumps(self._encode(value)).decode()
            self.store.set(self.key, blob)
        except Exception as exc:
            logger.warning("Failed to save %s to storage: %s", self.key, exc)
