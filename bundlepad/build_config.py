"""Bundler configuration record and its store."""
from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Callable, Dict, Iterable, List, Literal, Mapping, Tuple, get_args

from .errors import InvalidConfigValue, MalformedSnapshot
from .loggingx import logger

Format = Literal["es", "cjs", "iife", "umd"]
Platform = Literal["browser", "node"]

FORMATS = get_args(Format)
PLATFORMS = get_args(Platform)

_ENUM_FIELDS: Dict[str, Tuple[str, ...]] = {"format": FORMATS, "platform": PLATFORMS}
_BOOL_FIELDS = ("minify", "sourcemap", "treeshake")
_STR_FIELDS = ("dir", "entryFileNames", "chunkFileNames")


@dataclass(frozen=True)
class BuildConfig:
    """Options forwarded to the bundling engine.

    Field names follow the engine's own option names so the persisted record
    and the request payload line up one to one.
    """

    external: Tuple[str, ...] = (
        "react/jsx-runtime",
        "react",
        "react-dom",
        "@module-federation/runtime",
    )
    format: Format = "es"
    platform: Platform = "browser"
    minify: bool = False
    sourcemap: bool = False
    treeshake: bool = True
    dir: str = "dist"
    entryFileNames: str = "[name].js"
    chunkFileNames: str = "[name]-[hash].js"

    def with_field(self, key: str, value: Any) -> "BuildConfig":
        """Return a copy with *key* replaced by a validated *value*."""

        return replace(self, **{key: _validate(key, value)})

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["external"] = list(self.external)
        return data

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "BuildConfig":
        if not isinstance(data, Mapping):
            raise MalformedSnapshot("build config must be an object")
        known = {f.name for f in fields(BuildConfig)}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                continue
            try:
                values[key] = _validate(key, value)
            except InvalidConfigValue as exc:
                raise MalformedSnapshot(str(exc)) from exc
        return BuildConfig(**values)


DEFAULT_CONFIG = BuildConfig()

FIELD_NAMES = tuple(f.name for f in fields(BuildConfig))


def parse_external(text: str) -> List[str]:
    """Split a one-specifier-per-line block, dropping blank lines."""

    return [line.strip() for line in text.splitlines() if line.strip()]


def _dedupe(items: Iterable[str]) -> Tuple[str, ...]:
    seen: Dict[str, None] = {}
    for item in items:
        seen.setdefault(item, None)
    return tuple(seen)


def _validate(key: str, value: Any) -> Any:
    if key == "external":
        if isinstance(value, str) or not isinstance(value, Iterable):
            raise InvalidConfigValue(key, value, "expected a list of module specifiers")
        items = list(value)
        if not all(isinstance(item, str) for item in items):
            raise InvalidConfigValue(key, value, "module specifiers must be strings")
        return _dedupe(items)
    if key in _ENUM_FIELDS:
        allowed = _ENUM_FIELDS[key]
        if value not in allowed:
            raise InvalidConfigValue(key, value, f"expected one of {', '.join(allowed)}")
        return value
    if key in _BOOL_FIELDS:
        if not isinstance(value, bool):
            raise InvalidConfigValue(key, value, "expected a boolean")
        return value
    if key in _STR_FIELDS:
        if not isinstance(value, str):
            raise InvalidConfigValue(key, value, "expected a string")
        return value
    raise InvalidConfigValue(key, value, "unknown option")


Listener = Callable[[BuildConfig], None]


class ConfigStore:
    """Holds the current :class:`BuildConfig` and persists every change.

    ``persistence`` is anything with ``load()`` and ``save(config)``; see
    :class:`bundlepad.storage.PersistenceAdapter`.
    """

    def __init__(self, persistence: Any) -> None:
        self._persistence = persistence
        self._config: BuildConfig = persistence.load()
        self._listeners: List[Listener] = []

    @property
    def config(self) -> BuildConfig:
        return self._config

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def set_field(self, key: str, value: Any) -> BuildConfig:
        return self._commit(self._config.with_field(key, value))

    def replace(self, config: BuildConfig) -> BuildConfig:
        validated = BuildConfig(**{name: _validate(name, getattr(config, name)) for name in FIELD_NAMES})
        return self._commit(validated)

    def _commit(self, config: BuildConfig) -> BuildConfig:
        if config == self._config:
            logger.debug("Build config unchanged; skipping save and rebuild")
            return self._config
        self._config = config
        self._persistence.save(config)
        for listener in list(self._listeners):
            listener(config)
        return config
