"""Application settings loader for :mod:`bundlepad`."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
import importlib
import importlib.util
import pathlib
from types import ModuleType

tomllib: ModuleType
if importlib.util.find_spec("tomllib") is not None:  # pragma: no cover - depends on runtime Python version
    tomllib = importlib.import_module("tomllib")
else:  # pragma: no cover - exercised on Python < 3.11
    tomllib = importlib.import_module("tomli")

CONFIG_FILENAME = ".bundlepad.toml"


@dataclass
class CoreConfig:
    """Where the persisted workspace lives."""

    state_file: str = ".bundlepad/state.json"


@dataclass
class EngineConfig:
    """How to start the bundler worker."""

    command: list[str] | None = None
    cwd: str | None = None


@dataclass
class WatchConfig:
    interval: float = 0.25


@dataclass
class Config:
    """Complete settings tree."""

    root: pathlib.Path
    core: CoreConfig = field(default_factory=CoreConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)

    @property
    def state_path(self) -> pathlib.Path:
        path = pathlib.Path(self.core.state_file).expanduser()
        return path if path.is_absolute() else self.root / path

    @property
    def engine_cwd(self) -> pathlib.Path | None:
        if self.engine.cwd is None:
            return None
        path = pathlib.Path(self.engine.cwd).expanduser()
        return path if path.is_absolute() else self.root / path


def load_config(start: pathlib.Path | None = None) -> Config:
    """Load ``.bundlepad.toml`` from *start* or its parents.

    If no settings file is present a :class:`Config` with defaults is
    returned. The ``root`` attribute will reference the directory where the
    file was found, or ``start``/``cwd`` when absent.
    """

    if start is None:
        start = pathlib.Path.cwd()
    cfg_path = _find_config(start)
    root = cfg_path.parent if cfg_path else start
    config = Config(root=root)
    if not cfg_path:
        return config

    with cfg_path.open("rb") as fh:
        data = tomllib.load(fh)

    core_data = data.get("core", {})
    config.core = CoreConfig(
        state_file=str(core_data.get("state_file", config.core.state_file)),
    )

    engine_data = data.get("engine", {})
    command = _as_command(engine_data.get("command"))
    cwd = engine_data.get("cwd")
    config.engine = EngineConfig(
        command=command or None,
        cwd=str(cwd) if cwd is not None else None,
    )

    watch_data = data.get("watch", {})
    config.watch = WatchConfig(
        interval=float(watch_data.get("interval", config.watch.interval)),
    )

    return config


def _find_config(start: pathlib.Path) -> pathlib.Path | None:
    """Return the path to ``.bundlepad.toml`` searching upwards from ``start``."""

    for directory in [start, *start.parents]:
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def _as_command(value: Any) -> list[str]:
    """``engine.command`` is an argv list; a bare string is a lone executable."""

    if isinstance(value, str):
        return [value] if value else []
    return [str(item) for item in value or []]
