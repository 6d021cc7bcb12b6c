"""Playground session: state, persistence and rebuild wiring."""
from __future__ import annotations

from typing import Any, Optional

from .build_config import BuildConfig, ConfigStore
from .emitter import render_result
from .loggingx import logger
from .orchestrator import BuildSnapshot, CompileOrchestrator
from .protocol import BuildResult, BundlerEngine
from .storage import CONFIG_KEY, FEDERATION_KEY, VFS_KEY, KeyValueStore, PersistenceAdapter
from .vfs import VirtualFileSystem, default_vfs


def vfs_persistence(store: KeyValueStore) -> PersistenceAdapter[VirtualFileSystem]:
    return PersistenceAdapter(store, VFS_KEY, VirtualFileSystem.to_dict, VirtualFileSystem.from_dict, default_vfs)


def config_persistence(store: KeyValueStore) -> PersistenceAdapter[BuildConfig]:
    return PersistenceAdapter(store, CONFIG_KEY, BuildConfig.to_dict, BuildConfig.from_dict, BuildConfig)


def federation_persistence(store: KeyValueStore) -> PersistenceAdapter[bool]:
    return PersistenceAdapter(store, FEDERATION_KEY, bool, _as_flag, lambda: False)


def _as_flag(value: object) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"expected a boolean flag, got {value!r}")
    return value


class Workspace:
    """The surface the presentation layer talks to.

    Each mutation validates, swaps in the new snapshot, persists the owning
    component in full and hands the combined snapshot to the orchestrator.
    Mutations that trigger a rebuild must run inside an event loop.
    """

    def __init__(self, store: KeyValueStore, engine: Optional[BundlerEngine] = None) -> None:
        self._vfs_persistence = vfs_persistence(store)
        self._federation_persistence = federation_persistence(store)
        self._vfs = self._vfs_persistence.load()
        self._federation = self._federation_persistence.load()
        self.config_store = ConfigStore(config_persistence(store))
        self.config_store.add_listener(lambda _config: self._changed())
        # Without an engine the workspace only edits and persists state.
        self.orchestrator = CompileOrchestrator(engine) if engine is not None else None

    # Presentation-facing state ---------------------------------------

    @property
    def vfs(self) -> VirtualFileSystem:
        return self._vfs

    @property
    def config(self) -> BuildConfig:
        return self.config_store.config

    @property
    def federation(self) -> bool:
        return self._federation

    @property
    def compiling(self) -> bool:
        return self.orchestrator is not None and self.orchestrator.compiling

    @property
    def result(self) -> Optional[BuildResult]:
        return self.orchestrator.result if self.orchestrator is not None else None

    @property
    def output(self) -> str:
        return render_result(self.result)

    @property
    def elapsed_ms(self) -> float:
        return self.result.elapsed_ms if self.result is not None else 0.0

    def snapshot(self) -> BuildSnapshot:
        return BuildSnapshot(vfs=self._vfs, config=self.config, federation=self._federation)

    # Mutation callbacks ----------------------------------------------

    def add_file(self, path: str, content: str = "") -> None:
        self._set_vfs(self._vfs.add_file(path, content))

    def delete_file(self, path: str) -> None:
        self._set_vfs(self._vfs.delete_file(path))

    def update_file_content(self, path: str, content: str) -> None:
        self._set_vfs(self._vfs.update_file_content(path, content))

    def set_active_file(self, path: Optional[str]) -> None:
        self._set_vfs(self._vfs.set_active_file(path))

    def update_config(self, config: BuildConfig) -> None:
        self.config_store.replace(config)

    def set_config_field(self, key: str, value: Any) -> None:
        self.config_store.set_field(key, value)

    def set_federation(self, enabled: bool) -> None:
        if enabled == self._federation:
            return
        self._federation = bool(enabled)
        self._federation_persistence.save(self._federation)
        self._changed()

    def rebuild(self) -> None:
        """Push the current snapshot to the orchestrator without mutating anything."""

        self._changed()

    async def wait_idle(self) -> Optional[BuildResult]:
        if self.orchestrator is None:
            return None
        return await self.orchestrator.wait_idle()

    def _set_vfs(self, vfs: VirtualFileSystem) -> None:
        if vfs == self._vfs:
            logger.debug("VFS unchanged; skipping save and rebuild")
            return
        self._vfs = vfs
        self._vfs_persistence.save(vfs)
        self._changed()

    def _changed(self) -> None:
        if self.orchestrator is not None:
            self.orchestrator.notify(self.snapshot())
