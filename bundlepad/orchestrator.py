"""Single-flight build scheduling.

The orchestrator turns a stream of workspace snapshots into a serialized
sequence of engine invocations. Snapshots that arrive while a build is
running are coalesced: only the newest one is kept, and it is built as soon
as the running attempt completes. States are ``idle`` (``in_flight`` false)
and ``building``; a completed attempt moves back to ``idle`` unless the
latest requested snapshot differs from the one just built.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from .build_config import BuildConfig
from .emitter import round_elapsed, strip_ansi
from .loggingx import logger
from .protocol import (
    BuildFailure,
    BuildRequest,
    BuildResult,
    BuildSuccess,
    BundlerEngine,
    OutputChunk,
    OutputOptions,
)
from .resolver import VFSResolver
from .vfs import VirtualFileSystem


@dataclass(frozen=True)
class BuildSnapshot:
    """Everything one build attempt reads, captured at notification time."""

    vfs: VirtualFileSystem
    config: BuildConfig
    federation: bool = False


def build_request(snapshot: BuildSnapshot) -> BuildRequest:
    config = snapshot.config
    return BuildRequest(
        input=[snapshot.vfs.entry_point],
        external=list(config.external),
        platform=config.platform,
        treeshake=config.treeshake,
        resolver=VFSResolver(snapshot.vfs),
        cwd="/",
        federation=snapshot.federation,
    )


def output_options(config: BuildConfig) -> OutputOptions:
    return OutputOptions(
        dir=config.dir,
        format=config.format,
        sourcemap=config.sourcemap,
        minify=config.minify,
        entryFileNames=config.entryFileNames,
        chunkFileNames=config.chunkFileNames,
    )


ResultListener = Callable[[BuildResult], None]


class CompileOrchestrator:
    """Serialize builds against *engine*, always converging on the newest snapshot."""

    def __init__(self, engine: BundlerEngine, clock: Callable[[], float] = time.perf_counter) -> None:
        self._engine = engine
        self._clock = clock
        self.in_flight = False
        self.last_requested: Optional[BuildSnapshot] = None
        self.currently_building: Optional[BuildSnapshot] = None
        self.result: Optional[BuildResult] = None
        self._listeners: List[ResultListener] = []
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def compiling(self) -> bool:
        return self.in_flight

    def add_listener(self, listener: ResultListener) -> None:
        self._listeners.append(listener)

    def notify(self, snapshot: BuildSnapshot) -> None:
        """Record *snapshot* as the latest state and build it if idle.

        Must be called from inside a running event loop.
        """

        self.last_requested = snapshot
        if self.in_flight:
            logger.debug("Build in flight; newer snapshot queued")
            return
        self._begin()

    async def wait_idle(self) -> Optional[BuildResult]:
        """Wait until no build is running or pending and return the latest result."""

        while self._task is not None and not self._task.done():
            # Shielded: a cancelled waiter must not cancel the build itself.
            await asyncio.shield(self._task)
        return self.result

    def _begin(self) -> None:
        snapshot = self.last_requested
        if snapshot is None or len(snapshot.vfs) == 0:
            return
        self.in_flight = True
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            snapshot = self.last_requested
            assert snapshot is not None
            self.currently_building = snapshot
            try:
                result = await self._attempt(snapshot)
                self._publish(result)
            finally:
                self.in_flight = False
            latest = self.last_requested
            if latest is None or latest == self.currently_building or len(latest.vfs) == 0:
                return
            logger.debug("Snapshot changed during build; rebuilding")
            self.in_flight = True

    async def _attempt(self, snapshot: BuildSnapshot) -> BuildResult:
        started = self._clock()
        try:
            chunks = await self._invoke(snapshot)
        except Exception as exc:
            elapsed = round_elapsed((self._clock() - started) * 1000)
            logger.info("Build failed after %sms: %s", elapsed, exc)
            return BuildFailure(error_text=strip_ansi(_describe(exc)), elapsed_ms=elapsed)
        elapsed = round_elapsed((self._clock() - started) * 1000)
        logger.debug("Build produced %d chunk(s) in %sms", len(chunks), elapsed)
        return BuildSuccess(chunks=tuple(chunks), elapsed_ms=elapsed)

    async def _invoke(self, snapshot: BuildSnapshot) -> List[OutputChunk]:
        handle = await self._engine.build(build_request(snapshot))
        return list(await self._engine.generate(handle, output_options(snapshot.config)))

    def _publish(self, result: BuildResult) -> None:
        self.result = result
        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception:
                logger.exception("Build result listener failed")


def _describe(exc: BaseException) -> str:
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__
