"""Command line interface for the bundler playground."""
from __future__ import annotations

import asyncio
import contextlib
import json
import pathlib
import sys
from typing import Dict, Iterable, Iterator

import click

from .build_config import BuildConfig, FIELD_NAMES, parse_external
from .config import Config, load_config
from .emitter import render_result, render_status
from .engine.rolldown import RolldownWorker
from .errors import InvalidConfigValue, VFSError
from .loggingx import logger, set_verbose
from .protocol import BuildFailure, BuildResult
from .storage import JsonFileStore
from .workspace import Workspace

WATCHED_EXTENSIONS = {".ts", ".tsx", ".js", ".jsx", ".css", ".json"}


@click.group()
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log build scheduling details")
def main(verbose: bool) -> None:
    """Bundler playground entry point."""
    set_verbose(verbose)


@main.command("ls", help="List files in the workspace")
def list_files() -> None:
    workspace = _open_workspace(load_config())
    vfs = workspace.vfs
    for path, file in vfs.files.items():
        marker = ">" if path == vfs.active_file else " "
        entry = "*" if path == vfs.entry_point else " "
        click.echo(f"{marker}{entry} {path}  ({file.language}, {len(file.content)} chars)")


@main.command(help="Print the content of a workspace file")
@click.argument("path")
def show(path: str) -> None:
    file = _open_workspace(load_config()).vfs.get(path)
    if file is None:
        raise click.ClickException(f"No such file: {path}")
    click.echo(file.content)


@main.command(help="Add a new file and make it the active file")
@click.argument("path")
@click.option("--content", default="", help="Initial file content")
@click.option("--from-file", type=click.File("r", encoding="utf-8"), default=None, help="Read initial content from a file")
def add(path: str, content: str, from_file) -> None:  # noqa: ANN001 - click file object
    workspace = _open_workspace(load_config())
    with _surface_errors():
        workspace.add_file(path, from_file.read() if from_file else content)


@main.command(help="Delete a file (the entry point cannot be deleted)")
@click.argument("path")
def rm(path: str) -> None:
    workspace = _open_workspace(load_config())
    with _surface_errors():
        workspace.delete_file(path)


@main.command(help="Replace a file's content from --from-file or standard input")
@click.argument("path")
@click.option("--from-file", type=click.File("r", encoding="utf-8"), default=None)
def write(path: str, from_file) -> None:  # noqa: ANN001 - click file object
    workspace = _open_workspace(load_config())
    if path not in workspace.vfs:
        logger.warning("No such file %s; nothing written", path)
        return
    source = from_file or click.get_text_stream("stdin")
    workspace.update_file_content(path, source.read())


@main.command("open", help="Make a file the active file")
@click.argument("path")
def open_file(path: str) -> None:
    workspace = _open_workspace(load_config())
    if path not in workspace.vfs:
        raise click.ClickException(f"No such file: {path}")
    workspace.set_active_file(path)


@main.group(help="Inspect or change the bundler configuration")
def config() -> None:
    pass


@config.command("show")
def config_show() -> None:
    click.echo(json.dumps(_open_workspace(load_config()).config.to_dict(), indent=2))


@config.command("set", help=f"Set one option ({', '.join(FIELD_NAMES)})")
@click.argument("key", type=click.Choice(FIELD_NAMES))
@click.argument("value")
def config_set(key: str, value: str) -> None:
    workspace = _open_workspace(load_config())
    with _surface_errors():
        workspace.set_config_field(key, _coerce_option(key, value))


@config.command("reset", help="Restore the default configuration")
def config_reset() -> None:
    _open_workspace(load_config()).update_config(BuildConfig())


@main.command(help="Enable or disable remote-module packaging")
@click.argument("state", type=click.Choice(["on", "off"]))
def federation(state: str) -> None:
    _open_workspace(load_config()).set_federation(state == "on")


@main.command(help="Build the workspace once and print the bundled output")
@click.option("--json-out", is_flag=True, default=False, help="Emit JSON instead of the joined output")
def build(json_out: bool) -> None:
    settings = load_config()
    worker = RolldownWorker(settings.engine.command, settings.engine_cwd)
    try:
        result = asyncio.run(_build_once(_open_workspace(settings, worker)))
    finally:
        worker.close()
    if result is None:
        raise click.ClickException("Nothing to build")
    if json_out:
        click.echo(json.dumps(_result_to_dict(result), indent=2))
    else:
        click.echo(render_result(result))
        click.echo(render_status(False, result.elapsed_ms), err=True)
    if isinstance(result, BuildFailure):
        sys.exit(1)


@main.command(help="Mirror a directory into the workspace and rebuild on every change")
@click.argument("directory", type=click.Path(exists=True, file_okay=False, path_type=pathlib.Path))
@click.option("--interval", type=float, default=None, help="Polling interval in seconds")
def watch(directory: pathlib.Path, interval: float | None) -> None:
    settings = load_config()
    worker = RolldownWorker(settings.engine.command, settings.engine_cwd)
    workspace = _open_workspace(settings, worker)
    try:
        asyncio.run(_watch(workspace, directory, interval or settings.watch.interval))
    except KeyboardInterrupt:
        click.echo("Stopped.", err=True)
    finally:
        worker.close()


def _open_workspace(settings: Config, worker: RolldownWorker | None = None) -> Workspace:
    return Workspace(JsonFileStore(settings.state_path), worker)


async def _build_once(workspace: Workspace) -> BuildResult | None:
    workspace.rebuild()
    return await workspace.wait_idle()


async def _watch(workspace: Workspace, root: pathlib.Path, interval: float) -> None:
    assert workspace.orchestrator is not None
    workspace.orchestrator.add_listener(_print_result)
    logger.info("Watching %s every %ss", root, interval)
    workspace.rebuild()
    seen: Dict[str, str] = {}
    announced = False
    while True:
        current = _scan_directory(root)
        with _surface_errors():
            _mirror(workspace, seen, current)
        seen = current
        announced = _announce_compiling(workspace, announced)
        await asyncio.sleep(interval)


def _mirror(workspace: Workspace, seen: Dict[str, str], current: Dict[str, str]) -> None:
    for path, content in current.items():
        if path not in workspace.vfs:
            workspace.add_file(path, content)
        elif seen.get(path) != content:
            workspace.update_file_content(path, content)
    for path in seen.keys() - current.keys():
        if path != workspace.vfs.entry_point:
            workspace.delete_file(path)


def _scan_directory(root: pathlib.Path) -> Dict[str, str]:
    files: Dict[str, str] = {}
    for file in _iter_source_files(root):
        try:
            files["/" + file.relative_to(root).as_posix()] = file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Skipping %s: %s", file, exc)
    return files


def _iter_source_files(root: pathlib.Path) -> Iterable[pathlib.Path]:
    for path in sorted(root.rglob("*")):
        if path.is_file() and path.suffix in WATCHED_EXTENSIONS and "node_modules" not in path.parts:
            yield path


def _print_result(result: BuildResult) -> None:
    click.echo(render_result(result))
    click.echo(f"-- {render_status(False, result.elapsed_ms)}", err=True)


def _announce_compiling(workspace: Workspace, announced: bool) -> bool:
    """Print the compiling status once per build run; return whether one is running."""

    if workspace.compiling and not announced:
        click.echo(f"-- {render_status(True, workspace.elapsed_ms)}", err=True)
    return workspace.compiling


def _result_to_dict(result: BuildResult) -> Dict[str, object]:
    if isinstance(result, BuildFailure):
        return {"ok": False, "errorText": result.error_text, "elapsedMs": result.elapsed_ms}
    return {
        "ok": True,
        "chunks": [{"fileName": chunk.fileName, "content": chunk.content} for chunk in result.chunks],
        "elapsedMs": result.elapsed_ms,
    }


def _coerce_option(key: str, value: str) -> object:
    if key == "external":
        return parse_external(value.replace(",", "\n"))
    if key in ("minify", "sourcemap", "treeshake"):
        lowered = value.lower()
        if lowered in ("true", "yes", "on", "1"):
            return True
        if lowered in ("false", "no", "off", "0"):
            return False
    return value


@contextlib.contextmanager
def _surface_errors() -> Iterator[None]:
    try:
        yield
    except (VFSError, InvalidConfigValue) as exc:
        raise click.ClickException(str(exc)) from exc


if __name__ == "__main__":  # pragma: no cover
    main()
