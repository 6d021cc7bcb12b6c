import asyncio
import json
import sys
from pathlib import Path

import pytest
from click.testing import CliRunner

sys.path.append(str(Path(__file__).resolve().parent.parent))

from bundlepad import __main__ as cli
from bundlepad.config import Config, load_config
from bundlepad.storage import JsonFileStore
from bundlepad.workspace import Workspace


@pytest.fixture
def settings(tmp_path, monkeypatch):
    config = Config(root=tmp_path)
    monkeypatch.setattr(cli, "load_config", lambda: config)
    return config


@pytest.fixture
def worker(engine, monkeypatch):
    closed = []
    engine.close = lambda: closed.append(True)
    engine.closed = closed
    monkeypatch.setattr(cli, "RolldownWorker", lambda command, cwd: engine)
    return engine


def _workspace(settings):
    return Workspace(JsonFileStore(settings.state_path))


def test_add_ls_and_rm(settings):
    runner = CliRunner()
    assert runner.invoke(cli.main, ["add", "/util.ts", "--content", "export {}"]).exit_code == 0
    listing = runner.invoke(cli.main, ["ls"]).output
    assert ">  /util.ts  (typescript, 9 chars)" in listing
    assert " * /main.tsx" in listing
    assert runner.invoke(cli.main, ["rm", "/util.ts"]).exit_code == 0
    assert "/util.ts" not in _workspace(settings).vfs


def test_validation_errors_exit_non_zero(settings):
    runner = CliRunner()
    result = runner.invoke(cli.main, ["add", "relative.ts"])
    assert result.exit_code == 1
    assert "File path must start with /" in result.output
    result = runner.invoke(cli.main, ["rm", "/main.tsx"])
    assert result.exit_code == 1
    assert "Cannot delete entry point file" in result.output


def test_write_reads_stdin(settings):
    runner = CliRunner()
    assert runner.invoke(cli.main, ["write", "/button.tsx"], input="export default 1;").exit_code == 0
    assert _workspace(settings).vfs.files["/button.tsx"].content == "export default 1;"
    assert runner.invoke(cli.main, ["show", "/button.tsx"]).output == "export default 1;\n"


def test_open_requires_existing_file(settings):
    runner = CliRunner()
    assert runner.invoke(cli.main, ["open", "/missing.ts"]).exit_code == 1
    assert runner.invoke(cli.main, ["open", "/button.tsx"]).exit_code == 0
    assert _workspace(settings).vfs.active_file == "/button.tsx"


def test_config_set_and_reset(settings):
    runner = CliRunner()
    assert runner.invoke(cli.main, ["config", "set", "minify", "true"]).exit_code == 0
    assert runner.invoke(cli.main, ["config", "set", "external", "vue, vue,lodash"]).exit_code == 0
    shown = json.loads(runner.invoke(cli.main, ["config", "show"]).output)
    assert shown["minify"] is True
    assert shown["external"] == ["vue", "lodash"]
    bad = runner.invoke(cli.main, ["config", "set", "format", "amd"])
    assert bad.exit_code == 1
    assert runner.invoke(cli.main, ["config", "reset"]).exit_code == 0
    assert _workspace(settings).config.minify is False


def test_federation_flag(settings):
    assert CliRunner().invoke(cli.main, ["federation", "on"]).exit_code == 0
    assert _workspace(settings).federation is True


def test_build_prints_joined_output(settings, worker):
    result = CliRunner().invoke(cli.main, ["build"])
    assert result.exit_code == 0
    assert result.output.startswith("//main.js\n")
    assert worker.closed == [True]


def test_build_json_reports_failure(settings, worker):
    runner = CliRunner()
    runner.invoke(cli.main, ["write", "/main.tsx"], input="import '/gone.ts';")
    result = runner.invoke(cli.main, ["build", "--json-out"])
    assert result.exit_code == 1
    payload = json.loads(result.output)
    assert payload["ok"] is False
    assert 'File not found: "/gone.ts"' in payload["errorText"]


def test_mirror_adds_updates_and_removes(settings, tmp_path):
    workspace = _workspace(settings)
    src = tmp_path / "src"
    src.mkdir()
    (src / "a.ts").write_text("export const a = 1;", encoding="utf-8")
    (src / "notes.txt").write_text("ignored", encoding="utf-8")
    first = cli._scan_directory(src)
    assert first == {"/a.ts": "export const a = 1;"}
    cli._mirror(workspace, {}, first)
    assert workspace.vfs.files["/a.ts"].content == "export const a = 1;"

    second = {"/a.ts": "export const a = 2;"}
    cli._mirror(workspace, first, second)
    assert workspace.vfs.files["/a.ts"].content == "export const a = 2;"

    cli._mirror(workspace, second, {})
    assert "/a.ts" not in workspace.vfs


def test_load_config_reads_toml(tmp_path):
    (tmp_path / ".bundlepad.toml").write_text(
        '[core]\nstate_file = "state/ws.json"\n[engine]\ncommand = ["node", "w.mjs"]\ncwd = "tools"\n[watch]\ninterval = 1.5\n',
        encoding="utf-8",
    )
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    config = load_config(nested)
    assert config.root == tmp_path
    assert config.state_path == tmp_path / "state" / "ws.json"
    assert config.engine.command == ["node", "w.mjs"]
    assert config.engine_cwd == tmp_path / "tools"
    assert config.watch.interval == 1.5


def test_load_config_defaults(tmp_path):
    config = load_config(tmp_path)
    assert config.engine.command is None
    assert config.engine_cwd is None
    assert config.state_path == tmp_path / ".bundlepad" / "state.json"


def test_engine_command_may_be_a_single_executable(tmp_path):
    (tmp_path / ".bundlepad.toml").write_text('[engine]\ncommand = "bundlepad-worker"\n', encoding="utf-8")
    assert load_config(tmp_path).engine.command == ["bundlepad-worker"]


def test_watch_announces_each_build_run_once(settings, engine, capsys):
    async def scenario():
        engine.hold = asyncio.Event()
        workspace = Workspace(JsonFileStore(settings.state_path), engine)
        workspace.rebuild()
        announced = cli._announce_compiling(workspace, False)
        again = cli._announce_compiling(workspace, announced)
        engine.hold.set()
        await workspace.wait_idle()
        return announced, again, cli._announce_compiling(workspace, again)

    assert asyncio.run(scenario()) == (True, True, False)
    assert capsys.readouterr().err.count("-- Compiling...") == 1
