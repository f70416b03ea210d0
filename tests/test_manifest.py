import json

import pytest

from dircli.constants import MANIFEST_FORMAT
from dircli.engine import ExecutionEngine, run_app
from dircli.manifest import ManifestError, build_manifest, load_manifest, parse_manifest, write_manifest
from dircli.scanner import Scanner


@pytest.fixture
def app(make_app):
    return make_app(
        {
            "version.py": 'version = "1.0.0"\n',
            "env.py": "env = {}\n",
            "hello/command.py": "def command(ctx):\n    print('hello', ctx.data.get('name'))\n",
            "hello/params.py": 'params = [{"field": "name", "arg_index": 0}]\n',
            "hello/help.py": 'help = {"description": "Greets", "aliases": ["hi"]}\n',
            "user/[id]/command.py": "def command(ctx):\n    print('user', ctx.params['id'])\n",
        }
    ).resolve()


@pytest.mark.asyncio
async def test_build_manifest(app):
    structure = await Scanner(app).scan()
    data = build_manifest(structure, app.parent)
    assert data["format"] == MANIFEST_FORMAT
    assert data["root"] == "app"
    assert [command["path"] for command in data["commands"]] == ["hello", "user/[id]"]
    hello = data["commands"][0]
    assert hello["source_file"] == "hello/command.py"
    assert hello["handlers"]["params"] == "hello/params.py"
    assert hello["metadata"] == {"description": "Greets", "aliases": ["hi"]}
    assert data["handlers"]["env"] == {"name": "env", "file_path": "env.py", "command_path": None}
    assert data["version"] == {"version": "1.0.0", "metadata": {}}
    json.dumps(data)


@pytest.mark.asyncio
async def test_write_and_load(app, tmp_path):
    structure = await Scanner(app).scan()
    target = await write_manifest(structure, tmp_path / "dircli.manifest.json")
    loaded = await load_manifest(target)
    assert loaded.root == app
    assert loaded.commands == structure.commands
    assert dict(loaded.handlers) == dict(structure.handlers)
    assert loaded.version == structure.version


@pytest.mark.asyncio
async def test_manifest_dispatch(app, tmp_path, capsys):
    structure = await Scanner(app).scan()
    manifest = await write_manifest(structure, tmp_path / "m.json")
    engine = ExecutionEngine(await load_manifest(manifest), environ={})
    assert await engine.dispatch(["hi", "Ann"]) == 0
    assert await engine.dispatch(["user", "9"]) == 0
    assert capsys.readouterr().out == "hello Ann\nuser 9\n"


def test_run_app_with_manifest(app, tmp_path, capsys):
    structure = Scanner(app).scan_sync()
    manifest = tmp_path / "m.json"
    manifest.write_text(json.dumps(build_manifest(structure, tmp_path)), encoding="utf-8")
    # the root argument is ignored when a manifest is given
    assert run_app(tmp_path / "elsewhere", ["hello", "Max"], manifest=manifest) == 0
    assert capsys.readouterr().out == "hello Max\n"


@pytest.mark.asyncio
async def test_load_errors(tmp_path):
    with pytest.raises(ManifestError, match="Unable to read manifest"):
        await load_manifest(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(ManifestError, match="Invalid manifest"):
        await load_manifest(bad)


def test_parse_errors(tmp_path):
    with pytest.raises(ManifestError, match="Unsupported manifest format"):
        parse_manifest({"format": 99}, tmp_path)
    with pytest.raises(ManifestError, match="Malformed manifest"):
        parse_manifest({"format": MANIFEST_FORMAT, "commands": [{}]}, tmp_path)
    with pytest.raises(ManifestError, match="Malformed manifest"):
        parse_manifest(
            {"format": MANIFEST_FORMAT, "commands": [], "handlers": {"x": {"name": "nope", "file_path": "x.py"}}},
            tmp_path,
        )
