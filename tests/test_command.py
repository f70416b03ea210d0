import json

import pytest

from dircli.command import USAGE, _split_run_arguments, main, use_flag, use_param
from dircli.models import ConfigError


@pytest.fixture(autouse=True)
def workdir(tmp_path, monkeypatch):
    "Keeps the configuration lookup away from the repository files"
    monkeypatch.chdir(tmp_path)
    return tmp_path


def run_main(*argv):
    with pytest.raises(SystemExit) as excinfo:
        main(list(argv))
    return excinfo.value.code


class TestUseParam:
    """Manual argv parsing helpers."""

    def test_value(self):
        argv = ["--config", "a.toml", "run"]
        assert use_param("--config", argv) == "a.toml"
        assert argv == ["run"]

    def test_absent(self):
        argv = ["run"]
        assert use_param("--config", argv) == ""
        assert argv == ["run"]

    def test_missing_value(self):
        with pytest.raises(ConfigError, match="--config expects a value"):
            use_param("--config", ["--config"])

    def test_optional(self):
        argv = ["--debug", "run"]
        assert use_param("--debug", argv, optional=True, reserved={"run"}) == "-"
        assert argv == ["run"]

        argv = ["--debug", "/tmp/log", "run"]
        assert use_param("--debug", argv, optional=True, reserved={"run"}) == "/tmp/log"
        assert argv == ["run"]

        argv = ["--debug", "--config", "x"]
        assert use_param("--debug", argv, optional=True) == "-"
        assert argv == ["--config", "x"]

    def test_flag(self):
        argv = ["--json", "x"]
        assert use_flag("--json", argv)
        assert not use_flag("--json", argv)
        assert argv == ["x"]


def test_split_run_arguments():
    assert _split_run_arguments(["--app", "a", "--", "hello", "--name", "x"]) == (["--app", "a"], ["hello", "--name", "x"])
    assert _split_run_arguments(["--manifest", "m.json", "hello"]) == (["--manifest", "m.json"], ["hello"])
    assert _split_run_arguments(["hello", "--app", "a"]) == ([], ["hello", "--app", "a"])


def test_help(capsys):
    assert run_main() == 0
    assert capsys.readouterr().out.strip() == USAGE.strip()
    assert run_main("help") == 0


def test_version(capsys):
    assert run_main("version") == 0
    assert capsys.readouterr().out.strip()


def test_unknown_subcommand(capsys):
    assert run_main("frobnicate") == 2
    assert "Unknown command: frobnicate" in capsys.readouterr().err


def test_missing_config_file():
    assert run_main("--config", "missing.toml", "scan") == 2


def test_run(hello_app, capsys):
    assert run_main("run", "--app", str(hello_app), "--", "hello", "--name", "Ann") == 0
    assert capsys.readouterr().out == "Hello, Ann!\n"

    assert run_main("--debug", "run", "--app", str(hello_app), "hello") == 0
    assert capsys.readouterr().out == "Hello, World!\n"

    assert run_main("run", "--app", str(hello_app), "nope") == 1


def test_run_uses_configuration(hello_app, workdir, capsys):
    (workdir / "dircli.toml").write_text(f'app_dir = "{hello_app.name}"\nprogram_name = "greeter"\n', encoding="utf-8")
    assert run_main("run", "hello", "Cy") == 0
    assert capsys.readouterr().out == "Hello, Cy!\n"
    assert run_main("run", "--help") == 0
    assert "Usage: greeter <command> [options]" in capsys.readouterr().out


def test_run_rejects_stray_tool_arguments(hello_app, capsys):
    assert run_main("run", "--app", str(hello_app), "--verbose", "--", "hello") == 2
    assert "Unexpected arguments: --verbose" in capsys.readouterr().err


def test_scan(hello_app, capsys):
    assert run_main("scan", "--app", str(hello_app)) == 0
    out = capsys.readouterr().out
    assert "hello  [help, params]" in out

    assert run_main("scan", "--app", str(hello_app), "--json") == 0
    data = json.loads(capsys.readouterr().out)
    assert [command["path"] for command in data["commands"]] == ["hello"]


def test_build_then_run(hello_app, workdir, capsys):
    manifest = workdir / "out.json"
    assert run_main("build", "--app", str(hello_app), "-o", str(manifest)) == 0
    assert manifest.exists()
    capsys.readouterr()
    assert run_main("run", "--manifest", str(manifest), "--", "hi", "Dee") == 0
    assert capsys.readouterr().out == "Hello, Dee!\n"


def test_check(hello_app, make_app, capsys):
    assert run_main("check", "--app", str(hello_app)) == 0
    out = capsys.readouterr().out
    assert "note: hello: Handler 'params' depends on 'env' which is not available" in out
    assert "1 command(s), 0 problem(s)" in out

    broken = make_app({"a/command.py": "def command(ctx):\n    pass\n", "b/params.py": "params = []\n"}, root="broken")
    assert run_main("check", "--app", str(broken)) == 1
    assert "no command.py" in capsys.readouterr().err

    empty = make_app({}, root="empty")
    assert run_main("check", "--app", str(empty)) == 1
