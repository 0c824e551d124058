"""Tests for the command line interface."""

import textwrap

from click.testing import CliRunner

from chaintest import __version__
from chaintest.cli.main import cli

runner = CliRunner()

PASSING = """\
    from chaintest import TestGroup

    group = TestGroup("cli passing")
    group.test("adds", lambda a: a.equals(1 + 1, 2))
"""

FAILING = """\
    from chaintest import TestGroup

    group = TestGroup("cli failing")
    group.test("fails", lambda a: a.equals(1, 2))
"""


def test_version():
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_init_creates_config_and_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(cli, ["init"])
    assert result.exit_code == 0
    assert (tmp_path / "chaintest.yaml").exists()
    assert (tmp_path / "chains").is_dir()

    again = runner.invoke(cli, ["init"])
    assert again.exit_code == 0
    assert "already exists" in again.output


def test_config_shows_effective_values(tmp_path):
    (tmp_path / "chaintest.yaml").write_text("timeout_seconds: 3\n")
    result = runner.invoke(cli, ["config", "--project", str(tmp_path)])
    assert result.exit_code == 0
    assert '"timeout_seconds": 3.0' in result.output


def test_run_passing_file(tmp_path):
    path = tmp_path / "chain_ok.py"
    path.write_text(textwrap.dedent(PASSING))
    result = runner.invoke(cli, ["run", str(path), "--project", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "Tests Passed" in result.output


def test_run_failing_file_exits_nonzero(tmp_path):
    path = tmp_path / "chain_bad.py"
    path.write_text(textwrap.dedent(FAILING))
    result = runner.invoke(cli, ["run", str(path), "--project", str(tmp_path)])
    assert result.exit_code == 1
    assert "Tests Failed" in result.output


def test_run_uses_configured_test_paths(tmp_path):
    chains = tmp_path / "chains"
    chains.mkdir()
    (chains / "chain_ok.py").write_text(textwrap.dedent(PASSING))
    result = runner.invoke(cli, ["run", "--project", str(tmp_path)])
    assert result.exit_code == 0, result.output


def test_run_without_test_files(tmp_path):
    result = runner.invoke(cli, ["run", "--project", str(tmp_path)])
    assert result.exit_code == 1
    assert "No test files found" in result.output


SLOW = """\
    import asyncio

    from chaintest import TestGroup

    group = TestGroup("cli slow")
    group.test("slow", lambda a: a.equals(asyncio.sleep(0.5, result=1), 1))
"""


def test_run_applies_configured_timeout(tmp_path):
    path = tmp_path / "chain_slow.py"
    path.write_text(textwrap.dedent(SLOW))

    result = runner.invoke(cli, ["run", str(path), "--project", str(tmp_path)])
    assert result.exit_code == 0, result.output

    (tmp_path / "chaintest.yaml").write_text("timeout_seconds: 0.1\n")
    result = runner.invoke(cli, ["run", str(path), "--project", str(tmp_path)])
    assert result.exit_code == 1
    assert "Tests Failed" in result.output
