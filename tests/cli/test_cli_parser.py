"""
Tests for the command-line interface.
"""

import hashlib
from unittest.mock import patch

import pytest

from runtimekit.cli.parser import CLI
from runtimekit.core.environment import EnvironmentDelta
from runtimekit.core.exceptions import InvalidInputError
from runtimekit.install.plan import InstalledRuntime
from runtimekit.setup_runtime import SetupResult


@pytest.fixture
def cli():
    return CLI()


@pytest.fixture
def x64_host():
    with patch("runtimekit.install.installers.builder.detect_architecture", return_value="x64"):
        yield


class TestCLIParser:
    """Test argument parsing."""

    def test_no_command(self, cli, capsys):
        assert cli.run([]) == 1
        assert "usage: rtkit" in capsys.readouterr().out

    def test_version(self, cli, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.run(["--version"])

        assert exc_info.value.code == 0
        assert "RuntimeKit" in capsys.readouterr().out

    def test_setup_arguments(self, cli):
        args = cli.parse_args(
            [
                "setup",
                "--ruby-version",
                "jruby-9.4",
                "--bundler-cache",
                "false",
                "--architecture",
                "default",
            ]
        )

        assert args.command == "setup"
        assert args.ruby_version == "jruby-9.4"
        assert args.bundler_cache == "false"
        assert args.architecture == "default"
        assert args.bundler is None

    def test_invalid_architecture(self, cli):
        with pytest.raises(SystemExit):
            cli.parse_args(["setup", "--architecture", "arm64"])


class TestVersionsCommand:
    def test_lists_oldest_first(self, cli, capsys, x64_host):
        assert cli.run(["versions", "jruby", "--platform", "ubuntu-22.04"]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert lines == ["1.7.27", "9.0.5.0"]

    def test_windows_x86(self, cli, capsys):
        assert cli.run(
            ["versions", "ruby", "--platform", "windows-2022", "--architecture", "x86"]
        ) == 0

        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == "1.9.3"
        assert "head" not in lines

    def test_unknown_engine(self, cli, x64_host):
        assert cli.run(["versions", "rbx", "--platform", "ubuntu-22.04"]) == 1


class TestResolveCommand:
    def test_resolve_prefix(self, cli, capsys, x64_host):
        assert cli.run(["resolve", "1.9", "--platform", "ubuntu-22.04"]) == 0
        assert capsys.readouterr().out.strip() == "ruby-1.9.3-p551"

    def test_resolve_engine_only(self, cli, capsys, x64_host):
        assert cli.run(["resolve", "jruby", "--platform", "macos-13"]) == 0
        assert capsys.readouterr().out.strip() == "jruby-9.0.5.0"

    def test_resolve_unknown_version(self, cli, capsys, x64_host):
        assert cli.run(["resolve", "2.9", "--platform", "ubuntu-22.04"]) == 1
        assert capsys.readouterr().out == ""

    def test_resolve_x86_on_builder(self, cli, x64_host):
        assert cli.run(
            ["resolve", "3.3", "--platform", "ubuntu-22.04", "--architecture", "x86"]
        ) == 1


class TestCacheKeyCommand:
    def test_prints_key(self, cli, capsys, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "Gemfile.lock").write_bytes(b"GEM\n")

        exit_code = cli.run(
            [
                "cache-key",
                "Gemfile.lock",
                "--ruby",
                "3.3.5",
                "--platform",
                "ubuntu-22.04",
                "--prefix",
                str(tmp_path),
            ]
        )

        assert exit_code == 0
        digest = hashlib.sha256(b"GEM\n").hexdigest()
        assert capsys.readouterr().out.strip() == (
            f"runtimekit-bundler-cache-v3-ubuntu-22.04-x64-ruby-3.3.5-Gemfile.lock-{digest}"
        )

    def test_missing_lock_file(self, cli, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert cli.run(
            ["cache-key", "Gemfile.lock", "--ruby", "3.3.5", "--platform", "ubuntu-22.04"]
        ) == 1


class TestSetupCommand:
    """Test publishing of setup results."""

    @pytest.fixture
    def result(self, tmp_path):
        prefix = tmp_path / "Ruby" / "3.3.5" / "x64"
        return SetupResult(
            platform="ubuntu-22.04",
            runtime=InstalledRuntime(prefix, "ruby", "3.3.5", "x64"),
            environment=EnvironmentDelta({"BUNDLE_JOBS": "4"}, [str(prefix / "bin")]),
        )

    def test_writes_runner_files(self, cli, result, tmp_path, monkeypatch):
        for name in ("GITHUB_OUTPUT", "GITHUB_ENV", "GITHUB_PATH"):
            monkeypatch.setenv(name, str(tmp_path / name.lower()))

        with patch(
            "runtimekit.cli.commands.setup.setup_runtime", return_value=result
        ) as mock_setup:
            assert cli.run(["setup", "--ruby-version", "3.3"]) == 0

        options = mock_setup.call_args[0][0]
        assert options["ruby-version"] == "3.3"
        assert options["bundler"] is None
        assert (tmp_path / "github_output").read_text() == f"ruby-prefix={result.prefix}\n"
        assert (tmp_path / "github_env").read_text() == "BUNDLE_JOBS=4\n"
        assert (tmp_path / "github_path").read_text() == f"{result.prefix / 'bin'}\n"

    def test_prints_exports(self, cli, result, capsys):
        with patch("runtimekit.cli.commands.setup.setup_runtime", return_value=result):
            assert cli.run(["setup"]) == 0

        out = capsys.readouterr().out.splitlines()
        assert out[0] == f"ruby-prefix={result.prefix}"
        assert "export BUNDLE_JOBS='4'" in out

    def test_setup_error(self, cli):
        with patch(
            "runtimekit.cli.commands.setup.setup_runtime",
            side_effect=InvalidInputError("input ruby-version needs to be specified"),
        ):
            assert cli.run(["setup"]) == 1
