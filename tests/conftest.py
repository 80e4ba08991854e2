"""
Pytest configuration and shared fixtures for RuntimeKit tests.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from runtimekit.catalog.versions import VersionCatalog
from runtimekit.core.process import ProcessResult
from runtimekit.install.plan import InstalledRuntime

RUNNER_VARIABLES = (
    "ImageOS",
    "BUNDLE_GEMFILE",
    "RUNNER_TOOL_CACHE",
    "RUNNER_TEMP",
    "RUNTIMEKIT_HOME",
    "GITHUB_WORKSPACE",
    "GITHUB_OUTPUT",
    "GITHUB_ENV",
    "GITHUB_PATH",
    "INPUT_RUBY-VERSION",
    "INPUT_RUBY_VERSION",
    "INPUT_ARCHITECTURE",
    "INPUT_BUNDLER",
    "INPUT_BUNDLER-CACHE",
    "INPUT_BUNDLER_CACHE",
    "INPUT_WORKING-DIRECTORY",
    "INPUT_WORKING_DIRECTORY",
    "INPUT_CACHE-DIR",
    "INPUT_CACHE_DIR",
)


@pytest.fixture(autouse=True)
def clean_runner_env(monkeypatch):
    """Keep the host's CI variables out of every test."""
    for name in RUNNER_VARIABLES:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_home(tmp_path, monkeypatch):
    """Point the home directory at a temporary directory."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    monkeypatch.setenv("RUNTIMEKIT_HOME", str(home / ".runtimekit"))
    return home


@pytest.fixture
def runtime(tmp_path):
    """An installed MRI runtime."""
    return InstalledRuntime(
        prefix=tmp_path / "rubies" / "ruby-3.3.5",
        engine="ruby",
        version="3.3.5",
        architecture="x64",
    )


@pytest.fixture
def simple_catalog():
    """The three-version catalog used throughout the resolver tests."""
    return VersionCatalog.from_mapping(
        "ruby",
        "x64",
        {
            "3.1.0": "https://example.com/ruby-3.1.0.tar.gz",
            "3.1.2": "https://example.com/ruby-3.1.2.tar.gz",
            "3.2.0": "https://example.com/ruby-3.2.0.tar.gz",
        },
    )


@dataclass
class RecordedCall:
    """One command seen by FakeRunner."""

    name: str
    args: List[str]
    env: Optional[Dict[str, str]]
    cwd: Optional[Path]

    @property
    def line(self) -> str:
        return " ".join([self.name, *self.args])


class FakeRunner:
    """
    Stand-in for runtimekit.core.process.run.

    Commands are matched against `results` by prefix of their command line,
    where the executable is reduced to its file name ("gem -v").
    Unmatched commands succeed with empty output.
    """

    def __init__(self, results: Optional[Dict[str, ProcessResult]] = None):
        self.results = results or {}
        self.calls: List[RecordedCall] = []

    def __call__(self, cmd, args=(), env=None, cwd=None, silent=False):
        call = RecordedCall(
            Path(str(cmd)).name, list(args), dict(env) if env else None, cwd
        )
        self.calls.append(call)
        for prefix, result in self.results.items():
            if call.line.startswith(prefix):
                return result
        return ProcessResult(stdout="", exit_code=0)

    @property
    def lines(self) -> List[str]:
        return [call.line for call in self.calls]


@pytest.fixture
def fake_run():
    """A FakeRunner with no scripted results."""
    return FakeRunner()


@pytest.fixture
def make_runner():
    """Factory for FakeRunner instances with scripted results."""
    return FakeRunner
