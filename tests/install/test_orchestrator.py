"""
Tests for the install orchestrator.
"""

import io
import tarfile
from pathlib import Path

import pytest
from filelock import FileLock

from runtimekit.core.download import DownloadError
from runtimekit.core.exceptions import DownloadFailedError, ExtractFailedError, InstallError
from runtimekit.core.filesystem import ArchiveExtractionError
from runtimekit.core.locking import LockManager
from runtimekit.install.orchestrator import (
    COMPLETE_MARKER,
    InstallOrchestrator,
    InstallState,
    is_install_complete,
)
from runtimekit.install.plan import InstallPlan


def make_plan(prefix, version="3.3.5", archive_format="tar.gz"):
    return InstallPlan(
        platform="ubuntu-22.04",
        engine="ruby",
        version=version,
        architecture="x64",
        download_url=f"https://example.com/ruby-{version}-ubuntu-22.04.tar.gz",
        archive_format=archive_format,
        prefix=prefix,
        use_tool_cache=True,
    )


def write_ruby_tarball(path, root="ruby-3.3.5"):
    with tarfile.open(path, "w:gz") as tar:
        for name, content in {
            f"{root}/bin/ruby": b"#!ruby",
            f"{root}/share/doc/README": b"docs",
        }.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
    return path


class FakeFetch:
    """Records requested URLs and hands out a prepared archive."""

    def __init__(self, archive=None, error=None):
        self.archive = archive
        self.error = error
        self.urls = []

    def __call__(self, url):
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return self.archive


@pytest.fixture
def prefix(tmp_path):
    return tmp_path / "toolcache" / "Ruby" / "3.3.5" / "x64"


@pytest.fixture
def archive(tmp_path):
    return write_ruby_tarball(tmp_path / "download.tar.gz")


@pytest.fixture
def lock_manager(tmp_path):
    return LockManager(tmp_path / "locks")


class TestIsInstallComplete:
    def test_marker_inside_prefix(self, prefix):
        prefix.mkdir(parents=True)
        (prefix / COMPLETE_MARKER).touch()
        assert is_install_complete(prefix)

    def test_runner_complete_sibling(self, prefix):
        prefix.mkdir(parents=True)
        Path(f"{prefix}.complete").touch()
        assert is_install_complete(prefix)

    def test_unmarked_prefix(self, prefix):
        prefix.mkdir(parents=True)
        assert not is_install_complete(prefix)

    def test_missing_prefix(self, prefix):
        assert not is_install_complete(prefix)


class TestInstallOrchestrator:
    """Test InstallOrchestrator state machine."""

    def test_fresh_install(self, prefix, archive, lock_manager):
        fetch = FakeFetch(archive)
        orchestrator = InstallOrchestrator(fetch=fetch, lock_manager=lock_manager)

        runtime = orchestrator.install(make_plan(prefix))

        assert runtime.prefix == prefix
        assert runtime.version == "3.3.5"
        assert not runtime.was_cached
        assert (prefix / "bin" / "ruby").read_bytes() == b"#!ruby"
        assert not (prefix / "share" / "doc").exists()
        assert (prefix / COMPLETE_MARKER).is_file()
        assert not archive.exists()
        assert fetch.urls == ["https://example.com/ruby-3.3.5-ubuntu-22.04.tar.gz"]
        assert orchestrator.history == [
            InstallState.START,
            InstallState.CHECK_TOOL_CACHE,
            InstallState.DOWNLOAD,
            InstallState.EXTRACT,
            InstallState.MARK_COMPLETE,
            InstallState.INSTALLED,
        ]
        assert [p.name for p in prefix.parent.iterdir()] == ["x64"]

    def test_completed_install_is_reused(self, prefix, lock_manager):
        prefix.mkdir(parents=True)
        (prefix / COMPLETE_MARKER).touch()
        fetch = FakeFetch()
        orchestrator = InstallOrchestrator(fetch=fetch, lock_manager=lock_manager)

        runtime = orchestrator.install(make_plan(prefix))

        assert runtime.was_cached
        assert fetch.urls == []
        assert orchestrator.state == InstallState.READY
        assert orchestrator.history == [
            InstallState.START,
            InstallState.CHECK_TOOL_CACHE,
            InstallState.READY,
        ]

    def test_second_install_hits_cache(self, prefix, archive, lock_manager):
        orchestrator = InstallOrchestrator(fetch=FakeFetch(archive), lock_manager=lock_manager)
        orchestrator.install(make_plan(prefix))

        second = orchestrator.install(make_plan(prefix))

        assert second.was_cached

    def test_unmarked_leftover_is_replaced(self, prefix, archive, lock_manager):
        prefix.mkdir(parents=True)
        (prefix / "half-written").write_text("x")
        orchestrator = InstallOrchestrator(fetch=FakeFetch(archive), lock_manager=lock_manager)

        orchestrator.install(make_plan(prefix))

        assert not (prefix / "half-written").exists()
        assert (prefix / "bin" / "ruby").exists()

    def test_download_failure(self, prefix, lock_manager):
        fetch = FakeFetch(error=DownloadError("404 Not Found"))
        orchestrator = InstallOrchestrator(fetch=fetch, lock_manager=lock_manager)

        with pytest.raises(DownloadFailedError, match="404 Not Found"):
            orchestrator.install(make_plan(prefix))

        assert orchestrator.state == InstallState.FAILED
        assert not prefix.exists()

    def test_extract_failure_cleans_staging(self, prefix, tmp_path, lock_manager):
        archive = tmp_path / "broken.tar.gz"
        archive.write_bytes(b"not an archive")
        orchestrator = InstallOrchestrator(fetch=FakeFetch(archive), lock_manager=lock_manager)

        with pytest.raises(ExtractFailedError):
            orchestrator.install(make_plan(prefix))

        assert orchestrator.state == InstallState.FAILED
        assert InstallState.MARK_COMPLETE not in orchestrator.history
        assert not prefix.exists()
        assert list(prefix.parent.iterdir()) == []
        assert not archive.exists()

    def test_extract_receives_format_and_excludes(self, prefix, tmp_path, lock_manager):
        seen = {}

        def fake_extract(archive, destination, exclude, archive_format):
            seen.update(exclude=exclude, archive_format=archive_format)
            (destination / "ruby-mswin" / "bin").mkdir(parents=True)

        download = tmp_path / "download"
        download.write_bytes(b"7z")
        orchestrator = InstallOrchestrator(
            fetch=FakeFetch(download), extract=fake_extract, lock_manager=lock_manager
        )

        orchestrator.install(make_plan(prefix, archive_format="7z"))

        assert seen == {"exclude": ("share/doc",), "archive_format": "7z"}
        assert (prefix / "bin").is_dir()

    def test_extract_error_type(self, prefix, tmp_path, lock_manager):
        def failing_extract(archive, destination, exclude, archive_format):
            raise ArchiveExtractionError("truncated")

        download = tmp_path / "download"
        download.write_bytes(b"")
        orchestrator = InstallOrchestrator(
            fetch=FakeFetch(download), extract=failing_extract, lock_manager=lock_manager
        )

        with pytest.raises(ExtractFailedError, match="truncated"):
            orchestrator.install(make_plan(prefix))

    def test_lock_held_by_another_job(self, prefix, archive, lock_manager):
        plan = make_plan(prefix)
        fetch = FakeFetch(archive)
        orchestrator = InstallOrchestrator(fetch=fetch, lock_manager=lock_manager, lock_timeout=0)

        with FileLock(lock_manager.lock_path(plan.install_id)):
            with pytest.raises(InstallError, match=r"ruby-3\.3\.5 \(x64, ubuntu-22\.04\)"):
                orchestrator.install(plan)

        assert orchestrator.state == InstallState.FAILED
        assert fetch.urls == []
        assert not prefix.exists()
