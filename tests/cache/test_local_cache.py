"""
Tests for the directory-backed cache service.
"""

import json
import shutil

import pytest

from runtimekit.cache.local import LocalCacheService
from runtimekit.cache.service import MAX_KEY_LENGTH, validate_key
from runtimekit.core.exceptions import (
    CacheReserveError,
    CacheTransientError,
    CacheValidationError,
)


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "project"
    gems = root / "vendor" / "bundle" / "ruby" / "3.3.0" / "gems"
    (gems / "rake-13.2.1").mkdir(parents=True)
    (gems / "rake-13.2.1" / "rake.gemspec").write_text("rake")
    return root


@pytest.fixture
def service(tmp_path, project):
    return LocalCacheService(tmp_path / "cache", root=project)


class TestValidateKey:
    def test_valid(self):
        validate_key("runtimekit-bundler-cache-v3-ubuntu-22.04-x64-ruby-3.3.5")

    def test_empty(self):
        with pytest.raises(CacheValidationError):
            validate_key("")

    def test_too_long(self):
        with pytest.raises(CacheValidationError, match="larger than 512"):
            validate_key("k" * (MAX_KEY_LENGTH + 1))

    def test_comma(self):
        with pytest.raises(CacheValidationError, match="commas"):
            validate_key("a,b")


class TestLocalCacheService:
    """Test LocalCacheService save and restore."""

    def test_miss(self, service):
        assert service.restore(["vendor/bundle"], "key-1", ["key-"]) is None

    def test_save_then_restore_exact(self, service, project):
        service.save(["vendor/bundle"], "key-1")
        bundle = project / "vendor" / "bundle"
        shutil.rmtree(bundle)

        restored = service.restore(["vendor/bundle"], "key-1", ["key-"])

        assert restored == "key-1"
        gemspec = bundle / "ruby" / "3.3.0" / "gems" / "rake-13.2.1" / "rake.gemspec"
        assert gemspec.read_text() == "rake"

    def test_index_contents(self, service, tmp_path):
        service.save(["vendor/bundle"], "key-1")

        index = json.loads((tmp_path / "cache" / "index.json").read_text())

        entry = index["entries"]["key-1"]
        assert entry["sequence"] == 1
        assert entry["size"] > 0
        assert (tmp_path / "cache" / entry["archive"]).is_file()

    def test_restore_newest_prefix_match(self, service):
        service.save(["vendor/bundle"], "base-aaa")
        service.save(["vendor/bundle"], "base-bbb")
        service.save(["vendor/bundle"], "other-ccc")

        assert service.restore(["vendor/bundle"], "base-zzz", ["base-"]) == "base-bbb"

    def test_exact_key_wins_over_newer_prefix_match(self, service):
        service.save(["vendor/bundle"], "base-aaa")
        service.save(["vendor/bundle"], "base-bbb")

        assert service.restore(["vendor/bundle"], "base-aaa", ["base-"]) == "base-aaa"

    def test_save_existing_key(self, service):
        service.save(["vendor/bundle"], "key-1")

        with pytest.raises(CacheReserveError, match="Unable to reserve cache"):
            service.save(["vendor/bundle"], "key-1")

    def test_missing_archive_is_a_miss_and_can_be_saved_again(self, service, tmp_path):
        service.save(["vendor/bundle"], "key-1")
        index_path = tmp_path / "cache" / "index.json"
        archive = json.loads(index_path.read_text())["entries"]["key-1"]["archive"]
        (tmp_path / "cache" / archive).unlink()

        assert service.restore(["vendor/bundle"], "key-1", ["key-"]) is None
        assert "key-1" not in json.loads(index_path.read_text())["entries"]

        service.save(["vendor/bundle"], "key-1")
        assert service.restore(["vendor/bundle"], "key-1") == "key-1"

    def test_missing_archive_falls_back_to_older_entry(self, service, tmp_path):
        service.save(["vendor/bundle"], "base-aaa")
        service.save(["vendor/bundle"], "base-bbb")
        index = json.loads((tmp_path / "cache" / "index.json").read_text())
        (tmp_path / "cache" / index["entries"]["base-bbb"]["archive"]).unlink()

        assert service.restore(["vendor/bundle"], "base-zzz", ["base-"]) == "base-aaa"

    def test_reserve_error_is_transient(self):
        assert issubclass(CacheReserveError, CacheTransientError)

    def test_save_missing_paths(self, service):
        with pytest.raises(CacheTransientError, match="do\\(es\\) not exist"):
            service.save(["vendor/missing"], "key-1")

    def test_save_path_outside_root(self, service):
        with pytest.raises(CacheValidationError, match="outside of"):
            service.save(["../elsewhere"], "key-1")

    def test_save_no_paths(self, service):
        with pytest.raises(CacheValidationError, match="At least one"):
            service.save([], "key-1")

    def test_restore_invalid_restore_key(self, service):
        with pytest.raises(CacheValidationError):
            service.restore(["vendor/bundle"], "key-1", ["bad,prefix"])

    def test_corrupt_index(self, service, tmp_path):
        (tmp_path / "cache").mkdir()
        (tmp_path / "cache" / "index.json").write_text("{broken")

        with pytest.raises(CacheTransientError, match="Failed to load cache index"):
            service.restore(["vendor/bundle"], "key-1")

    def test_shared_directory(self, tmp_path, project):
        """Test a second service instance sees keys saved by the first."""
        LocalCacheService(tmp_path / "cache", root=project).save(["vendor/bundle"], "k-1")

        other = LocalCacheService(tmp_path / "cache", root=project)

        assert other.restore(["vendor/bundle"], "k-1") == "k-1"
