"""
Tests for setup input loading.
"""

from pathlib import Path

import pytest

from runtimekit.config.inputs import SetupInputs, load_inputs, load_yaml_config
from runtimekit.core.exceptions import InvalidInputError


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Run in an empty directory so no stray .runtimekit.yaml is read."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestLoadYamlConfig:
    """Test configuration file parsing."""

    def test_missing_optional(self, tmp_path):
        assert load_yaml_config(tmp_path / ".runtimekit.yaml") == {}

    def test_missing_required(self, tmp_path):
        with pytest.raises(InvalidInputError, match="not found"):
            load_yaml_config(tmp_path / "setup.yaml", required=True)

    def test_normalizes_keys(self, tmp_path):
        config_file = tmp_path / "setup.yaml"
        config_file.write_text("ruby_version: '3.3'\nbundler-cache: false\n")

        assert load_yaml_config(config_file) == {
            "ruby-version": "3.3",
            "bundler-cache": False,
        }

    def test_empty_file(self, tmp_path):
        config_file = tmp_path / "setup.yaml"
        config_file.write_text("")

        assert load_yaml_config(config_file) == {}

    def test_invalid_yaml(self, tmp_path):
        config_file = tmp_path / "setup.yaml"
        config_file.write_text("ruby-version: [3.3\n")

        with pytest.raises(InvalidInputError, match="Invalid YAML"):
            load_yaml_config(config_file)

    def test_not_a_mapping(self, tmp_path):
        config_file = tmp_path / "setup.yaml"
        config_file.write_text("- 3.3\n- 3.2\n")

        with pytest.raises(InvalidInputError, match="mapping"):
            load_yaml_config(config_file)


class TestLoadInputs:
    """Test input precedence and parsing."""

    def test_defaults(self, workdir):
        inputs = load_inputs(env={})

        assert inputs == SetupInputs()
        assert inputs.ruby_version == "default"
        assert inputs.architecture == "x64"
        assert inputs.bundler == "default"
        assert inputs.bundler_cache is True
        assert inputs.working_directory == Path(".")
        assert inputs.cache_dir is None

    def test_env_inputs(self, workdir):
        env = {
            "INPUT_RUBY-VERSION": "jruby-9.4",
            "INPUT_BUNDLER_CACHE": "false",
            "INPUT_CACHE-DIR": "/tmp/gems",
        }

        inputs = load_inputs(env=env)

        assert inputs.ruby_version == "jruby-9.4"
        assert inputs.bundler_cache is False
        assert inputs.cache_dir == Path("/tmp/gems")

    def test_blank_env_input_is_ignored(self, workdir):
        assert load_inputs(env={"INPUT_RUBY-VERSION": "  "}).ruby_version == "default"

    def test_options_win_over_env(self, workdir):
        inputs = load_inputs(
            {"ruby-version": "3.3", "bundler": None}, env={"INPUT_RUBY-VERSION": "3.2"}
        )

        assert inputs.ruby_version == "3.3"
        assert inputs.bundler == "default"

    def test_underscore_option_names(self, workdir):
        inputs = load_inputs({"ruby_version": "3.1", "bundler_cache": False}, env={})

        assert inputs.ruby_version == "3.1"
        assert inputs.bundler_cache is False

    def test_default_config_file(self, workdir):
        (workdir / ".runtimekit.yaml").write_text(
            "ruby-version: truffleruby\nbundler: '2.4'\nbundler-cache: false\n"
        )

        inputs = load_inputs(env={"INPUT_BUNDLER": "1"})

        assert inputs.ruby_version == "truffleruby"
        assert inputs.bundler == "1"
        assert inputs.bundler_cache is False

    def test_numeric_yaml_values(self, workdir):
        (workdir / ".runtimekit.yaml").write_text("ruby-version: 3.3\nbundler: 2\n")

        inputs = load_inputs(env={})

        assert inputs.ruby_version == "3.3"
        assert inputs.bundler == "2"

    def test_explicit_config_file(self, workdir, tmp_path):
        config_file = tmp_path / "ci" / "setup.yaml"
        config_file.parent.mkdir()
        config_file.write_text("working-directory: app\n")

        inputs = load_inputs(env={}, config_file=config_file)

        assert inputs.working_directory == Path("app")

    def test_explicit_config_file_missing(self, workdir):
        with pytest.raises(InvalidInputError):
            load_inputs(env={}, config_file=workdir / "missing.yaml")

    def test_invalid_bool(self, workdir):
        with pytest.raises(InvalidInputError, match="bundler-cache must be"):
            load_inputs({"bundler-cache": "yes"}, env={})

    def test_hook(self, workdir):
        def hook(**kwargs):
            pass

        inputs = load_inputs({"afterSetupPathHook": hook}, env={})

        assert inputs.after_setup_path_hook is hook

    def test_hook_must_be_callable(self, workdir):
        with pytest.raises(InvalidInputError, match="callable"):
            load_inputs({"afterSetupPathHook": "echo"}, env={})
