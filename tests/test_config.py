"""Tests for settings resolution."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from rulesync.config import EngineSettings, load_config, load_settings


class TestLoadConfig:
    def test_missing_file_is_empty(self, tmp_path):
        assert load_config(tmp_path / "missing.yaml") == {}

    def test_invalid_yaml_is_ignored(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("log_level: [\n")
        assert load_config(path) == {}

    def test_non_mapping_is_ignored(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        assert load_config(path) == {}


class TestLoadSettings:
    def test_defaults(self, tmp_path):
        settings = load_settings(tmp_path / "missing.yaml", environ={})
        assert settings.rules_file is None
        assert settings.log_level == "WARNING"
        assert not settings.disable_all_rules

    def test_environment(self, tmp_path):
        settings = load_settings(
            tmp_path / "missing.yaml",
            environ={
                "RULESYNC_RULES_FILE": "/etc/rulesync/rules.yaml",
                "RULESYNC_LOG_LEVEL": "debug",
                "RULESYNC_DISABLE_ALL_RULES": "yes",
            },
        )
        assert settings.rules_file == Path("/etc/rulesync/rules.yaml")
        assert settings.log_level == "DEBUG"
        assert settings.disable_all_rules

    def test_precedence(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("log_level: info\nrules_file: from-file.yaml\nunrelated: 1\n")

        from_file = load_settings(path, environ={})
        assert from_file.log_level == "INFO"
        assert from_file.rules_file == Path("from-file.yaml")

        from_env = load_settings(path, environ={"RULESYNC_LOG_LEVEL": "error"})
        assert from_env.log_level == "ERROR"

        explicit = load_settings(path, environ={"RULESYNC_LOG_LEVEL": "error"}, log_level="debug", rules_file=None)
        assert explicit.log_level == "DEBUG"
        assert explicit.rules_file == Path("from-file.yaml")

    def test_false_words(self, tmp_path):
        settings = load_settings(tmp_path / "missing.yaml", environ={"RULESYNC_DISABLE_ALL_RULES": "0"})
        assert not settings.disable_all_rules

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            EngineSettings(log_level="chatty")

    def test_level_number(self):
        assert EngineSettings(log_level="info").log_level_number == 20
