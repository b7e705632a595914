"""
Unit tests for configuration management functionality.

Tests configuration loading, validation, environment variable substitution
and conversion into the engine configuration model.
"""

import os
import tempfile
from unittest.mock import patch

import pytest
import yaml

from config.config_manager import ConfigManager, ConfigValidationError
from supervisor.timer_engine_config import LoggingConfig, TimerEngineConfig


class TestConfigManagerUnit:
    """Unit tests for configuration management functionality."""

    @pytest.fixture
    def temp_config_file(self):
        """Create temporary configuration file for testing."""
        config_data = {
            "logging": {
                "log_level": "${TIMER_LOG_LEVEL:debug}",
                "log_file": "logs/timer.log",
            },
            "scheduler": {"clock": "wall", "tick_ms": 25, "max_parallel_workers": 2},
            "audio": {"enabled": True, "sounds": {"bell": "assets/bell.mp3"}},
            "persistence": {
                "enabled": True,
                "storage_dir": "${TIMER_HOME:/tmp/timers}",
                "key_prefix": "kersh_timer_",
            },
        }

        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            yaml.dump(config_data, f)
            temp_path = f.name

        yield temp_path

        os.unlink(temp_path)

    def write_config(self, tmp_path, content):
        path = tmp_path / "config.yaml"
        path.write_text(content)
        return str(path)

    def test_load_config(self, temp_config_file):
        manager = ConfigManager(temp_config_file)

        config = manager.load_config()

        assert config["scheduler"]["clock"] == "wall"
        assert config["audio"]["sounds"] == {"bell": "assets/bell.mp3"}

    def test_env_var_defaults(self, temp_config_file):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("TIMER_LOG_LEVEL", None)
            os.environ.pop("TIMER_HOME", None)
            config = ConfigManager(temp_config_file).load_config()

        assert config["logging"]["log_level"] == "debug"
        assert config["persistence"]["storage_dir"] == "/tmp/timers"

    def test_env_var_substitution(self, temp_config_file):
        with patch.dict(os.environ, {"TIMER_HOME": "/data/timers"}):
            config = ConfigManager(temp_config_file).load_config()

        assert config["persistence"]["storage_dir"] == "/data/timers"

    def test_missing_env_var_without_default(self):
        manager = ConfigManager()

        with patch.dict(os.environ, {}, clear=True):
            assert manager._substitute_env_vars("${NOT_SET}/x") == "/x"

    def test_substitution_recurses_into_lists(self):
        manager = ConfigManager()

        with patch.dict(os.environ, {"SOUND": "chime"}):
            assert manager._substitute_env_vars({"a": ["${SOUND}", 3]}) == {
                "a": ["chime", 3]
            }

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError):
            ConfigManager("/nonexistent/config.yaml").load_config()

    def test_invalid_yaml(self, tmp_path):
        path = self.write_config(tmp_path, "scheduler: [unclosed")

        with pytest.raises(ConfigValidationError):
            ConfigManager(path).load_config()

    def test_top_level_must_be_mapping(self, tmp_path):
        path = self.write_config(tmp_path, "- just\n- a list\n")

        with pytest.raises(ConfigValidationError):
            ConfigManager(path).load_config()

    def test_empty_file_uses_defaults(self, tmp_path):
        path = self.write_config(tmp_path, "")

        config = ConfigManager(path).load_engine_config()

        assert config == TimerEngineConfig()

    @pytest.mark.parametrize(
        "content",
        [
            "scheduler:\n  clock: sundial\n",
            "scheduler:\n  tick_ms: 0\n",
            "scheduler:\n  tick_ms: fast\n",
            "audio:\n  sounds: [bell]\n",
            "logging: verbose\n",
        ],
    )
    def test_validation_errors(self, tmp_path, content):
        path = self.write_config(tmp_path, content)

        with pytest.raises(ConfigValidationError) as exc_info:
            ConfigManager(path).load_config()
        assert exc_info.value.path == path

    def test_numeric_string_tick_is_converted(self, tmp_path):
        path = self.write_config(tmp_path, "scheduler:\n  tick_ms: '${TICK:40}'\n")

        config = ConfigManager(path).load_config()

        assert config["scheduler"]["tick_ms"] == 40

    def test_skip_validation(self, tmp_path):
        path = self.write_config(tmp_path, "scheduler:\n  clock: sundial\n")

        config = ConfigManager(path).load_config(validate=False)

        assert config["scheduler"]["clock"] == "sundial"

    def test_load_engine_config(self, temp_config_file):
        config = ConfigManager(temp_config_file).load_engine_config()

        assert isinstance(config, TimerEngineConfig)
        assert config.logging.log_level == "DEBUG"
        assert config.scheduler.clock == "wall"
        assert config.scheduler.tick_ms == 25
        assert config.scheduler.max_parallel_workers == 2
        assert config.audio.sounds == {"bell": "assets/bell.mp3"}

    def test_load_engine_config_schema_error(self, tmp_path):
        path = self.write_config(tmp_path, "persistence:\n  autosave: sometimes\n")

        with pytest.raises(ConfigValidationError):
            ConfigManager(path).load_engine_config()

    def test_get_and_set_config(self, temp_config_file):
        manager = ConfigManager(temp_config_file)
        manager.load_config()

        assert manager.get_config("scheduler.tick_ms") == 25
        assert manager.get_config("scheduler.missing", "fallback") == "fallback"

        manager.set_config("audio.volume.master", 0.5)
        assert manager.get_config("audio.volume.master") == 0.5

    def test_from_file(self, temp_config_file):
        config = TimerEngineConfig.from_file(temp_config_file)

        assert config.persistence.key_prefix == "kersh_timer_"


class TestLoggingConfigModel:
    def test_log_level_is_normalized(self):
        assert LoggingConfig(log_level="warning").log_level == "WARNING"

    def test_invalid_log_level(self):
        with pytest.raises(ValueError):
            LoggingConfig(log_level="LOUD")
