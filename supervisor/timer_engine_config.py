"""Timer engine configuration classes and settings management.

This module provides the pydantic models the YAML configuration file is
validated into: logging, scheduler, audio and persistence settings.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class LoggingConfig(BaseModel):
    """Configuration settings for the logging system.

    Defines log level, file output settings and per-logger overrides.
    """

    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_file_max_size: int = 1024  # MB
    disable_console_logging: Optional[bool] = None
    loggers: Optional[dict[str, str]] = None

    @field_validator("log_level")
    def check_log_level(cls, value: str) -> str:
        """Validate that the log level is a standard logging level name.

        Raises:
            ValueError: If the level is not recognised.
        """
        levels = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}
        if value.upper() not in levels:
            raise ValueError(f"Invalid log level '{value}'. Must be one of: {sorted(levels)}")
        return value.upper()


class SchedulerConfig(BaseModel):
    """Configuration for the timer scheduler.

    Selects the clock gating node completion and bounds parallel workers.
    """

    clock: Literal["instant", "wall"] = "instant"
    tick_ms: int = Field(50, gt=0, description="Wall clock re-check interval")
    max_parallel_workers: Optional[int] = Field(
        None, gt=0, description="Worker cap per PARALLEL node, None for one per child"
    )


class AudioSettings(BaseModel):
    """Configuration for the audio collaborator."""

    enabled: bool = True
    sounds: dict[str, str] = Field(
        default_factory=dict, description="Extra sound id to asset mappings"
    )


class PersistenceConfig(BaseModel):
    """Configuration for local timer storage."""

    enabled: bool = True
    storage_dir: str = ".kersh_timer"
    key_prefix: str = "kersh_timer_"
    autosave: bool = True


class TimerEngineConfig(BaseModel):
    """Main configuration class for the timer engine.

    Aggregates logging, scheduler, audio and persistence settings.
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    audio: AudioSettings = Field(default_factory=AudioSettings)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)

    @classmethod
    def from_file(cls, config_path: str) -> "TimerEngineConfig":
        """Load and validate configuration from a YAML file.

        Args:
            config_path: Path to the configuration file.

        Returns:
            TimerEngineConfig: The validated configuration.

        Raises:
            ConfigValidationError: If the file is missing keys or invalid.
        """
        from config.config_manager import ConfigManager

        manager = ConfigManager(config_path=config_path)
        return manager.load_engine_config()
