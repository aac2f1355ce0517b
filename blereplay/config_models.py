"""Configuration models for the BLE scenario replay toolkit."""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class PathsConfig(BaseModel):
    """Configuration for file system paths."""

    log_dir: Path = Field(default=Path("logs"), description="Directory for log files")
    scenario_dir: Path = Field(default=Path("scenarios"), description="Directory for recorded scenarios")

    @field_validator("log_dir", "scenario_dir", mode="before")
    @classmethod
    def coerce_path(cls, v: str | Path) -> Path:
        if isinstance(v, str):
            v = Path(v)
        return v


class LoggingConfig(BaseModel):
    """Configuration for the logging framework."""

    level: str = Field(default="INFO", description="Log level")
    format_console: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(run_id)s - %(message)s",
        description="Console log format"
    )
    log_to_file: bool = Field(default=False, description="Write a JSON log file per run into log_dir")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Level must be one of {valid_levels}")
        return v.upper()


class PlaybackConfig(BaseModel):
    """Configuration for scenario playback."""

    realtime: bool = Field(default=True, description="Replay events against wall-clock time")
    validate_on_load: bool = Field(default=True, description="Validate event streams before playback")
    value_preview_length: int = Field(default=20, description="Characters of an event value shown in text output")

    @field_validator("value_preview_length")
    @classmethod
    def preview_length_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Value preview length must be positive")
        return v


class OutputConfig(BaseModel):
    """Configuration for command-line output."""

    format: str = Field(default="text", description="Output format (text or json)")
    color: bool = Field(default=True, description="Use ANSI colors for text output")

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        valid_formats = {"text", "json"}
        if v.lower() not in valid_formats:
            raise ValueError(f"Format must be one of {valid_formats}")
        return v.lower()


class SystemConfig(BaseModel):
    """Main system configuration."""

    paths: PathsConfig = Field(default_factory=PathsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    playback: PlaybackConfig = Field(default_factory=PlaybackConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
