"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ValidationError, field_validator

from .domain.calendar import DEFAULT_TIMEZONE, SalonCalendar, resolve_timezone
from .domain.exceptions import InvalidInputError
from .domain.slot_engine import DEFAULT_HORIZON_DAYS, DEFAULT_STEP_MINUTES, MAX_HORIZON_DAYS, SlotEngine

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = DEFAULT_TIMEZONE
    step_minutes: int = DEFAULT_STEP_MINUTES
    horizon_days: int = DEFAULT_HORIZON_DAYS
    data_file: Path = Path("salon.yaml")
    hide_past_slots: bool = True
    log_level: str = "WARNING"

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the salon timezone is a known IANA zone."""
        resolve_timezone(value)
        return value

    @field_validator("step_minutes")
    @classmethod
    def validate_step(cls, value: int) -> int:
        """Ensure the slot grid step is positive."""
        if value <= 0:
            raise ValueError("step_minutes must be greater than zero")
        return value

    @field_validator("horizon_days")
    @classmethod
    def validate_horizon(cls, value: int) -> int:
        if not 1 <= value <= MAX_HORIZON_DAYS:
            raise ValueError(f"horizon_days must be between 1 and {MAX_HORIZON_DAYS}, got {value}")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {value}")
        return level

    def build_engine(self, step_minutes: Optional[int] = None) -> SlotEngine:
        """Create a slot engine for the configured salon timezone."""
        return SlotEngine(
            SalonCalendar(self.timezone),
            step_minutes=step_minutes if step_minutes is not None else self.step_minutes,
        )

    def resolve_data_file(self, config_path: Optional[Path] = None) -> Path:
        """
        Resolve the salon data file.

        Relative paths are taken relative to the config file's directory.
        """
        if self.data_file.is_absolute() or config_path is None:
            return self.data_file
        return config_path.parent / self.data_file

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            InvalidInputError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise InvalidInputError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise InvalidInputError("Config file must contain a mapping at the root level.")

        try:
            return cls(**data)
        except ValidationError as exc:
            raise InvalidInputError(f"Invalid configuration in {config_path}: {exc}") from exc


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
