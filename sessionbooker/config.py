"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import time
from pathlib import Path
from typing import Dict, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator

from .domain.models import Period


class PeriodStart(BaseModel):
    """Clock time at which a period's first slot starts."""
    hour: int
    minute: int = 0

    @field_validator("hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 23."""
        if not 0 <= v <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {v}")
        return v

    @field_validator("minute")
    @classmethod
    def validate_minute(cls, v: int) -> int:
        """Validate minute is between 0 and 59."""
        if not 0 <= v <= 59:
            raise ValueError(f"Minute must be between 0 and 59, got {v}")
        return v

    def get_time(self) -> time:
        return time(hour=self.hour, minute=self.minute)


class SlotsConfig(BaseModel):
    """Slot generation settings."""
    duration_minutes: int = 45
    slots_per_period: int = 4
    morning_start: PeriodStart = Field(default_factory=lambda: PeriodStart(hour=8, minute=30))
    afternoon_start: PeriodStart = Field(default_factory=lambda: PeriodStart(hour=14, minute=30))

    @field_validator("duration_minutes", "slots_per_period")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("value must be greater than zero")
        return value

    def period_starts(self) -> Dict[Period, time]:
        """Get period start times keyed by period."""
        return {
            Period.MORNING: self.morning_start.get_time(),
            Period.AFTERNOON: self.afternoon_start.get_time(),
        }


class StoreConfig(BaseModel):
    """
    Booking record store settings.

    When ``url`` is set, bookings live in a REST table; otherwise in a local
    JSON file at ``path``.
    """
    path: Path = Path("bookings.json")
    url: Optional[str] = None
    api_key: Optional[str] = None
    table: str = "bookings"
    timeout_seconds: float = 10.0

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"Store url must start with http:// or https://, got {value}")
        return value.rstrip("/")


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "America/Sao_Paulo"
    slots: SlotsConfig = Field(default_factory=SlotsConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    confirmation_delay_seconds: float = 3.0
    current_user_email: Optional[str] = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("confirmation_delay_seconds")
    @classmethod
    def validate_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("confirmation_delay_seconds must not be negative")
        return value

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
            ValueError: If config is invalid
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
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "AppConfig":
        """
        Load an explicit config file, or the default one if it exists.

        Every setting has a default, so a missing default file is not an error.
        """
        if config_path is not None:
            return cls.load_from_yaml(config_path)

        default_path = get_default_config_path()
        if default_path.exists():
            return cls.load_from_yaml(default_path)
        return cls()


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
