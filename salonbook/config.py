"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import time
from pathlib import Path

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import parse_clock_time
from .domain.slot_resolver import SlotResolver
from .domain.time_grid import TimeGrid


class CalendarSettings(BaseModel):
    """Grid and drag settings for the day view."""
    slot_duration_minutes: int = 30
    snap_minutes: int = 5
    slot_height_px: float = 60.0
    default_opening: str = "08:00"
    default_closing: str = "20:00"
    default_blocked_minutes: int = 60
    min_blocked_minutes: int = 5

    @field_validator("slot_duration_minutes", "snap_minutes", "default_blocked_minutes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure minute settings are positive."""
        if value <= 0:
            raise ValueError(f"must be greater than zero, got {value}")
        return value

    @field_validator("min_blocked_minutes")
    @classmethod
    def validate_min_blocked(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"min_blocked_minutes must not be negative, got {value}")
        return value

    @field_validator("slot_height_px")
    @classmethod
    def validate_height(cls, value: float) -> float:
        if value <= 0:
            raise ValueError(f"slot_height_px must be greater than zero, got {value}")
        return value

    @field_validator("default_opening", "default_closing")
    @classmethod
    def validate_clock(cls, value: str) -> str:
        """Validate HH:MM strings."""
        if parse_clock_time(value) is None:
            raise ValueError(f"Expected a time in HH:MM format, got {value!r}")
        return value

    @model_validator(mode="after")
    def validate_grid(self) -> "CalendarSettings":
        """Ensure the default day opens before it closes and snapping fits a slot."""
        if self.get_default_closing() <= self.get_default_opening():
            raise ValueError("default_closing must be later than default_opening")
        if self.snap_minutes > self.slot_duration_minutes:
            raise ValueError("snap_minutes must not exceed slot_duration_minutes")
        return self

    def get_default_opening(self) -> time:
        return parse_clock_time(self.default_opening)

    def get_default_closing(self) -> time:
        return parse_clock_time(self.default_closing)

    def build_time_grid(self, opening_time: time | None, closing_time: time | None) -> TimeGrid:
        """Time grid for a shop, falling back to the default hours."""
        return TimeGrid(
            opening_time,
            closing_time,
            slot_duration_minutes=self.slot_duration_minutes,
            default_opening=self.get_default_opening(),
            default_closing=self.get_default_closing(),
        )

    def build_resolver(self) -> SlotResolver:
        return SlotResolver(
            slot_duration_minutes=self.slot_duration_minutes,
            snap_minutes=self.snap_minutes,
            slot_height_px=self.slot_height_px,
        )


class SupabaseSettings(BaseModel):
    """Remote store credentials."""
    url: str
    api_key: str
    timeout_seconds: float = 30

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"Supabase url must start with http:// or https://, got {value!r}")
        return value.rstrip("/")


class AppConfig(BaseModel):
    """Application configuration."""
    shop_id: str
    timezone: str = "Europe/Berlin"
    calendar: CalendarSettings = Field(default_factory=CalendarSettings)
    supabase: SupabaseSettings | None = None
    data_file: Path | None = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Reject unknown IANA timezone names."""
        try:
            pendulum.timezone(value)
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Unknown timezone: {value!r}") from exc
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

        config = cls(**data)

        # Relative data files are resolved against the config file's folder
        if config.data_file is not None and not config.data_file.is_absolute():
            config.data_file = config_path.parent / config.data_file

        return config


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
