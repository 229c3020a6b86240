"""Configuration management for SharedLedger."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .models import Participants


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Participant display names
    person1_name: str = "Person 1"
    person2_name: str = "Person 2"

    # Settlement used when the CLI is not given one
    settlement_id: str = "default"

    # Keep a line's paid flag across recomputes while its debt is unchanged
    preserve_paid_status: bool = True

    # Database path
    database_path: Path = Path.home() / ".shared_ledger" / "shared_ledger.db"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def participants(self) -> Participants:
        """Display names for the two parties."""
        return Participants(person1=self.person1_name, person2=self.person2_name)


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check your .env file and environment "
            f"variables.\n"
            f"Error: {e}"
        ) from e
