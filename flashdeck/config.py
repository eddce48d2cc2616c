"""
Centralized configuration management for flashdeck.
"""
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_default_db_path() -> Path:
    """Returns the default path for the database file."""
    return Path.home() / ".flashdeck" / "flashdeck.db"


class Settings(BaseSettings):
    """
    Defines application settings, loaded from FLASHDECK_* environment
    variables or a .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="FLASHDECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Overridden by FLASHDECK_DB_PATH. The CLI's --db flag wins over both.
    db_path: Path = Field(default_factory=get_default_db_path)

    # Maximum due cards per review session. None means every due card.
    session_limit: Optional[int] = Field(default=None, ge=0)

    # When True, disables safety checks that prevent data loss during tests.
    # Should NEVER be enabled in production. Set via FLASHDECK_TESTING_MODE.
    testing_mode: bool = False


# Create a singleton instance of the settings
settings = Settings()
