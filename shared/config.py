"""
Runtime settings for the marketplace backend.

Settings come from the process environment. A `.env` file in the working
directory is read as well, so local development does not need exported
variables. Business constants (tax rate, lease TTL, batch sizes) are not
settings; they live next to the code that applies them.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


class Settings(BaseSettings):
    """Environment-driven configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    data_dir: Path = Field(
        default=DEFAULT_DATA_DIR,
        validation_alias="MARKETPLACE_DATA_DIR",
        description="JSON fixture directory",
    )
    persist: bool = Field(
        default=False,
        validation_alias="MARKETPLACE_PERSIST",
        description="Write collections back to JSON",
    )

    jwt_secret: str = Field(default="change-me", description="HS256 signing secret")
    jwt_expires_days: int = Field(default=7, ge=1)

    push_gateway: str = Field(default="mock", description="'expo' or 'mock'")
    expo_access_token: Optional[str] = None

    image_host: str = Field(default="mock", description="'cloudinary' or 'mock'")
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None

    log_level: str = "INFO"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings(settings: Optional[Settings] = None) -> Settings:
    """Replace the settings singleton (useful for testing)."""
    global _settings
    _settings = settings or Settings()
    return _settings
