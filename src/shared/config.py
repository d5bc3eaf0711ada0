"""Configuration management for the Google Drive MCP server.

Settings come from environment variables (and a .env file), optionally
seeded from a YAML file. Configuration is loaded once and cached.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PORT = 3000

DEFAULT_SCOPES = [
    "https://www.googleapis.com/auth/drive",
    "https://www.googleapis.com/auth/spreadsheets",
]


class ServerSettings(BaseSettings):
    """HTTP listener configuration."""
    host: str = Field(default="0.0.0.0")
    port: int = Field(
        default=DEFAULT_PORT,
        validation_alias=AliasChoices("port", "PORT", "GDRIVE_MCP_PORT"),
    )
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    model_config = SettingsConfigDict(
        env_prefix="GDRIVE_MCP_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )


class GoogleSettings(BaseSettings):
    """Google credentials and token helper configuration."""
    drive_access_token: Optional[str] = Field(
        default=None, description="Startup bearer token (GOOGLE_DRIVE_ACCESS_TOKEN)"
    )
    service_account_key_file: str = Field(default="./service-account-key.json")
    client_id: Optional[str] = Field(default=None)
    client_secret: Optional[str] = Field(default=None)
    refresh_token: Optional[str] = Field(default=None)
    token_uri: str = Field(default="https://oauth2.googleapis.com/token")
    scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES))

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_",
        env_file=".env",
        extra="ignore"
    )


class Settings(BaseSettings):
    """Main application settings."""
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    server: ServerSettings = Field(default_factory=ServerSettings)
    google: GoogleSettings = Field(default_factory=GoogleSettings)

    model_config = SettingsConfigDict(
        env_prefix="GDRIVE_MCP_",
        env_file=".env",
        extra="ignore"
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file; missing files fall back to defaults."""
        path = Path(path)
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    config_path = os.environ.get("GDRIVE_MCP_CONFIG_PATH", "config/settings.yaml")
    return Settings.from_yaml(config_path)
