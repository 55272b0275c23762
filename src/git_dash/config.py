"""Configuration management for git-dash."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type

import toml
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .services.git_platform import ProviderConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "git-dash.toml"
CONFIG_PATH_ENV = "GIT_DASH_CONFIG"
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class ProviderSettings(BaseModel):
    """Explicit provider section of the configuration."""
    type: str = ""
    organization: str = ""
    project: str = ""
    base_url: str = Field("", alias="baseUrl")
    token: Optional[SecretStr] = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("type")
    @classmethod
    def normalize_type(cls, v):
        """Provider types are matched case-insensitively."""
        return (v or "").strip().lower()

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v):
        """Validate base URL scheme."""
        if v and not v.startswith(("https://", "http://")):
            raise ValueError("Provider base URL must start with http:// or https://")
        return (v or "").rstrip("/")

    @field_validator("token", mode="before")
    @classmethod
    def validate_token_length(cls, v):
        """Validate that the token is not absurdly long (security measure)."""
        if v and len(str(v)) > 1000:
            raise ValueError("Provider token is too long")
        return v

    def to_provider_config(self) -> ProviderConfig:
        """Build the immutable provider configuration."""
        return ProviderConfig(
            type=self.type,
            organization=self.organization,
            project=self.project,
            base_url=self.base_url,
            token=self.token.get_secret_value() if self.token else "",
        )


class TomlConfigSource(PydanticBaseSettingsSource):
    """Settings source reading the git-dash TOML configuration file."""

    def __init__(self, settings_cls: Type[BaseSettings], config_path: Optional[Path] = None):
        super().__init__(settings_cls)
        self.config_path = config_path or Path(os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_FILE))

    def get_field_value(self, field, field_name: str) -> Tuple[Any, str, bool]:
        # Values are returned all at once from __call__
        return None, field_name, False

    def __call__(self) -> Dict[str, Any]:
        """Load settings from the TOML file, if present."""
        if not self.config_path.exists():
            return {}

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                return toml.load(f)
        except (toml.TomlDecodeError, OSError) as e:
            # A malformed file should not prevent startup
            logger.warning(f"Could not load configuration from {self.config_path}: {e}")
            return {}


class Settings(BaseSettings):
    """Application settings from init arguments, the TOML file and the environment."""

    provider: Optional[ProviderSettings] = None
    repo_path: str = "."

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="GIT_DASH_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_assignment=True,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level name."""
        level = (v or "INFO").upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            TomlConfigSource(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    def provider_config(self) -> Optional[ProviderConfig]:
        """Explicit provider configuration, or None when auto-detection applies."""
        if self.provider is None or not self.provider.type:
            return None
        return self.provider.to_provider_config()


def get_masked_config(settings: Settings) -> Dict[str, Any]:
    """Get configuration with sensitive values masked for logging/display."""
    config_dict = settings.model_dump()

    provider = config_dict.get("provider")
    if provider and provider.get("token") is not None:
        provider["token"] = "***MASKED***"

    return config_dict


def load_settings(**overrides: Any) -> Settings:
    """Load settings, falling back to defaults outside production."""
    try:
        return Settings(**overrides)
    except ValidationError as e:
        if os.environ.get("GIT_DASH_ENVIRONMENT", "development") == "production":
            raise
        logger.error(f"Configuration validation error, using defaults: {e}")
        return Settings.model_construct()


def configure_logging(settings: Settings) -> None:
    """Apply the configured log level to the root logger."""
    level = "DEBUG" if settings.debug else settings.log_level
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger().setLevel(getattr(logging, level, logging.INFO))
