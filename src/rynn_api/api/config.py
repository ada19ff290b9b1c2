"""Service configuration and settings document loading for the Rynn API."""

import json
from pathlib import Path
from typing import Any, Dict, List, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from .envelope import DEFAULT_CREATOR
from .errors import SettingsError


class Config(BaseSettings):
    """Rynn API process configuration."""

    model_config = {
        "env_prefix": "RYNN_",
        "env_file": ".env",
        "case_sensitive": False,
        "populate_by_name": True,
        "extra": "ignore",
    }

    host: str = Field(default="0.0.0.0", description="API host address")
    port: int = Field(
        default=4000,
        validation_alias=AliasChoices("port", "PORT", "RYNN_PORT"),
        description="API port",
    )
    log_level: str = Field(default="INFO", description="Logging level")
    api_dir: str = Field(default="api", description="Root directory of plugin modules")
    web_dir: str = Field(default="web", description="Static files directory")
    settings_path: str = Field(default="settings.json", description="Settings document path")
    module_extension: str = Field(default=".py", description="File extension of plugin modules")
    json_indent: int = Field(default=2, description="Indentation of JSON responses")
    cors_allowed_origins: List[str] = Field(default=["*"], description="CORS allowed origins")
    pages: List[str] = Field(
        default=["portal.html", "test-post.html", "docs.html"],
        description="Static pages served at /<page name>",
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Normalize log level to uppercase for logging compatibility."""
        return v.upper()

    @field_validator("module_extension")
    @classmethod
    def normalize_extension(cls, v: str) -> str:
        """Accept extensions written with or without the leading dot."""
        v = v.strip()
        if not v:
            raise ValueError("module_extension must not be empty")
        return v if v.startswith(".") else f".{v}"

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment variables and .env files."""
        return cls()


class ApiSettings(BaseModel):
    """The ``apiSettings`` section of the settings document."""

    model_config = ConfigDict(extra="allow")

    creator: str = DEFAULT_CREATOR

    @field_validator("creator", mode="before")
    @classmethod
    def default_creator(cls, v):
        """A null or empty creator falls back to the default."""
        return DEFAULT_CREATOR if v is None or v == "" else v


class SiteSettings(BaseModel):
    """Settings document shared with the web frontend."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    api_settings: ApiSettings = Field(default_factory=ApiSettings, alias="apiSettings")

    @field_validator("api_settings", mode="before")
    @classmethod
    def default_api_settings(cls, v):
        """A null ``apiSettings`` section falls back to the defaults."""
        return {} if v is None else v

    @property
    def creator(self) -> str:
        return self.api_settings.creator


def load_site_settings(path: Union[str, Path]) -> SiteSettings:
    """Read the settings document once at startup.

    Args:
        path: Location of the JSON settings document

    Returns:
        Parsed settings

    Raises:
        SettingsError: If the file is missing, unreadable, not JSON, or not
            a JSON object.
    """
    settings_path = Path(path)
    if not settings_path.is_file():
        raise SettingsError(settings_path, "file not found")

    try:
        with open(settings_path, "r", encoding="utf-8") as handle:
            data: Any = json.load(handle)
    except json.JSONDecodeError as exc:
        raise SettingsError(settings_path, f"invalid JSON: {exc}") from exc
    except OSError as exc:
        raise SettingsError(settings_path, str(exc)) from exc

    if not isinstance(data, dict):
        raise SettingsError(settings_path, "document must be a JSON object")

    try:
        return SiteSettings.model_validate(data)
    except ValidationError as exc:
        raise SettingsError(settings_path, str(exc)) from exc


def settings_summary(settings: SiteSettings) -> Dict[str, Any]:
    """Non-sensitive view of the settings used for startup logging."""
    return {"creator": settings.creator}
