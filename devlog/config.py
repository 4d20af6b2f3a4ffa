"""Application configuration"""

from typing import Literal, Optional

import pydantic
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from devlog.errors import ConfigurationError

DEFAULT_UNIQUE_KEY_PROP = "MR IID"

_LOG_LEVELS = {"debug", "info", "warn", "warning", "error"}


class Settings(BaseSettings):
    """Application settings"""

    # GitLab
    gitlab_host: str
    gitlab_token: str = Field(min_length=1)
    # At least one of author / project must be set; checked by SyncConfig.validate().
    gitlab_author_username: Optional[str] = None
    # If omitted, merge requests are searched across all accessible projects.
    gitlab_project_id: Optional[str] = None
    gitlab_timeout: int = 30

    # Notion
    notion_token: str = Field(min_length=1)
    notion_db_id: str = Field(min_length=1)
    notion_unique_key_prop: Optional[str] = None
    notion_timeout: int = 60

    # Application
    app_env: Literal["development", "test", "production"] = "development"
    log_level: str = "info"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"

    @field_validator("gitlab_host")
    @classmethod
    def check_host(cls, value: str) -> str:
        value = (value or "").strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError("GITLAB_HOST must be a valid URL")
        return value.rstrip("/")

    @field_validator("gitlab_author_username", "gitlab_project_id", "notion_unique_key_prop", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        # `FOO=` in a .env file means "not set"
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, value: str) -> str:
        value = value.lower()
        if value not in _LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(sorted(_LOG_LEVELS))}")
        return value

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"


def _format_validation_error(exc: pydantic.ValidationError) -> str:
    parts = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ())) or "settings"
        parts.append(f"{field.upper()}: {err.get('msg')}")
    return "Invalid configuration: " + "; ".join(parts)


def load_settings(**overrides) -> Settings:
    """Load settings from the environment (and `.env`), failing fast on bad values."""
    try:
        return Settings(**overrides)
    except pydantic.ValidationError as e:
        raise ConfigurationError(_format_validation_error(e)) from e
