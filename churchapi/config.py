"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from churchapi.db.modules import ModuleKey

HARDENED_ENVIRONMENTS = frozenset({"prod"})


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Runtime
    environment: Literal["dev", "demo", "staging", "prod", "test"] = Field(default="dev")
    app_name: str = Field(default="API")
    server_port: int = Field(default=8084)
    socket_url: str = Field(default="")
    socket_port: int = Field(default=8087)
    cors_origin: str = Field(default="*")

    # Module API URLs (used for internal calls between modules)
    api_url: str = Field(default="http://localhost:8084")
    membership_api: str | None = Field(default=None)
    attendance_api: str | None = Field(default=None)
    content_api: str | None = Field(default=None)
    giving_api: str | None = Field(default=None)
    messaging_api: str | None = Field(default=None)
    doing_api: str | None = Field(default=None)

    # Mail and secrets
    mail_system: str = Field(default="")
    smtp_host: str = Field(default="")
    smtp_user: str = Field(default="")
    smtp_pass: str = Field(default="")
    encryption_key: str = Field(default="")
    jwt_secret: str = Field(default="")
    support_email: str = Field(default="support@churchapps.org")

    # Databases: exactly one connection string per module
    membership_connection_string: str | None = Field(default=None)
    attendance_connection_string: str | None = Field(default=None)
    content_connection_string: str | None = Field(default=None)
    giving_connection_string: str | None = Field(default=None)
    messaging_connection_string: str | None = Field(default=None)
    doing_connection_string: str | None = Field(default=None)
    reporting_connection_string: str | None = Field(default=None)
    doing_membership_connection_string: str | None = Field(default=None)

    # Connection pools
    db_pool_mode: Literal["queue", "null"] = Field(default="queue")
    db_pool_size: int = Field(default=5)
    db_pool_max_overflow: int = Field(default=5)
    db_pool_timeout_seconds: int = Field(default=30)
    db_pool_recycle_seconds: int = Field(default=1800)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_format: Literal["json", "text"] = Field(default="json")

    # Scheduler
    scheduled_tasks_interval_minutes: int = Field(default=5)

    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_environment(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def hardened(self) -> bool:
        return self.environment in HARDENED_ENVIRONMENTS

    def connection_string_for(self, module: ModuleKey) -> str | None:
        """The single configured connection string for `module`, if any."""
        return getattr(self, module.env_var.lower())

    def module_api_url(self, module: ModuleKey) -> str:
        override = getattr(self, f"{module.target.value}_api", None)
        if override:
            return override
        return f"{self.api_url.rstrip('/')}/{module.target.value}"

    def as_env(self, *, provided_only: bool = False) -> dict[str, str]:
        """
        Flatten to upper-case env-style keys for validation and diagnostics.

        With `provided_only`, fields that fell back to their defaults are left
        out, so hardened validation sees them as missing.
        """
        return {
            name.upper(): "" if value is None else str(value)
            for name, value in self.model_dump().items()
            if not provided_only or name in self.model_fields_set
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
