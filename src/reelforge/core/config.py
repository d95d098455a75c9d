"""Application configuration using Pydantic BaseSettings."""

import logging
import sys
from pathlib import Path

import structlog
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_VALID_MODELS = (
    "google/veo-3,google/veo-3-fast,google/veo-3.1,google/veo-3.1-fast,google/veo-2"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    # Application Environment
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # CORS Configuration
    cors_origins: str = Field(default="http://localhost:3000", alias="CORS_ORIGINS")

    # Server Configuration
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")

    # Replicate Video Generation
    replicate_api_token: str = Field(default="", alias="REPLICATE_API_TOKEN")
    default_model: str = Field(default="google/veo-3", alias="DEFAULT_MODEL")
    valid_models: str = Field(default=DEFAULT_VALID_MODELS, alias="VALID_MODELS")

    # Artifact storage
    output_dir: Path = Field(
        default_factory=lambda: Path.home() / "Documents" / "veo_generated",
        alias="OUTPUT_DIR",
    )

    # Polling (10s x 60 attempts ~ 10 minutes)
    poll_interval_seconds: float = Field(default=10.0, ge=0, alias="POLL_INTERVAL_SECONDS")
    max_poll_attempts: int = Field(default=60, ge=1, alias="MAX_POLL_ATTEMPTS")

    # Extension chains
    max_extensions: int = Field(default=20, ge=0, alias="MAX_EXTENSIONS")
    extension_increment_seconds: int = Field(
        default=7, ge=1, alias="EXTENSION_INCREMENT_SECONDS"
    )

    # Downloads
    download_timeout_seconds: float = Field(default=120.0, gt=0, alias="DOWNLOAD_TIMEOUT_SECONDS")
    download_auth_token: str = Field(default="", alias="DOWNLOAD_AUTH_TOKEN")
    download_auth_query_param: str = Field(default="", alias="DOWNLOAD_AUTH_QUERY_PARAM")
    download_auth_header: str = Field(default="", alias="DOWNLOAD_AUTH_HEADER")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def valid_models_set(self) -> frozenset[str]:
        """Parse accepted model identifiers from comma-separated string."""
        return frozenset(m.strip() for m in self.valid_models.split(",") if m.strip())

    @property
    def resolved_output_dir(self) -> Path:
        return self.output_dir.expanduser().resolve()

    @model_validator(mode="after")
    def validate_required_config(self) -> "Settings":
        """Validate required configuration on startup.

        Fails fast with clear error messages if configuration is incomplete.
        Validation is skipped in test environments.
        """
        if self.app_env in ("test", "testing"):
            return self

        missing = []

        if not self.replicate_api_token:
            missing.append(
                "REPLICATE_API_TOKEN: Get your API token from https://replicate.com/account/api-tokens"
            )

        if self.default_model not in self.valid_models_set:
            missing.append(
                f"DEFAULT_MODEL: {self.default_model} is not listed in VALID_MODELS "
                f"({self.valid_models})"
            )

        if missing:
            error_msg = "CRITICAL: Invalid or missing environment variables:\n\n" + "\n".join(
                f"  - {m}" for m in missing
            )
            error_msg += "\n\nThe application cannot start without these variables."
            error_msg += "\nPlease update your .env file and restart."
            raise ValueError(error_msg)

        return self


def configure_logging(settings: Settings) -> None:
    """Configure structlog based on application environment.

    - Production: JSON output for log aggregation
    - Development: Console output for human readability

    Output goes to stderr so stdout stays free for CLI results.
    """
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    if settings.app_env == "production":
        # JSON output for production (log aggregation)
        processors = [
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
