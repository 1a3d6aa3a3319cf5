"""
stage-loader settings.

Values come from ``SL_``-prefixed environment variables (``SL_WAREHOUSE__URI``,
``SL_AWS_REGION`` ...), falling back to a ``.env`` file at the project root or
to the file named by ``SL_ENV_FILE``. ``ENVIRONMENT`` and ``LOG_LEVEL`` are
read without prefix.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import structlog
from pydantic import AliasChoices, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stage_loader.io.loader.models import ConfigurationError

logger = structlog.get_logger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[3]


def _resolve_env_file() -> Path:
    override = os.getenv("SL_ENV_FILE")
    if not override:
        return PROJECT_ROOT / ".env"
    path = Path(override).expanduser()
    return path if path.is_absolute() else PROJECT_ROOT / path


SETTINGS_ENV_FILE = _resolve_env_file()


class Settings(BaseSettings):
    """Runtime configuration for loads, storage and logging."""

    ENVIRONMENT: Literal["dev", "staging", "prod"] = Field(
        default="dev", validation_alias="ENVIRONMENT"
    )
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Warehouse; a full URI wins over the individual parts
    warehouse_uri: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "SL_WAREHOUSE__URI", "SL_WAREHOUSE_URI", "warehouse_uri"
        ),
    )
    warehouse_host: str = "localhost"
    warehouse_port: int = 5439
    warehouse_user: str = "loader"
    warehouse_password: str = ""
    warehouse_db: str = "dev"
    connect_timeout: int = Field(default=10, description="Seconds")

    # Object storage
    aws_region: Optional[str] = None
    aws_profile: Optional[str] = None
    manifest_bucket: Optional[str] = Field(
        default=None, description="Defaults to the bucket holding the data files"
    )
    keep_staged_files: bool = False

    table_manifests_config: str = "./config/tables.yml"

    model_config = SettingsConfigDict(
        env_prefix="SL_",
        env_file=str(SETTINGS_ENV_FILE),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    def get_warehouse_connection_string(self) -> str:
        """
        Warehouse DSN: ``SL_WAREHOUSE__URI`` if set, else built from the
        ``SL_WAREHOUSE_*`` parts. A ``postgres://`` scheme is rewritten to
        ``postgresql://``.
        """
        dsn = self.warehouse_uri or (
            f"postgresql://{self.warehouse_user}:{self.warehouse_password}"
            f"@{self.warehouse_host}:{self.warehouse_port}/{self.warehouse_db}"
        )
        if dsn.startswith("postgres://"):
            dsn = "postgresql://" + dsn[len("postgres://"):]
        return dsn

    @model_validator(mode="after")
    def _require_postgresql_in_prod(self) -> "Settings":
        dsn = self.get_warehouse_connection_string()
        if self.ENVIRONMENT == "prod" and not dsn.startswith("postgresql://"):
            logger.error("configuration.invalid_warehouse_url", preview=dsn[:12])
            raise ValueError(
                f"Production environment requires a postgresql:// warehouse DSN, got: {dsn[:12]}..."
            )
        return self


@lru_cache()
def get_settings() -> Settings:
    """
    Process-wide settings; call ``get_settings.cache_clear()`` after changing the environment.

    Raises:
        ConfigurationError: If the environment holds invalid settings
    """
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid stage-loader settings: {exc}") from exc
