import json
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Type

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from .errors import ConfigError

# Environment variables read by StoreConfig
ENV_PREFIX = "YDB_"
ENV_ENDPOINT = f"{ENV_PREFIX}ENDPOINT"
ENV_DATABASE = f"{ENV_PREFIX}DATABASE"


class CredentialsMode(str, Enum):
    """How the driver obtains YDB credentials"""
    METADATA = "metadata"
    ANONYMOUS = "anonymous"
    ENVIRONMENT = "environment"


class StoreConfig(BaseSettings):
    """YDB connection settings.

    Every field can be set from a ``YDB_<FIELD>`` environment variable.
    Environment values win over keyword arguments, so values read from a
    JSON file and passed in by ``load_config`` are only defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_ignore_empty=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    endpoint: str = Field(
        default="",
        description="YDB endpoint, e.g. grpcs://ydb.serverless.yandexcloud.net:2135"
    )
    database: str = Field(
        default="",
        description="YDB database path, e.g. /ru-central1/b1g.../etn..."
    )
    table_prefix: str = Field(
        default="",
        description="Directory inside the database holding the bot tables"
    )
    credentials: CredentialsMode = Field(
        default=CredentialsMode.METADATA,
        description="Credentials source: metadata, anonymous or environment"
    )
    connect_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds to wait for endpoint discovery on first connect"
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # Earlier sources win
        return env_settings, init_settings

    @model_validator(mode='after')
    def strip_table_prefix(self) -> 'StoreConfig':
        """PRAGMA TablePathPrefix is built with its own separator"""
        self.table_prefix = self.table_prefix.strip("/")
        return self

    def is_complete(self) -> bool:
        """Check that both required settings are present"""
        return bool(self.endpoint and self.database)

    def require_complete(self) -> None:
        """Raise ConfigError if endpoint or database is missing"""
        if not self.is_complete():
            raise ConfigError(f"{ENV_ENDPOINT} and {ENV_DATABASE} must be set")

    def table_path_prefix(self) -> str:
        """Full path used in PRAGMA TablePathPrefix, empty when no prefix is set"""
        if not self.table_prefix:
            return ""
        return f"{self.database.rstrip('/')}/{self.table_prefix}"

    @classmethod
    def from_env(cls) -> 'StoreConfig':
        """Build config from environment variables only"""
        return load_config()


def _read_json(path: Path) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object")
    return data


def load_config(config_path: Optional[Path] = None) -> StoreConfig:
    """Load configuration from an optional JSON file, environment wins.

    Args:
        config_path: JSON file with StoreConfig fields, skipped if missing

    Returns:
        StoreConfig (possibly incomplete, checked on first connect)
    """
    data = {}
    if config_path is not None and Path(config_path).exists():
        data = _read_json(Path(config_path))
    try:
        return StoreConfig(**data)
    except ValueError as e:
        # pydantic ValidationError is a ValueError
        raise ConfigError(f"Invalid store configuration: {e}") from e
