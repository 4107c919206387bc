"""Settings for building a session store.

Values are resolved, highest precedence first, from explicit keyword
arguments (the CLI passes its options this way), environment variables
prefixed ``PERSISTENT_SESSIONS_``, a ``.env`` file, an optional YAML
config file, and finally the defaults below.  ``DATABASE_URL`` is accepted
as an alias for the database URL.

Classes
-------
- StoreSettings  — pydantic-settings model

Functions
---------
- load_settings  — resolve settings, wrapping validation failures
"""
from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field, ValidationError
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from persistent_sessions.errors import ConfigurationError
from persistent_sessions.logging_setup import LoggingConfig
from persistent_sessions.storage.namespace import (
    DEFAULT_SCHEMA_NAME,
    DEFAULT_TABLE_NAME,
    Namespace,
)
from persistent_sessions.storage.pool import DEFAULT_POOL_MAX_SIZE

BackendName = Literal["postgres", "sqlite", "memory"]


class StoreSettings(BaseSettings):
    """Configuration for the session store and its ambient services."""

    model_config = SettingsConfigDict(
        env_prefix="PERSISTENT_SESSIONS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    backend: BackendName = "postgres"
    database_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "database_url", "PERSISTENT_SESSIONS_DATABASE_URL", "DATABASE_URL"
        ),
    )
    sqlite_path: Path | None = None
    schema_name: str = DEFAULT_SCHEMA_NAME
    table_name: str = DEFAULT_TABLE_NAME

    pool_min_size: int = Field(default=1, ge=0)
    pool_max_size: int = Field(default=DEFAULT_POOL_MAX_SIZE, ge=1)

    eviction_interval_seconds: float = Field(default=60.0, gt=0)

    log_level: str = "INFO"
    log_rich: bool = False

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def namespace(self) -> Namespace:
        """Return the validated namespace; raises ``ConfigurationError``."""
        return Namespace(schema_name=self.schema_name, table_name=self.table_name)

    def eviction_interval(self) -> timedelta:
        return timedelta(seconds=self.eviction_interval_seconds)

    def logging_config(self) -> LoggingConfig:
        return LoggingConfig(level=self.log_level, rich=self.log_rich)


def load_settings(config_file: str | Path | None = None, **overrides: Any) -> StoreSettings:
    """Resolve ``StoreSettings`` and validate the namespace eagerly.

    Parameters
    ----------
    config_file:
        Optional YAML file with any ``StoreSettings`` field as a top-level key.
    **overrides:
        Explicit values; ``None`` values are ignored so that unset CLI
        options fall through to lower-precedence sources.

    Raises
    ------
    ConfigurationError
        If any value fails validation or the schema/table name is invalid.
    """
    settings_cls: type[StoreSettings] = StoreSettings
    if config_file is not None:
        path = Path(config_file)
        if not path.is_file():
            raise ConfigurationError(f"Config file {str(path)!r} does not exist")

        class _FileStoreSettings(StoreSettings):
            model_config = SettingsConfigDict(yaml_file=path)

        settings_cls = _FileStoreSettings

    explicit = {key: value for key, value in overrides.items() if value is not None}
    try:
        settings = settings_cls(**explicit)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid settings: {exc}") from exc
    settings.namespace()
    return settings


__all__ = ["BackendName", "StoreSettings", "load_settings"]
