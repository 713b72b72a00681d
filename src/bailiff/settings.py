from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, NoReturn

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .config import (
    EXEC_CONFIG_PATH,
    ConfigInvalid,
    ConfigMissing,
    config_key,
    field_name,
    read_config,
)
from .logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10
DEFAULT_ENV_FILE = Path(".env")


class ConfigSource(Enum):
    FILE = "file"
    ENVIRONMENT = "environment"
    DEFAULT = "default"


@dataclass(frozen=True, slots=True)
class ExecConfig:
    """Execution configuration, resolved once at startup and never mutated.

    Holds credentials: neither the token nor the store URI is part of `repr`.
    """

    bot_token: str = field(repr=False)
    store_uri: str = field(repr=False)
    startup_timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    config_path: Path = EXEC_CONFIG_PATH
    source_precedence: tuple[ConfigSource, ...] = (
        ConfigSource.FILE,
        ConfigSource.ENVIRONMENT,
    )
    origins: dict[str, ConfigSource] = field(default_factory=dict, compare=False)


class ExecSettings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        env_prefix="",
        env_ignore_empty=True,
        env_file_encoding="utf-8",
        frozen=True,
    )

    bot_token: SecretStr
    store_uri: str
    timeout_seconds: int = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)

    @field_validator("bot_token", "store_uri", mode="before")
    @classmethod
    def _validate_strings(cls, value: Any, info) -> Any:
        if isinstance(value, SecretStr):
            value = value.get_secret_value()
        if not isinstance(value, str):
            raise ValueError(f"{info.field_name} must be a string")
        cleaned = value.strip()
        if not cleaned:
            raise ValueError(f"{info.field_name} must be a non-empty string")
        return cleaned

    @field_validator("timeout_seconds", mode="before")
    @classmethod
    def _validate_timeout(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("timeout-seconds must be an integer")
        if isinstance(value, str):
            return value.strip()
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # init carries the file values, so the file beats the environment.
        return (init_settings, env_settings, dotenv_settings)


class ConfigResolver:
    def __init__(
        self,
        path: str | Path | None = None,
        *,
        env_file: Path | None = DEFAULT_ENV_FILE,
    ) -> None:
        self.path = Path(path).expanduser() if path else EXEC_CONFIG_PATH
        self.env_file = env_file

    def file_values(self) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for key, value in read_config(self.path).items():
            name = field_name(key)
            if name not in ExecSettings.model_fields:
                logger.warning("config.unknown_key", key=key, path=str(self.path))
                continue
            if isinstance(value, str) and not value.strip():
                continue
            values[name] = value
        return values

    def resolve(self) -> ExecConfig:
        values = self.file_values()
        try:
            settings = ExecSettings(_env_file=self.env_file, **values)
        except ValidationError as exc:
            _raise_config_error(exc, config_path=self.path)

        origins: dict[str, ConfigSource] = {}
        for name in ExecSettings.model_fields:
            if name in values:
                origins[config_key(name)] = ConfigSource.FILE
            elif name in settings.model_fields_set:
                origins[config_key(name)] = ConfigSource.ENVIRONMENT
            else:
                origins[config_key(name)] = ConfigSource.DEFAULT

        config = ExecConfig(
            bot_token=settings.bot_token.get_secret_value(),
            store_uri=settings.store_uri,
            startup_timeout_seconds=settings.timeout_seconds,
            config_path=self.path,
            origins=origins,
        )
        logger.info(
            "config.resolved",
            path=str(self.path),
            timeout_seconds=config.startup_timeout_seconds,
            origins={key: origin.value for key, origin in origins.items()},
        )
        return config


def _raise_config_error(exc: ValidationError, *, config_path: Path) -> NoReturn:
    errors = exc.errors()
    for error in errors:
        if error["type"] == "missing" and error["loc"]:
            raise ConfigMissing(
                config_key(str(error["loc"][0])), config_path=config_path
            ) from None
    first = errors[0]
    key = config_key(str(first["loc"][0])) if first["loc"] else None
    raise ConfigInvalid(
        f"Invalid `{key}` in {config_path}: {first['msg']}", key=key
    ) from None
