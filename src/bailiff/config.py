from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

EXEC_CONFIG_PATH = Path("bailiff.toml")


class ConfigError(RuntimeError):
    pass


class ConfigMissing(ConfigError):
    def __init__(self, key: str, *, config_path: Path) -> None:
        self.key = key
        self.config_path = config_path
        super().__init__(
            f"Missing `{key}` in {config_path} "
            f"(and no `{env_var_name(key)}` in the environment)."
        )


class ConfigInvalid(ConfigError):
    def __init__(self, message: str, *, key: str | None = None) -> None:
        self.key = key
        super().__init__(message)


class StartupTimeout(ConfigError):
    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Startup did not finish within {timeout_seconds:g} seconds; giving up."
        )


def env_var_name(key: str) -> str:
    return key.upper().replace("-", "_")


def field_name(key: str) -> str:
    return key.lower().replace("-", "_")


def config_key(field: str) -> str:
    return field.replace("_", "-")


def read_config(cfg_path: Path) -> dict[str, Any]:
    if cfg_path.exists() and not cfg_path.is_file():
        raise ConfigInvalid(f"Config path {cfg_path} exists but is not a file.")
    try:
        raw = cfg_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as e:
        raise ConfigInvalid(f"Failed to read config file {cfg_path}: {e}") from e
    try:
        return tomllib.loads(raw)
    except tomllib.TOMLDecodeError as e:
        raise ConfigInvalid(f"Malformed TOML in {cfg_path}: {e}") from None
