from pathlib import Path

import pytest

from bailiff.config import ConfigInvalid, ConfigMissing, read_config
from bailiff.settings import ConfigResolver, ConfigSource


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_file_values_win_over_environment(
    clean_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _write(
        clean_env / "bailiff.toml",
        'bot-token = "file-token"\nstore-uri = "mongodb://file/db"\n',
    )
    monkeypatch.setenv("BOT_TOKEN", "env-token")
    monkeypatch.setenv("STORE_URI", "mongodb://env/db")

    config = ConfigResolver(env_file=None).resolve()

    assert config.bot_token == "file-token"
    assert config.store_uri == "mongodb://file/db"
    assert config.origins["bot-token"] is ConfigSource.FILE


def test_environment_fills_keys_missing_from_file(
    clean_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _write(clean_env / "bailiff.toml", 'bot-token = "file-token"\n')
    monkeypatch.setenv("STORE_URI", "mongodb://env/db")

    config = ConfigResolver(env_file=None).resolve()

    assert config.bot_token == "file-token"
    assert config.store_uri == "mongodb://env/db"
    assert config.origins["store-uri"] is ConfigSource.ENVIRONMENT


def test_missing_file_falls_back_to_environment(
    clean_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("BOT_TOKEN", "env-token")
    monkeypatch.setenv("STORE_URI", "mongodb://env/db")
    monkeypatch.setenv("TIMEOUT_SECONDS", "3")

    config = ConfigResolver(env_file=None).resolve()

    assert config.bot_token == "env-token"
    assert config.startup_timeout_seconds == 3


def test_timeout_defaults_to_ten_seconds(
    clean_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("BOT_TOKEN", "t")
    monkeypatch.setenv("STORE_URI", "mongodb://env/db")

    config = ConfigResolver(env_file=None).resolve()

    assert config.startup_timeout_seconds == 10
    assert config.origins["timeout-seconds"] is ConfigSource.DEFAULT


def test_missing_required_key_names_the_key(
    clean_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("STORE_URI", "mongodb://env/db")

    with pytest.raises(ConfigMissing, match="bot-token") as excinfo:
        ConfigResolver(env_file=None).resolve()

    assert excinfo.value.key == "bot-token"
    assert "BOT_TOKEN" in str(excinfo.value)


def test_non_numeric_timeout_is_invalid(clean_env: Path) -> None:
    _write(
        clean_env / "bailiff.toml",
        'bot-token = "t"\nstore-uri = "mongodb://x"\ntimeout-seconds = "soon"\n',
    )

    with pytest.raises(ConfigInvalid, match="timeout-seconds") as excinfo:
        ConfigResolver(env_file=None).resolve()

    assert excinfo.value.key == "timeout-seconds"


@pytest.mark.parametrize("value", ["0", "-5", "true"])
def test_timeout_must_be_a_positive_integer(clean_env: Path, value: str) -> None:
    _write(
        clean_env / "bailiff.toml",
        f'bot-token = "t"\nstore-uri = "mongodb://x"\ntimeout-seconds = {value}\n',
    )

    with pytest.raises(ConfigInvalid):
        ConfigResolver(env_file=None).resolve()


def test_blank_file_value_counts_as_absent(
    clean_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _write(clean_env / "bailiff.toml", 'bot-token = "  "\nstore-uri = "mongodb://x"\n')
    monkeypatch.setenv("BOT_TOKEN", "env-token")

    config = ConfigResolver(env_file=None).resolve()

    assert config.bot_token == "env-token"


def test_blank_everywhere_is_missing(
    clean_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _write(clean_env / "bailiff.toml", 'bot-token = ""\nstore-uri = "mongodb://x"\n')
    monkeypatch.setenv("BOT_TOKEN", "")

    with pytest.raises(ConfigMissing, match="bot-token"):
        ConfigResolver(env_file=None).resolve()


def test_dotenv_is_read_after_environment(
    clean_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _write(clean_env / ".env", "BOT_TOKEN=dotenv-token\nSTORE_URI=mongodb://dotenv\n")
    monkeypatch.setenv("STORE_URI", "mongodb://env/db")

    config = ConfigResolver(env_file=clean_env / ".env").resolve()

    assert config.bot_token == "dotenv-token"
    assert config.store_uri == "mongodb://env/db"


def test_explicit_path_and_unknown_keys(
    tmp_path: Path, clean_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = _write(
        tmp_path / "custom.toml",
        'bot-token = "t"\nstore-uri = "mongodb://x"\nprefix = "!"\n',
    )

    config = ConfigResolver(path, env_file=None).resolve()

    assert config.config_path == path
    assert config.bot_token == "t"


def test_config_repr_hides_credentials(clean_env: Path) -> None:
    _write(
        clean_env / "bailiff.toml",
        'bot-token = "sekrit"\nstore-uri = "mongodb://user:pw@host/db"\n',
    )

    config = ConfigResolver(env_file=None).resolve()

    assert "sekrit" not in repr(config)
    assert "pw@host" not in repr(config)


def test_malformed_toml_is_invalid(tmp_path: Path) -> None:
    path = _write(tmp_path / "bailiff.toml", "bot-token = \n")

    with pytest.raises(ConfigInvalid, match="Malformed TOML"):
        read_config(path)


def test_directory_config_path_is_invalid(tmp_path: Path) -> None:
    with pytest.raises(ConfigInvalid, match="not a file"):
        read_config(tmp_path)


def test_missing_config_file_reads_empty(tmp_path: Path) -> None:
    assert read_config(tmp_path / "nope.toml") == {}
