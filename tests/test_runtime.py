from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from bailiff import runtime
from bailiff.config import ConfigInvalid
from bailiff.discord.registry import DiscordCommandRegistry
from bailiff.discord.schemas import ApplicationInfo
from bailiff.settings import ExecConfig
from bailiff.sync import RegistryRejected, RegistryUnavailable

CONFIG = ExecConfig(
    bot_token="token",
    store_uri="mongodb://localhost/bailiff",
    config_path=Path("bailiff.toml"),
)


@pytest.mark.anyio
async def test_connect_retries_transient_failures(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    fetch = AsyncMock(
        side_effect=[
            RegistryUnavailable("503"),
            ApplicationInfo(id="1", name="bailiff"),
        ]
    )
    monkeypatch.setattr(DiscordCommandRegistry, "fetch_application", fetch)
    monkeypatch.setattr(runtime, "CONNECT_RETRY_DELAY", 0.0)

    registry = await runtime.connect_registry(CONFIG, guild_id=5)

    assert fetch.await_count == 2
    assert registry.guild_id == 5
    await registry.close()


@pytest.mark.anyio
async def test_connect_rejected_token_is_config_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    fetch = AsyncMock(side_effect=RegistryRejected("401 Unauthorized"))
    close = AsyncMock()
    monkeypatch.setattr(DiscordCommandRegistry, "fetch_application", fetch)
    monkeypatch.setattr(DiscordCommandRegistry, "close", close)

    with pytest.raises(ConfigInvalid, match="bot-token") as excinfo:
        await runtime.connect_registry(CONFIG)

    assert excinfo.value.key == "bot-token"
    close.assert_awaited_once()


def test_load_catalog_uses_given_contributions() -> None:
    catalog = runtime.load_catalog({})

    assert len(catalog) == 0
