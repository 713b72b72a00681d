"""Process lifecycle: startup gate, catalog, registration sync, then dispatch."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from urllib.parse import urlsplit

import anyio

from .catalog import Catalog, build_catalog
from .config import ConfigInvalid
from .cooldown import CooldownTracker
from .discord.gateway import DiscordGateway
from .discord.registry import DiscordCommandRegistry
from .dispatch import DispatchEngine
from .logging import get_logger
from .plugins import Contribution, Plugin, default_contributions
from .settings import ConfigResolver, ExecConfig
from .startup import start
from .sync import (
    RegistrationSynchronizer,
    RegistryRejected,
    RegistryUnavailable,
)

logger = get_logger(__name__)

CONNECT_RETRY_DELAY = 1.0


async def connect_registry(
    config: ExecConfig, *, guild_id: int | None = None
) -> DiscordCommandRegistry:
    """Open the REST registry and prove the token works, retrying transient errors.

    Retries continue until the startup deadline cancels the attempt.
    """
    registry = DiscordCommandRegistry(config.bot_token, guild_id=guild_id)
    try:
        while True:
            try:
                await registry.fetch_application()
            except RegistryUnavailable as exc:
                delay = exc.retry_after or CONNECT_RETRY_DELAY
                logger.warning("startup.connect_retry", delay=delay, error=str(exc))
                await anyio.sleep(delay)
                continue
            except RegistryRejected as exc:
                raise ConfigInvalid(
                    f"Discord rejected `bot-token` from {config.config_path}: {exc}",
                    key="bot-token",
                ) from exc
            return registry
    except BaseException:
        with anyio.CancelScope(shield=True):
            await registry.close()
        raise


def load_catalog(
    contributions: Mapping[Plugin, Contribution] | None = None,
) -> Catalog:
    return build_catalog(
        contributions if contributions is not None else default_contributions()
    )


async def run_bot(
    *,
    config_path: Path | None = None,
    guild_id: int | None = None,
) -> None:
    resolver = ConfigResolver(config_path)

    async def _connect(config: ExecConfig) -> DiscordCommandRegistry:
        return await connect_registry(config, guild_id=guild_id)

    config, registry = await start(resolver, _connect)
    store = urlsplit(config.store_uri)
    logger.info("startup.store", scheme=store.scheme, host=store.hostname)

    async with registry:
        catalog = load_catalog()
        engine = DispatchEngine(catalog, CooldownTracker(), ready=False)
        gateway = DiscordGateway(config.bot_token, engine)
        try:
            await gateway.start()
            await gateway.set_presence(ready=False)
            report = await RegistrationSynchronizer(registry).synchronize(catalog)
            engine.mark_ready()
            await gateway.set_presence(ready=True)
            logger.info(
                "bot.running",
                commands=len(catalog),
                degraded=[failure.name for failure in report.failures],
            )
            await gateway.wait_closed()
        finally:
            with anyio.CancelScope(shield=True):
                await gateway.close()
