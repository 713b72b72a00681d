"""Per-guild plugin switches.

Every plugin starts enabled in every guild. Default plugins can never be
disabled; the others can be switched off and back on per guild.
"""

from __future__ import annotations

from typing import Protocol

import anyio

from .logging import get_logger
from .plugins import Plugin

logger = get_logger(__name__)


class PluginStateError(ValueError):
    pass


class PluginStates(Protocol):
    async def is_enabled(self, guild_id: int, plugin: Plugin) -> bool: ...

    async def enable(self, guild_id: int, plugin: Plugin) -> None: ...

    async def disable(self, guild_id: int, plugin: Plugin) -> None: ...


class MemoryPluginStates:
    """In-process plugin switches; forgotten on restart."""

    def __init__(self) -> None:
        self._lock = anyio.Lock()
        self._disabled: dict[int, set[Plugin]] = {}

    async def is_enabled(self, guild_id: int, plugin: Plugin) -> bool:
        async with self._lock:
            return plugin not in self._disabled.get(guild_id, ())

    async def enable(self, guild_id: int, plugin: Plugin) -> None:
        async with self._lock:
            disabled = self._disabled.get(guild_id)
            if not disabled or plugin not in disabled:
                raise PluginStateError(
                    f"The `{plugin.value}` plugin is already enabled here."
                )
            disabled.discard(plugin)
        logger.info("plugins.enabled", guild_id=guild_id, plugin=plugin.value)

    async def disable(self, guild_id: int, plugin: Plugin) -> None:
        if plugin.is_default:
            raise PluginStateError(
                f"The `{plugin.value}` plugin is a default plugin "
                "and cannot be disabled."
            )
        async with self._lock:
            disabled = self._disabled.setdefault(guild_id, set())
            if plugin in disabled:
                raise PluginStateError(
                    f"The `{plugin.value}` plugin is already disabled here."
                )
            disabled.add(plugin)
        logger.info("plugins.disabled", guild_id=guild_id, plugin=plugin.value)
