"""Gateway adapter: turns Discord interactions into invocation events."""

from __future__ import annotations

import asyncio
import contextlib
from datetime import timedelta
from typing import Any

import discord

from ..dispatch import Completed, DispatchEngine, InvocationEvent, Outcome
from ..logging import get_logger

logger = get_logger(__name__)

SUBCOMMAND_TYPES = frozenset({1, 2})


def invocation_from_interaction(interaction: Any) -> InvocationEvent | None:
    """Build an `InvocationEvent` from a slash-command interaction, else `None`."""
    data = interaction.data or {}
    if data.get("type", 1) != 1 or "name" not in data:
        return None
    arguments = {
        option["name"]: option.get("value")
        for option in data.get("options") or ()
        if option.get("type") not in SUBCOMMAND_TYPES
    }
    guild_id = interaction.guild_id
    return InvocationEvent(
        user_id=interaction.user.id,
        command_name=data["name"],
        arguments=arguments,
        correlation_id=str(interaction.id),
        guild_id=int(guild_id) if guild_id is not None else None,
        channel_id=interaction.channel_id,
    )


class DiscordModerationActions:
    """Moderation actions carried out against one guild."""

    def __init__(self, guild: discord.Guild) -> None:
        self._guild = guild

    async def ban(
        self, user_id: int, *, reason: str | None, delete_message_days: int = 0
    ) -> None:
        await self._guild.ban(
            discord.Object(id=user_id),
            reason=reason,
            delete_message_seconds=delete_message_days * 24 * 60 * 60,
        )

    async def kick(self, user_id: int, *, reason: str | None) -> None:
        await self._guild.kick(discord.Object(id=user_id), reason=reason)

    async def timeout(
        self, user_id: int, *, duration: timedelta, reason: str | None
    ) -> None:
        member = self._guild.get_member(user_id)
        if member is None:
            member = await self._guild.fetch_member(user_id)
        await member.timeout_for(duration, reason=reason)


class DiscordGateway:
    """Wrapper around a Pycord client that feeds interactions to the engine.

    A plain `discord.Client` is used rather than `discord.Bot` so that Pycord
    does not register commands on its own; the synchronizer owns that.
    """

    def __init__(self, token: str, engine: DispatchEngine) -> None:
        self._token = token
        self._engine = engine
        self._client: discord.Client | None = None
        self._ready_event: asyncio.Event | None = None
        self._start_task: asyncio.Task[None] | None = None

    def _ensure_client(self) -> discord.Client:
        """Create the client if needed. Must be called from async context."""
        if self._client is not None:
            return self._client

        self._client = discord.Client(intents=discord.Intents.default())
        self._ready_event = asyncio.Event()

        @self._client.event
        async def on_ready() -> None:
            assert self._client is not None and self._ready_event is not None
            self._ready_event.set()
            logger.info(
                "gateway.ready",
                user=str(self._client.user),
                guilds=len(self._client.guilds),
            )

        @self._client.event
        async def on_interaction(interaction: discord.Interaction) -> None:
            await self.handle_interaction(interaction)

        return self._client

    async def handle_interaction(self, interaction: discord.Interaction) -> None:
        if interaction.type is not discord.InteractionType.application_command:
            return
        event = invocation_from_interaction(interaction)
        if event is None:
            return
        # acknowledge within Discord's 3 second window before any handler runs
        descriptor = self._engine.catalog.get(event.command_name)
        deferred_ephemeral = descriptor is None or not descriptor.public
        try:
            await interaction.response.defer(ephemeral=deferred_ephemeral)
        except discord.HTTPException as e:
            logger.error(
                "gateway.defer_failed",
                correlation_id=event.correlation_id,
                status=getattr(e, "status", None),
                error=str(e),
            )
            return
        actions = (
            DiscordModerationActions(interaction.guild)
            if interaction.guild is not None
            else None
        )
        outcome = await self._engine.handle(event, actions=actions)
        await self.respond(interaction, outcome, deferred_ephemeral=deferred_ephemeral)

    async def respond(
        self,
        interaction: discord.Interaction,
        outcome: Outcome,
        *,
        deferred_ephemeral: bool = True,
    ) -> None:
        """Replace the deferred "thinking" reply with the outcome.

        The deferred reply's visibility is fixed, so an outcome with the other
        visibility deletes it and goes out as a followup instead.
        """
        ephemeral = outcome.ephemeral if isinstance(outcome, Completed) else True
        try:
            if ephemeral == deferred_ephemeral:
                await interaction.edit_original_response(content=outcome.text)
            else:
                await interaction.delete_original_response()
                await interaction.followup.send(outcome.text, ephemeral=ephemeral)
        except discord.HTTPException as e:
            logger.error(
                "gateway.respond_failed",
                correlation_id=outcome.correlation_id,
                outcome=outcome.type,
                status=getattr(e, "status", None),
                error=str(e),
            )

    async def start(self) -> None:
        """Connect to the gateway and wait until ready."""
        client = self._ensure_client()
        assert self._ready_event is not None

        async def _run_client() -> None:
            try:
                await client.start(self._token)
            except asyncio.CancelledError:
                pass
            except RuntimeError as e:
                # Suppress "Session is closed" error during shutdown
                if "Session is closed" not in str(e):
                    raise

        self._start_task = asyncio.create_task(_run_client(), name="discord-gateway")
        ready = asyncio.ensure_future(self._ready_event.wait())
        await asyncio.wait(
            {self._start_task, ready}, return_when=asyncio.FIRST_COMPLETED
        )
        if not ready.done():
            ready.cancel()
            self._start_task.result()
            raise RuntimeError("Discord gateway closed before becoming ready")

    async def wait_closed(self) -> None:
        if self._start_task is not None:
            await self._start_task

    async def set_presence(self, *, ready: bool) -> None:
        client = self._ensure_client()
        if ready:
            await client.change_presence(
                status=discord.Status.online,
                activity=discord.Activity(
                    type=discord.ActivityType.watching, name="over the server"
                ),
            )
        else:
            await client.change_presence(
                status=discord.Status.dnd,
                activity=discord.Game(name="the waiting game..."),
            )

    async def close(self) -> None:
        """Close the gateway connection."""
        if self._client is not None:
            await self._client.close()
            if self._start_task is not None and not self._start_task.done():
                self._start_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._start_task
