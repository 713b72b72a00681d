"""Tests for the Discord gateway adapter."""

from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from bailiff.catalog import build_catalog
from bailiff.commands import CommandContext, CommandResult
from bailiff.discord.gateway import (
    DiscordGateway,
    DiscordModerationActions,
    invocation_from_interaction,
)
from bailiff.dispatch import Blocked, Completed, DispatchEngine, Failed
from bailiff.plugins import Plugin
from tests.fakes import contributions, descriptor


def _interaction(data: dict[str, Any] | None, **overrides: Any) -> SimpleNamespace:
    fields = {
        "id": 1234,
        "data": data,
        "user": SimpleNamespace(id=42),
        "guild_id": 7,
        "channel_id": 8,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestInvocationFromInteraction:
    """Test interaction to event conversion."""

    def test_slash_command_with_options(self) -> None:
        interaction = _interaction(
            {
                "type": 1,
                "name": "ban",
                "options": [
                    {"type": 6, "name": "user", "value": "99"},
                    {"type": 3, "name": "reason", "value": "spam"},
                ],
            }
        )

        event = invocation_from_interaction(interaction)

        assert event is not None
        assert event.command_name == "ban"
        assert event.user_id == 42
        assert event.arguments == {"user": "99", "reason": "spam"}
        assert event.correlation_id == "1234"
        assert event.guild_id == 7
        assert event.channel_id == 8

    def test_direct_message_has_no_guild(self) -> None:
        event = invocation_from_interaction(
            _interaction({"type": 1, "name": "ping"}, guild_id=None)
        )

        assert event is not None
        assert event.guild_id is None
        assert event.arguments == {}

    @pytest.mark.parametrize("data", [None, {}, {"type": 2, "name": "Report"}])
    def test_non_slash_interactions_are_ignored(self, data: Any) -> None:
        assert invocation_from_interaction(_interaction(data)) is None


class TestRespond:
    """Test outcome delivery after the interaction was deferred."""

    def _gateway(self) -> DiscordGateway:
        return DiscordGateway("token", MagicMock(spec=DispatchEngine))

    def _interaction(self) -> MagicMock:
        interaction = MagicMock()
        interaction.edit_original_response = AsyncMock()
        interaction.delete_original_response = AsyncMock()
        interaction.followup.send = AsyncMock()
        return interaction

    @pytest.mark.anyio
    async def test_matching_visibility_edits_deferred_reply(self) -> None:
        interaction = self._interaction()
        outcome = Completed(
            correlation_id="c", command="ping", text="Pong!", ephemeral=False
        )

        await self._gateway().respond(interaction, outcome, deferred_ephemeral=False)

        interaction.edit_original_response.assert_awaited_once_with(content="Pong!")
        interaction.followup.send.assert_not_awaited()

    @pytest.mark.anyio
    async def test_failures_and_blocks_are_ephemeral(self) -> None:
        interaction = self._interaction()
        gateway = self._gateway()

        await gateway.respond(
            interaction,
            Failed(correlation_id="c", reason="unknown_command", text="nope"),
            deferred_ephemeral=False,
        )
        await gateway.respond(
            interaction,
            Blocked(correlation_id="c", command="ban", remaining=2.0, text="wait"),
            deferred_ephemeral=False,
        )

        assert interaction.delete_original_response.await_count == 2
        calls = interaction.followup.send.await_args_list
        assert [call.kwargs["ephemeral"] for call in calls] == [True, True]
        interaction.edit_original_response.assert_not_awaited()

    @pytest.mark.anyio
    async def test_send_failure_is_logged_not_raised(self) -> None:
        interaction = self._interaction()
        response = MagicMock(status=500, reason="boom")
        interaction.edit_original_response = AsyncMock(
            side_effect=discord.HTTPException(response, "boom")
        )

        await self._gateway().respond(
            interaction, Completed(correlation_id="c", command="ping", text="Pong!")
        )


class TestHandleInteraction:
    """Test that interactions are acknowledged before any handler runs."""

    def _engine(self, order: list[str]) -> DispatchEngine:
        async def record_ban(ctx: CommandContext) -> CommandResult:
            order.append("handler")
            return CommandResult("Banned.", ephemeral=False)

        catalog = build_catalog(
            contributions(
                moderation=[
                    descriptor(
                        "ban", Plugin.MODERATION, handler=record_ban, public=True
                    )
                ],
                miscellaneous=[descriptor("notes")],
            )
        )
        return DispatchEngine(catalog)

    def _interaction(self, name: str, order: list[str]) -> MagicMock:
        interaction = MagicMock()
        interaction.type = discord.InteractionType.application_command
        interaction.id = 99
        interaction.data = {"type": 1, "name": name}
        interaction.user.id = 42
        interaction.guild_id = None
        interaction.channel_id = 8
        interaction.guild = None
        interaction.response.defer = AsyncMock(
            side_effect=lambda **kwargs: order.append("defer")
        )
        interaction.edit_original_response = AsyncMock()
        interaction.delete_original_response = AsyncMock()
        interaction.followup.send = AsyncMock()
        return interaction

    @pytest.mark.anyio
    async def test_defers_before_running_the_handler(self) -> None:
        order: list[str] = []
        gateway = DiscordGateway("token", self._engine(order))
        interaction = self._interaction("ban", order)

        await gateway.handle_interaction(interaction)

        assert order == ["defer", "handler"]
        interaction.response.defer.assert_awaited_once_with(ephemeral=False)
        interaction.edit_original_response.assert_awaited_once_with(content="Banned.")

    @pytest.mark.anyio
    async def test_private_commands_defer_ephemerally(self) -> None:
        order: list[str] = []
        gateway = DiscordGateway("token", self._engine(order))
        interaction = self._interaction("notes", order)

        await gateway.handle_interaction(interaction)

        interaction.response.defer.assert_awaited_once_with(ephemeral=True)
        interaction.edit_original_response.assert_awaited_once_with(
            content="ok notes"
        )

    @pytest.mark.anyio
    async def test_failed_defer_skips_the_handler(self) -> None:
        order: list[str] = []
        gateway = DiscordGateway("token", self._engine(order))
        interaction = self._interaction("ban", order)
        response = MagicMock(status=404, reason="Unknown interaction")
        interaction.response.defer = AsyncMock(
            side_effect=discord.NotFound(response, "Unknown interaction")
        )

        await gateway.handle_interaction(interaction)

        assert order == []
        interaction.edit_original_response.assert_not_awaited()


class TestModerationActions:
    """Test the guild-backed moderation actions."""

    @pytest.mark.anyio
    async def test_ban_converts_days_to_seconds(self) -> None:
        guild = MagicMock()
        guild.ban = AsyncMock()

        actions = DiscordModerationActions(guild)
        await actions.ban(5, reason="spam", delete_message_days=1)

        args, kwargs = guild.ban.await_args
        assert args[0].id == 5
        assert kwargs == {"reason": "spam", "delete_message_seconds": 86400}

    @pytest.mark.anyio
    async def test_timeout_fetches_uncached_member(self) -> None:
        member = MagicMock()
        member.timeout_for = AsyncMock()
        guild = MagicMock()
        guild.get_member.return_value = None
        guild.fetch_member = AsyncMock(return_value=member)

        await DiscordModerationActions(guild).timeout(
            5, duration=timedelta(minutes=10), reason=None
        )

        guild.fetch_member.assert_awaited_once_with(5)
        member.timeout_for.assert_awaited_once_with(timedelta(minutes=10), reason=None)


class TestGatewayClose:
    """Test gateway shutdown."""

    @pytest.mark.anyio
    async def test_close_without_client_does_nothing(self) -> None:
        gateway = DiscordGateway("token", MagicMock(spec=DispatchEngine))
        await gateway.close()
        assert gateway._client is None
