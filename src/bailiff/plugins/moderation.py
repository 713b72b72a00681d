"""Moderation commands. The punishments themselves are carried out by the
`ModerationActions` the gateway attaches to each invocation."""

from __future__ import annotations

from ..commands import (
    CommandContext,
    CommandDescriptor,
    CommandOption,
    CommandResult,
    ModerationActions,
)
from ..durations import format_duration
from . import Plugin

_GUILD_ONLY = CommandResult("This command can only be used in a server.")


def _target(ctx: CommandContext) -> tuple[ModerationActions, int] | CommandResult:
    if ctx.actions is None or ctx.guild_id is None:
        return _GUILD_ONLY
    user_id = ctx.arguments["user"]
    if user_id == ctx.user_id:
        return CommandResult(f"You can't use `/{ctx.command}` on yourself.")
    return ctx.actions, user_id


async def ban(ctx: CommandContext) -> CommandResult:
    target = _target(ctx)
    if isinstance(target, CommandResult):
        return target
    actions, user_id = target
    reason = ctx.arguments.get("reason")
    delete_days = ctx.arguments.get("delete-days", 0)
    await actions.ban(user_id, reason=reason, delete_message_days=delete_days)
    return CommandResult(
        f"Banned <@{user_id}>." + _reason_suffix(reason), ephemeral=False
    )


async def kick(ctx: CommandContext) -> CommandResult:
    target = _target(ctx)
    if isinstance(target, CommandResult):
        return target
    actions, user_id = target
    reason = ctx.arguments.get("reason")
    await actions.kick(user_id, reason=reason)
    return CommandResult(
        f"Kicked <@{user_id}>." + _reason_suffix(reason), ephemeral=False
    )


async def timeout(ctx: CommandContext) -> CommandResult:
    target = _target(ctx)
    if isinstance(target, CommandResult):
        return target
    actions, user_id = target
    duration = ctx.arguments["duration"]
    reason = ctx.arguments.get("reason")
    await actions.timeout(user_id, duration=duration, reason=reason)
    return CommandResult(
        f"Timed out <@{user_id}> for {format_duration(duration.total_seconds())}."
        + _reason_suffix(reason),
        ephemeral=False,
    )


def _reason_suffix(reason: str | None) -> str:
    return f" Reason: {reason}" if reason else ""


_USER = CommandOption(
    name="user", description="The member to act on.", kind="user", required=True
)
_REASON = CommandOption(name="reason", description="Why this action is taken.")


def commands() -> list[CommandDescriptor]:
    return [
        CommandDescriptor(
            name="ban",
            plugin=Plugin.MODERATION,
            description="Bans a member from the server.",
            handler=ban,
            public=True,
            cooldown=10.0,
            options=(
                _USER,
                _REASON,
                CommandOption(
                    name="delete-days",
                    description="Days of their messages to delete.",
                    kind="integer",
                    choices=(0, 1, 7),
                ),
            ),
        ),
        CommandDescriptor(
            name="kick",
            plugin=Plugin.MODERATION,
            description="Kicks a member from the server.",
            handler=kick,
            public=True,
            cooldown=5.0,
            options=(_USER, _REASON),
        ),
        CommandDescriptor(
            name="timeout",
            plugin=Plugin.MODERATION,
            description="Times out a member for a while (up to 28 days).",
            handler=timeout,
            public=True,
            cooldown=5.0,
            aliases=("mute",),
            options=(
                _USER,
                CommandOption(
                    name="duration",
                    description="How long, e.g. 10m, 1h30m, 2d.",
                    kind="duration",
                    required=True,
                ),
                _REASON,
            ),
        ),
    ]
