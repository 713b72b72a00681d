"""Invocation dispatch: catalog lookup, argument validation, cooldowns, handlers.

Each event moves through `received -> validated -> cooldown_checked ->
executing` and ends `completed`, `failed` or `blocked`. Failures never leave
the invocation that caused them.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

import anyio
from anyio.abc import ObjectReceiveStream

from . import cooldown
from .catalog import Catalog
from .commands import (
    CommandContext,
    CommandDescriptor,
    CommandResult,
    ModerationActions,
)
from .durations import format_duration
from .logging import bind_run_context, clear_context, get_logger
from .plugin_states import MemoryPluginStates, PluginStates
from .validate import InvalidArgument, validate_arguments

logger = get_logger(__name__)

type FailureReason = Literal[
    "not_ready",
    "unknown_command",
    "plugin_disabled",
    "invalid_arguments",
    "handler_fault",
]


def _new_correlation_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True, slots=True)
class InvocationEvent:
    user_id: int
    command_name: str
    arguments: Mapping[str, Any] = field(default_factory=dict)
    correlation_id: str = field(default_factory=_new_correlation_id)
    guild_id: int | None = None
    channel_id: int | None = None


@dataclass(frozen=True, slots=True)
class Completed:
    type: Literal["completed"] = field(default="completed", init=False)
    correlation_id: str
    command: str
    text: str
    ephemeral: bool = True


@dataclass(frozen=True, slots=True)
class Failed:
    type: Literal["failed"] = field(default="failed", init=False)
    correlation_id: str
    reason: FailureReason
    text: str
    command: str | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class Blocked:
    type: Literal["blocked"] = field(default="blocked", init=False)
    correlation_id: str
    command: str
    remaining: float
    text: str


type Outcome = Completed | Failed | Blocked

type Responder = Callable[[InvocationEvent, Outcome], Awaitable[None]]


class DispatchEngine:
    def __init__(
        self,
        catalog: Catalog,
        cooldowns: cooldown.CooldownTracker | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        ready: bool = True,
        plugin_states: PluginStates | None = None,
    ) -> None:
        self.catalog = catalog
        if cooldowns is None:
            cooldowns = cooldown.CooldownTracker(clock=clock)
        self.cooldowns = cooldowns
        self.plugin_states = (
            plugin_states if plugin_states is not None else MemoryPluginStates()
        )
        self._clock = clock
        self._ready = ready

    @property
    def ready(self) -> bool:
        return self._ready

    def mark_ready(self) -> None:
        self._ready = True
        logger.info("dispatch.ready", commands=len(self.catalog))

    async def handle(
        self,
        event: InvocationEvent,
        *,
        actions: ModerationActions | None = None,
    ) -> Outcome:
        bind_run_context(
            correlation_id=event.correlation_id,
            command=event.command_name,
            user_id=event.user_id,
        )
        try:
            return await self._handle(event, actions=actions)
        finally:
            clear_context()

    async def _handle(
        self,
        event: InvocationEvent,
        *,
        actions: ModerationActions | None,
    ) -> Outcome:
        correlation_id = event.correlation_id
        if not self._ready:
            logger.info("dispatch.not_ready")
            return Failed(
                correlation_id=correlation_id,
                reason="not_ready",
                command=event.command_name,
                text=(
                    "I'm not done getting ready yet. Give me a moment and try again."
                ),
            )

        descriptor = self.catalog.get(event.command_name)
        if descriptor is None:
            logger.info("dispatch.unknown_command")
            return Failed(
                correlation_id=correlation_id,
                reason="unknown_command",
                command=event.command_name,
                text=f"I don't know a command called `/{event.command_name}`.",
            )

        if event.guild_id is not None and not await self.plugin_states.is_enabled(
            event.guild_id, descriptor.plugin
        ):
            logger.info("dispatch.plugin_disabled", plugin=descriptor.plugin.value)
            return Failed(
                correlation_id=correlation_id,
                reason="plugin_disabled",
                command=descriptor.name,
                text=(
                    f"The `{descriptor.plugin.value}` plugin is disabled in this "
                    "server. Turn it back on with `/enable`."
                ),
            )

        try:
            arguments = validate_arguments(descriptor.options, event.arguments)
        except InvalidArgument as exc:
            logger.info("dispatch.invalid_arguments", option=exc.option, error=str(exc))
            return Failed(
                correlation_id=correlation_id,
                reason="invalid_arguments",
                command=descriptor.name,
                text=f"Invalid option {exc}",
                error=str(exc),
            )

        status = self.cooldowns.check_and_record(
            event.user_id, descriptor.name, descriptor.cooldown, self._clock()
        )
        if isinstance(status, cooldown.Blocked):
            logger.info("dispatch.blocked", remaining=round(status.remaining, 3))
            return Blocked(
                correlation_id=correlation_id,
                command=descriptor.name,
                remaining=status.remaining,
                text=(
                    f"`/{event.command_name}` is on cooldown. "
                    f"Try again in {format_duration(status.remaining)}."
                ),
            )

        return await self._execute(event, descriptor, arguments, actions=actions)

    async def _execute(
        self,
        event: InvocationEvent,
        descriptor: CommandDescriptor,
        arguments: dict[str, Any],
        *,
        actions: ModerationActions | None,
    ) -> Outcome:
        ctx = CommandContext(
            command=event.command_name,
            user_id=event.user_id,
            arguments=arguments,
            correlation_id=event.correlation_id,
            catalog=self.catalog,
            guild_id=event.guild_id,
            channel_id=event.channel_id,
            actions=actions,
            plugins=self.plugin_states,
        )
        started = self._clock()
        try:
            result = await descriptor.handler(ctx)
        except Exception as exc:
            logger.exception(
                "command.failed",
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            return Failed(
                correlation_id=event.correlation_id,
                reason="handler_fault",
                command=descriptor.name,
                text=(
                    f"`/{event.command_name}` ran into an error. "
                    f"Reference: `{event.correlation_id}`"
                ),
                error=f"{exc.__class__.__name__}: {exc}",
            )

        if isinstance(result, CommandResult):
            text, ephemeral = result.text, result.ephemeral
        elif isinstance(result, str):
            text, ephemeral = result, not descriptor.public
        else:
            text = f"✓ `/{event.command_name}` completed"
            ephemeral = not descriptor.public
        logger.info(
            "command.completed",
            elapsed=round(self._clock() - started, 3),
        )
        return Completed(
            correlation_id=event.correlation_id,
            command=descriptor.name,
            text=text,
            ephemeral=ephemeral,
        )

    async def serve(
        self,
        events: ObjectReceiveStream[InvocationEvent],
        respond: Responder,
        *,
        limit: int | None = None,
    ) -> None:
        """Handle every event from `events` in its own task until the stream closes."""
        limiter = anyio.CapacityLimiter(limit) if limit else None
        async with anyio.create_task_group() as tg, events:
            async for event in events:
                tg.start_soon(self._serve_one, event, respond, limiter)

    async def _serve_one(
        self,
        event: InvocationEvent,
        respond: Responder,
        limiter: anyio.CapacityLimiter | None,
    ) -> None:
        if limiter is None:
            outcome = await self.handle(event)
        else:
            async with limiter:
                outcome = await self.handle(event)
        try:
            await respond(event, outcome)
        except Exception as exc:
            logger.exception(
                "dispatch.respond_failed",
                correlation_id=event.correlation_id,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
