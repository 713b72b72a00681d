"""Command descriptors: the metadata and handler for every slash command."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Literal, Protocol

from .plugins import Plugin

if TYPE_CHECKING:
    from .catalog import Catalog
    from .plugin_states import PluginStates

type OptionKind = Literal["string", "integer", "boolean", "user", "date", "duration"]

# Discord application command option types; dates and durations travel as strings.
OPTION_TYPE_CODES: dict[OptionKind, int] = {
    "string": 3,
    "integer": 4,
    "boolean": 5,
    "user": 6,
    "date": 3,
    "duration": 3,
}

CHAT_INPUT_COMMAND = 1


@dataclass(frozen=True, slots=True)
class CommandOption:
    name: str
    description: str
    kind: OptionKind = "string"
    required: bool = False
    choices: tuple[str | int, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": OPTION_TYPE_CODES[self.kind],
            "name": self.name,
            "description": self.description,
            "required": self.required,
        }
        if self.choices:
            payload["choices"] = [
                {"name": str(choice), "value": choice} for choice in self.choices
            ]
        return payload


@dataclass(frozen=True, slots=True)
class CommandResult:
    text: str
    ephemeral: bool = True


class ModerationActions(Protocol):
    async def ban(
        self, user_id: int, *, reason: str | None, delete_message_days: int = 0
    ) -> None: ...

    async def kick(self, user_id: int, *, reason: str | None) -> None: ...

    async def timeout(
        self, user_id: int, *, duration: timedelta, reason: str | None
    ) -> None: ...


@dataclass(frozen=True, slots=True)
class CommandContext:
    command: str
    user_id: int
    arguments: Mapping[str, Any]
    correlation_id: str
    catalog: Catalog
    guild_id: int | None = None
    channel_id: int | None = None
    actions: ModerationActions | None = None
    plugins: PluginStates | None = None


type HandlerReturn = CommandResult | str | None
type CommandHandler = Callable[[CommandContext], Awaitable[HandlerReturn]]


@dataclass(frozen=True, slots=True)
class CommandDescriptor:
    name: str
    plugin: Plugin
    description: str
    handler: CommandHandler = field(compare=False, repr=False)
    cooldown: float = 0.0
    aliases: tuple[str, ...] = ()
    options: tuple[CommandOption, ...] = ()
    # replies are usually posted to the channel rather than only to the caller
    public: bool = False

    def all_names(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)

    def definition(self, name: str | None = None) -> dict[str, Any]:
        """The remote-visible definition, registered once per name and alias."""
        return {
            "type": CHAT_INPUT_COMMAND,
            "name": name or self.name,
            "description": self.description,
            "options": [option.to_payload() for option in self.options],
        }
