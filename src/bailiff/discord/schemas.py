"""Msgspec models for the Discord REST payloads used by the command registry."""

from __future__ import annotations

import msgspec

__all__ = [
    "ApplicationCommand",
    "ApplicationCommandOption",
    "ApplicationInfo",
    "OptionChoice",
    "RateLimited",
    "decode_application",
    "decode_command",
    "decode_commands",
    "decode_rate_limit",
]


class OptionChoice(msgspec.Struct, forbid_unknown_fields=False):
    name: str
    value: str | int | float


class ApplicationCommandOption(msgspec.Struct, forbid_unknown_fields=False):
    type: int
    name: str
    description: str = ""
    required: bool | None = None
    choices: list[OptionChoice] | None = None


class ApplicationCommand(msgspec.Struct, forbid_unknown_fields=False):
    id: str
    name: str
    description: str = ""
    type: int = 1
    application_id: str | None = None
    guild_id: str | None = None
    options: list[ApplicationCommandOption] | None = None
    version: str | None = None


class ApplicationInfo(msgspec.Struct, forbid_unknown_fields=False):
    id: str
    name: str


class RateLimited(msgspec.Struct, forbid_unknown_fields=False):
    retry_after: float
    message: str = ""
    global_: bool = msgspec.field(default=False, name="global")


_COMMANDS_DECODER = msgspec.json.Decoder(list[ApplicationCommand])
_COMMAND_DECODER = msgspec.json.Decoder(ApplicationCommand)
_APPLICATION_DECODER = msgspec.json.Decoder(ApplicationInfo)
_RATE_LIMIT_DECODER = msgspec.json.Decoder(RateLimited)


def decode_commands(payload: bytes | str) -> list[ApplicationCommand]:
    return _COMMANDS_DECODER.decode(payload)


def decode_command(payload: bytes | str) -> ApplicationCommand:
    return _COMMAND_DECODER.decode(payload)


def decode_application(payload: bytes | str) -> ApplicationInfo:
    return _APPLICATION_DECODER.decode(payload)


def decode_rate_limit(payload: bytes | str) -> RateLimited | None:
    try:
        return _RATE_LIMIT_DECODER.decode(payload)
    except (msgspec.DecodeError, msgspec.ValidationError):
        return None
