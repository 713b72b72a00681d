"""Validation of invocation arguments against a command's declared options.

Discord checks scalar types itself; dates, durations and anything arriving
from a non-Discord event source are checked here.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from datetime import date, timedelta
from typing import Any

from .commands import CommandOption
from .durations import DurationError, parse_duration

MAX_DURATION = timedelta(days=28)

_INTEGER_RE = re.compile(r"-?[0-9]{1,20}")


class InvalidArgument(ValueError):
    def __init__(self, option: str, message: str) -> None:
        self.option = option
        super().__init__(f"`{option}`: {message}")


def _coerce_int(option: CommandOption, value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidArgument(option.name, "expected an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INTEGER_RE.fullmatch(value.strip()):
        return int(value.strip())
    raise InvalidArgument(option.name, "expected an integer")


def _coerce(option: CommandOption, value: Any) -> Any:
    match option.kind:
        case "string":
            if not isinstance(value, str):
                raise InvalidArgument(option.name, "expected text")
            return value
        case "integer":
            return _coerce_int(option, value)
        case "boolean":
            if not isinstance(value, bool):
                raise InvalidArgument(option.name, "expected true or false")
            return value
        case "user":
            user_id = _coerce_int(option, value)
            if user_id <= 0:
                raise InvalidArgument(option.name, "expected a user")
            return user_id
        case "date":
            if not isinstance(value, str):
                raise InvalidArgument(option.name, "expected an ISO 8601 date")
            try:
                return date.fromisoformat(value.strip())
            except ValueError:
                raise InvalidArgument(
                    option.name, f"not an ISO 8601 date: {value!r}"
                ) from None
        case "duration":
            if not isinstance(value, str):
                raise InvalidArgument(option.name, "expected a duration like `10m`")
            try:
                duration = parse_duration(value)
            except DurationError as exc:
                raise InvalidArgument(option.name, str(exc)) from None
            if duration > MAX_DURATION:
                raise InvalidArgument(
                    option.name, f"duration is too long (over 28 days): {value!r}"
                )
            return duration
    raise InvalidArgument(option.name, f"unsupported option kind {option.kind!r}")


def validate_arguments(
    options: Sequence[CommandOption], arguments: Mapping[str, Any]
) -> dict[str, Any]:
    """Coerce arguments to their option kinds, or raise `InvalidArgument`."""
    known = {option.name: option for option in options}
    for name in arguments:
        if name not in known:
            raise InvalidArgument(name, "unknown option")

    validated: dict[str, Any] = {}
    for option in options:
        value = arguments.get(option.name)
        if value is None:
            if option.required:
                raise InvalidArgument(option.name, "this option is required")
            continue
        coerced = _coerce(option, value)
        if option.choices and coerced not in option.choices:
            allowed = ", ".join(str(choice) for choice in option.choices)
            raise InvalidArgument(option.name, f"must be one of: {allowed}")
        validated[option.name] = coerced
    return validated
