from __future__ import annotations

from ..commands import CommandDescriptor


def commands() -> list[CommandDescriptor]:
    return []
