from __future__ import annotations

from ..commands import CommandDescriptor


def commands() -> list[CommandDescriptor]:
    # TODO: contribute /stats once member activity is persisted in the store.
    return []
