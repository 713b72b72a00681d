"""Plugin enumeration and the table of per-plugin command contributions."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..commands import CommandDescriptor

type Contribution = Callable[[], Sequence[CommandDescriptor]]


class Plugin(Enum):
    """A semantic grouping that every command belongs to."""

    MODERATION = "moderation"
    INFORMATION = "information"
    STATISTICS = "statistics"
    SAFETY = "safety"
    MISCELLANEOUS = "miscellaneous"
    PLUGINS = "plugins"

    @classmethod
    def from_name(cls, name: str) -> Plugin | None:
        try:
            return cls(name.strip().lower())
        except ValueError:
            return None

    @classmethod
    def names(cls) -> list[str]:
        return [plugin.value for plugin in cls]

    @classmethod
    def switchable_names(cls) -> list[str]:
        return [plugin.value for plugin in cls if not plugin.is_default]

    @property
    def title(self) -> str:
        return self.value.capitalize()

    @property
    def is_default(self) -> bool:
        """Default plugins are on in every guild and cannot be disabled."""
        return self in DEFAULT_PLUGINS


DEFAULT_PLUGINS = frozenset({Plugin.MODERATION, Plugin.INFORMATION, Plugin.PLUGINS})


def default_contributions() -> dict[Plugin, Contribution]:
    """Return the contribution function of every plugin.

    Raises `LookupError` when a `Plugin` member has no contribution, so adding a
    member without its module fails at startup rather than silently.
    """
    from . import (
        information,
        management,
        miscellaneous,
        moderation,
        safety,
        statistics,
    )

    table: Mapping[Plugin, Contribution] = {
        Plugin.MODERATION: moderation.commands,
        Plugin.INFORMATION: information.commands,
        Plugin.STATISTICS: statistics.commands,
        Plugin.SAFETY: safety.commands,
        Plugin.MISCELLANEOUS: miscellaneous.commands,
        Plugin.PLUGINS: management.commands,
    }
    missing = [plugin.value for plugin in Plugin if plugin not in table]
    if missing:
        raise LookupError(f"plugins without a contribution: {', '.join(missing)}")
    return dict(table)
