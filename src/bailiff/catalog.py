"""Immutable, validated catalog of every command contributed by the plugins."""

from __future__ import annotations

import math
import re
from collections.abc import Iterator, Mapping
from types import MappingProxyType

from .commands import CommandDescriptor
from .config import ConfigError
from .logging import get_logger
from .plugins import Contribution, Plugin

logger = get_logger(__name__)

COMMAND_NAME_RE = re.compile(r"^[-_a-z0-9]{1,32}$")
MAX_DESCRIPTION_LENGTH = 100


class CatalogError(ConfigError):
    pass


class DuplicateCommandName(CatalogError):
    def __init__(self, name: str, *, plugins: tuple[Plugin, Plugin]) -> None:
        self.name = name
        self.plugins = plugins
        first, second = plugins
        super().__init__(
            f"Duplicate command name {name!r} "
            f"(plugins {first.value!r} and {second.value!r})."
        )


class UnknownPlugin(CatalogError):
    pass


class InvalidCommand(CatalogError):
    pass


class Catalog:
    """Commands indexed by every name they answer to. Read-only once built."""

    __slots__ = ("_by_name", "_by_plugin", "_descriptors", "empty_plugins")

    def __init__(
        self,
        descriptors: tuple[CommandDescriptor, ...],
        *,
        empty_plugins: frozenset[Plugin] = frozenset(),
    ) -> None:
        by_name: dict[str, CommandDescriptor] = {}
        by_plugin: dict[Plugin, tuple[CommandDescriptor, ...]] = {}
        for descriptor in descriptors:
            for name in descriptor.all_names():
                by_name[name] = descriptor
            by_plugin[descriptor.plugin] = (
                *by_plugin.get(descriptor.plugin, ()),
                descriptor,
            )
        self._descriptors = descriptors
        self._by_name: Mapping[str, CommandDescriptor] = MappingProxyType(by_name)
        self._by_plugin: Mapping[Plugin, tuple[CommandDescriptor, ...]] = (
            MappingProxyType(by_plugin)
        )
        self.empty_plugins = empty_plugins

    def get(self, name: str) -> CommandDescriptor | None:
        return self._by_name.get(name)

    def names(self) -> tuple[str, ...]:
        return tuple(sorted(self._by_name))

    def by_plugin(self, plugin: Plugin) -> tuple[CommandDescriptor, ...]:
        return self._by_plugin.get(plugin, ())

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[CommandDescriptor]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __repr__(self) -> str:
        return f"Catalog({len(self)} commands, {len(self._by_name)} names)"


def _validate_descriptor(descriptor: CommandDescriptor, *, contributor: Plugin) -> None:
    if not isinstance(descriptor.plugin, Plugin):
        raise UnknownPlugin(
            f"Command {descriptor.name!r} names unknown plugin {descriptor.plugin!r}."
        )
    if descriptor.plugin is not contributor:
        raise UnknownPlugin(
            f"Command {descriptor.name!r} claims plugin {descriptor.plugin.value!r} "
            f"but was contributed by {contributor.value!r}."
        )
    for name in descriptor.all_names():
        if not COMMAND_NAME_RE.match(name):
            raise InvalidCommand(
                f"Invalid command name {name!r}; expected 1-32 lowercase "
                "letters, digits, dashes or underscores."
            )
    if not 1 <= len(descriptor.description) <= MAX_DESCRIPTION_LENGTH:
        raise InvalidCommand(
            f"Description of {descriptor.name!r} must be 1-"
            f"{MAX_DESCRIPTION_LENGTH} characters."
        )
    if not math.isfinite(descriptor.cooldown) or descriptor.cooldown < 0:
        raise InvalidCommand(
            f"Cooldown of {descriptor.name!r} must be a non-negative number of seconds."
        )
    if not callable(descriptor.handler):
        raise InvalidCommand(f"Handler of {descriptor.name!r} is not callable.")
    seen_optional = False
    option_names: set[str] = set()
    for option in descriptor.options:
        if option.name in option_names:
            raise InvalidCommand(
                f"Duplicate option {option.name!r} on {descriptor.name!r}."
            )
        option_names.add(option.name)
        if option.required and seen_optional:
            raise InvalidCommand(
                f"Required option {option.name!r} on {descriptor.name!r} "
                "must come before optional ones."
            )
        seen_optional = seen_optional or not option.required


def build_catalog(contributions: Mapping[Plugin, Contribution]) -> Catalog:
    """Collect every plugin's commands and check that all names are unique."""
    owners: dict[str, Plugin] = {}
    descriptors: list[CommandDescriptor] = []
    empty: set[Plugin] = set()

    for contributor, contribute in contributions.items():
        if not isinstance(contributor, Plugin):
            raise UnknownPlugin(f"Unknown plugin {contributor!r} in contributions.")
        contributed = tuple(contribute())
        if not contributed:
            empty.add(contributor)
            logger.warning("catalog.empty_plugin", plugin=contributor.value)
            continue
        for descriptor in contributed:
            _validate_descriptor(descriptor, contributor=contributor)
            for name in descriptor.all_names():
                owner = owners.get(name)
                if owner is not None:
                    raise DuplicateCommandName(
                        name, plugins=(owner, descriptor.plugin)
                    )
                owners[name] = descriptor.plugin
            descriptors.append(descriptor)

    catalog = Catalog(tuple(descriptors), empty_plugins=frozenset(empty))
    logger.info(
        "catalog.built",
        commands=len(catalog),
        names=len(owners),
        empty_plugins=sorted(plugin.value for plugin in empty),
    )
    return catalog
