"""Reconciles the local catalog with the platform's registered commands.

Every catalog name (aliases included) is one remote command. Definitions are
compared by `definition_hash`, so an unchanged catalog costs a single listing
call and no writes.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

import anyio

from .catalog import Catalog
from .config import ConfigError
from .logging import get_logger

logger = get_logger(__name__)

DEFAULT_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 0.5

type OperationKind = Literal["create", "update", "delete"]
type Definition = dict[str, Any]


class RegistryError(Exception):
    pass


class RegistryUnavailable(RegistryError):
    """A transient failure; the operation may be retried."""

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(message)


class RemoteCommandMissing(RegistryUnavailable):
    """The targeted remote command no longer exists (deleted out from under us)."""


class RegistryRejected(RegistryError):
    """The platform refused the request; retrying would not help."""


class SyncSetupError(ConfigError):
    pass


@dataclass(frozen=True, slots=True)
class RemoteCommand:
    id: str
    name: str
    definition_hash: str


class CommandRegistryAPI(Protocol):
    async def list_commands(self) -> list[RemoteCommand]: ...

    async def create_command(self, definition: Definition) -> RemoteCommand: ...

    async def update_command(
        self, command_id: str, definition: Definition
    ) -> RemoteCommand: ...

    async def delete_command(self, command_id: str) -> None: ...


def canonical_definition(payload: Mapping[str, Any]) -> Definition:
    """Reduce a local or remote command payload to the fields both sides agree on."""
    options = []
    for option in payload.get("options") or ():
        choices = [
            {"name": str(choice["name"]), "value": choice["value"]}
            for choice in option.get("choices") or ()
        ]
        entry: dict[str, Any] = {
            "type": int(option.get("type", 3)),
            "name": option["name"],
            "description": option.get("description", ""),
            "required": bool(option.get("required", False)),
        }
        if choices:
            entry["choices"] = choices
        options.append(entry)
    return {
        "type": int(payload.get("type", 1)),
        "name": payload["name"],
        "description": payload.get("description", ""),
        "options": options,
    }


def definition_hash(payload: Mapping[str, Any]) -> str:
    canonical = json.dumps(
        canonical_definition(payload),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def local_definitions(catalog: Catalog) -> dict[str, Definition]:
    definitions: dict[str, Definition] = {}
    for descriptor in catalog:
        for name in descriptor.all_names():
            definitions[name] = descriptor.definition(name)
    return definitions


@dataclass(frozen=True, slots=True)
class SyncOperation:
    kind: OperationKind
    name: str
    command_id: str | None = None
    definition: Definition | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class SyncPlan:
    creates: tuple[SyncOperation, ...] = ()
    updates: tuple[SyncOperation, ...] = ()
    deletes: tuple[SyncOperation, ...] = ()
    unchanged: tuple[str, ...] = ()

    @property
    def operations(self) -> tuple[SyncOperation, ...]:
        return (*self.creates, *self.updates, *self.deletes)

    def __len__(self) -> int:
        return len(self.creates) + len(self.updates) + len(self.deletes)


def plan_sync(
    definitions: Mapping[str, Definition], remote: Iterable[RemoteCommand]
) -> SyncPlan:
    remote_by_name: dict[str, RemoteCommand] = {}
    deletes: list[SyncOperation] = []
    for command in remote:
        if command.name in remote_by_name or command.name not in definitions:
            deletes.append(
                SyncOperation(kind="delete", name=command.name, command_id=command.id)
            )
            continue
        remote_by_name[command.name] = command

    creates: list[SyncOperation] = []
    updates: list[SyncOperation] = []
    unchanged: list[str] = []
    for name in sorted(definitions):
        definition = definitions[name]
        existing = remote_by_name.get(name)
        if existing is None:
            creates.append(
                SyncOperation(kind="create", name=name, definition=definition)
            )
        elif existing.definition_hash != definition_hash(definition):
            updates.append(
                SyncOperation(
                    kind="update",
                    name=name,
                    command_id=existing.id,
                    definition=definition,
                )
            )
        else:
            unchanged.append(name)

    return SyncPlan(
        creates=tuple(creates),
        updates=tuple(updates),
        deletes=tuple(deletes),
        unchanged=tuple(unchanged),
    )


def _replan(op: SyncOperation, remote: Iterable[RemoteCommand]) -> SyncOperation | None:
    """Re-target `op` against a fresh listing; `None` means nothing is left to do."""
    remote = list(remote)
    if op.kind == "delete":
        if any(command.id == op.command_id for command in remote):
            return op
        return None
    assert op.definition is not None
    existing = next((command for command in remote if command.name == op.name), None)
    if existing is None:
        return SyncOperation(kind="create", name=op.name, definition=op.definition)
    if existing.definition_hash == definition_hash(op.definition):
        return None
    return SyncOperation(
        kind="update", name=op.name, command_id=existing.id, definition=op.definition
    )


@dataclass(frozen=True, slots=True)
class SynchronizationFailure:
    name: str
    kind: OperationKind
    error: str
    attempts: int


@dataclass(slots=True)
class SyncReport:
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    failures: list[SynchronizationFailure] = field(default_factory=list)

    @property
    def operations(self) -> int:
        return len(self.created) + len(self.updated) + len(self.deleted)

    @property
    def ok(self) -> bool:
        return not self.failures

    def record(self, kind: OperationKind, name: str) -> None:
        match kind:
            case "create":
                self.created.append(name)
            case "update":
                self.updated.append(name)
            case "delete":
                self.deleted.append(name)


class RegistrationSynchronizer:
    def __init__(
        self,
        registry: CommandRegistryAPI,
        *,
        attempts: int = DEFAULT_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        interval: float = 0.0,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self._registry = registry
        self._attempts = attempts
        self._base_delay = base_delay
        self._interval = interval
        self._sleep = sleep

    def _delay(self, attempt: int, exc: RegistryUnavailable) -> float:
        if exc.retry_after is not None:
            return exc.retry_after
        return self._base_delay * (2 ** (attempt - 1))

    async def fetch_remote(self) -> list[RemoteCommand]:
        for attempt in range(1, self._attempts + 1):
            try:
                return await self._registry.list_commands()
            except RegistryUnavailable as exc:
                if attempt == self._attempts:
                    raise SyncSetupError(
                        f"Could not list registered commands after {attempt} "
                        f"attempts: {exc}"
                    ) from exc
                delay = self._delay(attempt, exc)
                logger.warning(
                    "sync.list_retry", attempt=attempt, delay=delay, error=str(exc)
                )
                await self._sleep(delay)
            except RegistryRejected as exc:
                raise SyncSetupError(
                    f"Could not list registered commands: {exc}"
                ) from exc
        raise AssertionError("unreachable")

    async def plan(self, catalog: Catalog) -> SyncPlan:
        return plan_sync(local_definitions(catalog), await self.fetch_remote())

    async def synchronize(self, catalog: Catalog) -> SyncReport:
        sync_plan = await self.plan(catalog)
        report = SyncReport(unchanged=list(sync_plan.unchanged))
        logger.info(
            "sync.plan",
            creates=len(sync_plan.creates),
            updates=len(sync_plan.updates),
            deletes=len(sync_plan.deletes),
            unchanged=len(sync_plan.unchanged),
        )
        for index, op in enumerate(sync_plan.operations):
            if index and self._interval:
                await self._sleep(self._interval)
            await self._apply(op, report)

        if report.failures:
            logger.error(
                "sync.degraded",
                failed=[failure.name for failure in report.failures],
            )
        logger.info(
            "sync.complete",
            created=len(report.created),
            updated=len(report.updated),
            deleted=len(report.deleted),
            unchanged=len(report.unchanged),
            failed=len(report.failures),
        )
        return report

    async def _issue(self, op: SyncOperation) -> None:
        match op.kind:
            case "create":
                assert op.definition is not None
                await self._registry.create_command(op.definition)
            case "update":
                assert op.definition is not None and op.command_id is not None
                await self._registry.update_command(op.command_id, op.definition)
            case "delete":
                assert op.command_id is not None
                await self._registry.delete_command(op.command_id)

    async def _apply(self, op: SyncOperation, report: SyncReport) -> None:
        current = op
        for attempt in range(1, self._attempts + 1):
            try:
                await self._issue(current)
            except RegistryRejected as exc:
                self._fail(report, current, exc, attempts=attempt)
                return
            except RegistryUnavailable as exc:
                if attempt == self._attempts:
                    self._fail(report, current, exc, attempts=attempt)
                    return
                delay = self._delay(attempt, exc)
                logger.warning(
                    "sync.retry",
                    command=current.name,
                    kind=current.kind,
                    attempt=attempt,
                    delay=delay,
                    error=str(exc),
                )
                await self._sleep(delay)
                try:
                    remote = await self._registry.list_commands()
                except RegistryError as refresh_exc:
                    logger.warning(
                        "sync.refresh_failed",
                        command=current.name,
                        error=str(refresh_exc),
                    )
                    continue
                replanned = _replan(current, remote)
                if replanned is None:
                    logger.info(
                        "sync.settled_remotely", command=current.name, kind=current.kind
                    )
                    if current.kind == "delete":
                        report.record(current.kind, current.name)
                    else:
                        report.unchanged.append(current.name)
                    return
                current = replanned
            else:
                report.record(current.kind, current.name)
                logger.info("sync.applied", command=current.name, kind=current.kind)
                return

    def _fail(
        self,
        report: SyncReport,
        op: SyncOperation,
        exc: RegistryError,
        *,
        attempts: int,
    ) -> None:
        failure = SynchronizationFailure(
            name=op.name, kind=op.kind, error=str(exc), attempts=attempts
        )
        report.failures.append(failure)
        logger.error(
            "sync.failed",
            command=op.name,
            kind=op.kind,
            attempts=attempts,
            error=str(exc),
            error_type=exc.__class__.__name__,
        )
