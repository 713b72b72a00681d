"""Startup gate: configuration plus first platform connection under one deadline."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import anyio
import anyio.to_thread

from .config import StartupTimeout
from .logging import get_logger
from .settings import DEFAULT_TIMEOUT_SECONDS, ConfigResolver, ExecConfig

logger = get_logger(__name__)


async def start[T](
    resolver: ConfigResolver,
    connect: Callable[[ExecConfig], Awaitable[T]],
) -> tuple[ExecConfig, T]:
    """Resolve the config and connect, or raise `StartupTimeout`.

    The default timeout bounds resolution until the configured value is known;
    from then on the deadline is `started + startup_timeout_seconds`. When it
    passes, the in-flight attempt is cancelled and nothing is returned.
    """
    started = anyio.current_time()
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    with anyio.CancelScope(deadline=started + timeout) as scope:
        config = await anyio.to_thread.run_sync(
            resolver.resolve, abandon_on_cancel=True
        )
        timeout = config.startup_timeout_seconds
        scope.deadline = started + timeout
        connection = await connect(config)
        logger.info(
            "startup.connected",
            elapsed=round(anyio.current_time() - started, 3),
            timeout_seconds=timeout,
        )
        return config, connection
    logger.error("startup.timeout", timeout_seconds=timeout)
    raise StartupTimeout(timeout)
