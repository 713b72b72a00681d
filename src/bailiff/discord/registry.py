"""Discord application-command registry over the REST API."""

from __future__ import annotations

from typing import Any

import httpx
import msgspec

from .. import __version__
from ..logging import get_logger
from ..sync import (
    Definition,
    RegistryRejected,
    RegistryUnavailable,
    RemoteCommand,
    RemoteCommandMissing,
    definition_hash,
)
from .schemas import (
    ApplicationCommand,
    ApplicationInfo,
    decode_application,
    decode_command,
    decode_commands,
    decode_rate_limit,
)

logger = get_logger(__name__)

API_BASE = "https://discord.com/api/v10"
USER_AGENT = f"DiscordBot (https://github.com/bailiff-bot/bailiff, {__version__})"


def to_remote(command: ApplicationCommand) -> RemoteCommand:
    return RemoteCommand(
        id=command.id,
        name=command.name,
        definition_hash=definition_hash(msgspec.to_builtins(command)),
    )


class DiscordCommandRegistry:
    """Lists and edits the bot's slash commands, globally or for one guild."""

    def __init__(
        self,
        token: str,
        *,
        application_id: str | None = None,
        guild_id: int | None = None,
        timeout_s: float = 30,
        base_url: str = API_BASE,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not token:
            raise ValueError("Discord token is empty")
        self._base = base_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bot {token}",
            "User-Agent": USER_AGENT,
        }
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._owns_client = client is None
        self.application_id = application_id
        self.guild_id = guild_id

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> DiscordCommandRegistry:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _commands_path(self) -> str:
        if self.application_id is None:
            raise RuntimeError("application id unknown; call fetch_application() first")
        path = f"/applications/{self.application_id}"
        if self.guild_id is not None:
            path += f"/guilds/{self.guild_id}"
        return f"{path}/commands"

    async def _request(
        self, method: str, path: str, *, json_data: dict[str, Any] | None = None
    ) -> bytes:
        url = f"{self._base}{path}"
        logger.debug("discord.request", method=method, path=path, payload=json_data)
        try:
            resp = await self._client.request(
                method, url, json=json_data, headers=self._headers
            )
        except httpx.HTTPError as e:
            logger.error(
                "discord.network_error",
                method=method,
                path=path,
                error=str(e),
                error_type=e.__class__.__name__,
            )
            raise RegistryUnavailable(f"{method} {path}: {e}") from e

        status = resp.status_code
        if status == 429:
            limited = decode_rate_limit(resp.content)
            retry_after = limited.retry_after if limited is not None else None
            if retry_after is None:
                header = resp.headers.get("Retry-After")
                retry_after = float(header) if header else None
            logger.warning(
                "discord.rate_limited",
                method=method,
                path=path,
                retry_after=retry_after,
            )
            raise RegistryUnavailable(
                f"{method} {path}: rate limited", retry_after=retry_after
            )
        if status == 404:
            raise RemoteCommandMissing(f"{method} {path}: not found")
        if status >= 500:
            logger.error(
                "discord.server_error", method=method, path=path, status=status
            )
            raise RegistryUnavailable(f"{method} {path}: HTTP {status}")
        if status >= 400:
            body = resp.text
            logger.error(
                "discord.http_error", method=method, path=path, status=status, body=body
            )
            raise RegistryRejected(f"{method} {path}: HTTP {status}: {body}")

        logger.debug("discord.response", method=method, path=path, status=status)
        return resp.content

    async def fetch_application(self) -> ApplicationInfo:
        payload = await self._request("GET", "/oauth2/applications/@me")
        try:
            application = decode_application(payload)
        except msgspec.DecodeError as e:
            raise RegistryUnavailable(f"bad application payload: {e}") from e
        self.application_id = application.id
        logger.info(
            "discord.application",
            application_id=application.id,
            name=application.name,
        )
        return application

    async def list_commands(self) -> list[RemoteCommand]:
        payload = await self._request("GET", self._commands_path())
        try:
            commands = decode_commands(payload)
        except msgspec.DecodeError as e:
            raise RegistryUnavailable(f"bad command listing: {e}") from e
        return [to_remote(command) for command in commands]

    async def create_command(self, definition: Definition) -> RemoteCommand:
        payload = await self._request(
            "POST", self._commands_path(), json_data=definition
        )
        return to_remote(decode_command(payload))

    async def update_command(
        self, command_id: str, definition: Definition
    ) -> RemoteCommand:
        payload = await self._request(
            "PATCH", f"{self._commands_path()}/{command_id}", json_data=definition
        )
        return to_remote(decode_command(payload))

    async def delete_command(self, command_id: str) -> None:
        await self._request("DELETE", f"{self._commands_path()}/{command_id}")
