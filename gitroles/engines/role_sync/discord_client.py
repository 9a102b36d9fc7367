"""Async Discord REST adapter used by the reconciler.

Only the handful of endpoints role reconciliation needs: guild and role
lookup, member lookup, and role add/remove.
"""

from __future__ import annotations

import asyncio
import os
import random
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

log = structlog.get_logger("gitroles.engine")

DISCORD_API_URL = "https://discord.com/api/v10"

ADMINISTRATOR = 1 << 3
MANAGE_ROLES = 1 << 28
ALL_PERMISSIONS = (1 << 64) - 1

_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0
_RETRY_MAX_DELAY = 60.0


@dataclass(frozen=True)
class DiscordRole:
    id: str
    name: str
    position: int
    permissions: int = 0


@dataclass(frozen=True)
class DiscordMember:
    user_id: str
    role_ids: frozenset[str]

    def has_role(self, role_id: str) -> bool:
        return role_id in self.role_ids


@dataclass(frozen=True)
class DiscordGuild:
    id: str
    name: str
    owner_id: str
    roles: tuple[DiscordRole, ...] = ()

    def role(self, role_id: str) -> DiscordRole | None:
        for role in self.roles:
            if role.id == role_id:
                return role
        return None

    @property
    def everyone_role(self) -> DiscordRole | None:
        # @everyone shares the guild's id.
        return self.role(self.id)


def effective_permissions(guild: DiscordGuild, member: DiscordMember) -> int:
    """Guild-level permission bits of *member*; owners and administrators get all."""
    if member.user_id == guild.owner_id:
        return ALL_PERMISSIONS
    everyone = guild.everyone_role
    perms = everyone.permissions if everyone else 0
    for role_id in member.role_ids:
        role = guild.role(role_id)
        if role is not None:
            perms |= role.permissions
    if perms & ADMINISTRATOR:
        return ALL_PERMISSIONS
    return perms


def can_manage_roles(guild: DiscordGuild, member: DiscordMember) -> bool:
    return bool(effective_permissions(guild, member) & MANAGE_ROLES)


def top_role_position(guild: DiscordGuild, member: DiscordMember) -> int:
    """Highest position among the member's roles (0 for @everyone only)."""
    positions = [guild.role(r).position for r in member.role_ids if guild.role(r) is not None]
    return max(positions, default=0)


def _parse_role(data: dict[str, Any]) -> DiscordRole:
    return DiscordRole(
        id=str(data["id"]),
        name=data.get("name", ""),
        position=int(data.get("position", 0)),
        permissions=int(data.get("permissions", 0) or 0),
    )


def _parse_member(data: dict[str, Any]) -> DiscordMember:
    user = data.get("user") or {}
    return DiscordMember(
        user_id=str(user.get("id", "")),
        role_ids=frozenset(str(r) for r in data.get("roles", [])),
    )


class DiscordClient:
    """Bot-token authenticated wrapper around Discord REST v10."""

    def __init__(
        self,
        token: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        resolved_token = token or os.environ.get("DISCORD_TOKEN")
        if not resolved_token:
            raise ValueError("DISCORD_TOKEN is not set")
        self._client = httpx.AsyncClient(
            base_url=DISCORD_API_URL,
            headers={
                "Authorization": f"Bot {resolved_token}",
                "User-Agent": "DiscordBot (https://github.com/gitroles, 0.1)",
            },
            timeout=timeout,
            transport=transport,
        )
        self._bot_user_id: str | None = None

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> DiscordClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def get_bot_user_id(self) -> str:
        if self._bot_user_id is None:
            resp = await self._request("GET", "/users/@me")
            self._bot_user_id = str(resp.json()["id"])
        return self._bot_user_id

    async def get_guild(self, guild_id: str) -> DiscordGuild | None:
        """Guild with its roles, or None if the bot cannot see it."""
        resp = await self._request("GET", f"/guilds/{guild_id}", allow_statuses=(403, 404))
        if resp.status_code in (403, 404):
            return None
        data = resp.json()
        return DiscordGuild(
            id=str(data["id"]),
            name=data.get("name", ""),
            owner_id=str(data.get("owner_id", "")),
            roles=tuple(_parse_role(r) for r in data.get("roles", [])),
        )

    async def get_member(self, guild_id: str, user_id: str) -> DiscordMember | None:
        """Guild member, or None if the user is not in the guild."""
        resp = await self._request(
            "GET", f"/guilds/{guild_id}/members/{user_id}", allow_statuses=(404,)
        )
        if resp.status_code == 404:
            return None
        return _parse_member(resp.json())

    async def get_bot_member(self, guild_id: str) -> DiscordMember | None:
        return await self.get_member(guild_id, await self.get_bot_user_id())

    async def add_role(
        self, guild_id: str, user_id: str, role_id: str, reason: str | None = None
    ) -> None:
        await self._request(
            "PUT", f"/guilds/{guild_id}/members/{user_id}/roles/{role_id}", reason=reason
        )

    async def remove_role(
        self, guild_id: str, user_id: str, role_id: str, reason: str | None = None
    ) -> None:
        await self._request(
            "DELETE", f"/guilds/{guild_id}/members/{user_id}/roles/{role_id}", reason=reason
        )

    # ── internal ───────────────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        *,
        allow_statuses: tuple[int, ...] = (),
        reason: str | None = None,
    ) -> httpx.Response:
        """Send a request, waiting out 429s and retrying 5xx/transport errors."""
        headers = {"X-Audit-Log-Reason": reason} if reason else None
        last_exc: Exception | None = None
        for attempt in range(_MAX_RETRIES):
            try:
                resp = await self._client.request(method, path, headers=headers)
            except httpx.TransportError as exc:
                log.warning(
                    "discord.transport_error",
                    path=path,
                    error=type(exc).__name__,
                    attempt=attempt + 1,
                )
                last_exc = exc
            else:
                if resp.status_code == 429:
                    wait = self._retry_after(resp)
                    log.warning(
                        "discord.rate_limit", path=path, wait_seconds=wait, attempt=attempt + 1
                    )
                    last_exc = httpx.HTTPStatusError(
                        "429 Too Many Requests", request=resp.request, response=resp
                    )
                    if attempt < _MAX_RETRIES - 1:
                        await asyncio.sleep(wait)
                    continue
                if resp.status_code < 500:
                    if resp.status_code not in allow_statuses:
                        resp.raise_for_status()
                    return resp
                log.warning(
                    "discord.server_error",
                    path=path,
                    status=resp.status_code,
                    attempt=attempt + 1,
                )
                last_exc = httpx.HTTPStatusError(
                    f"{resp.status_code}", request=resp.request, response=resp
                )

            if attempt < _MAX_RETRIES - 1:
                delay = _RETRY_BASE_DELAY * (2**attempt) + random.uniform(0, _RETRY_BASE_DELAY)
                await asyncio.sleep(min(delay, _RETRY_MAX_DELAY))

        raise last_exc  # type: ignore[misc]

    @staticmethod
    def _retry_after(response: httpx.Response) -> float:
        try:
            body = response.json()
        except ValueError:
            body = {}
        value = body.get("retry_after") if isinstance(body, dict) else None
        if value is None:
            value = response.headers.get("Retry-After")
        try:
            return min(max(float(value), 0.0), _RETRY_MAX_DELAY)
        except (TypeError, ValueError):
            return _RETRY_BASE_DELAY
