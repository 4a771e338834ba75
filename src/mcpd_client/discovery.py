"""Health-gated discovery across mcpd servers.

Resolves which servers to query, drops the unhealthy ones using a
single batched health snapshot, and fans out per-server fetches
concurrently. One server failing never aborts the others.
"""

import asyncio
from collections.abc import Collection, Sequence
from typing import Awaitable, Callable, Optional, TypeVar

from mcpd_common.logging import SDKLogger, create_logger
from mcpd_common.models import TOOL_SEPARATOR, ServerHealth

T = TypeVar("T")

ListServersFn = Callable[[], Awaitable[list[str]]]
HealthSnapshotFn = Callable[[], Awaitable[dict[str, ServerHealth]]]
FetchFn = Callable[[str], Awaitable[list[T]]]


def matches_name_filter(
    server_name: str,
    item_name: str,
    names: Optional[Collection[str]]
) -> bool:
    """
    Check an item against a name filter.

    A filter entry matches either the bare item name on any server or
    the "<server>__<item>" form. Both readings are applied, so an entry
    such as "my__tool" can select "tool" on server "my" and a tool
    literally named "my__tool" on another server.
    """
    if names is None:
        return True
    return item_name in names or f"{server_name}{TOOL_SEPARATOR}{item_name}" in names


class ServerDiscovery:
    """
    Fan-out over healthy servers.

    Provides:
    - Candidate resolution (explicit filter or every configured server)
    - Health filtering from one batched health request
    - Concurrent per-server fetches tolerant of partial failure
    """

    def __init__(
        self,
        list_servers: ListServersFn,
        health_snapshot: HealthSnapshotFn,
        logger: Optional[SDKLogger] = None
    ) -> None:
        """
        Initialize server discovery.

        Args:
            list_servers: Returns every server name known to the daemon
            health_snapshot: Returns health for all servers, keyed by name
            logger: SDK logger
        """
        self._list_servers = list_servers
        self._health_snapshot = health_snapshot
        self._logger = logger or create_logger()

    async def resolve_servers(self, servers: Optional[Sequence[str]] = None) -> list[str]:
        """Return the explicit server list if non-empty, otherwise all servers."""
        if servers:
            return list(dict.fromkeys(servers))
        return await self._list_servers()

    async def healthy_servers(self, servers: Optional[Sequence[str]] = None) -> list[str]:
        """
        Filter candidate servers down to those reporting ok.

        Args:
            servers: Optional explicit server list

        Returns:
            Healthy server names, in candidate order
        """
        candidates = await self.resolve_servers(servers)
        if not candidates:
            return []

        health = await self._health_snapshot()
        healthy = []

        for name in candidates:
            entry = health.get(name)
            if entry is None:
                self._logger.warn("Skipping non-existent server '%s'", name)
                continue
            if not entry.is_healthy:
                self._logger.warn(
                    "Skipping unhealthy server '%s' with status '%s'", name, entry.status
                )
                continue
            healthy.append(name)

        return healthy

    async def fetch_all(
        self,
        servers: Sequence[str],
        fetch: FetchFn[T],
        capability: str = "tools"
    ) -> dict[str, list[T]]:
        """
        Run one fetch per server concurrently.

        Args:
            servers: Servers to fetch from
            fetch: Per-server coroutine function
            capability: Label used in warnings (tools, prompts, ...)

        Returns:
            Results of the successful fetches keyed by server, in input order
        """
        results = await asyncio.gather(
            *(fetch(server) for server in servers),
            return_exceptions=True
        )

        collected: dict[str, list[T]] = {}
        for server, result in zip(servers, results):
            if isinstance(result, Exception):
                self._logger.warn(
                    "Failed to get %s for server '%s': %s", capability, server, result
                )
                continue
            if isinstance(result, BaseException):
                raise result
            collected[server] = result

        return collected

    async def gather(
        self,
        fetch: FetchFn[T],
        servers: Optional[Sequence[str]] = None,
        capability: str = "tools"
    ) -> dict[str, list[T]]:
        """Fetch from every healthy candidate server."""
        healthy = await self.healthy_servers(servers)
        if not healthy:
            return {}
        self._logger.debug("Fetching %s from %d server(s)", capability, len(healthy))
        return await self.fetch_all(healthy, fetch, capability)
