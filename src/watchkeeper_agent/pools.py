"""
Process-wide keep-alive HTTP clients, one per URL scheme.
"""

from __future__ import annotations

from typing import Dict, Optional

import httpx

from watchkeeper_common.errors import InvalidDestination
from watchkeeper_common.settings import get_settings

SCHEMES = ("http", "https")


class ClientPools:
    """Holds one shared `httpx.AsyncClient` for plain and one for secure URLs."""

    def __init__(
        self,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        limits: Optional[httpx.Limits] = None,
    ) -> None:
        self._timeout = timeout_seconds
        self._transport = transport
        self._limits = limits or httpx.Limits(
            max_connections=100, max_keepalive_connections=20, keepalive_expiry=30.0
        )
        self._clients: Dict[str, httpx.AsyncClient] = {}

    def client_for(self, url: str) -> httpx.AsyncClient:
        scheme = httpx.URL(url).scheme
        if scheme not in SCHEMES:
            raise InvalidDestination(f"{url} not valid: unsupported scheme {scheme!r}")

        client = self._clients.get(scheme)
        if client is None:
            timeout = self._timeout
            if timeout is None:
                timeout = get_settings().http_timeout_seconds
            client = httpx.AsyncClient(
                timeout=timeout, limits=self._limits, transport=self._transport
            )
            self._clients[scheme] = client
        return client

    async def aclose(self) -> None:
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.aclose()


_pools: Optional[ClientPools] = None


def get_pools() -> ClientPools:
    """Return the process-wide pools, creating them on first use."""
    global _pools
    if _pools is None:
        _pools = ClientPools()
    return _pools
