"""HTTP execution on behalf of the protocol engine.

Some engine operations (media, version lookups) need plain HTTP. The engine
describes the request and the host performs it, so the engine never owns a
network stack of its own.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx

from wabridge.core.errors import TransportError


@dataclass
class HttpRequest:
    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None


@dataclass
class HttpResponse:
    status_code: int
    body: bytes = b""


class HttpExecutor:
    """Runs :class:`HttpRequest` objects with a shared ``httpx.AsyncClient``."""

    def __init__(self, timeout: float = 30.0, client: httpx.AsyncClient | None = None) -> None:
        self.http = client or httpx.AsyncClient(timeout=timeout)

    async def execute(self, request: HttpRequest) -> HttpResponse:
        """Performs the request. Non-2xx statuses are returned, not raised."""
        try:
            res = await self.http.request(
                request.method.upper(),
                request.url,
                headers=request.headers,
                content=request.body,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP {request.method} {request.url} failed: {e}") from e
        return HttpResponse(status_code=res.status_code, body=res.content)

    async def aclose(self) -> None:
        await self.http.aclose()
