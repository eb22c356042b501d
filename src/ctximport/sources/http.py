"""Async JSON fetching over httpx with timeouts, cancellation and error mapping.

No retries happen here: a failed request surfaces immediately as a
NetworkError or RemoteAPIError and the importer decides what to do.
"""

from __future__ import annotations

import asyncio
import logging
import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from ctximport.core.errors import NetworkError, RemoteAPIError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

_SECRET_PARAM_RE = re.compile(r"(token|apikey|api_key|password)=[^&]+", re.IGNORECASE)


def mask_url(url: str) -> str:
    """Hide credential-like query parameters before a URL is logged."""
    return _SECRET_PARAM_RE.sub(r"\1=***", url)


def int_field(data: dict, key: str, default: int) -> int:
    """Read an integer from a response body; null or non-numeric values give ``default``."""
    value = data.get(key)
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class RateLimit:
    """Last rate-limit headers seen from a server."""

    def __init__(self) -> None:
        self.remaining: int | None = None
        self.reset_at: str | None = None

    def update(self, response: httpx.Response) -> None:
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is not None and remaining.isdigit():
            self.remaining = int(remaining)
            self.reset_at = response.headers.get("X-RateLimit-Reset")
            logger.debug("Rate limit: %s requests remaining", self.remaining)

    @property
    def exhausted(self) -> bool:
        return self.remaining == 0


async def _await_or_cancel(request: Any, cancel: asyncio.Event | None, url: str) -> httpx.Response:
    if cancel is None:
        return await request
    if cancel.is_set():
        request.close()
        raise NetworkError(NetworkError.CANCELLED, url)

    fetch = asyncio.ensure_future(request)
    stop = asyncio.ensure_future(cancel.wait())
    try:
        done, _ = await asyncio.wait({fetch, stop}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        stop.cancel()
    if fetch in done:
        return fetch.result()
    fetch.cancel()
    raise NetworkError(NetworkError.CANCELLED, url)


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    auth: httpx.Auth | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    cancel: asyncio.Event | None = None,
    rate_limit: RateLimit | None = None,
) -> Any:
    """GET ``url`` and decode the JSON body.

    Raises NetworkError for connection failures, timeouts and cancellation,
    and RemoteAPIError for any non-2xx status.
    """
    logger.debug("GET %s", mask_url(url))
    request = client.get(url, params=params, headers=headers, auth=auth, timeout=timeout)
    try:
        response = await _await_or_cancel(request, cancel, url)
    except httpx.TimeoutException as e:
        raise NetworkError(NetworkError.TIMEOUT, url, f"no answer within {timeout:g}s") from e
    except httpx.TransportError as e:
        raise NetworkError(NetworkError.UNREACHABLE, url, str(e)) from e

    if rate_limit is not None:
        rate_limit.update(response)

    if response.is_error:
        exhausted = response.status_code == 403 and (
            response.headers.get("X-RateLimit-Remaining") == "0"
            or "rate limit" in response.text.lower()
        )
        reset_at = response.headers.get("X-RateLimit-Reset") or response.headers.get("Retry-After")
        raise RemoteAPIError(
            response.status_code,
            response.text,
            reset_at=reset_at,
            rate_limited=exhausted,
        )

    try:
        return response.json()
    except ValueError as e:
        raise RemoteAPIError(response.status_code, "response body is not valid JSON") from e


@asynccontextmanager
async def client_session(client: httpx.AsyncClient | None = None) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the caller's client, or a fresh one that is closed afterwards."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(follow_redirects=True) as fresh:
        yield fresh
