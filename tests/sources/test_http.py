"""Tests for the shared JSON GET helper."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from ctximport.core.errors import NetworkError, RemoteAPIError
from ctximport.sources.http import RateLimit, client_session, get_json, int_field, mask_url


async def test_decodes_json(mock_http, json_response):
    http = mock_http(lambda request: json_response({"ok": True}))
    async with client_session(http.client()) as client:
        assert await get_json(client, "https://api.example.com/x", params={"a": "1"}) == {"ok": True}
    assert http.requests[0].url.params["a"] == "1"


async def test_invalid_json_body(mock_http):
    http = mock_http(lambda request: httpx.Response(200, text="<html>"))
    async with client_session(http.client()) as client:
        with pytest.raises(RemoteAPIError, match="not valid JSON"):
            await get_json(client, "https://api.example.com/x")


async def test_rate_limit_headers_tracked(mock_http, json_response):
    http = mock_http(lambda request: json_response({}, headers={"X-RateLimit-Remaining": "42"}))
    limit = RateLimit()
    async with client_session(http.client()) as client:
        await get_json(client, "https://api.example.com/x", rate_limit=limit)
    assert limit.remaining == 42
    assert not limit.exhausted


async def test_429_is_rate_limited(mock_http):
    http = mock_http(lambda request: httpx.Response(429, headers={"Retry-After": "30"}))
    async with client_session(http.client()) as client:
        with pytest.raises(RemoteAPIError) as exc_info:
            await get_json(client, "https://api.example.com/x")
    assert exc_info.value.rate_limited
    assert exc_info.value.reset_at == "30"


async def test_cancel_in_flight(mock_http, json_response):
    async def slow(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return json_response({})

    cancel = asyncio.Event()
    http = mock_http(slow)
    async with client_session(http.client()) as client:
        asyncio.get_running_loop().call_later(0.01, cancel.set)
        with pytest.raises(NetworkError) as exc_info:
            await get_json(client, "https://api.example.com/x", cancel=cancel)
    assert exc_info.value.kind == NetworkError.CANCELLED


def test_mask_url():
    assert mask_url("https://x.io/a?token=abc&page=2") == "https://x.io/a?token=***&page=2"


@pytest.mark.parametrize("value, expected", [(7, 7), ("12", 12), (None, 3), ("many", 3), (True, 3)])
def test_int_field(value, expected):
    assert int_field({"total": value}, "total", 3) == expected
    assert int_field({}, "total", 3) == 3
