"""Tests for the default httpx-based fetch."""

from __future__ import annotations

import httpx
import pytest

from fetchhar.exceptions import RedirectError
from fetchhar.fetch import MAX_CLIENTS, HttpxFetch


class TestHttpxFetch:
    """Tests for HttpxFetch."""

    @pytest.mark.asyncio
    async def test_returns_unread_response(self, scripted):
        scripted.add("https://example.com/", body=b"hello")
        fetch = HttpxFetch()
        response = await fetch("https://example.com/", transport=scripted)
        with pytest.raises(httpx.ResponseNotRead):
            _ = response.content
        assert await response.aread() == b"hello"
        await fetch.aclose()

    @pytest.mark.asyncio
    async def test_method_headers_and_body(self, scripted):
        scripted.add("https://example.com/api", method="PUT", status=204)
        fetch = HttpxFetch()
        response = await fetch(
            "https://example.com/api",
            method="PUT",
            headers={"X-Test": "1"},
            content=b"payload",
            transport=scripted,
        )
        assert response.status_code == 204
        sent = scripted.requests[0]
        assert sent.headers["x-test"] == "1"
        assert scripted.bodies == [b"payload"]

    @pytest.mark.asyncio
    async def test_request_input_is_reused(self, scripted):
        scripted.add("https://example.com/form", method="POST")
        request = httpx.Request(
            "POST", "https://example.com/form", headers={"X-From": "request"}, content=b"a=1"
        )
        fetch = HttpxFetch()
        await fetch(request, headers={"X-Extra": "2"}, transport=scripted)

        sent = scripted.requests[0]
        assert sent.method == "POST"
        assert sent.headers["x-from"] == "request"
        assert sent.headers["x-extra"] == "2"
        assert scripted.bodies == [b"a=1"]

    @pytest.mark.asyncio
    async def test_follows_redirects_by_default(self, scripted):
        scripted.redirect("https://example.com/old", "https://example.com/new")
        scripted.add("https://example.com/new", body=b"here")
        response = await HttpxFetch()("https://example.com/old", transport=scripted)
        assert response.status_code == 200
        assert len(response.history) == 1

    @pytest.mark.asyncio
    async def test_manual_redirect_returns_3xx(self, scripted):
        scripted.redirect("https://example.com/old", "https://example.com/new")
        response = await HttpxFetch()(
            "https://example.com/old", redirect="manual", transport=scripted
        )
        assert response.status_code == 302
        assert response.headers["location"] == "https://example.com/new"

    @pytest.mark.asyncio
    async def test_error_redirect_raises(self, scripted):
        scripted.redirect("https://example.com/old", "https://example.com/new", status=301)
        with pytest.raises(RedirectError) as exc_info:
            await HttpxFetch()("https://example.com/old", redirect="error", transport=scripted)
        assert exc_info.value.status_code == 301
        assert exc_info.value.location == "https://example.com/new"
        assert len(scripted.requests) == 1

    @pytest.mark.asyncio
    async def test_unknown_redirect_mode(self, scripted):
        with pytest.raises(ValueError, match="Unsupported redirect mode"):
            await HttpxFetch()("https://example.com/", redirect="sometimes", transport=scripted)

    @pytest.mark.asyncio
    async def test_cookies_are_not_kept_between_calls(self, scripted):
        scripted.add("https://example.com/login", headers=[("Set-Cookie", "session=abc; Path=/")])
        scripted.add("https://example.com/me")
        fetch = HttpxFetch()
        await (await fetch("https://example.com/login", transport=scripted)).aread()
        await fetch("https://example.com/me", transport=scripted)
        assert "cookie" not in scripted.requests[1].headers

    @pytest.mark.asyncio
    async def test_one_client_per_transport(self, make_transport):
        first, second = make_transport(), make_transport()
        fetch = HttpxFetch()
        assert await fetch._client_for(first) is await fetch._client_for(first)
        assert await fetch._client_for(first) is not await fetch._client_for(second)
        assert await fetch._client_for(None) is await fetch._client_for(None)
        await fetch.aclose()

    @pytest.mark.asyncio
    async def test_aclose_leaves_caller_transports_open(self, scripted):
        scripted.add("https://example.com/")
        fetch = HttpxFetch()
        await fetch("https://example.com/", transport=scripted)
        await fetch.aclose()
        assert scripted.closed is False

    @pytest.mark.asyncio
    async def test_aclose_closes_every_client(self, make_transport):
        first, second = make_transport(), make_transport()
        fetch = HttpxFetch()
        clients = [await fetch._client_for(t) for t in (None, first, second)]

        await fetch.aclose()

        assert all(client.is_closed for client in clients)
        assert first.closed is False
        assert second.closed is False
        assert fetch._clients == {}

    @pytest.mark.asyncio
    async def test_client_cache_is_bounded(self, make_transport):
        transports = [make_transport() for _ in range(MAX_CLIENTS + 2)]
        fetch = HttpxFetch()
        oldest = await fetch._client_for(transports[0])
        for transport in transports[1:]:
            await fetch._client_for(transport)

        assert len(fetch._clients) == MAX_CLIENTS
        assert oldest.is_closed
        assert transports[0].closed is False
        assert await fetch._client_for(transports[-1]) is fetch._clients[id(transports[-1])][1]
        await fetch.aclose()

    @pytest.mark.asyncio
    async def test_recently_used_client_survives_eviction(self, make_transport):
        transports = [make_transport() for _ in range(MAX_CLIENTS)]
        fetch = HttpxFetch()
        for transport in transports:
            await fetch._client_for(transport)
        kept = await fetch._client_for(transports[0])

        await fetch._client_for(make_transport())

        assert not kept.is_closed
        assert id(transports[1]) not in fetch._clients
        await fetch.aclose()

    def test_cookie_jar_refuses_cookies(self):
        fetch = HttpxFetch()
        jar = fetch._client_kwargs["cookies"]
        request = httpx.Request("GET", "https://example.com/")
        response = httpx.Response(200, headers={"Set-Cookie": "a=1; Path=/"}, request=request)
        cookies = httpx.Cookies(jar)
        cookies.extract_cookies(response)
        assert len(cookies.jar) == 0
