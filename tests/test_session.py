"""Tests for the guest session cookie holder."""

import asyncio
from email.utils import format_datetime
from datetime import datetime, timezone

import httpx
import pytest

from geostats.config import IngestConfig
from geostats.exceptions import UpstreamFetchError
from geostats.session import GUEST_LOGIN_PATH, GuestSession


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def _config(**overrides):
    return IngestConfig(api_url="https://api.test", max_retries=1, **overrides)


def _login_handler(calls, set_cookie="_ncfa=token; Path=/"):
    def handler(request):
        calls.append(request)
        return httpx.Response(200, headers={"set-cookie": set_cookie}, json={})
    return handler


@pytest.mark.asyncio
async def test_first_call_logs_in():
    calls = []
    clock = FakeClock()
    session = GuestSession(
        _config(), transport=httpx.MockTransport(_login_handler(calls)), clock=clock
    )

    cookie = await session.cookies()

    assert cookie == "_ncfa=token"
    assert len(calls) == 1
    assert calls[0].method == "POST"
    assert calls[0].url.path == GUEST_LOGIN_PATH
    assert b"geo_stats" in calls[0].content
    # No expiry on the cookie: fallback lifetime applies
    assert session.expires_at == pytest.approx(clock.now + 50_000)


@pytest.mark.asyncio
async def test_fresh_cookie_is_reused():
    calls = []
    clock = FakeClock()
    session = GuestSession(
        _config(), transport=httpx.MockTransport(_login_handler(calls)), clock=clock
    )

    await session.cookies()
    clock.now += 1000
    await session.cookies()

    assert len(calls) == 1
    assert session.login_count == 1


@pytest.mark.asyncio
async def test_cookie_refreshed_near_expiry():
    calls = []
    clock = FakeClock()
    session = GuestSession(
        _config(), transport=httpx.MockTransport(_login_handler(calls)), clock=clock
    )

    await session.cookies()
    # Within the 15 s refresh margin of the fallback expiry
    clock.now += 50_000 - 10
    await session.cookies()

    assert len(calls) == 2


@pytest.mark.asyncio
async def test_expiry_taken_from_cookie():
    calls = []
    expires = datetime(2100, 1, 1, tzinfo=timezone.utc)
    set_cookie = f"_ncfa=token; Path=/; Expires={format_datetime(expires, usegmt=True)}"
    session = GuestSession(
        _config(),
        transport=httpx.MockTransport(_login_handler(calls, set_cookie)),
        clock=FakeClock(),
    )

    await session.cookies()

    assert session.expires_at == pytest.approx(expires.timestamp())


@pytest.mark.asyncio
async def test_concurrent_callers_all_get_a_cookie():
    calls = []
    session = GuestSession(
        _config(), transport=httpx.MockTransport(_login_handler(calls)), clock=FakeClock()
    )

    cookies = await asyncio.gather(*(session.cookies() for _ in range(5)))

    assert set(cookies) == {"_ncfa=token"}
    assert 1 <= len(calls) <= 5


@pytest.mark.asyncio
async def test_error_status_raises():
    session = GuestSession(
        _config(), transport=httpx.MockTransport(lambda r: httpx.Response(500)),
        clock=FakeClock(),
    )
    with pytest.raises(UpstreamFetchError) as exc_info:
        await session.cookies()
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_response_without_cookies_raises():
    session = GuestSession(
        _config(), transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})),
        clock=FakeClock(),
    )
    with pytest.raises(UpstreamFetchError):
        await session.cookies()


@pytest.mark.asyncio
async def test_transport_error_raises_after_retries():
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ConnectError("refused", request=request)

    session = GuestSession(
        _config(), transport=httpx.MockTransport(handler), clock=FakeClock()
    )
    with pytest.raises(UpstreamFetchError):
        await session.cookies()
    assert len(attempts) == 1
