"""Guest session cookie holder for the game service.

The game server only serves match documents to authenticated clients.  A
guest login is enough; its cookies stay valid for a long time, so they
are cached and only refreshed shortly before they expire.

The holder is shared by every concurrent ingestion request.  Its asyncio
lock guards only the check and the write of the cached cookie -- the
login call itself runs outside the lock, so two callers that both see a
stale cookie may both log in, which is harmless.
"""

import asyncio
import logging
import time
from typing import Callable

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from geostats.config import IngestConfig
from geostats.exceptions import UpstreamFetchError

logger = logging.getLogger(__name__)

GUEST_LOGIN_PATH = "/api/v4/guest-users"


class GuestSession:
    """Caches the upstream guest cookie and refreshes it near expiry.

    Usage::

        session = GuestSession(config)
        cookie_header = await session.cookies()
    """

    def __init__(
        self,
        config: IngestConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if config is None:
            config = IngestConfig()

        self._config = config
        self._transport = transport
        self._clock = clock
        self._cookie: str | None = None
        self._expires_at: float = 0.0
        self._lock = asyncio.Lock()
        self.login_count = 0

    @property
    def expires_at(self) -> float:
        """Epoch seconds at which the cached cookie expires (0 if none)."""
        return self._expires_at

    async def cookies(self) -> str:
        """Return a ``Cookie`` header value, logging in first if needed."""
        async with self._lock:
            if not self._is_stale():
                return self._cookie

        cookie, expires_at = await self._login()

        async with self._lock:
            # Keep whichever cookie lives longer if logins raced
            if expires_at >= self._expires_at or self._cookie is None:
                self._cookie = cookie
                self._expires_at = expires_at
            return self._cookie

    def _is_stale(self) -> bool:
        """Caller must hold the lock."""
        if self._cookie is None:
            return True
        return self._expires_at < self._clock() + self._config.cookie_refresh_margin

    async def _login(self) -> tuple[str, float]:
        """Log in as a guest and return (cookie header, expiry epoch).

        Transport errors are retried with exponential backoff; a non-2xx
        response is not.

        Raises:
            UpstreamFetchError: If the login fails.
        """
        url = self._config.api_url + GUEST_LOGIN_PATH
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=httpx.Timeout(self._config.request_timeout),
            ) as client:
                async for attempt in AsyncRetrying(
                    retry=retry_if_exception_type(httpx.TransportError),
                    wait=wait_exponential_jitter(initial=1, max=15, jitter=1),
                    stop=stop_after_attempt(self._config.max_retries),
                    before_sleep=before_sleep_log(logger, logging.WARNING),
                    reraise=True,
                ):
                    with attempt:
                        response = await client.post(
                            url, json={"nick": self._config.guest_nick}
                        )
        except httpx.HTTPError as exc:
            raise UpstreamFetchError(
                f"Guest login failed: {exc}", url=url
            ) from exc

        if response.is_error:
            raise UpstreamFetchError(
                f"Guest login returned HTTP {response.status_code}",
                url=url,
                status_code=response.status_code,
            )

        cookies = list(response.cookies.jar)
        if not cookies:
            raise UpstreamFetchError("Guest login set no cookies", url=url)

        header = "; ".join(f"{c.name}={c.value}" for c in cookies)
        expiries = [c.expires for c in cookies if c.expires is not None]
        if expiries:
            expires_at = float(min(expiries))
        else:
            expires_at = self._clock() + self._config.cookie_fallback_lifetime

        self.login_count += 1
        logger.info(
            "Guest login succeeded (%d cookies, valid for %.0fs)",
            len(cookies), expires_at - self._clock(),
        )
        return header, expires_at
