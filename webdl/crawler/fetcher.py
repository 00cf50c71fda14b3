# webdl/crawler/fetcher.py
"""
Fetcher module: HTTP GET with referer, retry/backoff and timeout.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional, Sequence

from aiohttp import ClientError, ClientResponse, ClientSession, ClientTimeout, StreamReader

from webdl.crawler.models import PageRef
from webdl.errors import FetchError

__all__ = ("Fetcher", "DEFAULT_USER_AGENT")

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/87.0.4280.88 Safari/537.36"
)

logger = logging.getLogger("webdl.fetcher")


class Fetcher:
    """Issues the GET requests for pages and downloads.

    Use as an async context manager; it owns its :class:`aiohttp.ClientSession`
    unless one is passed in.
    """

    RETRY_STATUS: Sequence[int] = tuple(range(500, 600)) + (429,)

    def __init__(
        self,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 30.0,
        retry_times: int = 0,
        retry_backoff: float = 0.5,
        session: Optional[ClientSession] = None,
    ) -> None:
        self.user_agent = user_agent
        self.timeout = timeout
        self.retry_times = retry_times
        self.retry_backoff = retry_backoff
        self.session = session
        self._own_session = session is None

    async def __aenter__(self) -> Fetcher:
        if self.session is None:
            self.session = ClientSession(
                # the deadline applies to each socket read, not to the whole body
                timeout=ClientTimeout(total=None, connect=self.timeout, sock_read=self.timeout),
                headers={"User-Agent": self.user_agent},
                raise_for_status=False,
            )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._own_session and self.session and not self.session.closed:
            await self.session.close()
        if self._own_session:
            self.session = None

    @staticmethod
    def headers_for(ref: PageRef) -> Dict[str, str]:
        if ref.parent is not None:
            return {"Referer": ref.parent.url}
        return {}

    async def _request(self, ref: PageRef) -> ClientResponse:
        if self.session is None:
            raise RuntimeError("Session not initialized")
        headers = self.headers_for(ref)
        attempts = 0
        while True:
            try:
                resp = await self.session.get(ref.url, headers=headers)
            except ValueError as exc:
                # URLs aiohttp/yarl cannot encode; retrying would not help
                raise FetchError(ref.url, f"invalid URL: {exc}") from exc
            except (ClientError, asyncio.TimeoutError) as exc:
                cause: BaseException = exc
                message = str(exc) or type(exc).__name__
                status = None
            else:
                if resp.status < 400:
                    return resp
                resp.release()
                status = resp.status
                message = f"HTTP {status} {resp.reason or ''}".rstrip()
                cause = FetchError(ref.url, message, status)
                if status not in self.RETRY_STATUS:
                    raise cause

            attempts += 1
            if attempts > self.retry_times:
                raise FetchError(ref.url, message, status) from cause
            backoff = min(60.0, self.retry_backoff * 2**attempts)
            logger.debug("Retry %d/%d for %s after %.2f s", attempts, self.retry_times, ref.url, backoff)
            await asyncio.sleep(backoff)

    @asynccontextmanager
    async def stream(self, ref: PageRef) -> AsyncIterator[StreamReader]:
        """GET ``ref.url`` and yield the body stream; the response is released on exit."""
        resp = await self._request(ref)
        try:
            yield resp.content
        finally:
            resp.release()

    async def read(self, ref: PageRef) -> bytes:
        """GET ``ref.url`` and return the whole body."""
        async with self.stream(ref) as body:
            try:
                return await body.read()
            except (ClientError, asyncio.TimeoutError) as exc:
                raise FetchError(ref.url, str(exc) or type(exc).__name__) from exc
