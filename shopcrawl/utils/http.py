from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional
from aiohttp import ClientSession, ClientTimeout
import aiohttp
import logging

from ..errors import ConnectionFailed, FetchTimeout, HTTPStatusError, ResponseTooLarge

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")
DEFAULT_MAX_BODY_BYTES = 10 * 1024 * 1024
READ_CHUNK_BYTES = 64 * 1024


@dataclass(frozen=True)
class FetchResponse:
    url: str
    content: bytes
    content_type: str = ""
    status: int = 200

    @property
    def is_html(self) -> bool:
        # Servers that omit the header are usually serving HTML.
        return not self.content_type or self.content_type.startswith(HTML_CONTENT_TYPES)


def create_session(*, user_agent: Optional[str] = None, timeout: float = 15.0) -> ClientSession:
    """
    Create a shared aiohttp ClientSession.
    """
    # Note: caller is responsible for closing the session (await session.close()).
    connector = aiohttp.TCPConnector(limit=0)  # unlimited; concurrency managed by the engine
    headers = {"User-Agent": user_agent} if user_agent else None
    return aiohttp.ClientSession(connector=connector, headers=headers, timeout=ClientTimeout(total=timeout))


class HttpFetcher:
    """
    Read-only GET of one URL per call. Raises typed FetchErrors; never retries
    on its own (see ``utils.retry``).
    """

    def __init__(
        self,
        session: Optional[ClientSession] = None,
        *,
        timeout: float = 15.0,
        user_agent: Optional[str] = None,
        max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self.max_body_bytes = max_body_bytes
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "HttpFetcher":
        if self._session is None:
            self._session = create_session(user_agent=self.user_agent, timeout=self.timeout)
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    async def fetch(self, url: str) -> FetchResponse:
        if self._session is None:
            raise RuntimeError("HttpFetcher used outside 'async with'")
        try:
            async with self._session.get(url, timeout=ClientTimeout(total=self.timeout)) as resp:
                if resp.status >= 400:
                    raise HTTPStatusError(url, resp.status)
                content = await self._read_body(url, resp)
                return FetchResponse(
                    url=str(resp.url),
                    content=content,
                    content_type=resp.headers.get("Content-Type", "").lower(),
                    status=resp.status,
                )
        except asyncio.TimeoutError as exc:
            raise FetchTimeout(url) from exc
        except aiohttp.ClientError as exc:
            raise ConnectionFailed(url, exc) from exc

    async def _read_body(self, url: str, resp: aiohttp.ClientResponse) -> bytes:
        limit = self.max_body_bytes
        if resp.content_length is not None and resp.content_length > limit:
            raise ResponseTooLarge(url, limit)
        # Content-Length may be absent or wrong; count what actually arrives.
        body = bytearray()
        async for chunk in resp.content.iter_chunked(READ_CHUNK_BYTES):
            body.extend(chunk)
            if len(body) > limit:
                raise ResponseTooLarge(url, limit)
        return bytes(body)
