"""
Network fetch capability and request dispatch.

A fetch capability is any awaitable callable matching :class:`Fetch`. The
default, :class:`AiohttpFetch`, sends requests with aiohttp and buffers the
whole body so the response stays readable after the connection is released.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol

import aiohttp
from multidict import CIMultiDict, CIMultiDictProxy

from .builder import PreparedRequest
from .cancellation import AbortSignal
from .exceptions import AbortError, FetchError
from .models import Operation
from .options import Credentials, EffectiveOptions

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "upload-link/1.0"


class FetchResponse(Protocol):
    """Response returned by a fetch capability."""

    status: int
    headers: Mapping[str, str]

    @property
    def ok(self) -> bool: ...

    async def text(self) -> str: ...


class Fetch(Protocol):
    """Signature every fetch capability must accept."""

    async def __call__(
        self,
        url: str,
        *,
        method: str,
        headers: Mapping[str, str],
        data: Any,
        credentials: Optional[Credentials] = None,
        signal: Optional[AbortSignal] = None,
        **kwargs: Any,
    ) -> FetchResponse: ...


@dataclass
class BufferedResponse:
    """Fully read HTTP response."""

    status: int
    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=lambda: CIMultiDictProxy(CIMultiDict()))
    url: str = ""
    reason: Optional[str] = None
    charset: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    async def text(self) -> str:
        return self.body.decode(self.charset or "utf-8", errors="replace")


class AiohttpFetch:
    """
    Fetch capability backed by aiohttp.

    Without a session, a short-lived session is opened per request, which
    drops cookies entirely when credentials are ``omit``. With a session, the
    session's own cookie handling applies.

    Examples:
        ```python
        async with aiohttp.ClientSession() as session:
            link = create_upload_link(uri="https://api.example.com/graphql",
                                      fetch=AiohttpFetch(session))
        ```
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        """
        Initialize aiohttp fetch.

        Args:
            session: Optional shared session
            timeout: Total request timeout in seconds
            user_agent: User-Agent for sessions created by this fetch
        """
        self._session = session
        self.timeout = timeout
        self.user_agent = user_agent

    async def __call__(
        self,
        url: str,
        *,
        method: str = "POST",
        headers: Optional[Mapping[str, str]] = None,
        data: Any = None,
        credentials: Optional[Credentials] = None,
        signal: Optional[AbortSignal] = None,
        **kwargs: Any,
    ) -> BufferedResponse:
        if signal is not None:
            signal.throw_if_aborted()

        task = asyncio.ensure_future(self._request(url, method, headers, data, credentials, kwargs))
        remove = signal.add_listener(task.cancel) if signal is not None else None
        try:
            return await task
        except asyncio.CancelledError:
            if signal is not None and signal.aborted:
                raise AbortError() from None
            raise
        finally:
            if remove is not None:
                remove()

    async def _request(
        self,
        url: str,
        method: str,
        headers: Optional[Mapping[str, str]],
        data: Any,
        credentials: Optional[Credentials],
        kwargs: Dict[str, Any],
    ) -> BufferedResponse:
        kwargs.setdefault("timeout", aiohttp.ClientTimeout(total=self.timeout))
        try:
            if self._session is not None:
                return await self._send(self._session, url, method, headers, data, kwargs)

            cookie_jar = aiohttp.DummyCookieJar() if credentials == Credentials.OMIT else None
            async with aiohttp.ClientSession(
                cookie_jar=cookie_jar,
                headers={"User-Agent": self.user_agent},
            ) as session:
                return await self._send(session, url, method, headers, data, kwargs)
        except asyncio.TimeoutError as e:
            raise FetchError(f"Request timeout after {self.timeout}s", url=url) from e
        except aiohttp.ClientError as e:
            raise FetchError(f"Network request failed: {e}", url=url) from e

    @staticmethod
    async def _send(
        session: aiohttp.ClientSession,
        url: str,
        method: str,
        headers: Optional[Mapping[str, str]],
        data: Any,
        kwargs: Dict[str, Any],
    ) -> BufferedResponse:
        async with session.request(method, url, headers=headers, data=data, **kwargs) as response:
            body = await response.read()
            return BufferedResponse(
                status=response.status,
                body=body,
                headers=CIMultiDictProxy(CIMultiDict(response.headers)),
                url=str(response.url),
                reason=response.reason,
                charset=response.charset,
            )


async def dispatch(
    fetch: Fetch,
    prepared: PreparedRequest,
    options: EffectiveOptions,
    operation: Operation,
) -> FetchResponse:
    """
    Send a prepared request and record the raw response on the operation.

    The response is written to the operation context under ``response``
    before it is returned, so later stages can inspect status and headers.
    """
    encoding = "multipart" if prepared.is_multipart else "json"
    logger.debug(
        "%s %s (%s)",
        options.method,
        options.uri,
        encoding,
        extra={"operation_name": operation.operation_name, "encoding": encoding},
    )
    response = await fetch(
        options.uri,
        method=options.method,
        headers=prepared.headers,
        data=prepared.body.to_payload(),
        credentials=options.credentials,
        signal=options.signal,
        **options.fetch_options,
    )
    operation.set_context({"response": response})
    return response
