"""Transport collaborators: perform one GET and hand back the decoded body."""

import asyncio
from typing import Any, Awaitable, Dict, Mapping, Optional, Protocol, Union

import httpx
import requests
from pydantic import BaseModel

from tableprovider.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 20
DEFAULT_USER_AGENT = "tableprovider/0.1"


class TransportError(RuntimeError):
    """Raised by a transport when the outbound read fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RequestCancelled(TransportError):
    """The caller's cancellation token fired before the request was sent."""


class TransportResponse(BaseModel):
    """Decoded response body plus diagnostics."""

    status_code: Optional[int] = None
    data: Any = None
    bytes_downloaded: int = 0


class Transport(Protocol):
    """Anything that can GET a URL with query parameters.

    ``get`` may return the response directly or an awaitable of it; failures
    are signalled by raising.
    """

    def get(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        cancel_token: Any = None,
    ) -> Union[TransportResponse, Awaitable[TransportResponse]]:
        ...


def is_cancelled(cancel_token: Any) -> bool:
    """True for an Event-like token (anything with is_set()) that has fired."""
    if cancel_token is None:
        return False
    is_set = getattr(cancel_token, "is_set", None)
    return bool(callable(is_set) and is_set())


class RequestsTransport:
    """Blocking transport built on ``requests``; the provider calls it directly."""

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[requests.Session] = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self.session = session or requests.Session()

    def _get_headers(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def get(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        cancel_token: Any = None,
    ) -> TransportResponse:
        """
        Perform the GET on the calling thread.

        Raises:
            RequestCancelled: If cancel_token is already set
            TransportError: On HTTP, connection or JSON decoding failures
        """
        if is_cancelled(cancel_token):
            raise RequestCancelled(f"Request to {url} cancelled before dispatch")

        try:
            response = self.session.get(
                url,
                params=dict(params or {}),
                headers=self._get_headers(headers),
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            status_code = None
            if getattr(e, "response", None) is not None:
                status_code = e.response.status_code
            raise TransportError(f"Failed to fetch {url}: {e}", status_code=status_code) from e
        except ValueError as e:
            raise TransportError(f"Failed to parse response from {url}: {e}") from e

        logger.debug(f"GET {url} -> {response.status_code}")
        return TransportResponse(
            status_code=response.status_code,
            data=data,
            bytes_downloaded=len(response.content or b""),
        )

    def close(self) -> None:
        self.session.close()


class HttpxTransport:
    """Async transport built on ``httpx.AsyncClient``.

    An ``asyncio.Event`` cancel token aborts an in-flight request; any other
    Event-like token is only checked before dispatch.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self.client = client

    def _get_headers(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    async def _fetch(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: Optional[Mapping[str, Any]],
        headers: Optional[Mapping[str, str]],
    ) -> TransportResponse:
        try:
            response = await client.get(url, params=dict(params or {}), headers=self._get_headers(headers))
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise TransportError(f"Failed to fetch {url}: {e}", status_code=e.response.status_code) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to fetch {url}: {e}") from e
        except ValueError as e:
            raise TransportError(f"Failed to parse response from {url}: {e}") from e

        logger.debug(f"GET {url} -> {response.status_code}")
        return TransportResponse(
            status_code=response.status_code,
            data=data,
            bytes_downloaded=len(response.content or b""),
        )

    async def _fetch_with_client(
        self,
        url: str,
        params: Optional[Mapping[str, Any]],
        headers: Optional[Mapping[str, str]],
    ) -> TransportResponse:
        if self.client is not None:
            return await self._fetch(self.client, url, params, headers)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._fetch(client, url, params, headers)

    async def get(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        cancel_token: Any = None,
    ) -> TransportResponse:
        """
        Perform the GET on the event loop.

        Raises:
            RequestCancelled: If cancel_token is set before or during the request
            TransportError: On HTTP, connection or JSON decoding failures
        """
        if is_cancelled(cancel_token):
            raise RequestCancelled(f"Request to {url} cancelled before dispatch")
        if not isinstance(cancel_token, asyncio.Event):
            return await self._fetch_with_client(url, params, headers)

        request = asyncio.ensure_future(self._fetch_with_client(url, params, headers))
        cancelled = asyncio.ensure_future(cancel_token.wait())
        try:
            done, _ = await asyncio.wait({request, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (request, cancelled):
                if not task.done():
                    task.cancel()
        if request in done:
            return request.result()
        raise RequestCancelled(f"Request to {url} cancelled in flight")
