import asyncio
import threading

import httpx
import pytest
import requests

from tableprovider.retrieval.provider import ItemsProvider
from tableprovider.retrieval.transport import (
    HttpxTransport,
    RequestCancelled,
    RequestsTransport,
    TransportError,
    is_cancelled,
)


class _Response:
    def __init__(self, status_code=200, body=None, content=b"{}", json_error=None):
        self.status_code = status_code
        self._body = body
        self.content = content
        self._json_error = json_error

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)

    def json(self):
        if self._json_error is not None:
            raise self._json_error
        return self._body


class _Session:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        pass


def test_get_returns_decoded_body():
    body = {"recordsTotal": 1, "recordsFiltered": 1, "data": []}
    session = _Session(response=_Response(body=body, content=b"0123456789"))
    transport = RequestsTransport(session=session, timeout=5, user_agent="test-agent")

    result = transport.get("https://example.com/items", params={"start": "0"}, headers={"X-Token": "t"})

    assert result.data == body
    assert result.status_code == 200
    assert result.bytes_downloaded == 10
    url, kwargs = session.calls[0]
    assert url == "https://example.com/items"
    assert kwargs["params"] == {"start": "0"}
    assert kwargs["timeout"] == 5
    assert kwargs["headers"]["User-Agent"] == "test-agent"
    assert kwargs["headers"]["X-Token"] == "t"


def test_http_error_is_wrapped_with_status_code():
    transport = RequestsTransport(session=_Session(response=_Response(status_code=503)))

    with pytest.raises(TransportError) as exc_info:
        transport.get("https://example.com/items")

    assert exc_info.value.status_code == 503
    assert isinstance(exc_info.value.__cause__, requests.HTTPError)


def test_connection_error_is_wrapped():
    transport = RequestsTransport(session=_Session(error=requests.ConnectionError("refused")))

    with pytest.raises(TransportError, match="Failed to fetch"):
        transport.get("https://example.com/items")


def test_invalid_json_is_wrapped():
    transport = RequestsTransport(session=_Session(response=_Response(json_error=ValueError("not json"))))

    with pytest.raises(TransportError, match="Failed to parse"):
        transport.get("https://example.com/items")


def test_set_cancel_token_stops_dispatch():
    session = _Session(response=_Response(body={}))
    transport = RequestsTransport(session=session)
    token = threading.Event()
    token.set()

    with pytest.raises(RequestCancelled):
        transport.get("https://example.com/items", cancel_token=token)

    assert session.calls == []


def test_is_cancelled_ignores_tokens_without_is_set():
    assert is_cancelled(None) is False
    assert is_cancelled(object()) is False
    assert is_cancelled(threading.Event()) is False



@pytest.mark.asyncio
async def test_provider_calls_blocking_requests_transport():
    body = {"recordsTotal": 3, "recordsFiltered": 1, "data": [{"id": 1}]}
    session = _Session(response=_Response(body=body))
    provider = ItemsProvider(RequestsTransport(session=session), [{"key": "id"}, {"key": "name"}])

    rows = await provider.items({"apiUrl": "https://example.com/items", "perPage": 10})

    assert rows == [{"id": 1}]
    assert provider.total_rows == 3
    _, kwargs = session.calls[0]
    assert kwargs["params"]["columns[1][search][value]"] == ""


def _httpx_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_httpx_get_returns_decoded_body():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"recordsTotal": 2, "recordsFiltered": 2, "data": [1, 2]})

    transport = HttpxTransport(client=_httpx_client(handler), user_agent="test-agent")

    result = await transport.get("https://example.com/items", params={"start": "0"}, headers={"X-Token": "t"})

    assert result.status_code == 200
    assert result.data["data"] == [1, 2]
    assert seen[0].url.params["start"] == "0"
    assert seen[0].headers["User-Agent"] == "test-agent"
    assert seen[0].headers["X-Token"] == "t"


@pytest.mark.asyncio
async def test_httpx_status_error_is_wrapped_with_status_code():
    transport = HttpxTransport(client=_httpx_client(lambda request: httpx.Response(502)))

    with pytest.raises(TransportError) as exc_info:
        await transport.get("https://example.com/items")

    assert exc_info.value.status_code == 502
    assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)


@pytest.mark.asyncio
async def test_httpx_connection_error_is_wrapped():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    transport = HttpxTransport(client=_httpx_client(handler))

    with pytest.raises(TransportError, match="Failed to fetch"):
        await transport.get("https://example.com/items")


@pytest.mark.asyncio
async def test_httpx_invalid_json_is_wrapped():
    transport = HttpxTransport(client=_httpx_client(lambda request: httpx.Response(200, content=b"not json")))

    with pytest.raises(TransportError, match="Failed to parse"):
        await transport.get("https://example.com/items")


@pytest.mark.asyncio
async def test_httpx_set_token_stops_dispatch():
    seen = []
    transport = HttpxTransport(client=_httpx_client(lambda request: seen.append(request) or httpx.Response(200, json={})))
    token = asyncio.Event()
    token.set()

    with pytest.raises(RequestCancelled):
        await transport.get("https://example.com/items", cancel_token=token)

    assert seen == []


@pytest.mark.asyncio
async def test_httpx_token_aborts_in_flight_request():
    async def slow_handler(request):
        await asyncio.sleep(5)
        return httpx.Response(200, json={})

    transport = HttpxTransport(client=_httpx_client(slow_handler))
    token = asyncio.Event()
    asyncio.get_running_loop().call_later(0.01, token.set)

    with pytest.raises(RequestCancelled, match="in flight"):
        await asyncio.wait_for(transport.get("https://example.com/items", cancel_token=token), timeout=2)


@pytest.mark.asyncio
async def test_provider_reports_cancelled_request_as_error():
    transport = HttpxTransport(client=_httpx_client(lambda request: httpx.Response(200, json={})))
    provider = ItemsProvider(transport, [{"key": "a"}])
    received = []
    provider.on_response_error = received.append
    token = asyncio.Event()
    token.set()

    rows = await provider.items({"apiUrl": "https://example.com/items", "perPage": 5}, cancel_token=token)

    assert rows == []
    assert isinstance(received[0], RequestCancelled)
