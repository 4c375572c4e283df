"""Pytest configuration and fixtures."""

from typing import Any, Dict, List, Optional

import pytest


class FakeTransport:
    """Records GET calls and replays a canned body or raises a canned error."""

    def __init__(self, body: Optional[Dict[str, Any]] = None, error: Optional[BaseException] = None, is_async: bool = True):
        self.body = body
        self.error = error
        self.is_async = is_async
        self.calls: List[Dict[str, Any]] = []

    def _respond(self, url, params, headers, cancel_token):
        self.calls.append({"url": url, "params": params, "headers": headers, "cancel_token": cancel_token})
        if self.error is not None:
            raise self.error
        return {"data": self.body}

    def get(self, url, *, params=None, headers=None, cancel_token=None):
        if not self.is_async:
            return self._respond(url, params, headers, cancel_token)

        async def _get():
            return self._respond(url, params, headers, cancel_token)

        return _get()


@pytest.fixture
def empty_body():
    return {"recordsFiltered": 0, "recordsTotal": 1, "data": None}


@pytest.fixture
def fake_transport(empty_body):
    return FakeTransport(body=empty_body)


@pytest.fixture
def five_fields():
    return [
        {"key": "test0", "orderable": False},
        {"key": "test1", "orderable": True, "searchable": False},
        {"key": "test2", "orderable": True},
        {"key": "test3", "orderable": True},
        {"key": "test4", "orderable": True},
    ]


@pytest.fixture
def make_transport():
    return FakeTransport
