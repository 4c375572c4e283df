import json
from pathlib import Path

import pytest

from tableprovider import cli
from tableprovider.retrieval.provider import ItemsProvider
from tableprovider.retrieval.transport import RequestsTransport

CONFIG_YAML = """
name: OrdersProvider
api_url: https://example.com/api/orders
fields:
  - key: id
  - key: customer
  - key: status
    searchable: false
filter_ignored_fields: [id]
"""


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "provider.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")
    return path


def test_query_command_prints_wire_query(config_path, capsys):
    cli.main(["query", "--config", str(config_path), "--page", "2", "--per-page", "5", "--filter", "acme", "--sort-by", "customer"])

    wire = json.loads(capsys.readouterr().out)
    assert wire["start"] == 5
    assert wire["length"] == 5
    assert wire["order"] == [{"column": 1, "dir": "asc"}]
    assert wire["columns"] == [{}, {"search": {"value": "acme", "regex": False}}, {}]


def test_fetch_command_prints_rows(config_path, capsys, monkeypatch):
    async def _fake_items(self, request=None, cancel_token=None):
        self.state.total_rows = 2
        return [{"id": 1}, {"id": 2}]

    monkeypatch.setattr(ItemsProvider, "items", _fake_items)

    cli.main(["fetch", "--config", str(config_path)])

    output = json.loads(capsys.readouterr().out)
    assert output["provider"] == "OrdersProvider"
    assert output["total_rows"] == 2
    assert output["rows"] == [{"id": 1}, {"id": 2}]


def test_fetch_command_exits_on_transport_error(config_path, capsys, monkeypatch):
    async def _failing_items(self, request=None, cancel_token=None):
        self._fire("on_response_error", RuntimeError("down"))
        return []

    monkeypatch.setattr(ItemsProvider, "items", _failing_items)

    with pytest.raises(SystemExit) as exc_info:
        cli.main(["fetch", "--config", str(config_path)])

    assert exc_info.value.code == 1
    assert "down" in capsys.readouterr().out


def test_fetch_command_closes_transport(config_path, capsys, monkeypatch):
    closed = []

    async def _failing_items(self, request=None, cancel_token=None):
        raise RuntimeError("boom")

    monkeypatch.setattr(ItemsProvider, "items", _failing_items)
    monkeypatch.setattr(RequestsTransport, "close", lambda self: closed.append(self))

    with pytest.raises(RuntimeError, match="boom"):
        cli.main(["fetch", "--config", str(config_path)])

    assert len(closed) == 1


def test_missing_config_exits(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["query", "--config", str(tmp_path / "missing.yaml")])

    assert exc_info.value.code == 2


def test_no_command_prints_help(capsys):
    cli.main([])

    assert "usage" in capsys.readouterr().out
