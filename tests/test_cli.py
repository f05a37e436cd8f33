"""Typer CLI: config resolution and one-off calls."""

from __future__ import annotations

import json

import httpx
import pytest
from typer.testing import CliRunner

from ResilientRest import cli
from ResilientRest.transport import HttpxTransport

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "restcore.yaml"
    path.write_text(
        "http:\n"
        "  request:\n"
        "    orders:\n"
        "      socketTimeout: 5000\n"
        "    getOrder:\n"
        "      connectionTimeout: 250\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def mock_backend(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/orders/42":
            return httpx.Response(200, text='{"id": 42}')
        if request.url.path == "/orders/empty":
            return httpx.Response(204)
        return httpx.Response(404, text="not here")

    original = HttpxTransport.__init__

    def patched(self, **kwargs):
        kwargs.setdefault("transport", httpx.MockTransport(handler))
        original(self, **kwargs)

    monkeypatch.setattr(HttpxTransport, "__init__", patched)


def test_config_resolve_raw(config_file):
    result = runner.invoke(
        cli.app, ["config", "resolve", "orders", "getOrder", "--config", str(config_file), "--raw"]
    )

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["socket_timeout_ms"] == 5000
    assert data["connect_timeout_ms"] == 250
    assert data["cookie_policy"] == "ignoreCookies"


def test_config_resolve_table(config_file):
    result = runner.invoke(cli.app, ["config", "resolve", "orders", "getOrder", "-c", str(config_file)])

    assert result.exit_code == 0
    assert "socket_timeout_ms" in result.output


def test_config_resolve_missing_file(tmp_path):
    result = runner.invoke(
        cli.app, ["config", "resolve", "orders", "getOrder", "-c", str(tmp_path / "none.yaml")]
    )

    assert result.exit_code == 1


def test_call_prints_body(mock_backend):
    result = runner.invoke(
        cli.app, ["call", "GET", "https://api.example.org", "/orders/42", "-o", "getOrder"]
    )

    assert result.exit_code == 0, result.output
    assert '{"id": 42}' in result.output


def test_call_no_content(mock_backend):
    result = runner.invoke(cli.app, ["call", "delete", "https://api.example.org", "/orders/empty"])

    assert result.exit_code == 0, result.output
    assert "No content" in result.output


def test_call_failure_exits_with_one(mock_backend):
    result = runner.invoke(cli.app, ["call", "GET", "https://api.example.org", "/missing"])

    assert result.exit_code == 1
    assert "ClientSideError" in result.output
    assert "REST-3001" in result.output


def test_call_rejects_malformed_query(mock_backend):
    result = runner.invoke(
        cli.app, ["call", "GET", "https://api.example.org", "/orders/42", "-q", "novalue"]
    )

    assert result.exit_code != 0
