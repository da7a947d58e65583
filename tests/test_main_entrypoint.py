"""Tests for the `python -m prodcat` launcher."""

import sys
from types import SimpleNamespace

import pytest
from typer.testing import CliRunner

from prodcat import __main__ as main_module


runner = CliRunner()


@pytest.fixture
def uvicorn_calls(monkeypatch):
    """Capture uvicorn.run instead of binding a socket."""
    calls: list[tuple[tuple, dict]] = []
    monkeypatch.setitem(
        sys.modules,
        "uvicorn",
        SimpleNamespace(run=lambda *args, **kwargs: calls.append((args, kwargs))),
    )
    return calls


def _config(**overrides):
    values = {"api_host": "127.0.0.1", "api_port": 9001, "mock": False}
    values.update(overrides)
    return SimpleNamespace(**values)


def test_main_shows_help_when_no_subcommand():
    result = runner.invoke(main_module.app, [])
    assert result.exit_code == 0
    assert "Product catalog tool - CLI or API mode." in result.output


def test_api_mode_serves_catalog_app(monkeypatch, uvicorn_calls):
    monkeypatch.setattr(main_module, "get_config", lambda: _config())

    result = runner.invoke(main_module.app, ["--mode", "api"])

    assert result.exit_code == 0
    assert uvicorn_calls == [
        (("prodcat.api:app",), {"host": "127.0.0.1", "port": 9001, "reload": False})
    ]
    assert "Serving product catalog API on 127.0.0.1:9001" in result.output
    assert "MOCK" not in result.output


def test_api_mode_host_and_port_override_config(monkeypatch, uvicorn_calls):
    monkeypatch.setattr(main_module, "get_config", lambda: _config())

    result = runner.invoke(
        main_module.app, ["--mode", "api", "--host", "0.0.0.0", "--port", "8080"]
    )

    assert result.exit_code == 0
    assert uvicorn_calls[0][1]["host"] == "0.0.0.0"
    assert uvicorn_calls[0][1]["port"] == 8080


def test_api_mode_warns_when_records_are_in_memory(monkeypatch, uvicorn_calls):
    monkeypatch.setattr(main_module, "get_config", lambda: _config(mock=True))

    result = runner.invoke(main_module.app, ["--mode", "api"])

    assert result.exit_code == 0
    assert "catalog records live in memory only" in result.output


def test_api_mode_reports_invalid_configuration(monkeypatch, uvicorn_calls):
    def broken_config():
        raise ValueError("SUPABASE_URL required when mock mode is disabled")

    monkeypatch.setattr(main_module, "get_config", broken_config)

    result = runner.invoke(main_module.app, ["--mode", "api"])

    assert result.exit_code == 1
    assert "Cannot start API" in result.output
    assert "SUPABASE_URL required" in result.output
    assert uvicorn_calls == []


def test_unknown_mode_falls_back_to_help():
    result = runner.invoke(main_module.app, ["--mode", "not-a-mode"])
    assert result.exit_code == 0
    assert "Product catalog tool - CLI or API mode." in result.output
