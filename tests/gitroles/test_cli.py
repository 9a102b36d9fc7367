"""Tests for the gitroles command-line entry point."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from gitroles.__main__ import main


def test_help_lists_commands():
    result = CliRunner().invoke(main, ["--help"])
    assert result.exit_code == 0
    for command in ("serve", "sync-once", "init-db"):
        assert command in result.output


def test_sync_once_prints_summary():
    summary = {"guilds": 2, "succeeded": 2, "failed": 0}
    with patch("gitroles.__main__._sync_once", new=AsyncMock(return_value=summary)):
        result = CliRunner().invoke(main, ["sync-once"])
    assert result.exit_code == 0
    assert '"guilds": 2' in result.output


def test_sync_once_without_discord_token(monkeypatch):
    monkeypatch.delenv("DISCORD_TOKEN", raising=False)
    error = ValueError("DISCORD_TOKEN is not set")
    with patch("gitroles.__main__._sync_once", new=AsyncMock(side_effect=error)):
        result = CliRunner().invoke(main, ["sync-once"])
    assert result.exit_code == 1
    assert "DISCORD_TOKEN is not set" in result.output


def test_init_db_creates_tables():
    with patch("gitroles.__main__._init_db", new=AsyncMock()) as init_db:
        result = CliRunner().invoke(main, ["init-db"])
    assert result.exit_code == 0
    init_db.assert_awaited_once()


def test_serve_runs_uvicorn():
    with patch("uvicorn.run") as run:
        result = CliRunner().invoke(main, ["serve", "--port", "9000"])
    assert result.exit_code == 0
    args, kwargs = run.call_args
    assert args[0] == "gitroles.api:create_app"
    assert kwargs["factory"] is True
    assert kwargs["port"] == 9000
