"""CLI entry point: ``python -m gitroles`` / ``gitroles``.

Subcommands:
    gitroles serve        # operator API + background scheduler (uvicorn)
    gitroles sync-once    # run a single sync pass and print a JSON summary
    gitroles init-db      # create database tables
"""

from __future__ import annotations

import asyncio
import json

import click
from dotenv import load_dotenv

from gitroles.core.logging import setup_logging


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """gitroles: keep Discord roles in sync with GitHub membership."""
    load_dotenv()
    setup_logging(level="DEBUG" if verbose else None)


@main.command()
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
def serve(host: str, port: int) -> None:
    """Run the operator API with the sync scheduler."""
    import uvicorn

    uvicorn.run("gitroles.api:create_app", factory=True, host=host, port=port, log_config=None)


@main.command("sync-once")
def sync_once() -> None:
    """Run one sync pass over every eligible guild."""
    try:
        summary = asyncio.run(_sync_once())
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(json.dumps(summary, indent=2, default=str))


@main.command("init-db")
def init_db() -> None:
    """Create all tables (idempotent)."""
    asyncio.run(_init_db())
    click.echo("database initialised")


async def _sync_once() -> dict:
    from gitroles.api.deps import build_role_sync_runner
    from gitroles.core.database import create_engine, create_session_factory
    from gitroles.engines.role_sync.discord_client import DiscordClient
    from gitroles.engines.role_sync.github_client import GitHubClient

    engine = create_engine()
    factory = create_session_factory(engine)
    try:
        async with GitHubClient() as github_client, DiscordClient() as discord_client:
            runner = build_role_sync_runner(factory, github_client, discord_client)
            result = await runner.run_all(factory)
        return result.summary()
    finally:
        await engine.dispose()


async def _init_db() -> None:
    from gitroles.core.database import create_all, create_engine

    engine = create_engine()
    try:
        await create_all(engine)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    main()
