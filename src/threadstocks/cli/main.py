"""threadstocks CLI — run the server and manage the database.

Usage:
    threadstocks serve                 # Run the API with uvicorn
    threadstocks serve --port 9000     # Override host/port from settings
    threadstocks init-db               # Create missing tables
    threadstocks gen-secret            # Print a value for THREADSTOCKS_JWT_SECRET
"""

from __future__ import annotations

import asyncio
import secrets
import sys
from typing import Optional

import click
from pydantic import ValidationError

from threadstocks import __version__
from threadstocks.config import Settings

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_settings() -> Settings:
    """Build Settings from the environment, exiting cleanly on bad config."""
    try:
        return Settings()
    except ValidationError as e:
        click.secho("Invalid configuration:", fg="red", err=True)
        for err in e.errors():
            click.echo(f"  - {err['msg']}", err=True)
        sys.exit(1)


async def _init_db(settings: Settings) -> None:
    from threadstocks.db.engine import build_engine, create_schema

    engine = build_engine(settings)
    try:
        await create_schema(engine)
    finally:
        await engine.dispose()


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="threadstocks")
def main():
    """threadStocks — accounts and personal thread inventory API."""


@main.command()
@click.option("--host", default=None, help="Bind address (default: THREADSTOCKS_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: THREADSTOCKS_PORT)")
def serve(host: Optional[str], port: Optional[int]):
    """Run the API server."""
    import uvicorn

    from threadstocks.main import create_app

    settings = _load_settings()
    app = create_app(settings)
    uvicorn.run(
        app,
        host=host or settings.host,
        port=port or settings.port,
        log_config=None,  # logging is configured by create_app
    )


@main.command("init-db")
def init_db():
    """Create the schema in THREADSTOCKS_DATABASE_URL (no-op for existing tables)."""
    settings = _load_settings()
    asyncio.run(_init_db(settings))
    click.secho("Schema ready.", fg="green")


@main.command("gen-secret")
@click.option("--bytes", "nbytes", default=32, show_default=True, help="Entropy in bytes")
def gen_secret(nbytes: int):
    """Print a random secret suitable for THREADSTOCKS_JWT_SECRET."""
    click.echo(secrets.token_urlsafe(nbytes))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
