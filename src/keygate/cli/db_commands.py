"""Database management CLI commands."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console

console = Console()
app = typer.Typer(no_args_is_help=True)


@app.command()
def init():
    """Initialize the database (create all tables)."""
    asyncio.run(_init_db())


async def _init_db():
    from keygate.db.session import create_all, engine

    await create_all()
    await engine.dispose()
    console.print("[green]Database initialized successfully.[/green]")
