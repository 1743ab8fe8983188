"""Session maintenance CLI commands."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console

from keygate.core.session_lifecycle import SessionLifecycle
from keygate.db.session import async_session_factory

console = Console()
app = typer.Typer(no_args_is_help=True)


@app.command("purge")
def purge():
    """Delete expired admin and user sessions."""
    asyncio.run(_purge())


async def _purge():
    async with async_session_factory() as session:
        admins = await SessionLifecycle.for_admins(session).purge_expired()
        users = await SessionLifecycle.for_users(session).purge_expired()
    console.print(f"[green]Purged {admins} admin and {users} user sessions.[/green]")
