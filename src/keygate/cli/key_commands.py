"""Access key management CLI commands."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from keygate.config import settings
from keygate.core.credentials import obfuscate
from keygate.core.errors import KeygateError
from keygate.core.key_lifecycle import KeyLifecycle
from keygate.db.session import async_session_factory
from keygate.utils.datetime import as_utc

console = Console()
app = typer.Typer(no_args_is_help=True)


def _fail(e: KeygateError):
    console.print(f"[red]{e.message}[/red]")
    raise typer.Exit(1)


@app.command("issue")
def issue_key(
    plan: str = typer.Option("basic", "--plan", "-p", help="Plan tier (basic/standard/premium/enterprise)"),
    days: int = typer.Option(settings.default_key_duration_days, "--days", "-d", help="Validity after redemption"),
):
    """Issue a single access key."""
    asyncio.run(_issue_key(plan, days))


async def _issue_key(plan: str, days: int):
    async with async_session_factory() as session:
        try:
            key = await KeyLifecycle(session).issue(plan, days, created_by="cli")
        except KeygateError as e:
            _fail(e)

    console.print(f"[green]Issued {key.plan_tier} key #{key.id} ({key.duration_days} days after redemption)[/green]")
    console.print(f"[bold]Key: {key.secret}[/bold]")


@app.command("batch")
def issue_batch(
    count: int = typer.Argument(..., help="Number of keys to issue"),
    plan: str = typer.Option("basic", "--plan", "-p", help="Plan tier"),
    days: int = typer.Option(settings.default_key_duration_days, "--days", "-d", help="Validity after redemption"),
):
    """Issue several keys at once, one per line."""
    asyncio.run(_issue_batch(count, plan, days))


async def _issue_batch(count: int, plan: str, days: int):
    async with async_session_factory() as session:
        try:
            keys = await KeyLifecycle(session).issue_batch(plan, days, count, created_by="cli")
        except KeygateError as e:
            _fail(e)

    console.print(f"[green]Issued {len(keys)} {plan} keys[/green]")
    for key in keys:
        console.print(key.secret)


@app.command("list")
def list_keys(
    plan: str | None = typer.Option(None, "--plan", help="Filter by plan tier"),
    active_only: bool = typer.Option(False, "--active", help="Show only active keys"),
    limit: int = typer.Option(50, "--limit", "-n"),
):
    """List access keys, newest first."""
    asyncio.run(_list_keys(plan, active_only, limit))


async def _list_keys(plan: str | None, active_only: bool, limit: int):
    async with async_session_factory() as session:
        try:
            keys, total = await KeyLifecycle(session).list(
                0, limit, plan_tier=plan, active=True if active_only else None
            )
        except KeygateError as e:
            _fail(e)

    if not keys:
        console.print("[yellow]No keys found.[/yellow]")
        return

    table = Table(title=f"Access Keys ({len(keys)} of {total})")
    table.add_column("ID", style="dim")
    table.add_column("Key")
    table.add_column("Plan")
    table.add_column("Owner")
    table.add_column("Active")
    table.add_column("Expires")
    table.add_column("Last Used")

    for key in keys:
        table.add_row(
            str(key.id),
            obfuscate(key.secret),
            key.plan_tier,
            key.owner_identity or "-",
            "Yes" if key.is_active else "No",
            str(as_utc(key.expires_at)) if key.redeemed_at else f"{key.duration_days}d after redemption",
            str(as_utc(key.last_used_at)) if key.last_used_at else "-",
        )

    console.print(table)


@app.command("show")
def show_key(key_id: int = typer.Argument(..., help="Key ID")):
    """Show key details."""
    asyncio.run(_show_key(key_id))


async def _show_key(key_id: int):
    async with async_session_factory() as session:
        try:
            key = await KeyLifecycle(session).get(key_id)
        except KeygateError as e:
            _fail(e)

    console.print(f"[bold]Access Key #{key.id}[/bold]")
    console.print(f"  Key:        {obfuscate(key.secret)}")
    console.print(f"  Plan:       {key.plan_tier}")
    console.print(f"  Active:     {'yes' if key.is_active else 'no (revoked)'}")
    console.print(f"  Owner:      {key.owner_identity or '-'}")
    console.print(f"  Duration:   {key.duration_days} days")
    console.print(f"  Redeemed:   {as_utc(key.redeemed_at) or '-'}")
    console.print(f"  Expires:    {as_utc(key.expires_at) if key.redeemed_at else '-'}")
    console.print(f"  Last used:  {as_utc(key.last_used_at) or '-'}")
    console.print(f"  Created:    {as_utc(key.created_at)} by {key.created_by}")


@app.command("revoke")
def revoke_key(
    key_id: int = typer.Argument(..., help="Key ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Permanently deactivate a key."""
    if not yes:
        typer.confirm(f"Revoke key #{key_id}? This cannot be undone", abort=True)
    asyncio.run(_revoke_key(key_id))


async def _revoke_key(key_id: int):
    async with async_session_factory() as session:
        try:
            await KeyLifecycle(session).revoke(key_id)
        except KeygateError as e:
            _fail(e)
    console.print(f"[green]Key #{key_id} revoked.[/green]")
