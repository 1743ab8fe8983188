"""Admin account CLI commands."""

from __future__ import annotations

import typer
from passlib.hash import bcrypt
from rich.console import Console

console = Console()
app = typer.Typer(no_args_is_help=True)


@app.command("hash-password")
def hash_password():
    """Print a bcrypt hash to use as ADMIN_PASSWORD_HASH."""
    password = typer.prompt("Password", hide_input=True, confirmation_prompt=True)
    console.print(bcrypt.hash(password), highlight=False)
