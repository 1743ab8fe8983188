"""CLI entry point."""

import typer

from keygate.cli.admin_commands import app as admin_app
from keygate.cli.db_commands import app as db_app
from keygate.cli.key_commands import app as key_app
from keygate.cli.session_commands import app as session_app

app = typer.Typer(
    name="keygate",
    help="Access keys, sessions and quotas for the CSINT lookup service.",
    no_args_is_help=True,
)

app.add_typer(key_app, name="keys", help="Access key management")
app.add_typer(session_app, name="sessions", help="Session maintenance")
app.add_typer(admin_app, name="admin", help="Admin account")
app.add_typer(db_app, name="db", help="Database operations")


if __name__ == "__main__":
    app()
