"""
Command-line interface for the field operations client core.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from fieldops.api.field_ops_api import FieldOpsAPI
from fieldops.config import Settings
from fieldops.errors import FieldOpsError

app = typer.Typer(
    name="fieldops",
    help="Field Ops - health checks, sync, subscription access and seats",
)
seats_app = typer.Typer(help="Manage seated employees (admins only)")
app.add_typer(seats_app, name="seats")

console = Console()

_state: dict[str, Path | None] = {"env_file": None}


@app.callback()
def main(
    log_level: str = typer.Option(None, "--log-level", help="Override FIELDOPS_LOG_LEVEL"),
    env_file: Path = typer.Option(None, "--env-file", help="Load settings from this .env file"),
):
    """Configure logging and settings for every command."""
    _state["env_file"] = env_file
    level = (log_level or Settings.from_env(env_file).log_level).upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _settings() -> Settings:
    return Settings.from_env(_state["env_file"])


async def _open_api() -> FieldOpsAPI:
    api = FieldOpsAPI(_settings())
    await api.initialize()
    return api


def _fail(message: str) -> None:
    console.print(f"[red]{message}[/red]")
    raise typer.Exit(code=1)


@app.command("sign-in")
def sign_in(
    user_id: str = typer.Argument(..., help="User id to sign in as"),
    company_id: str = typer.Option(None, "--company", "-c", help="Company id, if already known"),
):
    """Store a signed-in session for USER_ID."""

    async def _sign_in():
        api = await _open_api()
        api.sign_in(user_id, company_id)
        await api.close()
        console.print(f"[green]Signed in as {user_id}[/green]")

    asyncio.run(_sign_in())


@app.command()
def health(
    recover: bool = typer.Option(False, "--recover", "-r", help="Run recovery actions until healthy"),
):
    """Run a data health check."""

    async def _health():
        api = await _open_api()
        try:
            result = await api.recover() if recover else await api.perform_health_check()
        finally:
            await api.close()

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Check")
        table.add_column("Value")
        style = "green" if result.state.is_healthy else "red"
        table.add_row("State", f"[{style}]{result.state.value}[/{style}]")
        table.add_row("Recovery action", str(result.action))
        console.print(table)

        if not result.state.is_healthy:
            raise typer.Exit(code=1)

    asyncio.run(_health())


@app.command()
def sync():
    """Run one sync pass against the directory."""

    async def _sync():
        api = await _open_api()
        try:
            await api.recover()
            status = await api.sync()
            info = api.sync_manager.get_status()["engine_status"]
        finally:
            await api.close()

        if status is None:
            _fail("Cannot sync: sign in and run 'fieldops health --recover' first")

        console.print("\n[bold]Sync[/bold]\n")
        table = Table(show_header=True)
        table.add_column("Metric")
        table.add_column("Value")
        for key, value in info.items():
            table.add_row(key.replace("_", " ").title(), "-" if value is None else str(value))
        console.print(table)

        if status.error_message:
            _fail(status.error_message)

    asyncio.run(_sync())


@app.command()
def status():
    """Show subscription status and lockout decision."""

    async def _status():
        api = await _open_api()
        try:
            await api.recover()
            state = api.check_subscription_status()
            text = api.subscriptions.subscription_status_text()
        finally:
            await api.close()

        console.print(f"\n[bold]{text}[/bold]\n")

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Field")
        table.add_column("Value")
        table.add_row("Seats", f"{len(state.seated_employee_ids)} / {state.max_seats}")
        table.add_row("Has seat", "yes" if state.user_has_seat else "no")
        table.add_row("Admin", "yes" if state.is_user_admin else "no")
        if state.trial_days_remaining is not None:
            table.add_row("Trial days left", str(state.trial_days_remaining))
        if state.grace_days_remaining is not None:
            table.add_row("Grace days left", str(state.grace_days_remaining))
        table.add_row("Priority support", "yes" if state.has_priority_support else "no")
        lockout = f"[red]{state.lockout_message}[/red]" if state.should_show_lockout else "[green]no[/green]"
        table.add_row("Locked out", lockout)
        console.print(table)

    asyncio.run(_status())


def _change_seat(user_id: str, remove: bool) -> None:
    async def _change():
        api = await _open_api()
        try:
            await api.recover()
            if remove:
                seated = await api.remove_seat(user_id)
            else:
                seated = await api.add_seat(user_id)
        except FieldOpsError as e:
            _fail(e.message)
        finally:
            await api.close()

        verb = "Removed seat for" if remove else "Seated"
        console.print(f"[green]{verb} {user_id}[/green] ({len(seated)} seated)")

    asyncio.run(_change())


@seats_app.command("add")
def seats_add(user_id: str = typer.Argument(..., help="User to give a seat")):
    """Give USER_ID a seat."""
    _change_seat(user_id, remove=False)


@seats_app.command("remove")
def seats_remove(user_id: str = typer.Argument(..., help="User whose seat to remove")):
    """Take USER_ID's seat away."""
    _change_seat(user_id, remove=True)


if __name__ == "__main__":
    app()
