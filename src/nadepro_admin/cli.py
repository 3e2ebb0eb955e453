"""NadePro admin CLI - Main entry point."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .errors import NadeProError
from .models import MAPS, HistoryFilter, Session, SessionStatus

app = typer.Typer(
    name="nadepro",
    help="NadePro admin client - editor sessions and fleet monitoring",
    no_args_is_help=True,
)
console = Console()

# Sub-command groups
auth_app = typer.Typer(help="Authentication commands")
sessions_app = typer.Typer(help="Editor session control and monitoring")
collections_app = typer.Typer(help="Lineup collections")

app.add_typer(auth_app, name="auth")
app.add_typer(sessions_app, name="sessions")
app.add_typer(collections_app, name="collections")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Configure logging for every command."""
    from .config import settings

    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


class _AccessDenied(Exception):
    def __init__(self, message: str):
        super().__init__(message)


def _run(coro: Awaitable[Any]) -> Any:
    """Run a coroutine, turning client errors into a non-zero exit."""
    try:
        return asyncio.run(coro)
    except _AccessDenied as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except NadeProError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)


async def _with_controller(fn: Callable[[Any], Awaitable[Any]]) -> Any:
    """Pass the auth gate, then call ``fn`` with a SessionController."""
    from .api import AdminClient
    from .auth import AuthGate, GateState
    from .sessions import SessionController

    gate = AuthGate()
    result = await gate.activate()
    if not result.allowed:
        hint = "" if result.state is GateState.UNAUTHORIZED else " Run 'nadepro auth login'."
        raise _AccessDenied(f"{result.message or 'Not logged in.'}{hint}")

    async with AdminClient(store=gate.store) as api:
        controller = SessionController(api)
        try:
            return await fn(controller)
        finally:
            await controller.aclose()


def _status_text(status: SessionStatus) -> str:
    from .sessions.views import STATUS_STYLES

    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status.value.upper()}[/{style}]"


def _print_card(session: Session) -> None:
    from .sessions.views import SessionCard

    card = SessionCard.from_session(session)
    lines = [
        f"Status: {_status_text(card.status)} ({card.label})",
        f"Map: {card.map_label}",
        f"Collection: {card.collection_name or 'Unknown'}",
    ]
    if card.show_queue:
        lines.append(f"Queue position: [bold]#{card.queue_position}[/bold]")
    if card.error:
        lines.append(f"[red]{card.error}[/red]")
    if card.connection:
        lines.append(f"Server: [bold]{card.connection.address}[/bold]")
        if card.connection.secret:
            lines.append(f"Password: {card.connection.secret}")
        lines.append(f"Console: [green]{card.connection.connect_command}[/green]")
        lines.append(f"Launch: {card.connection.steam_url}")
    if session.is_terminal:
        lines.append(f"End reason: {card.termination}")

    console.print(Panel("\n".join(lines), title=f"Session {card.session_id}", expand=False))


def _sessions_table(title: str, sessions: list[Session]) -> Table:
    from .sessions.views import format_duration, map_display_name, termination_label

    table = Table(title=title)
    table.add_column("ID", style="cyan")
    table.add_column("User")
    table.add_column("Status")
    table.add_column("Map")
    table.add_column("Collection")
    table.add_column("Duration")
    table.add_column("End Reason")

    for s in sessions:
        user = s.owner.username if s.owner else "Unknown"
        if s.is_editor_session:
            user += " [yellow]EDITOR[/yellow]"
        table.add_row(
            s.id,
            user,
            _status_text(s.status),
            map_display_name(s.map_name),
            s.collection_name or "-",
            format_duration(s.started_at, s.ended_at),
            termination_label(s.termination_reason),
        )
    return table


async def _watch_until_terminal(controller, session: Session) -> Session:
    _print_card(session)
    watch = controller.watch(session, on_update=_print_card)
    try:
        final = await watch.wait()
    finally:
        controller.stop_watching(watch)
        await watch.aclose()
    if watch.vanished:
        console.print("[yellow]Session is no longer active.[/yellow]")
    return final


# ============================================================================
# Auth Commands
# ============================================================================


@auth_app.command("login")
def auth_login(
    port: int = typer.Option(None, "--port", "-p", help="Local port for the login callback"),
    timeout: int = typer.Option(300, "--timeout", "-t", help="Max seconds to wait"),
    no_browser: bool = typer.Option(False, "--no-browser", help="Print the login URL only"),
):
    """Sign in with Steam through the browser."""
    from .auth import AuthGate, run_login_flow
    from .config import settings

    gate = AuthGate()

    def _show_url(url: str) -> None:
        console.print(
            Panel(
                "[bold]Sign in with Steam[/bold]\n\n"
                f"If the browser doesn't open, visit:\n{url}",
                title="Login",
            )
        )

    try:
        result = _run(
            run_login_flow(
                gate,
                port=port or settings.login_callback_port,
                timeout=timeout,
                open_browser=not no_browser,
                on_url=_show_url,
            )
        )
    except TimeoutError:
        console.print("[red]Login timed out. Please try again.[/red]")
        raise typer.Exit(1)

    _report_login(result)


@auth_app.command("callback")
def auth_callback(
    token: str = typer.Argument(..., help="Access token from the login redirect"),
    refresh_token: str = typer.Argument(..., help="Refresh token from the login redirect"),
):
    """Complete a login from a token pair copied out of the redirect URL."""
    from .auth import AuthGate

    gate = AuthGate()
    result = _run(gate.complete_login(token, refresh_token))
    _report_login(result)


def _report_login(result) -> None:
    if not result.allowed:
        console.print(f"[red]{result.message or 'Login failed.'}[/red]")
        raise typer.Exit(1)
    principal = result.principal
    console.print(
        Panel(
            f"[bold green]Logged in as {principal.username}[/bold green]\n\n"
            f"Role: {principal.role.value}",
            title="Connected",
        )
    )


@auth_app.command("status")
def auth_status():
    """Verify the stored session and show the current principal."""
    from .auth import AuthGate

    gate = AuthGate()
    result = _run(gate.activate())

    if not result.allowed:
        console.print(f"[yellow]Not authenticated[/yellow] ({result.state.value})")
        if result.message:
            console.print(f"  [dim]{result.message}[/dim]")
        console.print("[dim]Run 'nadepro auth login' to sign in[/dim]")
        raise typer.Exit(1)

    principal = result.principal
    table = Table(title="NadePro Admin Session")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("User", principal.username)
    table.add_row("User ID", principal.id)
    table.add_row("Role", principal.role.value)
    table.add_row("Premium", "yes" if principal.is_premium else "no")
    console.print(table)


@auth_app.command("logout")
def auth_logout():
    """Clear stored credentials."""
    from .auth import get_token_store

    store = get_token_store()
    store.hydrate()
    store.logout()
    console.print("[green]Logged out[/green]")


# ============================================================================
# Session Commands
# ============================================================================


@sessions_app.command("start")
def sessions_start(
    map_name: str = typer.Argument(..., help=f"Map ({', '.join(MAPS)})"),
    collection_id: str = typer.Argument(..., help="Collection to edit"),
    watch: bool = typer.Option(True, "--watch/--no-watch", help="Follow status until the session ends"),
):
    """Start a private editor server for one collection."""

    async def _start(controller):
        session = await controller.start_editor_session(map_name, collection_id)
        console.print("[green]Editor session started[/green]")
        if watch:
            return await _watch_until_terminal(controller, session)
        _print_card(session)
        return session

    _run(_with_controller(_start))


@sessions_app.command("active")
def sessions_active():
    """Show your own running session."""

    async def _active(controller):
        return await controller.get_active_session()

    session = _run(_with_controller(_active))
    if session is None:
        console.print("[dim]No active session[/dim]")
        return
    _print_card(session)


@sessions_app.command("running")
def sessions_running():
    """List every running session."""

    async def _running(controller):
        return await controller.get_running_sessions()

    sessions = _run(_with_controller(_running))
    if not sessions:
        console.print("[dim]No running sessions[/dim]")
        return
    console.print(_sessions_table(f"Running Sessions ({len(sessions)})", sessions))


@sessions_app.command("history")
def sessions_history(
    page: int = typer.Option(1, "--page", help="Page number"),
    limit: int = typer.Option(None, "--limit", "-l", help="Rows per page"),
    status: Optional[SessionStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
    search: Optional[str] = typer.Option(None, "--search", "-q", help="Search users"),
):
    """Browse session history."""
    from .config import settings

    history_filter = HistoryFilter(
        page=page,
        limit=limit or settings.history_page_size,
        status=status,
        search=search,
    )

    async def _history(controller):
        return await controller.get_session_history(history_filter)

    result = _run(_with_controller(_history))
    console.print(_sessions_table("Sessions", result.items))
    console.print(f"[dim]Page {result.page} of {max(result.total_pages, 1)} - {result.total} sessions[/dim]")


@sessions_app.command("end")
def sessions_end(session_id: str = typer.Argument(..., help="Session ID")):
    """Request termination of a session."""

    async def _end(controller):
        await controller.end_session(session_id)

    _run(_with_controller(_end))
    console.print(f"[green]End requested for {session_id}[/green]")
    console.print("[dim]The final status is confirmed by the next poll.[/dim]")


@sessions_app.command("watch")
def sessions_watch(session_id: str = typer.Argument(..., help="Session ID")):
    """Follow a session's status until it ends."""

    async def _watch(controller):
        session = await controller.observe_session(session_id)
        if session is None:
            return None
        return await _watch_until_terminal(controller, session)

    if _run(_with_controller(_watch)) is None:
        console.print(f"[red]Session {session_id} not found[/red]")
        raise typer.Exit(1)


@sessions_app.command("exhausted")
def sessions_exhausted():
    """List users at their weekly usage limit."""
    from .sessions.views import format_seconds

    async def _exhausted(controller):
        return await controller.get_exhausted_users()

    users = _run(_with_controller(_exhausted))
    if not users:
        console.print("[dim]No users at their weekly limit[/dim]")
        return

    table = Table(title=f"Users at Weekly Limit ({len(users)})")
    table.add_column("User", style="cyan")
    table.add_column("Used", style="yellow")
    table.add_column("Limit")
    for u in users:
        table.add_row(u.username, format_seconds(u.used_seconds), format_seconds(u.limit_seconds))
    console.print(table)


# ============================================================================
# Collection Commands
# ============================================================================


@collections_app.command("list")
def collections_list(
    map_name: Optional[str] = typer.Option(None, "--map", "-m", help="Only this map"),
):
    """List lineup collections available for editing."""

    async def _list(controller):
        return await controller.api.collections.list(map_name)

    collections = _run(_with_controller(_list))

    table = Table(title="Collections")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Map")
    table.add_column("Lineups", justify="right")
    for c in collections:
        name = f"{c.name} (Default)" if c.is_default else c.name
        table.add_row(c.id, name, MAPS.get(c.map_name, c.map_name), str(c.lineup_count))
    console.print(table)


# ============================================================================
# Main
# ============================================================================


@app.command()
def version():
    """Show version information."""
    from . import __version__

    console.print(f"NadePro Admin v{__version__}")


if __name__ == "__main__":
    app()
