# Ticker Desk CLI
import asyncio
import sys
from decimal import Decimal
from typing import Awaitable, Callable, Optional, TypeVar

import click
from pydantic import ValidationError as SchemaValidationError

from app.main import ApplicationOrchestrator
from core.utils.exceptions import NetworkError
from services.auth import SignupRequest
from services.market_feed import Direction, Quote, StockPrice
from services.notifications import Notification

T = TypeVar("T")

ARROWS = {Direction.UP: "▲", Direction.DOWN: "▼", Direction.NONE: " "}


def _run_with_app(action: Callable[[ApplicationOrchestrator], Awaitable[T]], restore: bool = True) -> T:
    """Run one command against a short-lived application without the price stream."""

    async def _runner() -> T:
        app = ApplicationOrchestrator(stream_enabled=False)
        try:
            await app.startup(restore=restore)
            return await action(app)
        finally:
            await app.shutdown()

    return asyncio.run(_runner())


def _format_quote(symbol: str, quote: Optional[Quote]) -> str:
    if quote is None:
        return f"{symbol:<6} {'--':>12}"
    return f"{symbol:<6} {quote.price:>12.2f} {ARROWS[quote.direction]}"


def _echo_notification(notification: Optional[Notification]) -> None:
    if notification is None:
        return
    click.secho(notification.message, fg="red" if notification.is_error else "green", err=notification.is_error)


def _require_session(app: ApplicationOrchestrator) -> bool:
    if app.session_manager.is_authenticated():
        return True
    click.secho("Not logged in. Run `ticker-desk login` first.", fg="yellow", err=True)
    return False


@click.group()
def cli():
    """Ticker Desk CLI"""
    pass


@cli.command()
def run():
    """Stream live prices for the stored session until interrupted"""
    click.echo("📈 Starting Ticker Desk...")

    async def _dashboard():
        app = ApplicationOrchestrator(stream_enabled=True)
        app.notification_bus.subscribe(_echo_notification)
        app.price_store.subscribe(
            lambda snapshot: click.echo("  ".join(_format_quote(s, q) for s, q in snapshot.items()))
        )
        app.stream_client.add_state_listener(lambda state: click.echo(f"[stream {state.value}]"))
        await app.run()

    asyncio.run(_dashboard())


@cli.command()
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True)
def login(email, password):
    """Log in and store the session credential"""

    async def _login(app: ApplicationOrchestrator):
        return await app.session_manager.login(email, password)

    result = _run_with_app(_login, restore=False)
    click.secho(result.message, fg="green" if result.success else "red", err=not result.success)
    if not result.success:
        sys.exit(1)


@cli.command()
@click.option("--name", prompt=True)
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
def signup(name, email, password):
    """Create an account and log in"""

    async def _signup(app: ApplicationOrchestrator):
        return await app.session_manager.signup(SignupRequest(name=name, email=email, password=password))

    result = _run_with_app(_signup, restore=False)
    click.secho(result.message, fg="green" if result.success else "red", err=not result.success)
    if not result.success:
        sys.exit(1)


@cli.command()
def logout():
    """Discard the stored session"""

    async def _logout(app: ApplicationOrchestrator):
        if not app.session_manager.is_authenticated():
            return False
        app.session_manager.logout()
        return True

    if _run_with_app(_logout):
        click.echo("Logged out successfully")
    else:
        click.echo("No active session")


@cli.command()
def whoami():
    """Show the logged-in user, verifying the credential with the server"""

    async def _whoami(app: ApplicationOrchestrator):
        if not _require_session(app):
            return None
        if not await app.session_manager.verify():
            _echo_notification(app.notification_bus.current)
            return None
        return app.session_manager.session

    session = _run_with_app(_whoami)
    if session is None:
        sys.exit(1)
    click.echo(f"{session.display_name} <{session.profile.email or '-'}> (id {session.user_id})")


@cli.command()
def orders():
    """List orders placed by the logged-in user"""

    async def _orders(app: ApplicationOrchestrator):
        if not _require_session(app):
            return None
        # The session listener already fetched the log once on restore
        if app.order_coordinator.last_refreshed_at is None and not await app.order_coordinator.refresh():
            return None
        return app.order_coordinator.orders

    result = _run_with_app(_orders)
    if result is None:
        sys.exit(1)
    if not result:
        click.echo("No orders yet")
        return
    for order in result:
        click.echo(
            f"{order.submitted_at:%Y-%m-%d %H:%M:%S}  {order.id:<24} {order.side.value:<4} "
            f"{order.symbol:<6} {order.quantity:>6} @ {order.price:.2f}  {order.status}"
        )


@cli.command()
@click.argument("symbol")
@click.argument("side", type=click.Choice(["BUY", "SELL"], case_sensitive=False))
@click.argument("quantity", type=int)
@click.option("--price", type=Decimal, default=None, help="Limit price; defaults to the last known price")
def order(symbol, side, quantity, price):
    """Place a BUY or SELL order"""

    async def _order(app: ApplicationOrchestrator):
        if price is None and app.session_manager.is_authenticated():
            # Snapshot price for orders without --price
            await _load_prices(app)
        placed = await app.order_coordinator.submit(
            {"symbol": symbol, "side": side, "quantity": quantity, "price": price}
        )
        _echo_notification(app.notification_bus.current)
        return placed

    if _run_with_app(_order) is None:
        sys.exit(1)


@cli.command()
def prices():
    """Show the latest price snapshot"""

    async def _prices(app: ApplicationOrchestrator):
        if not _require_session(app):
            return None
        if not await _load_prices(app):
            return None
        return app.price_store.snapshot()

    snapshot = _run_with_app(_prices)
    if snapshot is None:
        sys.exit(1)
    for symbol, quote in snapshot.items():
        click.echo(_format_quote(symbol, quote))


@cli.command()
def status():
    """Check backend health and the stored session"""

    async def _status(app: ApplicationOrchestrator):
        try:
            health = await app.api_client.health()
        except NetworkError as e:
            health = {"status": "unreachable", "error": e.message}
        return health, app.session_manager.session, app.settings.api.base_url

    health, session, base_url = _run_with_app(_status)
    click.echo(f"Backend: {health.get('status', 'unknown')} ({base_url})")
    click.echo(f"Session: {session.display_name if session else 'not logged in'}")
    if health.get("status") != "ok":
        sys.exit(1)


async def _load_prices(app: ApplicationOrchestrator) -> bool:
    """Seed the price store from the REST snapshot; there is no stream in one-shot mode."""
    try:
        response = await app.api_client.get_prices(app.session_manager.credential)
    except NetworkError as e:
        click.secho(e.message, fg="red", err=True)
        return False

    if response.unauthorized:
        app.session_manager.invalidate()
        _echo_notification(app.notification_bus.current)
        return False
    if not response.success:
        click.secho(response.error_message("Failed to fetch prices"), fg="red", err=True)
        return False

    try:
        rows = [StockPrice.model_validate(row) for row in response.data or []]
    except SchemaValidationError:
        click.secho("Unexpected price snapshot from server", fg="red", err=True)
        return False
    app.price_store.seed(rows)
    return True


if __name__ == "__main__":
    cli()
