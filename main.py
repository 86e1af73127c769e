#!/usr/bin/env python3
"""
Probo / Polymarket Arbitrage Bot

Polls Polymarket and Probo for the same binary outcome and buys both sides
when their combined price is below the payout.

Usage:
    python main.py start        # Start continuous polling
    python main.py check        # Evaluate a single cycle in dry-run mode
    python main.py status       # Show aggregate statistics
    python main.py history      # Show recent opportunities
"""

import asyncio
import signal
import sys
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from src.config import BotConfig, get_config, reload_config
from src.database import get_database
from src.errors import ArbBotError, FatalStartupError
from src.logger import setup_logging, get_logger
from src.engine.execution_engine import ArbitrageEngine
from src.trading.polymarket_client import PolymarketClient
from src.trading.probo_client import ProboClient

# Initialize
app = typer.Typer(
    name="probo-polymarket-arb",
    help="Arbitrage bot between Probo and Polymarket",
    add_completion=False,
)
console = Console()
logger = None


def setup(**overrides: Dict[str, Any]) -> BotConfig:
    """Load configuration and initialize logging."""
    global logger
    config = reload_config(**overrides) if overrides else get_config()
    setup_logging(config)
    logger = get_logger("main")
    return config


def build_engine(config: BotConfig) -> ArbitrageEngine:
    """Wire the venue clients, history database and engine together."""
    return ArbitrageEngine(
        config=config,
        polymarket=PolymarketClient(config),
        probo=ProboClient(config),
        recorder=get_database(config),
    )


def _mask(secret: str) -> str:
    if not secret:
        return "[red]not set[/red]"
    return secret[:4] + "…" if len(secret) > 8 else "****"


@app.command()
def start(
    interval: Optional[int] = typer.Option(None, "--interval", "-i", help="Polling interval in milliseconds (default: POLL_INTERVAL_MS)"),
    dry_run: bool = typer.Option(False, "--dry-run", "-d", help="Run in dry-run mode (no real orders)"),
    log_level: Optional[str] = typer.Option(None, "--log-level", "-l", help="Log level (debug, info, warn, error)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt (for automated deployments)"),
):
    """
    Start the arbitrage bot.

    Polls both venues continuously and executes viable opportunities.
    Use --dry-run to simulate orders without contacting the venues.
    """
    overrides: Dict[str, Dict[str, Any]] = {}
    if interval is not None:
        overrides["execution"] = {"poll_interval_ms": interval}
    if dry_run:
        overrides["development"] = {"dry_run": True}
    if log_level:
        overrides["monitoring"] = {"log_level": log_level}
    config = setup(**overrides)

    console.print(Panel.fit(
        "[bold green]⚖️  Probo / Polymarket Arbitrage Bot[/bold green]\n\n"
        f"Mode: [yellow]{'Dry Run' if config.is_dry_run else '🔴 LIVE TRADING'}[/yellow]\n"
        f"Polymarket Token: [cyan]{config.polymarket.token_id[:16]}…[/cyan]\n"
        f"Probo Event: [cyan]{config.probo.event_id}[/cyan]\n"
        f"USD/INR: [cyan]{config.arbitrage.dollar_price_inr:.2f}[/cyan]\n"
        f"Min Profit: [cyan]{config.arbitrage.min_profit_percent:.2f}%[/cyan]\n"
        f"Interval: [cyan]{config.execution.poll_interval_ms}ms[/cyan]",
        title="Configuration",
        border_style="green",
    ))

    if not config.is_dry_run and not yes:
        confirm = typer.confirm(
            "⚠️  You are about to start LIVE trading with real money. Continue?",
            default=False,
        )
        if not confirm:
            console.print("[yellow]Aborted.[/yellow]")
            raise typer.Exit()

    try:
        engine = build_engine(config)
    except ArbBotError as e:
        logger.error("Error starting arbitrage bot", error=str(e))
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    async def run_bot() -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, engine.stop)
            except NotImplementedError:
                # Signal handlers are unavailable on Windows event loops
                pass
        try:
            await engine.start()
        finally:
            await engine.shutdown()

    try:
        asyncio.run(run_bot())
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
    except FatalStartupError as e:
        logger.error("Fatal error in arbitrage bot", error=str(e))
        console.print(f"[red]Fatal: {e}[/red]")
        raise typer.Exit(1)
    except Exception as e:
        logger.error("Arbitrage bot crashed", error=str(e), exc_info=True)
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def check():
    """Check for arbitrage opportunities once, without executing trades."""
    config = setup(development={"dry_run": True})
    logger.info("Checking for arbitrage opportunities (dry-run)")

    async def run_check():
        engine = build_engine(config)
        await engine.initialize()
        try:
            return await engine.run_once()
        finally:
            await engine.shutdown()

    try:
        outcome = asyncio.run(run_check())
    except Exception as e:
        logger.error("Error checking arbitrage opportunities", error=str(e))
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if not outcome.has_depths:
        console.print("[red]Could not fetch depth from both venues[/red]")
        raise typer.Exit(1)

    opp = outcome.opportunity
    table = Table(title="🔍 Arbitrage Check", box=box.ROUNDED)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Found", "Yes" if opp.found else "No")
    table.add_row("Viable", "Yes" if opp.is_viable else "No")
    table.add_row("Profit", f"{float(opp.profit_percent):.2f}%")
    table.add_row("Polymarket Ask", str(opp.polymarket_price))
    table.add_row("Probo Ask", str(opp.probo_price))
    table.add_row("Polymarket Qty", f"{float(opp.polymarket_qty):.4f}")
    table.add_row("Probo Qty", f"{float(opp.probo_qty):.4f}")
    if opp.reason:
        table.add_row("Reason", opp.reason)

    console.print(table)


@app.command()
def status():
    """Show aggregate arbitrage statistics."""
    config = setup()

    stats = get_database(config).get_stats()

    table = Table(title="📊 Arbitrage Statistics", box=box.ROUNDED)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Opportunities Evaluated", str(stats.get("total_opportunities_found", 0)))
    table.add_row("Executions", str(stats.get("total_executed", 0)))
    table.add_row("Successful", str(stats.get("total_successful", 0)))
    table.add_row("Failed", str(stats.get("total_failed", 0)))
    table.add_row("Avg Profit", f"{stats.get('avg_profit_percent', 0):.2f}%")
    table.add_row("Best Profit", f"{stats.get('highest_profit_percent', 0):.2f}%")
    table.add_row("Cumulative Profit", f"{stats.get('total_profit', 0):.2f}%")
    last_updated = stats.get("last_updated")
    table.add_row("Last Updated", last_updated.strftime("%Y-%m-%d %H:%M:%S") if last_updated else "never")

    console.print(table)


@app.command()
def history(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of opportunities to show"),
):
    """Show recent opportunities and their executions."""
    config = setup()

    rows = get_database(config).get_recent_opportunities(limit=limit)

    if not rows:
        console.print("[dim]No opportunities recorded[/dim]")
        return

    table = Table(title="📜 Opportunity History", box=box.ROUNDED)
    table.add_column("Time", style="dim")
    table.add_column("Poly Ask", justify="right")
    table.add_column("Probo Ask", justify="right")
    table.add_column("Profit", justify="right")
    table.add_column("Viable")
    table.add_column("Executed")
    table.add_column("Result")
    table.add_column("Reason", style="dim")

    for row in rows:
        profit = row["profit_percent"]
        profit_style = "green" if profit > 0 else "dim"

        if not row["executed"]:
            result = ""
        elif row["success"]:
            result = "[green]filled[/green]"
        else:
            result = "[red]failed[/red]"

        table.add_row(
            row["timestamp"].strftime("%m/%d %H:%M:%S") if row["timestamp"] else "",
            f"{row['polymarket_price']:.3f}",
            f"{row['probo_price']:.2f}",
            f"[{profit_style}]{profit:.2f}%[/{profit_style}]",
            "✓" if row["is_viable"] else "",
            "✓" if row["executed"] else "",
            result,
            row["reason"] or "",
        )

    console.print(table)


@app.command()
def config():
    """Show current configuration."""
    cfg = setup()

    console.print(Panel.fit(
        f"[bold]Markets[/bold]\n"
        f"  Polymarket Token: {cfg.polymarket.token_id}\n"
        f"  Probo Event: {cfg.probo.event_id}\n\n"
        f"[bold]Credentials[/bold]\n"
        f"  Private Key: {_mask(cfg.polymarket.private_key)}\n"
        f"  Polymarket API Key: {_mask(cfg.polymarket.api_key)}\n"
        f"  Probo Auth Token: {_mask(cfg.probo.auth_token)}\n\n"
        f"[bold]Arbitrage[/bold]\n"
        f"  USD/INR: {cfg.arbitrage.dollar_price_inr:.2f}\n"
        f"  Min Profit: {cfg.arbitrage.min_profit_percent:.2f}%\n\n"
        f"[bold]Execution[/bold]\n"
        f"  Max Retries: {cfg.execution.max_retries}\n"
        f"  Retry Delay: {cfg.execution.retry_delay_ms}ms\n"
        f"  Request Throttle: {cfg.execution.request_throttle_ms}ms\n"
        f"  Poll Interval: {cfg.execution.poll_interval_ms}ms (+ up to {cfg.execution.max_jitter_ms}ms jitter)\n"
        f"  Fetch Timeout: {cfg.execution.fetch_timeout_seconds:.0f}s\n\n"
        f"[bold]Mode[/bold]\n"
        f"  Dry Run: {'Yes' if cfg.development.dry_run else 'No'}\n"
        f"  Log Level: {cfg.monitoring.log_level}\n"
        f"  Database: {cfg.database.database_path}",
        title="⚙️ Configuration",
        border_style="blue",
    ))


@app.command("order-status")
def order_status(
    order_id: str = typer.Argument(..., help="Order ID to look up"),
    venue: str = typer.Option("polymarket", "--venue", "-v", help="Venue (polymarket/probo)"),
):
    """Look up an order on one of the venues."""
    config = setup()

    clients = {"polymarket": PolymarketClient, "probo": ProboClient}
    client_cls = clients.get(venue.lower())
    if client_cls is None:
        console.print(f"[red]Unknown venue: {venue}[/red]")
        raise typer.Exit(1)

    try:
        client = client_cls(config)
    except ArbBotError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    async def fetch_status():
        async with client:
            return await client.get_order_status(order_id)

    try:
        result = asyncio.run(fetch_status())
    except Exception as e:
        console.print(f"[red]Error fetching order status: {e}[/red]")
        raise typer.Exit(1)

    console.print_json(data=result)


@app.command()
def version():
    """Show version information."""
    from src import __version__

    console.print(Panel.fit(
        f"[bold]Probo / Polymarket Arbitrage Bot[/bold]\n"
        f"Version: {__version__}\n"
        f"Python: {sys.version.split()[0]}",
        border_style="blue",
    ))


if __name__ == "__main__":
    app()
