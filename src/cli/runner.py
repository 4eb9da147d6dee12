# src/cli/runner.py

"""Headless sweep runner: wires providers, catalog and store together."""

import logging
import sqlite3
from dataclasses import dataclass

from rich.console import Console
from rich.table import Table

from src.config.settings import Settings
from src.models.game import Game
from src.providers.browse_provider import BrowseProvider
from src.providers.errors import ConfigurationError, ProviderError
from src.providers.finding_provider import FindingProvider
from src.providers.rate_limiter import RateLimiter
from src.services.batch_runner import BatchRunner, SweepStats
from src.services.search_orchestrator import (
    EngineMode,
    FallbackPolicy,
    SearchOrchestrator,
)
from src.storage.catalog_reader import CatalogReader
from src.storage.database import connect, resolve_database_path
from src.storage.price_store import PriceStore

logger = logging.getLogger("price_sweep.cli")

# Stderr console for status messages
_err = Console(stderr=True)


@dataclass
class SweepOptions:
    """Command-line knobs for one sweep run."""

    game: str = "all"
    limit: int | None = None
    concurrency: int | None = None
    rps: float | None = None
    pages: int | None = None
    page_limit: int | None = None
    engine: str = EngineMode.AUTO.value
    stale_days: int = 0


def resolve_games(game: str) -> list[Game]:
    """Map ``pokemon|ygo|mtg|all`` to the games to sweep, in order."""
    if game == "all":
        return [Game(g) for g in Settings.GAME_ORDER]
    try:
        return [Game(game)]
    except ValueError as exc:
        valid = ", ".join([*Settings.GAME_ORDER, "all"])
        raise ConfigurationError(
            f"Unknown game '{game}' (expected one of: {valid})"
        ) from exc


def validate_configuration(
    mode: EngineMode,
    primary: BrowseProvider,
    secondary: FindingProvider,
    database_url: str | None,
) -> None:
    """Reject runs that cannot succeed before any work begins."""
    resolve_database_path(database_url)
    if mode is EngineMode.PRIMARY_ONLY and not primary.is_configured:
        raise ConfigurationError(
            "Browse engine requires EBAY_CLIENT_ID and EBAY_CLIENT_SECRET"
        )
    if mode is EngineMode.SECONDARY_ONLY and not secondary.is_configured:
        raise ConfigurationError("Finding engine requires EBAY_APP_ID")
    if (
        mode is EngineMode.AUTO
        and not primary.is_configured
        and not secondary.is_configured
    ):
        raise ConfigurationError(
            "No provider credentials configured (set EBAY_CLIENT_ID/"
            "EBAY_CLIENT_SECRET and/or EBAY_APP_ID)"
        )


def _print_summary(results: list[SweepStats]) -> None:
    """Render per-game totals as a Rich table on stderr."""
    table = Table(
        title="Price Sweep",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Game", style="bold")
    table.add_column("Processed", justify="right")
    table.add_column("Priced", justify="right", style="green")
    table.add_column("Empty", justify="right", style="yellow")
    table.add_column("Failed", justify="right", style="red")

    for r in results:
        table.add_row(
            r.game.label,
            f"{r.processed:,}",
            f"{r.priced:,}",
            f"{r.empty:,}",
            f"{r.failed:,}",
        )
    _err.print(table)


async def run_sweep(
    options: SweepOptions,
    database_url: str | None = None,
    primary: BrowseProvider | None = None,
    secondary: FindingProvider | None = None,
) -> int:
    """Run a sweep and return an exit code (0=ok, 1=fatal)."""
    url = database_url or Settings.DATABASE_URL
    try:
        mode = EngineMode(options.engine)
    except ValueError:
        _err.print(f"[red]Unknown engine: {options.engine}[/red]")
        return 1

    if primary is None:
        primary = BrowseProvider(
            limiter=RateLimiter(options.rps, name="browse"),
        )
    if secondary is None:
        secondary = FindingProvider(
            limiter=RateLimiter(options.rps, name="finding"),
        )
    orchestrator = SearchOrchestrator(
        primary,
        secondary,
        FallbackPolicy(mode),
        page_size=options.page_limit,
        max_pages=options.pages,
    )

    try:
        games = resolve_games(options.game)
        validate_configuration(mode, primary, secondary, url)
        if mode is EngineMode.PRIMARY_ONLY:
            await primary.warm_up()
    except (ConfigurationError, ProviderError) as exc:
        logger.critical("Fatal: %s", exc)
        _err.print(f"[red]Fatal: {exc}[/red]")
        await orchestrator.close()
        return 1

    _err.print(
        f"[bold]Sweeping:[/bold] {', '.join(g.label for g in games)}  "
        f"[dim]engine={mode.value} limit={options.limit or '∞'} "
        f"concurrency={options.concurrency or Settings.DEFAULT_CONCURRENCY}"
        "[/dim]"
    )

    connections: list[sqlite3.Connection] = []
    try:
        write_conn = connect(url)
        connections.append(write_conn)
        read_conn = connect(url)
        connections.append(read_conn)
        store = PriceStore(write_conn)
        store.ensure_tables()
        runner = BatchRunner(
            CatalogReader(read_conn),
            orchestrator,
            store,
            concurrency=options.concurrency,
        )
        results = await runner.run(
            games, limit=options.limit, stale_days=options.stale_days,
        )
    except Exception:
        logger.critical("Fatal error during sweep", exc_info=True)
        _err.print("[red]Sweep aborted, see log file.[/red]")
        return 1
    finally:
        await orchestrator.close()
        for conn in connections:
            conn.close()

    _print_summary(results)
    total = sum(r.processed for r in results)
    failed = sum(r.failed for r in results)
    logger.info(
        "Sweep finished: %d items processed, %d failed", total, failed,
    )
    _err.print(
        f"[green]✓ {total:,} items processed[/green]"
        + (f" [red]({failed:,} failed)[/red]" if failed else "")
    )
    return 0
