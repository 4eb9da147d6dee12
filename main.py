# main.py

"""Entry point for the trading-card price sweep."""

import argparse
import asyncio
import logging
import sys

from src.config.logging_config import setup_logging
from src.config.settings import Settings

logger = logging.getLogger("price_sweep.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="tcg-price-sweep",
        description=(
            "Price trading-card catalogs from active marketplace "
            "listings."
        ),
        epilog="Configuration is read from the environment / .env.",
    )
    parser.add_argument(
        "--game",
        choices=[*Settings.GAME_ORDER, "all"],
        default="all",
        help="Catalog to sweep (default: all, in order).",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Only price the first N items of each catalog.",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=Settings.DEFAULT_CONCURRENCY,
        help="Concurrent workers per game (default: 1).",
    )
    parser.add_argument(
        "--rps",
        type=float,
        default=Settings.EBAY_RPS,
        help=f"Requests per second per provider (default: {Settings.EBAY_RPS}).",
    )
    parser.add_argument(
        "--pages",
        type=int,
        default=Settings.EBAY_PAGES,
        help="Result pages fetched per query.",
    )
    parser.add_argument(
        "--page-limit",
        type=int,
        default=Settings.EBAY_PAGE_LIMIT,
        dest="page_limit",
        help="Results requested per page.",
    )
    parser.add_argument(
        "--engine",
        choices=["auto", "browse", "finding"],
        default="auto",
        help="Provider selection (default: auto = browse, then finding).",
    )
    parser.add_argument(
        "--stale-days",
        type=int,
        default=0,
        dest="stale_days",
        help="Skip items priced within the last N days (0 = price all).",
    )
    return parser


def main() -> None:
    """Parse flags, run the sweep and exit with its status code."""
    log_file = setup_logging()
    logger.info("price sweep starting, log file: %s", log_file)

    args = _build_parser().parse_args()

    from src.cli.runner import SweepOptions, run_sweep

    options = SweepOptions(
        game=args.game,
        limit=args.limit,
        concurrency=args.concurrency,
        rps=args.rps,
        pages=args.pages,
        page_limit=args.page_limit,
        engine=args.engine,
        stale_days=args.stale_days,
    )
    try:
        exit_code = asyncio.run(run_sweep(options))
    except Exception:
        logger.critical("Unhandled failure", exc_info=True)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
