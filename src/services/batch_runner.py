# src/services/batch_runner.py

"""Per-game price sweep: catalog → query → search → summary → upsert."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from src.config.settings import Settings
from src.filters.price_summarizer import summarize
from src.filters.query_builder import build_query, fallback_queries
from src.models.catalog_item import CatalogItem
from src.models.game import Game
from src.models.price_observation import PriceObservation
from src.models.price_summary import PriceSummary
from src.providers.errors import ItemTimeoutError
from src.services.search_orchestrator import SearchOrchestrator
from src.storage.catalog_reader import CatalogReader
from src.storage.price_store import PriceStore

logger = logging.getLogger("price_sweep.batch")

# Queue sentinel telling a worker to stop
_DONE = None


@dataclass
class SweepStats:
    """Totals for one game's sweep."""

    game: Game
    processed: int = 0
    priced: int = 0
    empty: int = 0
    failed: int = 0


class BatchRunner:
    """Drive sweeps with a bounded worker pool.

    Items are fed from the catalog stream into a bounded queue so that
    memory stays flat on large catalogs.  A failing item is logged with
    its id, counted and skipped; the next scheduled sweep retries it.
    """

    def __init__(
        self,
        reader: CatalogReader,
        orchestrator: SearchOrchestrator,
        store: PriceStore,
        concurrency: int | None = None,
        progress_every: int | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        item_timeout: float | None = None,
        fallback_min_samples: int | None = None,
    ) -> None:
        self.reader = reader
        self.orchestrator = orchestrator
        self.store = store
        self.concurrency = max(
            1, concurrency or Settings.DEFAULT_CONCURRENCY,
        )
        self.progress_every = (
            progress_every or Settings.PROGRESS_EVERY
        )
        self._sleep = sleep or asyncio.sleep
        self.item_timeout = item_timeout or Settings.ITEM_TIMEOUT
        self.fallback_min_samples = (
            fallback_min_samples if fallback_min_samples is not None
            else Settings.FALLBACK_MIN_SAMPLES
        )

    async def _search_item(
        self, game: Game, item: CatalogItem,
    ) -> tuple[str, list[PriceObservation]]:
        """Search the precise query, widening it while samples are scarce.

        Returns the query whose result set was largest, preferring the
        earliest on ties.
        """
        query = build_query(game, item)
        observations = await self.orchestrator.search_prices(query)
        if len(observations) >= self.fallback_min_samples:
            return query, observations

        for candidate in fallback_queries(game, item):
            found = await self.orchestrator.search_prices(candidate)
            logger.debug(
                "[%s] %s: fallback %r gave %d samples",
                game.label,
                item.id,
                candidate,
                len(found),
            )
            if len(found) > len(observations):
                query, observations = candidate, found
            if len(observations) >= self.fallback_min_samples:
                break
        return query, observations

    async def price_item(self, game: Game, item: CatalogItem) -> PriceSummary:
        """Price one item end to end and persist its summary."""
        try:
            async with asyncio.timeout(self.item_timeout):
                query, observations = await self._search_item(game, item)
        except TimeoutError as exc:
            raise ItemTimeoutError(
                f"no result within {self.item_timeout:g}s"
            ) from exc
        stats = summarize([o.landed for o in observations])
        summary = PriceSummary.from_stats(item.id, stats, query)
        await self.store.upsert(game, item.id, summary, query)
        return summary

    async def _worker(
        self,
        game: Game,
        queue: "asyncio.Queue[CatalogItem | None]",
        stats: SweepStats,
    ) -> None:
        while True:
            item = await queue.get()
            try:
                if item is _DONE:
                    return
                try:
                    summary = await self.price_item(game, item)
                except Exception as exc:
                    stats.failed += 1
                    logger.error(
                        "[%s] %s: %s",
                        game.label,
                        item.id,
                        exc,
                        exc_info=True,
                    )
                    await self._sleep(Settings.ITEM_FAILURE_PAUSE)
                else:
                    if summary.is_empty:
                        stats.empty += 1
                    else:
                        stats.priced += 1
                stats.processed += 1
                if stats.processed % self.progress_every == 0:
                    logger.info(
                        "[%s] processed %d…",
                        game.label,
                        stats.processed,
                    )
            finally:
                queue.task_done()

    async def run_game(
        self,
        game: Game,
        limit: int | None = None,
        stale_days: int = 0,
    ) -> SweepStats:
        """Sweep one game's catalog and return its totals."""
        stats = SweepStats(game=game)
        logger.info(
            "=== %s sweep start (%s, concurrency=%d) ===",
            game.label,
            self.orchestrator.policy.mode.value,
            self.concurrency,
        )

        queue: asyncio.Queue[CatalogItem | None] = asyncio.Queue(
            maxsize=self.concurrency * 2,
        )
        workers = [
            asyncio.create_task(self._worker(game, queue, stats))
            for _ in range(self.concurrency)
        ]
        try:
            async for item in self.reader.iter_items(
                game, limit=limit, stale_days=stale_days,
            ):
                await queue.put(item)
            for _ in workers:
                await queue.put(_DONE)
            await asyncio.gather(*workers)
        finally:
            for task in workers:
                if not task.done():
                    task.cancel()

        logger.info(
            "=== %s sweep complete. processed=%d priced=%d "
            "empty=%d failed=%d ===",
            game.label,
            stats.processed,
            stats.priced,
            stats.empty,
            stats.failed,
        )
        return stats

    async def run(
        self,
        games: list[Game],
        limit: int | None = None,
        stale_days: int = 0,
    ) -> list[SweepStats]:
        """Sweep ``games`` one after another with a pause in between."""
        results: list[SweepStats] = []
        for index, game in enumerate(games):
            if index:
                await self._sleep(Settings.INTER_GAME_PAUSE)
            results.append(
                await self.run_game(game, limit, stale_days)
            )
        return results
