# tests/test_runner.py

"""Tests for the headless sweep runner and its exit codes."""

import sqlite3
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from src.cli.runner import SweepOptions, resolve_games, run_sweep
from src.config.settings import Settings
from src.models.game import Game
from src.models.price_observation import PriceObservation
from src.providers.errors import ConfigurationError, ProviderAuthError


class FakeProvider:
    """Provider stub with a configurable warm-up and fixed prices."""

    def __init__(
        self,
        configured: bool = True,
        prices: list[float] | None = None,
        warm_up_error: Exception | None = None,
    ) -> None:
        self.configured = configured
        self.prices = prices or []
        self.warm_up_error = warm_up_error
        self.closed = False

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def warm_up(self) -> None:
        if self.warm_up_error is not None:
            raise self.warm_up_error

    async def search(
        self,
        query: str,
        page_size: int | None = None,
        max_pages: int | None = None,
    ) -> list[PriceObservation]:
        return [PriceObservation(price=p) for p in self.prices]

    async def close(self) -> None:
        self.closed = True


class TestResolveGames(unittest.TestCase):
    """Game selection from the --game flag."""

    def test_all_in_order(self) -> None:
        self.assertEqual(
            resolve_games("all"), [Game.POKEMON, Game.YGO, Game.MTG],
        )

    def test_single_game(self) -> None:
        self.assertEqual(resolve_games("ygo"), [Game.YGO])

    def test_unknown_game(self) -> None:
        with self.assertRaises(ConfigurationError):
            resolve_games("chess")


class TestRunSweep(unittest.IsolatedAsyncioTestCase):
    """Exit codes and end-to-end persistence."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.db_path = Path(self._tmp.name) / "sweep.db"
        self.url = f"sqlite:///{self.db_path}"
        conn = sqlite3.connect(self.db_path)
        conn.executescript(
            """
            CREATE TABLE tcg_cards (
                id TEXT PRIMARY KEY, name TEXT, set_name TEXT
            );
            INSERT INTO tcg_cards VALUES
                ('swsh1-1', 'Celebi V', 'Sword & Shield');
            """
        )
        conn.commit()
        conn.close()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    async def test_missing_database_url(self) -> None:
        with patch.object(Settings, "DATABASE_URL", None):
            code = await run_sweep(
                SweepOptions(),
                primary=FakeProvider(),
                secondary=FakeProvider(),
            )
        self.assertEqual(code, 1)

    async def test_unsupported_database_scheme(self) -> None:
        code = await run_sweep(
            SweepOptions(),
            database_url="postgres://localhost/cards",
            primary=FakeProvider(),
            secondary=FakeProvider(),
        )
        self.assertEqual(code, 1)

    async def test_forced_browse_without_credentials(self) -> None:
        primary = FakeProvider(configured=False)
        code = await run_sweep(
            SweepOptions(engine="browse"),
            database_url=self.url,
            primary=primary,
            secondary=FakeProvider(),
        )
        self.assertEqual(code, 1)
        self.assertTrue(primary.closed)

    async def test_forced_finding_without_app_id(self) -> None:
        code = await run_sweep(
            SweepOptions(engine="finding"),
            database_url=self.url,
            primary=FakeProvider(),
            secondary=FakeProvider(configured=False),
        )
        self.assertEqual(code, 1)

    async def test_auto_without_any_credentials(self) -> None:
        code = await run_sweep(
            SweepOptions(),
            database_url=self.url,
            primary=FakeProvider(configured=False),
            secondary=FakeProvider(configured=False),
        )
        self.assertEqual(code, 1)

    async def test_browse_token_failure_is_fatal(self) -> None:
        primary = FakeProvider(warm_up_error=ProviderAuthError(
            "token request rejected", provider="browse", status=401,
        ))
        code = await run_sweep(
            SweepOptions(engine="browse"),
            database_url=self.url,
            primary=primary,
            secondary=FakeProvider(),
        )
        self.assertEqual(code, 1)

    async def test_unknown_engine(self) -> None:
        code = await run_sweep(
            SweepOptions(engine="scrape"),
            database_url=self.url,
            primary=FakeProvider(),
            secondary=FakeProvider(),
        )
        self.assertEqual(code, 1)

    async def test_unknown_game(self) -> None:
        code = await run_sweep(
            SweepOptions(game="chess"),
            database_url=self.url,
            primary=FakeProvider(),
            secondary=FakeProvider(),
        )
        self.assertEqual(code, 1)

    async def test_successful_sweep_persists_summaries(self) -> None:
        primary = FakeProvider(prices=[4.50, 4.60, 4.75])
        secondary = FakeProvider()
        code = await run_sweep(
            SweepOptions(game="all", engine="auto"),
            database_url=self.url,
            primary=primary,
            secondary=secondary,
        )
        self.assertEqual(code, 0)
        self.assertTrue(primary.closed and secondary.closed)

        conn = sqlite3.connect(self.db_path)
        try:
            row = conn.execute(
                "SELECT low, median, high, sample_count, query "
                "FROM tcg_card_prices_ebay WHERE cardid = 'swsh1-1'"
            ).fetchone()
        finally:
            conn.close()
        self.assertEqual(row[:4], (4.50, 4.60, 4.75, 3))
        self.assertEqual(
            row[4], '"Celebi V" Sword & Shield #1 Pokemon TCG',
        )


if __name__ == "__main__":
    unittest.main()
