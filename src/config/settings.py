# src/config/settings.py

"""Central configuration for the price sweep engine."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    """Read a float from the environment, falling back on bad input."""
    raw = os.getenv(name)
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    """Read an int from the environment, falling back on bad input."""
    raw = os.getenv(name)
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


class Settings:
    """Central configuration for the price sweep engine."""

    # --- Data store ---
    DATABASE_URL: str | None = os.getenv("DATABASE_URL")

    # --- Primary provider (Browse API, OAuth client credentials) ---
    EBAY_CLIENT_ID: str | None = os.getenv("EBAY_CLIENT_ID")
    EBAY_CLIENT_SECRET: str | None = os.getenv("EBAY_CLIENT_SECRET")
    EBAY_SCOPE: str = os.getenv(
        "EBAY_SCOPE", "https://api.ebay.com/oauth/api_scope"
    )
    EBAY_TOKEN_URL: str = "https://api.ebay.com/identity/v1/oauth2/token"
    EBAY_BROWSE_URL: str = (
        "https://api.ebay.com/buy/browse/v1/item_summary/search"
    )
    EBAY_ENDUSERCTX: str | None = os.getenv("EBAY_ENDUSERCTX")
    EBAY_CATEGORY_ID: str | None = os.getenv("EBAY_CATEGORY_ID")

    # --- Secondary provider (Finding API, AppID) ---
    EBAY_APP_ID: str | None = os.getenv("EBAY_APP_ID")
    EBAY_FINDING_URL: str = (
        "https://svcs.ebay.com/services/search/FindingService/v1"
    )
    FINDING_SERVICE_VERSION: str = "1.13.0"

    EBAY_MARKETPLACE: str = os.getenv("EBAY_MARKETPLACE", "EBAY_US")
    MARKETPLACE_TO_GLOBAL_ID: dict[str, str] = {
        "EBAY_US": "EBAY-US",
        "EBAY_GB": "EBAY-GB",
        "EBAY_AU": "EBAY-AU",
        "EBAY_DE": "EBAY-DE",
    }
    DEFAULT_GLOBAL_ID: str = "EBAY-US"

    # --- Throughput ---
    EBAY_RPS: float = _env_float("EBAY_RPS", 0.5)
    EBAY_PAGES: int = _env_int("EBAY_PAGES", 1)
    EBAY_PAGE_LIMIT: int = _env_int("EBAY_PAGE_LIMIT", 200)
    REQUEST_TIMEOUT: float = _env_float("FETCH_TIMEOUT", 12.0)
    THROTTLE_JITTER: float = 0.15       # Max seconds added to a throttle wait
    BROWSE_MAX_PAGE_SIZE: int = 200
    FINDING_MAX_PAGE_SIZE: int = 100
    BROWSE_MAX_QUERY_LENGTH: int = 100
    FINDING_MAX_QUERY_LENGTH: int = 350
    MAX_SAMPLES: int = 1000             # Stop paging past this many prices

    # --- Resilience ---
    MAX_RETRIES: int = 3                # Retries after the first attempt
    BACKOFF_BASE: float = 1.5           # Seconds, doubled per attempt
    BACKOFF_MAX: float = 60.0           # Cap for exponential backoff
    RETRY_JITTER: float = 0.2           # Max seconds added to a backoff
    DB_LOCK_RETRIES: int = 5

    # --- Batch ---
    DEFAULT_CONCURRENCY: int = 1
    PROGRESS_EVERY: int = 200
    INTER_GAME_PAUSE: float = 0.4
    ITEM_FAILURE_PAUSE: float = 0.2
    ITEM_TIMEOUT: float = _env_float("ITEM_TIMEOUT", 60.0)  # Seconds per item
    FALLBACK_MIN_SAMPLES: int = 6       # Widen the query below this count
    GAME_ORDER: list[str] = ["pokemon", "ygo", "mtg"]

    USER_AGENT: str = (
        "TcgPriceSweep/1.1"
    )

    # --- Logging ---
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    LOGS_DIR: Path = BASE_DIR / "logs"

    @classmethod
    def global_id_for(cls, marketplace: str) -> str:
        """Map a Browse marketplace id to its Finding global id."""
        return cls.MARKETPLACE_TO_GLOBAL_ID.get(
            marketplace, cls.DEFAULT_GLOBAL_ID
        )
