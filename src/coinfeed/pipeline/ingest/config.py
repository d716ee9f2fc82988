"""
Configuration Module for the Ingestion Client.

Single source of truth for the tracked coin catalog, provider URLs and timing
constants. Defaults live here as module constants; any of them can be
overridden through the environment (or a local .env file).

Key Responsibilities:
- Centralizes the master list of tracked CoinGecko ids.
- Defines the provider and backend endpoints.
- Freezes everything into an immutable IngestionConfig that is injected into
  the data source and orchestrator, instead of being read as global state.
"""

import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

# --- SETUP ---
load_dotenv()

# --- PROVIDER SETTINGS ---
COINGECKO_API_URL: str = "https://api.coingecko.com/api/v3"
COINGECKO_API_KEY_HEADER: str = "x-cg-demo-api-key"

# CoinGecko only serves /history for the last 365 days on the public tier.
COINGECKO_MAX_PAST_DAYS: int = 365

# --- BACKEND SETTINGS ---
BACKEND_URL: str = "http://localhost:8080/api/v1/coins"

# --- TIMING & RETRIES ---
MAX_RETRIES: int = 10
RATE_LIMIT_DELAY_MS: int = 5000
REQUEST_TIMEOUT_SECONDS: float = 30

# --- ASSET LISTS ---
# The master roster of CoinGecko ids ingested on every pass.
CRYPTO_IDS: Tuple[str, ...] = (
    "bitcoin", "ethereum", "cardano", "polkadot", "chainlink",
    "stellar", "zcash", "algorand", "bitcoin-diamond", "litecoin",
    "compound-ether", "compound-coin", "bzx-protocol", "band-protocol",
    "ampleforth", "zilliqa", "vechain", "waves", "uma", "ocean-protocol",
    "theta-token", "singularitynet", "thorchain", "kava",
)

def parse_coin_ids(raw: str) -> Tuple[str, ...]:
    """
    Splits a comma-separated id list, dropping blanks and duplicates (first wins).

    Args:
        raw (str): e.g. "bitcoin, ethereum,,bitcoin".

    Returns:
        Tuple[str, ...]: e.g. ("bitcoin", "ethereum").
    """
    ids = [c.strip().lower() for c in raw.split(",")]
    return tuple(dict.fromkeys(c for c in ids if c))

@dataclass(frozen=True)
class IngestionConfig:
    """
    Immutable run configuration.

    Attributes:
        coin_ids: The catalog iterated by every ingestion pass.
        coingecko_api_url: Base URL of the CoinGecko v3 API.
        backend_url: Ingestion endpoint of the backend (POST target and checkpoint root).
        max_retries: Attempts per unit of work (>= 1).
        rate_limit_delay_ms: Spacing between units, also the backoff step.
        request_timeout: Per-request timeout in seconds.
        coingecko_api_key: Optional demo/pro API key sent as a header.
    """

    coin_ids: Tuple[str, ...] = CRYPTO_IDS
    coingecko_api_url: str = COINGECKO_API_URL
    backend_url: str = BACKEND_URL
    max_retries: int = MAX_RETRIES
    rate_limit_delay_ms: int = RATE_LIMIT_DELAY_MS
    request_timeout: float = REQUEST_TIMEOUT_SECONDS
    coingecko_api_key: Optional[str] = None

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}.")
        if self.rate_limit_delay_ms < 0:
            raise ValueError(f"rate_limit_delay_ms must be >= 0, got {self.rate_limit_delay_ms}.")
        if not self.coin_ids:
            raise ValueError("The coin catalog is empty.")
        # Normalize trailing slashes so URL joins stay predictable
        object.__setattr__(self, "coingecko_api_url", self.coingecko_api_url.rstrip("/"))
        object.__setattr__(self, "backend_url", self.backend_url.rstrip("/"))

    @property
    def coingecko_headers(self) -> dict:
        """Default headers for every CoinGecko request."""
        if not self.coingecko_api_key:
            return {}
        return {COINGECKO_API_KEY_HEADER: self.coingecko_api_key}

    def with_coin_ids(self, coin_ids: Tuple[str, ...]) -> "IngestionConfig":
        """Returns a copy with a different catalog (used by the --coins override)."""
        return replace(self, coin_ids=coin_ids)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "IngestionConfig":
        """
        Builds the configuration from environment variables, falling back to
        the module defaults for anything unset.

        Args:
            environ (Mapping, optional): Defaults to os.environ.

        Raises:
            ValueError: If a numeric variable is not a number or out of range.
        """
        env = os.environ if environ is None else environ

        raw_ids = env.get("CRYPTO_COINS")
        coin_ids = parse_coin_ids(raw_ids) if raw_ids else CRYPTO_IDS

        return cls(
            coin_ids=coin_ids,
            coingecko_api_url=env.get("COINGECKO_API_URL", COINGECKO_API_URL),
            backend_url=env.get("BACKEND_URL", BACKEND_URL),
            max_retries=int(env.get("MAX_RETRIES", MAX_RETRIES)),
            rate_limit_delay_ms=int(env.get("RATE_LIMIT_DELAY_MS", RATE_LIMIT_DELAY_MS)),
            request_timeout=float(env.get("REQUEST_TIMEOUT_SECONDS", REQUEST_TIMEOUT_SECONDS)),
            coingecko_api_key=env.get("COINGECKO_API_KEY") or None,
        )
