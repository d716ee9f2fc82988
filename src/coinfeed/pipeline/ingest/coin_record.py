"""
The canonical normalized record sent to the backend, one per (coin, instant).
"""

from dataclasses import dataclass, fields
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, NamedTuple

ZERO = Decimal(0)
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

class CoinIdentity(NamedTuple):
    """Who a coin is, as listed by CoinGecko's /coins/list."""
    coin_id: str
    name: str
    symbol: str

class MalformedRecordError(ValueError):
    """Raised when a payload lacks a structurally required field (coin id or timestamp)."""

# Backend field names, matching the coin model the ingestion endpoint deserializes
WIRE_NAMES: Dict[str, str] = {
    "coin_id": "coinId",
    "coin_name": "coinName",
    "symbol": "symbol",
    "timestamp": "timestamp",
    "price_eur": "priceEur",
    "price_usd": "priceUsd",
    "price_btc": "priceBtc",
    "price_eth": "priceEth",
    "market_cap_eur": "marketCapEur",
    "market_cap_usd": "marketCapUsd",
    "market_cap_btc": "marketCapBtc",
    "market_cap_eth": "marketCapEth",
    "total_volume_eur": "totalVolumeEur",
    "total_volume_usd": "totalVolumeUsd",
    "total_volume_btc": "totalVolumeBtc",
    "total_volume_eth": "totalVolumeEth",
    "twitter_followers": "twitterFollowers",
    "reddit_avg_posts_48_hours": "redditAvgPosts48Hours",
    "reddit_avg_comments_48_hours": "redditAvgComments48Hours",
    "reddit_subscribers": "redditSubscribers",
    "reddit_accounts_active_48_hours": "redditAccountsActive48Hours",
    "dev_forks": "devForks",
    "dev_stars": "devStars",
    "dev_total_issues": "devTotalIssues",
    "dev_closed_issues": "devClosedIssues",
    "dev_pull_requests_merged": "devPullRequestsMerged",
    "dev_pull_request_contributors": "devPullRequestContributors",
    "dev_commit_count_4_weeks": "devCommitCount4Weeks",
    "dev_code_additions_4_weeks": "devCodeAdditions4Weeks",
    "dev_code_deletions_4_weeks": "devCodeDeletions4Weeks",
    "public_alexa_rank": "publicAlexaRank",
}

@dataclass(frozen=True)
class CoinRecord:
    """
    One normalized observation of a coin.

    Identity and timestamp are mandatory. Every metric defaults to zero, so a
    snapshot missing whole sections (no developer data, no market data for a
    date before listing) is still a complete record.

    Currency amounts are Decimal throughout; counters are int.
    """

    coin_id: str
    coin_name: str
    symbol: str
    timestamp: datetime

    # Price quartet
    price_eur: Decimal = ZERO
    price_usd: Decimal = ZERO
    price_btc: Decimal = ZERO
    price_eth: Decimal = ZERO

    # Market-cap quartet
    market_cap_eur: Decimal = ZERO
    market_cap_usd: Decimal = ZERO
    market_cap_btc: Decimal = ZERO
    market_cap_eth: Decimal = ZERO

    # 24h-volume quartet
    total_volume_eur: Decimal = ZERO
    total_volume_usd: Decimal = ZERO
    total_volume_btc: Decimal = ZERO
    total_volume_eth: Decimal = ZERO

    # Community
    twitter_followers: int = 0
    reddit_avg_posts_48_hours: Decimal = ZERO
    reddit_avg_comments_48_hours: Decimal = ZERO
    reddit_subscribers: int = 0
    reddit_accounts_active_48_hours: Decimal = ZERO

    # Developer
    dev_forks: int = 0
    dev_stars: int = 0
    dev_total_issues: int = 0
    dev_closed_issues: int = 0
    dev_pull_requests_merged: int = 0
    dev_pull_request_contributors: int = 0
    dev_commit_count_4_weeks: int = 0
    dev_code_additions_4_weeks: int = 0
    dev_code_deletions_4_weeks: int = 0

    # Public interest
    public_alexa_rank: int = 0

    def __post_init__(self) -> None:
        if not self.coin_id:
            raise MalformedRecordError("A coin record needs a coin id.")
        if self.timestamp is None:
            raise MalformedRecordError(f"A coin record needs a timestamp ({self.coin_id}).")
        if self.timestamp.tzinfo is None:
            raise MalformedRecordError(f"Timestamp for {self.coin_id} must be timezone-aware.")

    def to_payload(self) -> Dict[str, Any]:
        """
        Serializes the record into the backend's JSON shape.

        - Keys are camelCase (see WIRE_NAMES).
        - The timestamp is epoch milliseconds.
        - Decimals become plain decimal strings so no float rounding is introduced.
        """
        payload: Dict[str, Any] = {}
        for field in fields(self):
            value = getattr(self, field.name)
            if isinstance(value, datetime):
                value = (value - EPOCH) // timedelta(milliseconds=1)
            elif isinstance(value, Decimal):
                value = format(value, "f")
            payload[WIRE_NAMES[field.name]] = value
        return payload
