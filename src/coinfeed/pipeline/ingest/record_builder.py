"""
Record Builder: maps CoinGecko responses onto CoinRecord.

CoinGecko answers in two incompatible shapes, and each has its own named
constructor. The caller picks one based on the endpoint it called; the shape
is never guessed from the JSON itself.

1. Compact shape (/simple/price), keyed by coin id, flat fields:
   {"bitcoin": {"eur": 42000, "eur_market_cap": 8.4e11, "eur_24h_vol": ..., "last_updated_at": 1631304846}}
   -> build_from_simple_price(payload["bitcoin"], identity)

2. Detail shape (/coins/{id} and /coins/{id}/history), nested sections:
   {"id": ..., "market_data": {"current_price": {...}, "market_cap": {...}, "total_volume": {...}},
    "community_data": {...}, "developer_data": {...}, "public_interest_stats": {...}}
   -> build_from_coin_detail(document, coin_id, observed_on=None)

Every numeric leaf goes through the defensive extractors, so an absent section
simply leaves its group of fields at zero.
"""

from datetime import date, datetime, time, timezone
from typing import Any, Dict, Optional

from coinfeed.pipeline.ingest.coin_record import CoinIdentity, CoinRecord, MalformedRecordError
from coinfeed.utils.json_fields import get_decimal, get_integer, get_section, get_text

CURRENCIES = ("eur", "usd", "btc", "eth")

def build_from_simple_price(coin_data: Dict[str, Any], identity: CoinIdentity) -> CoinRecord:
    """
    Builds a record from one coin's entry of a /simple/price response.

    The compact shape carries no name or symbol, so the caller supplies them.

    Args:
        coin_data (dict): The object under the coin id key.
        identity (CoinIdentity): The coin's id, name and symbol.

    Returns:
        CoinRecord: The normalized record, stamped with `last_updated_at`.

    Raises:
        MalformedRecordError: If `last_updated_at` is missing or not numeric.
    """
    last_updated_at = get_integer(coin_data, "last_updated_at", default=-1)
    if last_updated_at < 0:
        raise MalformedRecordError(f"No 'last_updated_at' in simple price data for {identity.coin_id}.")
    try:
        timestamp = datetime.fromtimestamp(last_updated_at, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as error:
        raise MalformedRecordError(f"Out of range last_updated_at {last_updated_at} for {identity.coin_id}.") from error

    fields: Dict[str, Any] = {}
    for currency in CURRENCIES:
        fields[f"price_{currency}"] = get_decimal(coin_data, currency)
        fields[f"market_cap_{currency}"] = get_decimal(coin_data, f"{currency}_market_cap")
        fields[f"total_volume_{currency}"] = get_decimal(coin_data, f"{currency}_24h_vol")

    return CoinRecord(
        coin_id=identity.coin_id,
        coin_name=identity.name,
        symbol=identity.symbol,
        timestamp=timestamp,
        **fields,
    )

def build_from_coin_detail(document: Dict[str, Any], coin_id: str,
                           observed_on: Optional[date] = None) -> CoinRecord:
    """
    Builds a record from a /coins/{id} or /coins/{id}/history document.

    Args:
        document (dict): The parsed response body.
        coin_id (str): The id that was requested; used when the document has no 'id'.
        observed_on (date, optional): For historical snapshots, the requested day.
            The record is stamped at midnight UTC of that day. Without it the
            stamp comes from `market_data.last_updated`.

    Returns:
        CoinRecord: The normalized record.

    Raises:
        MalformedRecordError: If neither the document nor the caller provide a
            coin id, or no timestamp can be determined.
    """
    resolved_id = get_text(document, "id") or coin_id
    market_data = get_section(document, "market_data")

    if observed_on is not None:
        timestamp = datetime.combine(observed_on, time.min, tzinfo=timezone.utc)
    else:
        timestamp = _parse_last_updated(get_text(market_data, "last_updated"), resolved_id)

    fields: Dict[str, Any] = {}
    fields.update(_market_fields(market_data))
    fields.update(_community_fields(get_section(document, "community_data")))
    fields.update(_developer_fields(get_section(document, "developer_data")))
    fields.update(_public_interest_fields(get_section(document, "public_interest_stats")))

    return CoinRecord(
        coin_id=resolved_id,
        coin_name=get_text(document, "name"),
        symbol=get_text(document, "symbol"),
        timestamp=timestamp,
        **fields,
    )

def _parse_last_updated(value: str, coin_id: str) -> datetime:
    # CoinGecko sends e.g. "2021-09-10T19:54:06.165Z"
    if not value:
        raise MalformedRecordError(f"No 'market_data.last_updated' for {coin_id}.")
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as error:
        raise MalformedRecordError(f"Unparseable last_updated '{value}' for {coin_id}.") from error
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError) as error:
        raise MalformedRecordError(f"Out of range last_updated '{value}' for {coin_id}.") from error

def _market_fields(market_data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if market_data is None:
        return {}
    sections = {
        "price": get_section(market_data, "current_price"),
        "market_cap": get_section(market_data, "market_cap"),
        "total_volume": get_section(market_data, "total_volume"),
    }
    fields: Dict[str, Any] = {}
    for prefix, section in sections.items():
        if section is None:
            continue
        for currency in CURRENCIES:
            fields[f"{prefix}_{currency}"] = get_decimal(section, currency)
    return fields

def _community_fields(community: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if community is None:
        return {}
    return {
        "twitter_followers": get_integer(community, "twitter_followers"),
        "reddit_avg_posts_48_hours": get_decimal(community, "reddit_average_posts_48h"),
        "reddit_avg_comments_48_hours": get_decimal(community, "reddit_average_comments_48h"),
        "reddit_subscribers": get_integer(community, "reddit_subscribers"),
        "reddit_accounts_active_48_hours": get_decimal(community, "reddit_accounts_active_48h"),
    }

def _developer_fields(developer: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if developer is None:
        return {}
    fields = {
        "dev_forks": get_integer(developer, "forks"),
        "dev_stars": get_integer(developer, "stars"),
        "dev_total_issues": get_integer(developer, "total_issues"),
        "dev_closed_issues": get_integer(developer, "closed_issues"),
        "dev_pull_requests_merged": get_integer(developer, "pull_requests_merged"),
        "dev_pull_request_contributors": get_integer(developer, "pull_request_contributors"),
        "dev_commit_count_4_weeks": get_integer(developer, "commit_count_4_weeks"),
    }
    code_churn = get_section(developer, "code_additions_deletions_4_weeks")
    if code_churn is not None:
        fields["dev_code_additions_4_weeks"] = get_integer(code_churn, "additions")
        fields["dev_code_deletions_4_weeks"] = get_integer(code_churn, "deletions")
    return fields

def _public_interest_fields(stats: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if stats is None:
        return {}
    return {"public_alexa_rank": get_integer(stats, "alexa_rank")}
