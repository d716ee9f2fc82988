import json
import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from coinfeed.pipeline.ingest.coin_record import CoinIdentity, CoinRecord, MalformedRecordError
from coinfeed.pipeline.ingest.record_builder import build_from_coin_detail, build_from_simple_price
from coinfeed.utils.json_fields import parse_json

BITCOIN = CoinIdentity(coin_id="bitcoin", name="Bitcoin", symbol="btc")

# --- FIXTURES ---
@pytest.fixture
def simple_price_payload():
    """
    A /simple/price response for bitcoin, parsed the way the data source parses it.
    """
    return parse_json("""
    {"bitcoin": {
        "eur": 42000, "usd": 50000, "btc": 1, "eth": 15,
        "eur_market_cap": 8.4e11, "usd_market_cap": 1000000000000,
        "btc_market_cap": 18800000, "eth_market_cap": 282000000,
        "eur_24h_vol": 25000000000.55, "usd_24h_vol": 30000000000,
        "btc_24h_vol": 600000, "eth_24h_vol": 9000000,
        "eur_24h_change": 1.5,
        "last_updated_at": 1631304846
    }}
    """)

@pytest.fixture
def history_document():
    """
    A /coins/{id}/history document with market and developer data but no community data.
    """
    return parse_json(json.dumps({
        "id": "ethereum",
        "symbol": "eth",
        "name": "Ethereum",
        "market_data": {
            "current_price": {"usd": 3000.12, "eur": 2520, "btc": 0.06, "eth": 1},
            "market_cap": {"usd": 400000000, "eur": 336000000, "btc": 8000, "eth": 133333},
            "total_volume": {"usd": 20000000, "eur": 16800000, "btc": 400, "eth": 6666}
        },
        "developer_data": {
            "forks": 13000, "stars": 38000, "total_issues": 5000, "closed_issues": 4800,
            "pull_requests_merged": 9000, "pull_request_contributors": 600,
            "commit_count_4_weeks": 120,
            "code_additions_deletions_4_weeks": {"additions": 4500, "deletions": -3200}
        },
        "public_interest_stats": {"alexa_rank": 7500, "bing_matches": None}
    }))

# --- COMPACT SHAPE ---
def test_simple_price_bitcoin_scenario(simple_price_payload):
    """
    Verifies the end-to-end bitcoin scenario on the compact shape.

    Assertions:
        - Identity comes from the caller (the compact shape has none).
        - priceUsd = 50000, priceEur = 42000.
        - The timestamp is epoch second 1631304846 as a UTC instant.
    """
    record = build_from_simple_price(simple_price_payload["bitcoin"], BITCOIN)

    assert record.coin_id == "bitcoin"
    assert record.coin_name == "Bitcoin"
    assert record.symbol == "btc"
    assert record.price_usd == Decimal(50000)
    assert record.price_eur == Decimal(42000)
    assert record.timestamp == datetime(2021, 9, 10, 20, 14, 6, tzinfo=timezone.utc)

def test_simple_price_fields_match_source_values(simple_price_payload):
    """
    Re-extracting every mapped field must give back the JSON value exactly.
    """
    coin_data = simple_price_payload["bitcoin"]
    record = build_from_simple_price(coin_data, BITCOIN)

    for currency in ("eur", "usd", "btc", "eth"):
        assert getattr(record, f"price_{currency}") == Decimal(coin_data[currency])
        assert getattr(record, f"market_cap_{currency}") == Decimal(coin_data[f"{currency}_market_cap"])
        assert getattr(record, f"total_volume_{currency}") == Decimal(coin_data[f"{currency}_24h_vol"])

    assert record.total_volume_eur == Decimal("25000000000.55")

def test_simple_price_missing_fields_default_to_zero():
    record = build_from_simple_price({"usd": 1.5, "last_updated_at": 0}, BITCOIN)

    assert record.price_usd == Decimal("1.5")
    assert record.price_eur == Decimal(0)
    assert record.market_cap_usd == Decimal(0)
    assert record.total_volume_eth == Decimal(0)
    assert record.twitter_followers == 0

@pytest.mark.parametrize("coin_data", [
    {},
    {"usd": 1},
    {"last_updated_at": "yesterday"},
    {"last_updated_at": None},
    {"last_updated_at": 10 ** 18},
])
def test_simple_price_without_timestamp_is_malformed(coin_data):
    with pytest.raises(MalformedRecordError):
        build_from_simple_price(coin_data, BITCOIN)

# --- DETAIL SHAPE ---
def test_history_without_community_data(history_document):
    """
    Verifies the historical scenario with market_data present and community_data absent.

    Assertions:
        - Price, market cap and volume quartets are mapped exactly.
        - Every community field stays at zero.
        - Developer and public-interest sections are populated.
        - The timestamp is midnight UTC of the requested date.
    """
    record = build_from_coin_detail(history_document, "ethereum", observed_on=date(2023, 5, 2))

    assert record.coin_id == "ethereum"
    assert record.coin_name == "Ethereum"
    assert record.symbol == "eth"
    assert record.timestamp == datetime(2023, 5, 2, tzinfo=timezone.utc)

    assert record.price_usd == Decimal("3000.12")
    assert record.price_btc == Decimal("0.06")
    assert record.market_cap_eur == Decimal(336000000)
    assert record.total_volume_eth == Decimal(6666)

    assert record.twitter_followers == 0
    assert record.reddit_avg_posts_48_hours == Decimal(0)
    assert record.reddit_avg_comments_48_hours == Decimal(0)
    assert record.reddit_subscribers == 0
    assert record.reddit_accounts_active_48_hours == Decimal(0)

    assert record.dev_forks == 13000
    assert record.dev_commit_count_4_weeks == 120
    assert record.dev_code_additions_4_weeks == 4500
    assert record.dev_code_deletions_4_weeks == -3200
    assert record.public_alexa_rank == 7500

def test_history_with_community_data():
    document = parse_json(json.dumps({
        "id": "cardano", "symbol": "ada", "name": "Cardano",
        "community_data": {
            "twitter_followers": 1200000,
            "reddit_average_posts_48h": 4.25,
            "reddit_average_comments_48h": 160.5,
            "reddit_subscribers": 500000,
            "reddit_accounts_active_48h": "1540"
        }
    }))

    record = build_from_coin_detail(document, "cardano", observed_on=date(2023, 1, 1))

    assert record.twitter_followers == 1200000
    assert record.reddit_avg_posts_48_hours == Decimal("4.25")
    assert record.reddit_avg_comments_48_hours == Decimal("160.5")
    assert record.reddit_subscribers == 500000
    # Non-numeric leaf falls back to zero instead of failing the record
    assert record.reddit_accounts_active_48_hours == Decimal(0)

def test_history_before_listing_has_only_identity():
    """
    Scenario:
        - A date before the coin was listed: no market_data or any other section.

    Assertions:
        - The record is still built, with every metric at zero.
    """
    document = {"id": "kava", "symbol": "kava", "name": "Kava", "localization": {"en": "Kava"}}

    record = build_from_coin_detail(document, "kava", observed_on=date(2019, 10, 1))

    assert record.price_eur == Decimal(0)
    assert record.market_cap_usd == Decimal(0)
    assert record.dev_stars == 0
    assert record.public_alexa_rank == 0

def test_history_falls_back_to_requested_coin_id():
    record = build_from_coin_detail({"name": "Waves"}, "waves", observed_on=date(2023, 1, 1))

    assert record.coin_id == "waves"
    assert record.symbol == ""

def test_current_detail_uses_last_updated():
    document = parse_json(json.dumps({
        "id": "bitcoin", "symbol": "btc", "name": "Bitcoin",
        "market_data": {
            "current_price": {"usd": 50000, "eur": 42000, "btc": 1, "eth": 15},
            "last_updated": "2021-09-10T19:54:06.165Z"
        }
    }))

    record = build_from_coin_detail(document, "bitcoin")

    assert record.timestamp == datetime(2021, 9, 10, 19, 54, 6, 165000, tzinfo=timezone.utc)
    assert record.price_eth == Decimal(15)
    # market_cap / total_volume sections absent
    assert record.market_cap_usd == Decimal(0)

@pytest.mark.parametrize("document", [
    {"id": "bitcoin"},
    {"id": "bitcoin", "market_data": {"current_price": {"usd": 1}}},
    {"id": "bitcoin", "market_data": {"last_updated": "not-a-date"}},
    # offsets that push the UTC instant past datetime.min / datetime.max
    {"id": "bitcoin", "market_data": {"last_updated": "0001-01-01T00:00:00+01:00"}},
    {"id": "bitcoin", "market_data": {"last_updated": "9999-12-31T23:59:59-01:00"}},
])
def test_current_detail_without_timestamp_is_malformed(document):
    with pytest.raises(MalformedRecordError):
        build_from_coin_detail(document, "bitcoin")

def test_missing_coin_id_is_malformed():
    with pytest.raises(MalformedRecordError):
        build_from_coin_detail({}, "", observed_on=date(2023, 1, 1))

# --- RECORD ---
def test_record_is_immutable(simple_price_payload):
    record = build_from_simple_price(simple_price_payload["bitcoin"], BITCOIN)

    with pytest.raises(AttributeError):
        record.price_usd = Decimal(1)

def test_record_requires_timezone_aware_timestamp():
    with pytest.raises(MalformedRecordError):
        CoinRecord(coin_id="bitcoin", coin_name="Bitcoin", symbol="btc", timestamp=datetime(2023, 1, 1))

def test_payload_uses_backend_field_names(simple_price_payload):
    """
    Verifies the wire format sent to the backend.

    Assertions:
        - Keys are camelCase.
        - The timestamp is epoch milliseconds.
        - Decimals are exact plain strings (no exponent, no float rounding).
    """
    record = build_from_simple_price(simple_price_payload["bitcoin"], BITCOIN)

    payload = record.to_payload()

    assert payload["coinId"] == "bitcoin"
    assert payload["coinName"] == "Bitcoin"
    assert payload["timestamp"] == 1631304846000
    assert payload["priceUsd"] == "50000"
    assert payload["marketCapEur"] == "840000000000"
    assert payload["totalVolumeEur"] == "25000000000.55"
    assert payload["twitterFollowers"] == 0
    assert payload["devCodeDeletions4Weeks"] == 0
    assert len(payload) == 31
    # Must be JSON serializable as-is
    json.dumps(payload)
