import time
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, TypeVar

from requests.exceptions import HTTPError, RequestException

from coinfeed.pipeline.ingest.base_source import BaseDataSource, RecordSink
from coinfeed.pipeline.ingest.coin_record import CoinIdentity, CoinRecord
from coinfeed.pipeline.ingest.config import COINGECKO_MAX_PAST_DAYS, IngestionConfig
from coinfeed.pipeline.ingest.record_builder import build_from_coin_detail, build_from_simple_price
from coinfeed.utils.http_client import HttpClient
from coinfeed.utils.json_fields import parse_json
from coinfeed.utils.logger import PipelineLogger, get_logger
from coinfeed.utils.rate_limiter import RateLimiter

T = TypeVar("T")

# 401/403 on /history means the key has no entitlement for that date
PERMISSION_DENIED_STATUSES = (401, 403)

HISTORY_DATE_FORMAT = "%d-%m-%Y"

def utc_today() -> date:
    return datetime.now(timezone.utc).date()

class CoinGeckoDataSource(BaseDataSource):
    """
    The Concrete Data Source for the CoinGecko v3 API.

    Every request is one 'unit of work': fetch, parse, build a CoinRecord,
    hand it to the sink. Each unit runs under the same retry discipline:

    1. Success (2xx) -> build the record, invoke the sink once, stop. A failing
       sink is logged; it never reopens the retry loop.
    2. 401/403 on a /history request -> warning, stop (retrying cannot grant
       the missing entitlement).
    3. Anything else (other statuses, network faults, malformed JSON, a
       payload without id/timestamp) -> sleep `delay * (attempt + 1)` and try
       again, until `max_retries` attempts are spent; then log and move on.

    Independently of that backoff, the shared RateLimiter is acquired once
    after every unit, which keeps the client under CoinGecko's global
    request ceiling.
    """

    def __init__(self, config: IngestionConfig, http_client: HttpClient,
                 rate_limiter: RateLimiter, log: Optional[PipelineLogger] = None) -> None:
        self.base_url: str = config.coingecko_api_url
        self.max_retries: int = config.max_retries
        self.retry_delay_ms: int = config.rate_limit_delay_ms
        self.http = http_client
        self.rate_limiter = rate_limiter
        self.log = log or get_logger("CoinGeckoDataSource")

    # --- ACCESS PATTERNS ---

    def fetch_and_send_current(self, coin_ids: Sequence[str], sink: RecordSink) -> None:
        """
        One /coins/{id} request per coin (detail shape), stamped with
        `market_data.last_updated`.
        """
        self.log.info(f"Fetching current data for {len(coin_ids)} coins.")
        for coin_id in coin_ids:
            self._process(
                label=coin_id,
                url=f"{self.base_url}/coins/{coin_id}",
                build=lambda document: build_from_coin_detail(document, coin_id),
                sink=sink,
            )
            self.rate_limiter.acquire()

    def fetch_and_send_simple_prices(self, coin_ids: Sequence[str], sink: RecordSink) -> None:
        """
        One /simple/price request per coin (compact shape).

        The compact shape has no name or symbol, so identities are resolved
        from the coin listing first.
        """
        identities = self.resolve_identities(coin_ids)

        self.log.info(f"Fetching simple prices for {len(coin_ids)} coins.")
        for coin_id in coin_ids:
            identity = identities[coin_id]
            self._process(
                label=coin_id,
                url=f"{self.base_url}/simple/price",
                params={
                    "ids": coin_id,
                    "vs_currencies": "eur,btc,eth,usd",
                    "include_market_cap": "true",
                    "include_24hr_vol": "true",
                    "include_last_updated_at": "true",
                },
                build=lambda payload: self._build_simple_price(payload, identity),
                sink=sink,
            )
            self.rate_limiter.acquire()

    def fetch_and_send_historical(self, coin_ids: Sequence[str],
                                  last_valid_dates: Mapping[str, date],
                                  sink: RecordSink, today: Optional[date] = None) -> None:
        end_date = today or utc_today()
        for coin_id in coin_ids:
            start_date = self.determine_start_date(last_valid_dates.get(coin_id), coin_id, today=end_date)
            if start_date > end_date:
                self.log.info(f"{coin_id} is up to date (checkpoint {last_valid_dates.get(coin_id)}).")
                continue
            self.log.info(f"Resuming history for {coin_id}: {start_date} -> {end_date}.")
            self._walk_history(coin_id, start_date, end_date, sink)

    def fetch_and_send_window(self, coin_ids: Sequence[str], days: int, sink: RecordSink,
                              today: Optional[date] = None) -> None:
        """
        Fetches the last `days` days (today included), ascending, coin by coin.

        Raises:
            ValueError: If `days` is smaller than 1.
        """
        if days < 1:
            raise ValueError(f"The history window must cover at least one day, got {days}.")

        end_date = today or utc_today()
        start_date = end_date - timedelta(days=days - 1)
        self.log.info(f"Fetching a {days}-day window ({start_date} -> {end_date}) for {len(coin_ids)} coins.")
        for coin_id in coin_ids:
            self._walk_history(coin_id, start_date, end_date, sink)

    # --- CHECKPOINTS & IDENTITIES ---

    def determine_start_date(self, last_valid_date: Optional[date], coin_id: str,
                             today: Optional[date] = None) -> date:
        """
        Computes where a historical resumption starts.

        - Checkpoint inside the 365-day window -> the day after the checkpoint.
        - Checkpoint older than the window -> clamped to today - 364.
        - No checkpoint -> today - 365.

        Args:
            last_valid_date (date, optional): The backend's checkpoint for the coin.
            coin_id (str): Used for logging only.
            today (date, optional): Defaults to the current UTC date.
        """
        today = today or utc_today()
        max_past_date = today - timedelta(days=COINGECKO_MAX_PAST_DAYS)

        if last_valid_date is None:
            return max_past_date

        if last_valid_date < max_past_date:
            clamped = max_past_date + timedelta(days=1)
            self.log.info(
                f"The last valid date for {coin_id} ({last_valid_date}) is more than "
                f"{COINGECKO_MAX_PAST_DAYS} days in the past. Adjusting start date to {clamped}."
            )
            return clamped

        return last_valid_date + timedelta(days=1)

    def resolve_identities(self, coin_ids: Sequence[str]) -> Dict[str, CoinIdentity]:
        """
        Looks up name and symbol for each tracked coin in /coins/list.

        Coins missing from the listing (or every coin, if the listing could not
        be fetched) fall back to their id as name and an empty symbol.
        """
        listing = self._fetch_with_retries(
            label="coin listing",
            url=f"{self.base_url}/coins/list",
            build=self._index_listing,
        ) or {}
        self.rate_limiter.acquire()

        identities: Dict[str, CoinIdentity] = {}
        for coin_id in coin_ids:
            identity = listing.get(coin_id)
            if identity is None:
                self.log.warning(f"{coin_id} not found in the CoinGecko listing. Using its id as name.")
                identity = CoinIdentity(coin_id=coin_id, name=coin_id, symbol="")
            identities[coin_id] = identity
        return identities

    # --- UNIT OF WORK ---

    def _walk_history(self, coin_id: str, start_date: date, end_date: date, sink: RecordSink) -> None:
        day = start_date
        while day <= end_date:
            self._process(
                label=f"{coin_id} on {day.isoformat()}",
                url=f"{self.base_url}/coins/{coin_id}/history",
                params={"date": day.strftime(HISTORY_DATE_FORMAT)},
                build=lambda document: build_from_coin_detail(document, coin_id, observed_on=day),
                sink=sink,
                skip_on_permission_denied=True,
            )
            self.rate_limiter.acquire()
            day += timedelta(days=1)

    def _process(self, label: str, url: str, build: Callable[[Any], Optional[CoinRecord]],
                 sink: RecordSink, params: Optional[Dict[str, str]] = None,
                 skip_on_permission_denied: bool = False) -> None:
        record = self._fetch_with_retries(label, url, build, params, skip_on_permission_denied)
        if record is None:
            return
        try:
            sink(record)
        except Exception as error:
            self.log.error(f"Sink rejected the record for {label}: {error}")

    def _fetch_with_retries(self, label: str, url: str, build: Callable[[Any], Optional[T]],
                            params: Optional[Dict[str, str]] = None,
                            skip_on_permission_denied: bool = False) -> Optional[T]:
        """
        Runs the retry loop around GET + parse + build.

        Returns:
            The built value, or None when the unit was abandoned (permission
            denied, retries exhausted, or a build that found no data).
        """
        for attempt in range(self.max_retries):
            try:
                document = parse_json(self.http.get(url, params=params))
                return build(document)
            except HTTPError as error:
                status = error.response.status_code if error.response is not None else None
                if skip_on_permission_denied and status in PERMISSION_DENIED_STATUSES:
                    self.log.warning(f"Skipping {label}: permission denied (HTTP {status}).")
                    return None
                failure: Exception = error
            except (RequestException, ValueError) as error:
                failure = error

            self.log.warning(f"Attempt {attempt + 1}/{self.max_retries} failed for {label}: {failure}")
            if attempt == self.max_retries - 1:
                self.log.error(f"Max retries reached for {label}. Moving on.")
                return None

            backoff_ms = self.retry_delay_ms * (attempt + 1)
            self.log.info(f"Retrying {label} in {backoff_ms} ms.")
            time.sleep(backoff_ms / 1000)

        return None

    # --- RESPONSE ADAPTERS ---

    def _build_simple_price(self, payload: Any, identity: CoinIdentity) -> Optional[CoinRecord]:
        coin_data = payload.get(identity.coin_id) if isinstance(payload, dict) else None
        if not isinstance(coin_data, dict):
            self.log.warning(f"No data returned for {identity.coin_id}.")
            return None
        return build_from_simple_price(coin_data, identity)

    @staticmethod
    def _index_listing(document: Any) -> Dict[str, CoinIdentity]:
        if not isinstance(document, list):
            raise ValueError("The coin listing is not a JSON array.")
        listing: Dict[str, CoinIdentity] = {}
        for entry in document:
            if isinstance(entry, dict) and entry.get("id"):
                listing[entry["id"]] = CoinIdentity(
                    coin_id=entry["id"],
                    name=str(entry.get("name") or entry["id"]),
                    symbol=str(entry.get("symbol") or ""),
                )
        return listing
