import json
from datetime import date
from typing import Dict, Optional, Sequence

from requests.exceptions import RequestException

from coinfeed.pipeline.ingest.coin_record import CoinRecord
from coinfeed.utils.http_client import HttpClient
from coinfeed.utils.json_fields import get_text, parse_json
from coinfeed.utils.logger import PipelineLogger, get_logger

class BackendGateway:
    """
    The client side of the backend ingestion service.

    Two operations with different failure contracts:

    - `send` is best effort. A rejected or unreachable POST is logged and
      swallowed, so one bad record never aborts an ingestion pass.
    - `get_last_valid_date` propagates transport faults; only an answered
      request without a date means "no checkpoint".

    Attributes:
        backend_url (str): The POST target; checkpoints live under
            '{backend_url}/{coin_id}/lastValidDate'.
    """

    def __init__(self, backend_url: str, http_client: HttpClient,
                 log: Optional[PipelineLogger] = None) -> None:
        self.backend_url: str = backend_url.rstrip("/")
        self.http = http_client
        self.log = log or get_logger("BackendGateway")

    def send(self, record: CoinRecord) -> None:
        """
        Serializes one record and POSTs it to the backend. Never raises on
        HTTP or network failure.
        """
        body = json.dumps(record.to_payload())
        label = f"{record.coin_id} @ {record.timestamp.isoformat()}"
        self.log.info(f"Sending coin data to backend: {label}")

        try:
            response = self.http.post(self.backend_url, body)
        except RequestException as error:
            self.log.error(
                f"Error sending {label} to backend. Make sure the backend service is "
                f"running and accessible. ({error})"
            )
            return

        self.log.info(f"Backend accepted {label} (HTTP {response.status_code}).")

    def get_last_valid_date(self, coin_id: str) -> Optional[date]:
        """
        Asks the backend for the last day it holds history for.

        The backend answers with an envelope such as
        {"success": true, "data": "2023-05-01", "message": "..."}.

        Returns:
            date: The checkpoint, or None if the backend has none or the
                envelope/date is malformed.

        Raises:
            requests.exceptions.RequestException: If the backend cannot be
                reached or answers with a non-2xx status.
        """
        url = f"{self.backend_url}/{coin_id}/lastValidDate"

        try:
            body = self.http.get(url)
        except RequestException as error:
            self.log.error(f"Failed to get last valid date for {coin_id}. Error: {error}")
            raise

        try:
            envelope = parse_json(body)
        except ValueError:
            self.log.warning(f"Malformed checkpoint response for {coin_id}: {body[:200]!r}")
            return None

        date_string = get_text(envelope, "data")
        if not date_string:
            self.log.warning(f"No valid date found for {coin_id}.")
            return None

        try:
            last_valid_date = date.fromisoformat(date_string)
        except ValueError:
            self.log.warning(f"Failed to parse date for {coin_id}. Date string: {date_string}")
            return None

        self.log.info(f"Last valid date for {coin_id} is {last_valid_date}.")
        return last_valid_date

    def get_last_valid_dates(self, coin_ids: Sequence[str]) -> Dict[str, date]:
        """
        Collects the checkpoint of every coin; coins without one are left out.

        Raises:
            requests.exceptions.RequestException: On the first unreachable checkpoint.
        """
        result: Dict[str, date] = {}
        for coin_id in coin_ids:
            last_valid_date = self.get_last_valid_date(coin_id)
            if last_valid_date is not None:
                result[coin_id] = last_valid_date
        return result
