from abc import ABC, abstractmethod
from datetime import date
from typing import Callable, Mapping, Sequence

from coinfeed.pipeline.ingest.coin_record import CoinRecord

# The single capability a data source needs from the backend: "accept one record"
RecordSink = Callable[[CoinRecord], None]

class BaseDataSource(ABC):
    """
    The Abstract Blueprint for Market-Data Sources.

    Every provider exposes the same four access patterns so the orchestrator
    can drive any of them without knowing the provider's URL layout, response
    shapes or failure semantics.

    Implementation Requirements (all patterns):
        - Process one coin and one date at a time, sequentially.
        - Wrap each fetch in the provider's retry policy; a failed unit is
          logged and abandoned, never raised to the caller.
        - Hand each finished record to `sink` exactly once.
        - Respect the provider's rate limit between units.
    """

    @abstractmethod
    def fetch_and_send_current(self, coin_ids: Sequence[str], sink: RecordSink) -> None:
        """
        Fetches the latest snapshot of every coin and forwards it to the sink.
        """
        pass

    @abstractmethod
    def fetch_and_send_simple_prices(self, coin_ids: Sequence[str], sink: RecordSink) -> None:
        """
        Fetches the latest prices of every coin from the provider's lightweight
        price endpoint and forwards them to the sink.
        """
        pass

    @abstractmethod
    def fetch_and_send_historical(self, coin_ids: Sequence[str],
                                  last_valid_dates: Mapping[str, date],
                                  sink: RecordSink) -> None:
        """
        Resumes each coin's daily history from its checkpoint up to today.

        Args:
            coin_ids: The catalog to walk.
            last_valid_dates: Checkpoint per coin; coins missing from the map
                have never been ingested.
            sink: Receives one record per (coin, day).
        """
        pass

    @abstractmethod
    def fetch_and_send_window(self, coin_ids: Sequence[str], days: int, sink: RecordSink) -> None:
        """
        Fetches the most recent `days` days of history for every coin,
        regardless of any checkpoint.
        """
        pass
