from typing import Optional

from coinfeed.pipeline.ingest.backend_gateway import BackendGateway
from coinfeed.pipeline.ingest.base_source import BaseDataSource
from coinfeed.pipeline.ingest.config import IngestionConfig
from coinfeed.utils.logger import PipelineLogger, get_logger

class IngestionOrchestrator:
    """
    Drives one ingestion pass over the configured coin catalog.

    The orchestrator owns no state of its own: the catalog comes from the
    injected IngestionConfig, records flow straight from the data source into
    `gateway.send`, and checkpoints are read fresh on every historical pass.
    """

    def __init__(self, config: IngestionConfig, data_source: BaseDataSource,
                 gateway: BackendGateway, log: Optional[PipelineLogger] = None) -> None:
        self.config = config
        self.data_source = data_source
        self.gateway = gateway
        self.log = log or get_logger("IngestionOrchestrator")

    def run_current(self) -> None:
        """Current snapshot of every coin, detail shape."""
        self.log.info("Updating current crypto data.")
        self.data_source.fetch_and_send_current(self.config.coin_ids, self.gateway.send)
        self.log.info("Current crypto data update completed.")

    def run_simple_prices(self) -> None:
        """Current snapshot of every coin, compact /simple/price shape."""
        self.log.info("Updating current crypto prices (simple price endpoint).")
        self.data_source.fetch_and_send_simple_prices(self.config.coin_ids, self.gateway.send)
        self.log.info("Simple price update completed.")

    def run_historical(self) -> None:
        """
        Resumes every coin from its backend checkpoint up to today.

        All checkpoints are read before the first historical request. If the
        backend cannot be reached the exception propagates and nothing is
        fetched, rather than replaying a full year for every coin.
        """
        self.log.info("Fetching and updating historical data.")
        last_valid_dates = self.gateway.get_last_valid_dates(self.config.coin_ids)
        self.log.info(f"Checkpoints found for {len(last_valid_dates)}/{len(self.config.coin_ids)} coins.")
        self.data_source.fetch_and_send_historical(self.config.coin_ids, last_valid_dates, self.gateway.send)
        self.log.info("Historical data update completed.")

    def run_window(self, days: int) -> None:
        """Fixed look-back of `days` days for every coin, ignoring checkpoints."""
        self.log.info(f"Fetching all historical data for the last {days} days.")
        self.data_source.fetch_and_send_window(self.config.coin_ids, days, self.gateway.send)
        self.log.info("Historical window fetch completed.")
