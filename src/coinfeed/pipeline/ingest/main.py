"""
Main Execution Entry Point for the Ingestion Client.

Wires the collaborators together (config -> HTTP clients -> rate limiter ->
data source -> backend gateway -> orchestrator) and runs the selected pass.

Usage:
    python -m coinfeed.pipeline.ingest.main --mode current
    python -m coinfeed.pipeline.ingest.main --mode window --days 60 --coins bitcoin,ethereum
"""

import argparse
import sys
from typing import List, Optional

from requests.exceptions import RequestException

from coinfeed.pipeline.ingest.backend_gateway import BackendGateway
from coinfeed.pipeline.ingest.coingecko_source import CoinGeckoDataSource
from coinfeed.pipeline.ingest.config import IngestionConfig, parse_coin_ids
from coinfeed.pipeline.ingest.orchestrator import IngestionOrchestrator
from coinfeed.utils.http_client import HttpClient
from coinfeed.utils.logger import get_logger
from coinfeed.utils.rate_limiter import RateLimiter

DEFAULT_WINDOW_DAYS = 60

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CoinGecko -> backend ingestion client")

    # Argument 1: The Mode (which access pattern to run)
    parser.add_argument(
        "--mode",
        choices=["current", "simple", "historical", "window"],
        required=True,
        help="'current' (coin detail snapshot), 'simple' (simple price snapshot), "
             "'historical' (resume from backend checkpoints) or 'window' (fixed look-back)."
    )

    # Argument 2: Window size, only used by --mode window
    parser.add_argument(
        "--days",
        type=int,
        default=DEFAULT_WINDOW_DAYS,
        help=f"Number of most recent days to fetch in 'window' mode (default {DEFAULT_WINDOW_DAYS})."
    )

    # Argument 3: Catalog override for a single run
    parser.add_argument(
        "--coins",
        default=None,
        help="Comma-separated CoinGecko ids, overriding the configured catalog for this run."
    )

    return parser

def main(argv: Optional[List[str]] = None) -> int:
    """
    Parses command-line arguments, assembles the pipeline and runs one pass.

    Returns:
        int: The process exit status (1 if the backend checkpoints could not be read).
    """
    log = get_logger("IngestionMain")
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.days < 1:
        parser.error("--days must be at least 1.")

    try:
        config = IngestionConfig.from_env()
        if args.coins:
            config = config.with_coin_ids(parse_coin_ids(args.coins))
    except ValueError as error:
        parser.error(f"Invalid configuration: {error}")

    log.info(f"=== INGESTION STARTED | Mode: {args.mode.upper()} | Coins: {len(config.coin_ids)} ===")

    with HttpClient(timeout=config.request_timeout, headers=config.coingecko_headers) as coingecko_http, \
         HttpClient(timeout=config.request_timeout) as backend_http:

        data_source = CoinGeckoDataSource(config, coingecko_http, RateLimiter(config.rate_limit_delay_ms))
        gateway = BackendGateway(config.backend_url, backend_http)
        orchestrator = IngestionOrchestrator(config, data_source, gateway)

        try:
            if args.mode == "current":
                orchestrator.run_current()
            elif args.mode == "simple":
                orchestrator.run_simple_prices()
            elif args.mode == "historical":
                orchestrator.run_historical()
            elif args.mode == "window":
                orchestrator.run_window(args.days)
        except RequestException as error:
            log.error(f"Backend checkpoints unavailable, historical pass aborted: {error}")
            log.info("=== INGESTION ABORTED ===")
            return 1

    log.info("=== INGESTION FINISHED ===")
    return 0

if __name__ == "__main__":
    sys.exit(main())
