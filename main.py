"""
Marketplace Monitor - Facebook Marketplace Watcher
Main entry point and orchestration loop.
"""

import sys
import signal
import logging
import argparse
from pathlib import Path

from config import LOG_FILE, MonitorConfig
from monitor import MarketplaceMonitor
from scrapers.extraction import parse_snapshot

logger = logging.getLogger("MarketplaceMonitor")


def configure_logging(verbose: bool = False):
    """Log to the log file and stdout."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(LOG_FILE),
            logging.StreamHandler(sys.stdout),
        ],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Marketplace Monitor - Facebook Marketplace Watcher")
    parser.add_argument("--query", help="Search term (overrides SEARCH_QUERY)")
    parser.add_argument(
        "--interval-ms",
        type=int,
        help="Milliseconds between checks (overrides CHECK_INTERVAL_MS)",
    )
    parser.add_argument("--once", action="store_true", help="Run a single check and exit")
    parser.add_argument(
        "--headless",
        action="store_true",
        default=None,
        help="Run the browser without a window (manual login is not possible)",
    )
    parser.add_argument(
        "--replay",
        type=Path,
        metavar="HTML_FILE",
        help="Extract listings from a saved page snapshot and print them",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def replay_snapshot(path: Path) -> int:
    """Print the listings found in a saved HTML snapshot."""
    listings = parse_snapshot(path.read_text(encoding="utf-8"))
    for listing in listings:
        print(f"{listing.price or '-'} | {listing.title or 'No Title'} | {listing.location or '-'} | {listing.link}")
    logger.info(f"{len(listings)} listings in {path}")
    return 0


def run_monitor(config: MonitorConfig, once: bool = False) -> int:
    """
    Main monitoring loop.

    Args:
        config: Monitor settings
        once: If True, run a single check
    """
    logger.info("=" * 50)
    logger.info("Marketplace Monitor Starting")
    logger.info("=" * 50)

    # Without these directories nothing can be persisted; let it fail
    config.ensure_directories()

    monitor = MarketplaceMonitor(config)

    def signal_handler(signum, frame):
        """Handle shutdown signals gracefully."""
        if not monitor.running:
            # Second Ctrl+C = force exit immediately
            logger.info("Force exit...")
            sys.exit(1)
        logger.info("Shutdown signal received, stopping... (press Ctrl+C again to force)")
        monitor.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info("Press Ctrl+C to stop")
    monitor.run_forever(max_cycles=1 if once else None)
    logger.info("Marketplace Monitor stopped")
    return 0


def main(argv=None) -> int:
    """Entry point with argument parsing."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    if args.replay:
        return replay_snapshot(args.replay)

    config = MonitorConfig.from_env(
        query=args.query,
        interval_ms=args.interval_ms,
        headless=args.headless,
    )
    return run_monitor(config, once=args.once)


if __name__ == "__main__":
    sys.exit(main())
