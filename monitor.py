"""
Marketplace Monitor Loop
Runs the navigate, extract, diff, notify and reconcile cycle on a fixed interval.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from config import MonitorConfig
from diff import diff, merge
from notifier import Notifier, log_next_run, log_no_new_items
from scrapers import BaseScraper, FacebookScraper, LoginTimeoutError
from store import NEW, SEEN, Listing, ListingStore

logger = logging.getLogger(__name__)


class MonitorState(Enum):
    IDLE = "idle"
    NAVIGATING = "navigating"
    DETECTING_LOGIN = "detecting_login"
    WAITING_FOR_LOGIN = "waiting_for_login"
    EXTRACTING = "extracting"
    DIFFING = "diffing"
    NOTIFYING = "notifying"
    RECONCILING = "reconciling"
    SLEEPING = "sleeping"


@dataclass
class CycleResult:
    """What one cycle extracted and which of those listings were new."""
    batch: List[Listing] = field(default_factory=list)
    new_items: List[Listing] = field(default_factory=list)


class MarketplaceMonitor:
    """Coordinates browser, store and notifier for each check."""

    def __init__(
        self,
        config: MonitorConfig,
        store: Optional[ListingStore] = None,
        notifier: Optional[Notifier] = None,
        scraper_factory: Callable[[MonitorConfig], BaseScraper] = FacebookScraper,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            config: Monitor settings
            store: Listing store; defaults to one rooted at ``config.data_dir``
            notifier: Notifier; defaults to one built from ``config``
            scraper_factory: Builds a fresh browser session per cycle
            sleep: Blocking sleep, one-second slices at a time
        """
        self.config = config
        self.store = store or ListingStore(config.data_dir)
        self.notifier = notifier or Notifier(config)
        self.scraper_factory = scraper_factory
        self._sleep = sleep
        self.state = MonitorState.IDLE
        self.running = False

    def _transition(self, state: MonitorState):
        logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state

    def run_cycle(self) -> CycleResult:
        """
        Run one full check.

        Whatever happens, the current batch on disk is reconciled into the
        seen listings before returning, so a batch saved by a crashed cycle
        is picked up by the next one.

        Returns:
            The extracted batch and the listings that were new

        Raises:
            LoginTimeoutError: if a manual login was needed and never completed
            Exception: navigation, browser or persistence failures
        """
        result = CycleResult()
        try:
            self._transition(MonitorState.NAVIGATING)
            with self.scraper_factory(self.config) as scraper:
                try:
                    self._check(scraper, result)
                except Exception:
                    scraper.capture_diagnostics("facebook_error_page")
                    raise
        finally:
            self._transition(MonitorState.RECONCILING)
            self.reconcile()
        return result

    def _check(self, scraper: BaseScraper, result: CycleResult):
        scraper.open_search()

        self._transition(MonitorState.DETECTING_LOGIN)
        if scraper.login_required():
            self._transition(MonitorState.WAITING_FOR_LOGIN)
            scraper.wait_for_manual_login()

        self._transition(MonitorState.EXTRACTING)
        result.batch = scraper.collect_listings()

        self._transition(MonitorState.DIFFING)
        self.store.save(NEW, result.batch)
        result.new_items = diff(result.batch, self.store.load(SEEN))

        self._transition(MonitorState.NOTIFYING)
        if result.new_items:
            logger.info(f"{len(result.new_items)} new listings for '{self.config.query}'")
            self.notifier.notify(result.new_items)
        else:
            log_no_new_items(self.config.query)

        scraper.capture_diagnostics("marketplace_debug")

    def reconcile(self) -> List[Listing]:
        """
        Fold the saved batch into the seen listings and clear the batch.

        Both files are re-read from disk rather than taken from memory.

        Returns:
            Listings that were added to the seen set
        """
        seen = self.store.load(SEEN)
        batch = self.store.load(NEW)
        merged = merge(seen, batch)
        added = merged[len(seen):]
        if added:
            self.store.save(SEEN, merged)
            logger.info(f"Recorded {len(added)} listings as seen ({len(merged)} total)")
        self.store.clear(NEW)
        return added

    def run_forever(self, max_cycles: Optional[int] = None):
        """
        Check repeatedly until stopped.

        A failed cycle is logged and the loop carries on.

        Args:
            max_cycles: Stop after this many cycles (None runs until stopped)
        """
        self.running = True
        cycles = 0
        logger.info(f"Monitoring '{self.config.query}' every {self.config.interval_seconds:.0f}s")

        while self.running:
            cycles += 1
            logger.info(f"--- Check #{cycles} at {datetime.now().strftime('%H:%M:%S')} ---")
            try:
                self.run_cycle()
            except LoginTimeoutError as e:
                logger.error(f"Login timeout, skipping this check: {e}")
            except Exception as e:
                logger.error(f"Error during check: {e}", exc_info=True)

            if max_cycles is not None and cycles >= max_cycles:
                break
            if not self.running:
                break

            self._transition(MonitorState.SLEEPING)
            log_next_run(datetime.now(), self.config.interval_seconds)
            self._wait(self.config.interval_seconds)

        self.running = False
        self._transition(MonitorState.IDLE)

    def _wait(self, seconds: float):
        # Short sleeps so a stop request is honoured quickly
        remaining = seconds
        while remaining > 0 and self.running:
            step = min(1.0, remaining)
            self._sleep(step)
            remaining -= step

    def stop(self):
        """Ask the loop to exit after the current step."""
        self.running = False
