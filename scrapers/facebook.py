"""
Marketplace Monitor Facebook Marketplace Scraper
Playwright-based session with a persistent profile for saved logins.
"""

import logging
from typing import List, Optional

from playwright.sync_api import sync_playwright, Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from config import MonitorConfig
from store import Listing
from .base import BaseScraper, ScraperError
from .extraction import LISTING_SELECTORS, PlaywrightNode, extract_listings
from .login import PASSWORD_SELECTOR, ConsoleSignal, console_signal, is_login_wall, wait_for_login
from .profile import cleanup_profile

logger = logging.getLogger(__name__)


def describe_timeout(seconds: int) -> str:
    """Human-readable login window, exact to the second."""
    if seconds >= 60 and seconds % 60 == 0:
        minutes = seconds // 60
        return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"
    return f"{seconds} second" if seconds == 1 else f"{seconds} seconds"


class FacebookScraper(BaseScraper):
    """Scraper for Facebook Marketplace search results using Playwright."""

    def __init__(self, config: MonitorConfig, playwright_instance=None, console: Optional[ConsoleSignal] = None):
        """
        Initialize Facebook scraper.

        Args:
            config: Monitor settings (profile directory, timeouts, query)
            playwright_instance: Optional shared Playwright instance
            console: Signal used to end a manual login wait
        """
        super().__init__("facebook")
        self.config = config
        self._owns_playwright = playwright_instance is None
        self.playwright = playwright_instance
        self.console = console or console_signal()
        self.context = None
        self.page = None
        self._initialized = False

    def _initialize_browser(self):
        """Launch Chromium with the persistent profile (saves cookies/session)."""
        if self._initialized:
            return

        profile_dir = self.config.browser_data_dir
        logger.info(f"Initializing Facebook Marketplace browser (headless={self.config.headless})...")

        # A crashed run can leave the profile locked
        cleanup_profile(profile_dir)

        if self.playwright is None:
            self.playwright = sync_playwright().start()
            self._owns_playwright = True

        self.context = self.playwright.chromium.launch_persistent_context(
            str(profile_dir),
            headless=self.config.headless,
            viewport={"width": 1280, "height": 800},
            user_agent=self.config.user_agent,
            locale="en-US",
            args=[
                "--disable-blink-features=AutomationControlled",
                "--disable-dev-shm-usage",
            ],
        )

        self.page = self.context.pages[0] if self.context.pages else self.context.new_page()
        self.page.set_default_timeout(self.config.page_load_timeout_ms)
        self.page.on("pageerror", lambda error: logger.debug(f"Browser error: {error}"))

        self._initialized = True
        logger.info("Browser initialized")

    def open_search(self):
        """Navigate to the marketplace search and let lazy content settle."""
        self._initialize_browser()
        url = self.config.search_url
        logger.info(f"Navigating to: {url}")
        # 'load' rather than 'networkidle': Facebook never goes network idle
        self.page.goto(url, wait_until="load", timeout=self.config.page_load_timeout_ms)
        self.page.wait_for_timeout(self.config.settle_delay_ms)

    def login_required(self) -> bool:
        """Check if the current page is a login wall."""
        return is_login_wall(self.page.content())

    def wait_for_manual_login(self):
        """
        Wait for the user to log in through the browser window.

        Ends when Enter is pressed in the terminal or the page leaves the
        login state, then reloads the search page.

        Raises:
            LoginTimeoutError: if login does not complete within the configured timeout
        """
        timeout_seconds = self.config.login_timeout_seconds
        self.capture_diagnostics("facebook_login_page")

        logger.warning("Facebook login required")
        print("\n" + "=" * 50)
        print("MANUAL LOGIN REQUIRED")
        print("Please log in to Facebook in the opened browser window.")
        print(f"You have {describe_timeout(timeout_seconds)} to complete login.")
        print("Press ENTER here after you see the Marketplace...")
        print("=" * 50 + "\n")

        start_url = self.page.url
        had_password_field = self._has_password_field()

        def page_ready() -> bool:
            if self.page.is_closed():
                raise ScraperError("Browser page was closed during login")
            try:
                if self.page.url != start_url:
                    return True
                return had_password_field and not self._has_password_field()
            except PlaywrightError as e:
                # Mid-navigation; probe again on the next tick
                logger.debug(f"Login probe failed: {e}")
                return False

        woken_by = wait_for_login(page_ready, self.console, timeout_seconds)
        logger.info(f"Login detected ({woken_by}). Session will be reused in future runs.")

        self.page.wait_for_timeout(self.config.settle_delay_ms)
        self.open_search()

    def _has_password_field(self) -> bool:
        return self.page.query_selector(PASSWORD_SELECTOR) is not None

    def collect_listings(self) -> List[Listing]:
        """
        Extract all listings from the search results page.

        Selectors are tried in order; if none matches, the batch is empty.

        Returns:
            Listings in page order, one per distinct link
        """
        handles = []
        for selector in LISTING_SELECTORS:
            try:
                self.page.wait_for_selector(selector, timeout=self.config.selector_timeout_ms)
                handles = self.page.query_selector_all(selector)
            except PlaywrightTimeout:
                logger.info(f"Selector {selector} not found")
                continue
            logger.info(f"Found {len(handles)} items with selector: {selector}")
            if handles:
                break

        if not handles:
            logger.warning("No listing selector matched, treating this batch as empty")
            self.capture_diagnostics("marketplace_no_listings")
            return []

        listings = extract_listings(PlaywrightNode(handle) for handle in handles)
        logger.info(f"Facebook: Extracted {len(listings)} listings")
        return listings

    def capture_diagnostics(self, name: str):
        """Save a full-page screenshot and the page HTML to the assets directory."""
        if self.page is None:
            return
        assets_dir = self.config.assets_dir
        try:
            assets_dir.mkdir(parents=True, exist_ok=True)
            self.page.screenshot(path=str(assets_dir / f"{name}.png"), full_page=True)
            (assets_dir / f"{name}.html").write_text(self.page.content(), encoding="utf-8")
            logger.debug(f"Saved diagnostics to {assets_dir / name}.*")
        except Exception as e:
            logger.error(f"Failed to save diagnostics {name}: {e}")

    def close(self):
        """Close browser and clean up."""
        try:
            if self.context:
                try:
                    # Force cookie flush by saving storage state before closing
                    self.context.storage_state(path=str(self.config.browser_data_dir / "storage_state.json"))
                    logger.debug("Saved storage state before closing")
                except Exception as e:
                    logger.debug(f"Could not save storage state: {e}")
                self.context.close()
                self.context = None
                self.page = None
            if self._owns_playwright and self.playwright:
                self.playwright.stop()
                self.playwright = None
            self._initialized = False
            logger.info("Facebook browser closed")
        except Exception as e:
            logger.error(f"Error closing browser: {e}")
