"""
Marketplace Monitor Base Scraper
Abstract base class for the browser session the monitor drives.
"""

from abc import ABC, abstractmethod
from typing import List

from store import Listing


class ScraperError(Exception):
    """Raised when the browser session cannot complete a step."""


class LoginTimeoutError(ScraperError):
    """Raised when a manual login does not complete in time."""


class BaseScraper(ABC):
    """Abstract base class for marketplace browser sessions.

    Usable as a context manager; ``close`` runs on exit.
    """

    def __init__(self, platform: str):
        """
        Initialize the scraper.

        Args:
            platform: Platform identifier (e.g., 'facebook')
        """
        self.platform = platform

    @abstractmethod
    def open_search(self):
        """Navigate to the search results page and wait for it to load."""
        pass

    @abstractmethod
    def login_required(self) -> bool:
        """Check whether the current page is a login wall."""
        pass

    @abstractmethod
    def wait_for_manual_login(self):
        """
        Block until the operator has logged in.

        Raises:
            LoginTimeoutError: if the login does not complete in time
        """
        pass

    @abstractmethod
    def collect_listings(self) -> List[Listing]:
        """Extract every listing on the current page."""
        pass

    @abstractmethod
    def capture_diagnostics(self, name: str):
        """Save a screenshot and HTML snapshot under ``name``. Never raises."""
        pass

    @abstractmethod
    def close(self):
        """Clean up any resources (browser, connections, etc.)."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
