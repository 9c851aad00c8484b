"""Marketplace Monitor Scrapers Package"""

from .base import BaseScraper, LoginTimeoutError, ScraperError
from .facebook import FacebookScraper

__all__ = ["BaseScraper", "FacebookScraper", "LoginTimeoutError", "ScraperError"]
