"""
Marketplace Monitor Configuration
Loads settings from environment variables and defines constants.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Base directory (where this script lives)
BASE_DIR = Path(__file__).parent.resolve()

# Search
SEARCH_QUERY = os.getenv("SEARCH_QUERY", "macbook")

# Timing
CHECK_INTERVAL_MS = int(os.getenv("CHECK_INTERVAL_MS", str(10 * 60 * 1000)))
LOGIN_TIMEOUT_SECONDS = int(os.getenv("LOGIN_TIMEOUT_SECONDS", "300"))
PAGE_LOAD_TIMEOUT_MS = int(os.getenv("PAGE_LOAD_TIMEOUT_MS", "30000"))
SETTLE_DELAY_MS = int(os.getenv("SETTLE_DELAY_MS", "3000"))
SELECTOR_TIMEOUT_MS = int(os.getenv("SELECTOR_TIMEOUT_MS", "10000"))

# File paths
DATA_DIR = BASE_DIR / os.getenv("DATA_DIR", "data")
ASSETS_DIR = BASE_DIR / os.getenv("ASSETS_DIR", "assets")
LOG_FILE = BASE_DIR / os.getenv("LOG_FILE", "marketplace_monitor.log")
BROWSER_DATA_DIR = BASE_DIR / os.getenv("BROWSER_DATA_DIR", "user_data_dir")

# Browser settings
# Keep false so a manual Facebook login is possible
HEADLESS = os.getenv("HEADLESS", "false").lower() == "true"

# Notifications
DESKTOP_NOTIFICATIONS = os.getenv("DESKTOP_NOTIFICATIONS", "true").lower() == "true"
DISCORD_WEBHOOK_URL = os.getenv("DISCORD_WEBHOOK_URL", "")

# Facebook Marketplace settings
FACEBOOK_MARKETPLACE_URL = "https://www.facebook.com/marketplace"

# User agent for the browser session
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    return value.lower() == "true" if value else default


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name)
    return BASE_DIR / value if value else default


@dataclass
class MonitorConfig:
    """Settings for one monitor instance.

    ``query`` and ``interval_ms`` are the two options an operator normally
    changes; everything else has a working default.
    """
    query: str = SEARCH_QUERY
    interval_ms: int = CHECK_INTERVAL_MS
    data_dir: Path = DATA_DIR
    assets_dir: Path = ASSETS_DIR
    browser_data_dir: Path = BROWSER_DATA_DIR
    headless: bool = HEADLESS
    login_timeout_seconds: int = LOGIN_TIMEOUT_SECONDS
    page_load_timeout_ms: int = PAGE_LOAD_TIMEOUT_MS
    settle_delay_ms: int = SETTLE_DELAY_MS
    selector_timeout_ms: int = SELECTOR_TIMEOUT_MS
    marketplace_url: str = FACEBOOK_MARKETPLACE_URL
    user_agent: str = USER_AGENT
    discord_webhook_url: Optional[str] = field(default=DISCORD_WEBHOOK_URL or None)
    desktop_notifications: bool = DESKTOP_NOTIFICATIONS

    @classmethod
    def from_env(cls, **overrides) -> "MonitorConfig":
        """
        Build a config from the environment as it is now.

        Variables unset at call time fall back to the values read at import
        (including .env). Overrides win over the environment; ``None``
        overrides are ignored.
        """
        settings = {
            "query": os.getenv("SEARCH_QUERY") or SEARCH_QUERY,
            "interval_ms": _env_int("CHECK_INTERVAL_MS", CHECK_INTERVAL_MS),
            "data_dir": _env_path("DATA_DIR", DATA_DIR),
            "assets_dir": _env_path("ASSETS_DIR", ASSETS_DIR),
            "browser_data_dir": _env_path("BROWSER_DATA_DIR", BROWSER_DATA_DIR),
            "headless": _env_bool("HEADLESS", HEADLESS),
            "login_timeout_seconds": _env_int("LOGIN_TIMEOUT_SECONDS", LOGIN_TIMEOUT_SECONDS),
            "page_load_timeout_ms": _env_int("PAGE_LOAD_TIMEOUT_MS", PAGE_LOAD_TIMEOUT_MS),
            "settle_delay_ms": _env_int("SETTLE_DELAY_MS", SETTLE_DELAY_MS),
            "selector_timeout_ms": _env_int("SELECTOR_TIMEOUT_MS", SELECTOR_TIMEOUT_MS),
            "discord_webhook_url": os.getenv("DISCORD_WEBHOOK_URL") or DISCORD_WEBHOOK_URL or None,
            "desktop_notifications": _env_bool("DESKTOP_NOTIFICATIONS", DESKTOP_NOTIFICATIONS),
        }
        settings.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**settings)

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000

    @property
    def search_url(self) -> str:
        """Marketplace search URL, newest listings first."""
        params = {
            "query": self.query,
            "sortBy": "creation_time_descend",
        }
        return f"{self.marketplace_url}/search/?{urlencode(params)}"

    def ensure_directories(self):
        """Create data, assets and browser profile directories."""
        for directory in (self.data_dir, self.assets_dir, self.browser_data_dir):
            Path(directory).mkdir(parents=True, exist_ok=True)
