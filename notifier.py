"""
Marketplace Monitor Notifier Module
Console alerts, desktop notifications and an optional Discord webhook.
"""

import logging
import shutil
import subprocess
import sys
import time
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import requests

from config import MonitorConfig
from store import Listing

logger = logging.getLogger(__name__)

COLORS = {
    "reset": "\x1b[0m",
    "bright": "\x1b[1m",
    "dim": "\x1b[2m",
    "underscore": "\x1b[4m",
    "black": "\x1b[30m",
    "yellow": "\x1b[33m",
    "blue": "\x1b[34m",
    "magenta": "\x1b[35m",
    "cyan": "\x1b[36m",
    "bg_green": "\x1b[42m",
}

BELL = "\x07"
MAX_TITLES_IN_ALERT = 3

# Discord rate limit: 30 requests per minute
RATE_LIMIT_DELAY = 2.1  # seconds between requests to stay under limit
MAX_EMBEDS_PER_MESSAGE = 10


def _paint(text: str, *styles: str) -> str:
    """Wrap text in ANSI styles when writing to a terminal."""
    if not sys.stdout.isatty():
        return text
    return "".join(COLORS[style] for style in styles) + text + COLORS["reset"]


def _timestamp(moment: Optional[datetime] = None) -> str:
    return (moment or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")


def format_alert_title(count: int, query: str) -> str:
    return f"{count} new {query} items found!"


def format_alert_body(listings: List[Listing]) -> str:
    """Summarize up to three titles, mentioning how many were left out."""
    titles = [listing.title or "Unnamed item" for listing in listings[:MAX_TITLES_IN_ALERT]]
    body = ", ".join(titles)
    if len(listings) > MAX_TITLES_IN_ALERT:
        body += f" and {len(listings) - MAX_TITLES_IN_ALERT} more..."
    return body


def print_alert(listings: List[Listing], query: str):
    """Print the new-items block to the terminal."""
    rule = _paint("=" * 44, "bright", "yellow")
    lines = [
        "",
        _paint("ALERT! NEW MARKETPLACE ITEMS FOUND!", "bg_green", "black", "bright") + BELL,
        rule,
        f"[{_timestamp()}] Found {len(listings)} new items for \"{query}\":",
        rule,
    ]
    for listing in listings:
        lines.append(_paint(listing.price or "", "yellow"))
        lines.append(_paint(listing.title or "No Title", "bright", "cyan"))
        lines.append(_paint(f"Location: {listing.location or 'No Location'}", "magenta"))
        lines.append(_paint(listing.link or "", "underscore", "blue"))
        lines.append("")
    lines.append(rule)
    print("\n".join(lines), flush=True)


def log_no_new_items(query: str):
    print(_paint(f"[{_timestamp()}] No new items for \"{query}\".", "dim"), flush=True)


def log_next_run(now: datetime, interval_seconds: float):
    next_run = now + timedelta(seconds=interval_seconds)
    print(f"done checking marketplace {_timestamp(now)} , will run next {_timestamp(next_run)}", flush=True)


def _escape_applescript(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def send_desktop_notification(title: str, body: str, platform: Optional[str] = None) -> bool:
    """
    Show a desktop notification.

    Args:
        title: Notification title
        body: Notification text
        platform: Override for sys.platform (testing)

    Returns:
        True if the notification command ran successfully
    """
    platform = platform or sys.platform

    if platform == "darwin":
        script = (
            f'display notification "{_escape_applescript(body)}" '
            f'with title "{_escape_applescript(title)}" sound name "Ping"'
        )
        command = ["osascript", "-e", script]
    elif platform.startswith("linux"):
        if shutil.which("notify-send") is None:
            logger.warning("notify-send not installed, skipping desktop notification")
            return False
        command = ["notify-send", title, body]
    else:
        logger.warning(f"Desktop notifications not supported on {platform}")
        return False

    try:
        subprocess.run(command, check=True, capture_output=True, timeout=10)
    except (OSError, subprocess.SubprocessError) as e:
        logger.error(f"Error sending desktop notification: {e}")
        return False

    logger.debug("Desktop notification sent")
    return True


def _is_valid_url(url: str) -> bool:
    """Check if URL is valid for Discord embeds."""
    if not url:
        return False
    return url.startswith("http://") or url.startswith("https://")


def _create_embed(listing: Listing) -> dict:
    """Create a Discord embed for a listing."""
    # Ensure title is not empty
    title = (listing.title or "Listing")[:256]

    embed = {
        "title": title,
        "color": 0x1877F2,  # Facebook blue
        "fields": [
            {"name": "Price", "value": listing.price or "Not listed", "inline": True},
        ],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    # Only add URL if valid (Discord rejects invalid URLs)
    if _is_valid_url(listing.link):
        embed["url"] = listing.link

    if listing.location:
        embed["description"] = f"📍 {listing.location}"

    return embed


def send_discord_batch(webhook_url: str, listings: List[Listing]) -> int:
    """
    Send listings to a Discord webhook.

    Args:
        webhook_url: Discord webhook URL
        listings: Listings to send

    Returns:
        Number of listings sent successfully
    """
    sent = 0

    # Send in batches of MAX_EMBEDS_PER_MESSAGE
    for i in range(0, len(listings), MAX_EMBEDS_PER_MESSAGE):
        batch = listings[i:i + MAX_EMBEDS_PER_MESSAGE]
        payload = {"embeds": [_create_embed(listing) for listing in batch]}

        try:
            response = requests.post(webhook_url, json=payload, timeout=10)

            if response.status_code == 429:
                # Rate limited, wait and retry once
                retry_after = response.json().get("retry_after", 5)
                logger.warning(f"Rate limited, waiting {retry_after}s")
                time.sleep(retry_after)
                response = requests.post(webhook_url, json=payload, timeout=10)

            if response.status_code == 204:
                sent += len(batch)
                logger.info(f"Sent batch of {len(batch)} listings to Discord")
            else:
                logger.error(f"Discord error {response.status_code}: {response.text}")

        except requests.RequestException as e:
            logger.error(f"Failed to send Discord batch: {e}")

        # Rate limit delay between batches
        if i + MAX_EMBEDS_PER_MESSAGE < len(listings):
            time.sleep(RATE_LIMIT_DELAY)

    return sent


class Notifier:
    """Fans new listings out to the console, the desktop and Discord."""

    def __init__(self, config: MonitorConfig):
        self.config = config

    def notify(self, listings: List[Listing]):
        """Announce new listings. Channel failures are logged, never raised."""
        if not listings:
            return

        query = self.config.query

        try:
            print_alert(listings, query)
        except Exception as e:
            logger.error(f"Failed to print alert: {e}")

        if self.config.desktop_notifications:
            try:
                send_desktop_notification(format_alert_title(len(listings), query), format_alert_body(listings))
            except Exception as e:
                logger.error(f"Error sending desktop notification: {e}")

        if self.config.discord_webhook_url:
            try:
                sent = send_discord_batch(self.config.discord_webhook_url, listings)
                logger.info(f"Sent {sent} notifications to Discord")
            except Exception as e:
                logger.error(f"Failed to send Discord notifications: {e}")
