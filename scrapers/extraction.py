"""
Marketplace Monitor Field Extraction
Heuristic title/price/location extraction from loosely structured listing cards.

Each field is resolved by an ordered list of strategies. A strategy returns
the field value or None; the first non-empty value wins. Markup drift only
ever costs a field, never the listing or the batch.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Callable, Iterable, Iterator, List, Optional, Sequence
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from store import Listing

logger = logging.getLogger(__name__)

# Tried in order until one yields listing anchors
LISTING_SELECTORS = [
    '[aria-label="Search results"] a[href*="/marketplace/item/"]',
    'a[href*="/marketplace/item/"]',
    '[role="article"] a[href*="marketplace/item"]',
    '[data-pagelet*="Marketplace"] a[href*="marketplace/item"]',
]

TITLE_SELECTOR = '[data-testid="marketplace_listing_title"]'
PRICE_SELECTOR = '[data-testid="listing_price"]'
LOCATION_SELECTOR = '[data-testid="reverse_geocode"]'
FRAGMENT_SELECTOR = "span"

PRICE_PATTERN = re.compile(r"^(?:PHP\s?\d|\d)|\d[.,]\d", re.IGNORECASE)

# Brand and hardware tokens that show up in titles, not in locations
TITLE_PATTERN = re.compile(
    r"\b(?:macbook|iphone|ipad|imac|apple|samsung|galaxy|lenovo|thinkpad|dell|"
    r"asus|acer|m[1-4]|pro|air|mini|retina|ram|ssd|cpu|gpu|i[3579])\b"
    r"|\b\d+\s?(?:gb|tb)\b|\binch\b|\d+(?:\.\d+)?\s?(?:\"|”|in\b)",
    re.IGNORECASE,
)

LOCALITY_PATTERN = re.compile(
    r"\b(?:city|province|metro|manila|quezon|makati|taguig|pasig|mandaluyong|"
    r"pasay|paranaque|parañaque|caloocan|marikina|muntinlupa|cebu|davao|"
    r"cavite|laguna|bulacan|rizal|pampanga|batangas|iloilo|baguio)\b",
    re.IGNORECASE,
)

METADATA_SCRIPT = """
el => {
    const holder = el.closest('[data-bt], [data-store*="location"]')
        || el.querySelector('[data-bt], [data-store*="location"]');
    if (!holder) return null;
    return holder.getAttribute('data-bt') || holder.getAttribute('data-store');
}
"""


def is_price_like(text: str) -> bool:
    return bool(PRICE_PATTERN.search(text.strip()))


def is_title_like(text: str) -> bool:
    return bool(TITLE_PATTERN.search(text))


class ListingNode(ABC):
    """One rendered listing card, as seen by the extractor."""

    @abstractmethod
    def href(self) -> Optional[str]:
        """Resolved destination URL of the card's anchor."""

    @abstractmethod
    def attribute(self, name: str) -> Optional[str]:
        pass

    @abstractmethod
    def text(self) -> str:
        """Visible text of the whole card."""

    @abstractmethod
    def child_text(self, selector: str) -> Optional[str]:
        """Text of the first descendant matching ``selector``, None if missing."""

    @abstractmethod
    def child_texts(self, selector: str) -> List[str]:
        pass

    @abstractmethod
    def metadata(self) -> Optional[str]:
        """Raw JSON from the nearest element carrying listing metadata."""


class PlaywrightNode(ListingNode):
    """ListingNode backed by a Playwright ElementHandle."""

    def __init__(self, handle):
        self.handle = handle

    def href(self) -> Optional[str]:
        return self.handle.evaluate("a => a.href")

    def attribute(self, name: str) -> Optional[str]:
        return self.handle.get_attribute(name)

    def text(self) -> str:
        return self.handle.inner_text()

    def child_text(self, selector: str) -> Optional[str]:
        element = self.handle.query_selector(selector)
        return element.inner_text() if element else None

    def child_texts(self, selector: str) -> List[str]:
        texts = []
        for element in self.handle.query_selector_all(selector):
            try:
                texts.append(element.inner_text())
            except Exception:
                # Detached mid-read; keep positions stable
                texts.append("")
        return texts

    def metadata(self) -> Optional[str]:
        return self.handle.evaluate(METADATA_SCRIPT)


class SoupNode(ListingNode):
    """ListingNode backed by a BeautifulSoup tag, for saved HTML snapshots."""

    def __init__(self, tag, base_url: str = ""):
        self.tag = tag
        self.base_url = base_url

    def href(self) -> Optional[str]:
        href = self.tag.get("href")
        return urljoin(self.base_url, href) if href else None

    def attribute(self, name: str) -> Optional[str]:
        value = self.tag.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    def text(self) -> str:
        return self.tag.get_text("\n", strip=True)

    def child_text(self, selector: str) -> Optional[str]:
        element = self.tag.select_one(selector)
        return element.get_text(" ", strip=True) if element else None

    def child_texts(self, selector: str) -> List[str]:
        return [element.get_text(" ", strip=True) for element in self.tag.select(selector)]

    def metadata(self) -> Optional[str]:
        def holds_metadata(tag) -> bool:
            if tag.has_attr("data-bt"):
                return True
            return "location" in (tag.get("data-store") or "")

        if holds_metadata(self.tag):
            holder = self.tag
        else:
            holder = self.tag.find_parent(holds_metadata) or self.tag.find(holds_metadata)
        if holder is None:
            return None
        return holder.get("data-bt") or holder.get("data-store")


class ExtractionContext:
    """Per-card scratch state shared by the strategies."""

    def __init__(self, node: ListingNode):
        self.node = node
        self.title: Optional[str] = None
        self._fragments: Optional[List[str]] = None

    @property
    def fragments(self) -> List[str]:
        """Stripped text of every span in the card, empty strings included."""
        if self._fragments is None:
            try:
                self._fragments = [(text or "").strip() for text in self.node.child_texts(FRAGMENT_SELECTOR)]
            except Exception as e:
                logger.debug(f"Could not read text fragments: {e}")
                self._fragments = []
        return self._fragments


Strategy = Callable[[ListingNode, ExtractionContext], Optional[str]]


# --- title ---

def title_from_testid(node: ListingNode, context: ExtractionContext) -> Optional[str]:
    return node.child_text(TITLE_SELECTOR)


def title_from_aria_label(node: ListingNode, context: ExtractionContext) -> Optional[str]:
    return node.attribute("aria-label")


def title_from_fragments(node: ListingNode, context: ExtractionContext) -> Optional[str]:
    return next((text for text in context.fragments if text and not is_price_like(text)), None)


def title_from_anchor_text(node: ListingNode, context: ExtractionContext) -> Optional[str]:
    return " ".join(node.text().split())


# --- price ---

def price_from_testid(node: ListingNode, context: ExtractionContext) -> Optional[str]:
    return node.child_text(PRICE_SELECTOR)


def price_from_second_fragment(node: ListingNode, context: ExtractionContext) -> Optional[str]:
    # Cards render price second, after the image caption
    fragments = context.fragments
    return fragments[1] if len(fragments) > 1 else None


# --- location ---

def _location_candidates(context: ExtractionContext) -> Iterator[str]:
    for text in context.fragments:
        if not text or is_price_like(text) or is_title_like(text):
            continue
        if context.title and text == context.title:
            continue
        yield text


def location_from_testid(node: ListingNode, context: ExtractionContext) -> Optional[str]:
    return node.child_text(LOCATION_SELECTOR)


def location_from_comma_fragment(node: ListingNode, context: ExtractionContext) -> Optional[str]:
    return next((text for text in _location_candidates(context) if "," in text), None)


def location_from_locality_keyword(node: ListingNode, context: ExtractionContext) -> Optional[str]:
    return next((text for text in _location_candidates(context) if LOCALITY_PATTERN.search(text)), None)


def location_from_metadata(node: ListingNode, context: ExtractionContext) -> Optional[str]:
    raw = node.metadata()
    if not raw:
        return None
    return location_from_payload(json.loads(raw))


def location_from_payload(data) -> Optional[str]:
    """Pick a display location out of a listing metadata payload."""
    if not isinstance(data, dict):
        return None

    location = data.get("location")
    if isinstance(location, dict) and isinstance(location.get("reverse_geocode"), dict):
        data = location["reverse_geocode"]

    city_page = data.get("city_page")
    if isinstance(city_page, dict) and city_page.get("display_name"):
        return city_page["display_name"]

    city = data.get("city")
    state = data.get("state")
    if city and state:
        return f"{city}, {state}"
    return city or state or None


TITLE_STRATEGIES: Sequence[Strategy] = (
    title_from_testid,
    title_from_aria_label,
    title_from_fragments,
    title_from_anchor_text,
)

PRICE_STRATEGIES: Sequence[Strategy] = (
    price_from_testid,
    price_from_second_fragment,
)

LOCATION_STRATEGIES: Sequence[Strategy] = (
    location_from_testid,
    location_from_comma_fragment,
    location_from_locality_keyword,
    location_from_metadata,
)


def resolve_field(strategies: Iterable[Strategy], node: ListingNode, context: ExtractionContext) -> Optional[str]:
    """Run strategies in order and return the first non-empty value."""
    for strategy in strategies:
        try:
            value = strategy(node, context)
        except Exception as e:
            logger.debug(f"{strategy.__name__} failed: {e}")
            continue
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def extract_listing(node: ListingNode) -> Listing:
    """
    Extract one listing from a rendered card.

    Args:
        node: The listing card

    Returns:
        A Listing; fields that could not be found are None and a missing
        link is the empty string
    """
    try:
        link = node.href() or ""
    except Exception as e:
        logger.debug(f"Could not read listing href: {e}")
        link = ""

    context = ExtractionContext(node)
    title = resolve_field(TITLE_STRATEGIES, node, context)
    context.title = title
    price = resolve_field(PRICE_STRATEGIES, node, context)
    location = resolve_field(LOCATION_STRATEGIES, node, context)

    listing = Listing(link=link, title=title, price=price, location=location)
    logger.debug(f"Extracted: {listing}")
    return listing


def extract_listings(nodes: Iterable[ListingNode]) -> List[Listing]:
    """Extract every card, dropping repeated links (first occurrence wins)."""
    listings = []
    page_seen_links = set()

    for node in nodes:
        listing = extract_listing(node)
        if listing.link:
            if listing.link in page_seen_links:
                continue
            page_seen_links.add(listing.link)
        listings.append(listing)

    return listings


def parse_snapshot(html: str, base_url: str = "https://www.facebook.com/") -> List[Listing]:
    """
    Extract listings from a saved page snapshot.

    Args:
        html: Page HTML, e.g. a diagnostics capture
        base_url: Used to resolve relative listing links

    Returns:
        Listings found with the first selector that matches anything
    """
    soup = BeautifulSoup(html, "html.parser")

    for selector in LISTING_SELECTORS:
        tags = soup.select(selector)
        if tags:
            logger.debug(f"Found {len(tags)} items with selector: {selector}")
            return extract_listings(SoupNode(tag, base_url) for tag in tags)

    logger.warning("No listing selector matched the snapshot")
    return []
