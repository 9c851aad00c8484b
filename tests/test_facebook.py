import logging

import pytest
from playwright.sync_api import TimeoutError as PlaywrightTimeout

from config import MonitorConfig
from scrapers import FacebookScraper, LoginTimeoutError, ScraperError
from scrapers.extraction import LISTING_SELECTORS, METADATA_SCRIPT, PlaywrightNode, extract_listing
from scrapers.facebook import describe_timeout
from store import Listing


class FakeHandle:
    """Stand-in for a Playwright ElementHandle."""

    def __init__(self, href=None, text="", attributes=None, children=None, spans=None, metadata=None):
        self._href = href
        self._text = text
        self._attributes = attributes or {}
        self._children = children or {}
        self._spans = spans or []
        self._metadata = metadata

    def evaluate(self, script):
        if script == METADATA_SCRIPT:
            return self._metadata
        return self._href

    def get_attribute(self, name):
        return self._attributes.get(name)

    def inner_text(self):
        return self._text

    def query_selector(self, selector):
        text = self._children.get(selector)
        return FakeHandle(text=text) if text is not None else None

    def query_selector_all(self, selector):
        return [FakeHandle(text=text) for text in self._spans]


class FakePage:

    def __init__(self, handles=None, matching_selector=None, html="", url="https://www.facebook.com/login/"):
        self.handles = handles or []
        self.matching_selector = matching_selector
        self.html = html
        self.url = url
        self.visited = []
        self.screenshots = []
        self.password_field = True
        self.closed = False

    def goto(self, url, wait_until=None, timeout=None):
        self.visited.append(url)

    def wait_for_timeout(self, ms):
        pass

    def wait_for_selector(self, selector, timeout=None):
        if selector != self.matching_selector:
            raise PlaywrightTimeout(f"Timeout {timeout}ms exceeded")

    def query_selector_all(self, selector):
        return self.handles if selector == self.matching_selector else []

    def query_selector(self, selector):
        return object() if self.password_field else None

    def content(self):
        return self.html

    def screenshot(self, path=None, full_page=False):
        self.screenshots.append(path)

    def is_closed(self):
        return self.closed


class NavigatingPage(FakePage):
    """Reports its starting URL on the first read, then the Marketplace."""

    @property
    def url(self):
        return self._urls.pop(0) if len(self._urls) > 1 else self._urls[0]

    @url.setter
    def url(self, value):
        self._urls = [value, "https://www.facebook.com/marketplace/"]


class LoginFormPage(FakePage):
    """Has a password field on the first lookup only."""

    def __init__(self):
        super().__init__()
        self.lookups = 0

    def query_selector(self, selector):
        self.lookups += 1
        return object() if self.lookups == 1 else None


class ReadyConsole:

    def __init__(self, pressed=False):
        self.pressed = pressed

    def start(self):
        pass

    def clear(self):
        pass

    def is_set(self):
        return self.pressed

    def wait(self, timeout):
        return self.pressed


@pytest.fixture
def config(tmp_path):
    return MonitorConfig(
        query="macbook",
        assets_dir=tmp_path / "assets",
        browser_data_dir=tmp_path / "profile",
        login_timeout_seconds=0,
    )


def attach(scraper, page):
    scraper.page = page
    scraper._initialized = True
    return scraper


def test_playwright_node_cascade():
    handle = FakeHandle(
        href="https://www.facebook.com/marketplace/item/42/",
        spans=["PHP 1,500", "MacBook Air 2015", "Quezon City, Metro Manila"],
    )

    assert extract_listing(PlaywrightNode(handle)) == Listing(
        link="https://www.facebook.com/marketplace/item/42/",
        title="MacBook Air 2015",
        price="MacBook Air 2015",
        location="Quezon City, Metro Manila",
    )


def test_playwright_node_metadata_location():
    handle = FakeHandle(
        href="https://www.facebook.com/marketplace/item/43/",
        children={'[data-testid="marketplace_listing_title"]': "Desk"},
        metadata='{"city_page": {"display_name": "Davao City"}}',
    )

    assert extract_listing(PlaywrightNode(handle)).location == "Davao City"


def test_collect_listings_tries_selectors_in_order(config):
    handles = [
        FakeHandle(href="https://www.facebook.com/marketplace/item/1/", spans=["PHP 1", "Mouse"]),
        FakeHandle(href="https://www.facebook.com/marketplace/item/1/", spans=["PHP 1", "Mouse"]),
        FakeHandle(href="https://www.facebook.com/marketplace/item/2/", spans=["PHP 2", "Keyboard"]),
    ]
    page = FakePage(handles=handles, matching_selector=LISTING_SELECTORS[2])
    scraper = attach(FacebookScraper(config), page)

    listings = scraper.collect_listings()

    assert [listing.title for listing in listings] == ["Mouse", "Keyboard"]


def test_collect_listings_empty_when_no_selector_matches(config):
    page = FakePage(matching_selector=None)
    scraper = attach(FacebookScraper(config), page)

    assert scraper.collect_listings() == []
    assert (config.assets_dir / "marketplace_no_listings.html").exists()


def test_login_required_reads_page_content(config):
    page = FakePage(html='<input type="password" />')
    scraper = attach(FacebookScraper(config), page)

    assert scraper.login_required() is True

    page.html = '<a href="/marketplace/item/1/">Item</a>'
    assert scraper.login_required() is False


def test_manual_login_reloads_search_after_enter(config):
    page = FakePage()
    scraper = attach(FacebookScraper(config, console=ReadyConsole(pressed=True)), page)

    scraper.wait_for_manual_login()

    assert page.visited == [config.search_url]
    assert (config.assets_dir / "facebook_login_page.html").exists()


def test_manual_login_times_out(config, capsys):
    page = FakePage()
    scraper = attach(FacebookScraper(config, console=ReadyConsole(pressed=False)), page)

    with pytest.raises(LoginTimeoutError):
        scraper.wait_for_manual_login()

    assert page.visited == []
    assert "You have 0 seconds to complete login." in capsys.readouterr().out


def test_manual_login_ends_when_url_changes(config, caplog):
    caplog.set_level(logging.INFO)
    page = NavigatingPage()
    scraper = attach(FacebookScraper(config, console=ReadyConsole(pressed=False)), page)

    scraper.wait_for_manual_login()

    assert page.visited == [config.search_url]
    assert "Login detected (page)" in caplog.text


def test_manual_login_ends_when_password_field_disappears(config, caplog):
    caplog.set_level(logging.INFO)
    page = LoginFormPage()
    scraper = attach(FacebookScraper(config, console=ReadyConsole(pressed=False)), page)

    scraper.wait_for_manual_login()

    assert page.visited == [config.search_url]
    assert "Login detected (page)" in caplog.text


def test_manual_login_fails_when_page_is_closed(config):
    page = FakePage()
    page.closed = True
    scraper = attach(FacebookScraper(config, console=ReadyConsole(pressed=False)), page)

    with pytest.raises(ScraperError, match="closed") as excinfo:
        scraper.wait_for_manual_login()

    assert not isinstance(excinfo.value, LoginTimeoutError)
    assert page.visited == []


@pytest.mark.parametrize(
    "seconds, expected",
    [(0, "0 seconds"), (1, "1 second"), (45, "45 seconds"), (60, "1 minute"), (90, "90 seconds"), (300, "5 minutes")],
)
def test_describe_timeout(seconds, expected):
    assert describe_timeout(seconds) == expected


def test_capture_diagnostics_never_raises(config):
    class BrokenPage(FakePage):
        def screenshot(self, path=None, full_page=False):
            raise RuntimeError("Target closed")

    scraper = attach(FacebookScraper(config), BrokenPage())

    scraper.capture_diagnostics("facebook_error_page")
