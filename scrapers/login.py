"""
Marketplace Monitor Login Handling
Login-wall detection and the bounded wait for a manual login.
"""

import logging
import sys
import threading
import time
from typing import Callable, Optional

from bs4 import BeautifulSoup

from .base import LoginTimeoutError

logger = logging.getLogger(__name__)

LOGIN_FIELD_SELECTOR = 'input[type="password"], input[name="email"], input[type="email"]'
PASSWORD_SELECTOR = 'input[type="password"]'
ITEM_ANCHOR_SELECTOR = 'a[href*="marketplace/item"]'

WAKE_CONSOLE = "console"
WAKE_PAGE = "page"


def is_login_wall(html: str) -> bool:
    """
    Decide whether a rendered page is asking for a login.

    Args:
        html: Page content

    Returns:
        True if the page has a login field or no marketplace item links
    """
    soup = BeautifulSoup(html, "html.parser")
    if soup.select_one(LOGIN_FIELD_SELECTOR) is not None:
        return True
    return soup.select_one(ITEM_ANCHOR_SELECTOR) is None


class ConsoleSignal:
    """Sets an event each time a line is entered on the console.

    A single daemon thread reads the stream for the life of the process, so
    repeated waits never leave competing readers on stdin.
    """

    def __init__(self, stream=None):
        self.event = threading.Event()
        self._stream = stream
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def start(self):
        with self._lock:
            if self._thread is None:
                self._thread = threading.Thread(target=self._read, name="console-signal", daemon=True)
                self._thread.start()

    def _read(self):
        stream = self._stream or sys.stdin
        while True:
            try:
                line = stream.readline()
            except (OSError, ValueError) as e:
                logger.debug(f"Console input unavailable: {e}")
                return
            if not line:
                # EOF: nobody is at the console
                return
            self.event.set()

    def clear(self):
        self.event.clear()

    def is_set(self) -> bool:
        return self.event.is_set()

    def wait(self, timeout: float) -> bool:
        return self.event.wait(timeout)


_console_signal = ConsoleSignal()


def console_signal() -> ConsoleSignal:
    """Process-wide console signal."""
    return _console_signal


def wait_for_login(
    page_ready: Callable[[], bool],
    console: ConsoleSignal,
    timeout_seconds: float,
    poll_seconds: float = 2.0,
    clock: Callable[[], float] = time.monotonic,
) -> str:
    """
    Wait until the operator presses Enter or the page shows a completed login.

    Args:
        page_ready: Probe returning True once the page has moved past the login wall
        console: Signal set when Enter is pressed
        timeout_seconds: Upper bound on the wait
        poll_seconds: How often to probe the page
        clock: Monotonic time source

    Returns:
        WAKE_CONSOLE or WAKE_PAGE, whichever fired first

    Raises:
        LoginTimeoutError: if neither fires before the timeout
    """
    console.start()
    console.clear()
    deadline = clock() + timeout_seconds

    while True:
        if console.is_set():
            return WAKE_CONSOLE
        if page_ready():
            return WAKE_PAGE

        remaining = deadline - clock()
        if remaining <= 0:
            raise LoginTimeoutError(f"No login completed within {timeout_seconds:.0f}s")

        # Returns early when Enter is pressed
        console.wait(min(poll_seconds, remaining))
