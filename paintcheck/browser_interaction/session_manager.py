from contextlib import contextmanager
from typing import Iterator, Optional

from playwright.sync_api import sync_playwright, Browser, BrowserContext, CDPSession, Page, Playwright
import logging

logger = logging.getLogger(__name__)

# GPU rasterization makes paint output depend on the host's graphics stack
CHROMIUM_ARGS = [
    "--disable-gpu-rasterization",
    "--no-sandbox",
]


class SessionManager:
    """
    Owns the shared browser handle (Playwright driver, Chromium, context and
    one page). Started lazily, closed exactly once.
    """

    def __init__(self, headless: bool = True, viewport_width: int = 1280, viewport_height: int = 720,
                 device_scale_factor: int = 1):
        self.headless = headless
        self.viewport = {"width": viewport_width, "height": viewport_height}
        self.device_scale_factor = device_scale_factor
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    def start(self) -> Page:
        """Starts the browser session (if needed) and returns the page."""
        if self.page:
            return self.page

        logger.debug(f"Launching Chromium (headless={self.headless})")
        self.playwright = sync_playwright().start()
        self.browser = self.playwright.chromium.launch(
            headless=self.headless,
            args=CHROMIUM_ARGS,
        )
        self.context = self.browser.new_context(
            viewport=self.viewport,
            device_scale_factor=self.device_scale_factor,
        )
        self.page = self.context.new_page()
        return self.page

    def navigate(self, url: str, wait_until: str = "networkidle"):
        """Navigates the current page to the specified URL."""
        page = self.start()
        page.goto(url, wait_until=wait_until)

    @contextmanager
    def cdp_session(self) -> Iterator[CDPSession]:
        """One CDP session for the current page, detached on every exit path."""
        page = self.start()
        client = self.context.new_cdp_session(page)
        try:
            yield client
        finally:
            try:
                client.detach()
            except Exception as e:
                logger.debug(f"CDP session already detached: {e}")

    def user_agent(self) -> str:
        if not self.page:
            raise RuntimeError("Session not started")
        return self.page.evaluate("() => navigator.userAgent")

    def close(self):
        """Closes the browser session and releases resources."""
        if self.context:
            self.context.close()
            self.context = None
        if self.browser:
            self.browser.close()
            self.browser = None
        if self.playwright:
            self.playwright.stop()
            self.playwright = None
        self.page = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
