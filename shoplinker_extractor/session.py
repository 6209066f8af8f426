"""Playwright browser session for the Shoplinker admin console."""

from typing import Any, Dict, Optional

from loguru import logger
from playwright.sync_api import Error as PlaywrightError, Page, sync_playwright

from shoplinker_extractor.config_loader import (
    get_credentials,
    get_delay_ms,
    get_frame_patterns,
    get_scraping_config,
    get_site_config,
)
from shoplinker_extractor.errors import ConsoleSessionError, FrameNotFound
from shoplinker_extractor.frames import FrameResolver, url_matcher

DEFAULT_LOGIN_URL = "https://ad2.shoplinker.co.kr/index.php"
DEFAULT_LIST_URL = "https://ad2.shoplinker.co.kr/admin/product/product_list"

_LOGIN_SCRIPT = """([userId, password]) => {
    const idInput = document.querySelector("input[name='user_id']");
    const pwInput = document.querySelector("input[name='passwords']");
    const loginBtn = document.querySelector("button[type='submit'], input[type='submit']");
    if (idInput) idInput.value = userId;
    if (pwInput) pwInput.value = password;
    if (typeof window.nemo_submit === "function") {
        window.nemo_submit();
        return "nemo_submit";
    }
    if (loginBtn) {
        loginBtn.click();
        return "button";
    }
    return "none";
}"""

_OPEN_PRODUCT_MENU_SCRIPT = """(listHref) => {
    const hover = (el) => el && el.dispatchEvent(new MouseEvent("mouseover", { bubbles: true }));
    hover(document.querySelector("#SL_MENU"));
    hover(document.querySelector("a.m_007"));
    const link = document.querySelector('a[href="' + listHref + '"]');
    if (!link) return false;
    link.click();
    return true;
}"""


_CLOSED_TARGET_MARKERS = (
    "target page, context or browser has been closed",
    "target closed",
    "browser has been closed",
)


def is_closed_target_error(exc: Exception) -> bool:
    """True when the page/context/browser itself is gone, not just a request."""
    text = str(exc).lower()
    return any(marker in text for marker in _CLOSED_TARGET_MARKERS)


class ConsoleSession:
    """One browser, one context, one page for the whole batch."""

    def __init__(self, config: Dict[str, Any], headless: Optional[bool] = None):
        """Initialize the session.

        Args:
            config: Configuration dictionary
            headless: Override headless mode from config
        """
        self.config = config
        self.site_config = get_site_config(config)
        self.scraping_config = get_scraping_config(config)

        self.login_url = self.site_config.get("login_url", DEFAULT_LOGIN_URL)
        self.list_url = self.site_config.get("list_url", DEFAULT_LIST_URL)
        self.list_href = self.site_config.get("list_href", "/admin/product/product_list")
        self.timeout = int(self.site_config.get("timeout", 30000))
        self.navigation_timeout = int(self.site_config.get("navigation_timeout", 15000))

        browser_config = self.scraping_config.get("browser", {}) or {}
        self.headless = headless if headless is not None else browser_config.get("headless", True)
        self.resolver = FrameResolver.from_config(config)

        self.page: Optional[Page] = None
        self.playwright = None
        self.browser = None
        self.context = None

        logger.info(f"Console session initialized (headless={self.headless})")

    def start(self):
        """Start the browser and create a new page."""
        logger.info("Starting browser...")
        browser_config = self.scraping_config.get("browser", {}) or {}
        try:
            self.playwright = sync_playwright().start()
            self.browser = self.playwright.chromium.launch(
                headless=self.headless,
                executable_path=browser_config.get("executable_path") or None,
                args=[
                    "--no-sandbox",
                    "--disable-setuid-sandbox",
                    "--disable-dev-shm-usage",
                    "--disable-gpu",
                ],
            )
            self.context = self.browser.new_context(
                viewport=browser_config.get("viewport", {"width": 1920, "height": 1080}),
                user_agent=browser_config.get("user_agent", "Mozilla/5.0 (Windows NT 10.0; Win64; x64)"),
            )
            self.page = self.context.new_page()
        except PlaywrightError as e:
            self.stop()
            raise ConsoleSessionError(f"Could not start browser: {e}") from e

        self.page.set_default_timeout(self.timeout)
        self.page.set_default_navigation_timeout(self.navigation_timeout)
        logger.info("Browser started successfully")

    def stop(self):
        """Stop the browser and cleanup."""
        logger.info("Stopping browser...")
        for closer in (self.context, self.browser):
            if closer:
                try:
                    closer.close()
                except PlaywrightError as e:
                    logger.debug(f"Ignoring close error: {e}")
        if self.playwright:
            try:
                self.playwright.stop()
            except PlaywrightError as e:
                logger.debug(f"Ignoring playwright stop error: {e}")
        self.page = None
        self.context = None
        self.browser = None
        self.playwright = None
        logger.info("Browser stopped")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    def _settle(self, key: str, default: int):
        delay = get_delay_ms(self.config, key, default)
        if delay > 0:
            self.page.wait_for_timeout(delay)

    def login(self):
        """Fill the login form with the configured credentials and submit it."""
        if not self.page:
            raise ConsoleSessionError("Browser not started")

        creds = get_credentials(self.config)
        if not creds["user_id"] or not creds["password"]:
            raise ConsoleSessionError("Missing credentials (set SHOP_LINKER_ID / SHOP_LINKER_PW)")

        logger.info(f"Navigating to {self.login_url}")
        try:
            self.page.goto(self.login_url, wait_until="domcontentloaded", timeout=self.navigation_timeout)
            self.page.wait_for_selector("input[name='user_id']", state="attached", timeout=self.navigation_timeout)
            method = self.page.evaluate(_LOGIN_SCRIPT, [creds["user_id"], creds["password"]])
        except PlaywrightError as e:
            raise ConsoleSessionError(f"Login page unavailable: {e}") from e

        if method == "none":
            raise ConsoleSessionError("Login submit control not found")
        logger.info(f"Login submitted via {method}")
        self._settle("login_settle_ms", 3000)

    def open_product_list(self):
        """Log in and open the product list through the admin menu.

        Failures here end the run: without the list there is nothing to
        iterate over.
        """
        self.login()

        main_patterns = get_frame_patterns(self.config, "main")
        if not main_patterns["include"]:
            main_patterns = {"include": ["/admin/main"], "exclude": ["/left", "/top"]}
        list_patterns = get_frame_patterns(self.config, "list")
        if not list_patterns["include"]:
            list_patterns = {"include": ["/admin/product/product_list"], "exclude": []}

        try:
            main_frame = self.resolver.resolve(
                self.page, url_matcher(**main_patterns), description="admin main frame"
            )
            opened = main_frame.evaluate(_OPEN_PRODUCT_MENU_SCRIPT, self.list_href)
            if not opened:
                logger.warning("Product list menu link not found; loading list address directly")
                self.page.goto(self.list_url, wait_until="domcontentloaded", timeout=self.navigation_timeout)
            self._settle("menu_settle_ms", 3000)
            self.resolver.resolve(self.page, url_matcher(**list_patterns), description="product list frame")
        except FrameNotFound as e:
            raise ConsoleSessionError(f"Could not reach the product list: {e}") from e
        except PlaywrightError as e:
            raise ConsoleSessionError(f"Could not reach the product list: {e}") from e

        logger.info("Product list ready")
