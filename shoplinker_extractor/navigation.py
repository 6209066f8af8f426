"""Per-item navigation through the product list and detail views."""

from enum import Enum
from typing import Any, Dict, Optional

from loguru import logger
from playwright.sync_api import Error as PlaywrightError

from shoplinker_extractor.config_loader import (
    get_delay_ms,
    get_frame_patterns,
    get_scraping_config,
    get_site_config,
)
from shoplinker_extractor.errors import (
    ConsoleSessionError,
    RecoveryFailed,
    RowNotFound,
    SearchFormMissing,
)
from shoplinker_extractor.frames import FrameResolver, url_matcher
from shoplinker_extractor.session import DEFAULT_LIST_URL, is_closed_target_error


class NavState(Enum):
    LIST = "list"
    SEARCHING = "searching"
    ROW_FOUND = "row_found"
    DETAIL = "detail"
    RETURNED = "returned"


DEFAULT_NAV_SELECTORS = {
    "search_date": "#st_date",
    "search_text": "textarea[name='search_str']",
    "search_submit": "#submitBtn",
    "result_rows": "tbody tr",
    "row_label": "span[style*='color']",
    "row_action": 'a[href*="mode=copy"]',
    "detail_ready": 'input[name="product_name"]',
}

DEFAULT_DELAYS_MS = {
    "list_settle_ms": 5000,
    "search_settle_ms": 3000,
    "row_settle_ms": 3000,
    "detail_settle_ms": 2000,
    "return_settle_ms": 3000,
}

_SEARCH_SCRIPT = """([sel, code, startDate]) => {
    const stDate = document.querySelector(sel.search_date);
    const searchArea = document.querySelector(sel.search_text);
    const submitBtn = document.querySelector(sel.search_submit);
    if (!stDate || !searchArea || !submitBtn) return false;

    const setValue = (el, value) => {
        el.value = value;
        el.dispatchEvent(new Event("input", { bubbles: true }));
        el.dispatchEvent(new Event("change", { bubbles: true }));
    };
    setValue(stDate, startDate);
    searchArea.focus();
    setValue(searchArea, code);
    submitBtn.click();
    return true;
}"""

_OPEN_ROW_SCRIPT = """([sel, code]) => {
    for (const row of document.querySelectorAll(sel.result_rows)) {
        const label = row.querySelector(sel.row_label);
        if (!label) continue;
        if (!label.innerText.trim().includes(code)) continue;
        const action = row.querySelector(sel.row_action);
        if (!action) return "no_action";
        action.click();
        return "clicked";
    }
    return "no_row";
}"""


class NavigationController:
    """Drives one item at a time through LIST -> SEARCHING -> ROW_FOUND -> DETAIL -> RETURNED.

    Owns the only notion of "where the session is". Frames are resolved
    again at every step; nothing here hands out a frame that outlives the
    next navigation.
    """

    def __init__(
        self,
        page,
        resolver: Optional[FrameResolver] = None,
        list_url: str = DEFAULT_LIST_URL,
        list_frame=None,
        detail_frame=None,
        selectors: Optional[Dict[str, str]] = None,
        delays_ms: Optional[Dict[str, int]] = None,
        search_start_date: str = "2005-01-01",
        navigation_timeout: int = 15000,
        wait_timeout: int = 5000,
    ):
        self.page = page
        self.resolver = resolver or FrameResolver()
        self.list_url = list_url
        self.list_frame = list_frame or url_matcher(["/admin/product/product_list"])
        self.detail_frame = detail_frame or url_matcher(["product_insert", "mode=copy"])
        self.selectors = {**DEFAULT_NAV_SELECTORS, **(selectors or {})}
        self.delays_ms = {**DEFAULT_DELAYS_MS, **(delays_ms or {})}
        self.search_start_date = search_start_date
        self.navigation_timeout = navigation_timeout
        self.wait_timeout = wait_timeout
        self._state = NavState.RETURNED

    @classmethod
    def from_config(cls, page, config: Dict[str, Any], resolver: Optional[FrameResolver] = None):
        site = get_site_config(config)
        scraping = get_scraping_config(config)
        list_patterns = get_frame_patterns(config, "list")
        detail_patterns = get_frame_patterns(config, "detail")
        return cls(
            page,
            resolver=resolver or FrameResolver.from_config(config),
            list_url=site.get("list_url", DEFAULT_LIST_URL),
            list_frame=url_matcher(**list_patterns) if list_patterns["include"] else None,
            detail_frame=url_matcher(**detail_patterns) if detail_patterns["include"] else None,
            selectors=scraping.get("selectors"),
            delays_ms={key: get_delay_ms(config, key, default) for key, default in DEFAULT_DELAYS_MS.items()},
            search_start_date=str(scraping.get("search", {}).get("start_date", "2005-01-01")),
            navigation_timeout=int(site.get("navigation_timeout", 15000)),
            wait_timeout=int(site.get("wait_timeout", 5000)),
        )

    @property
    def state(self) -> NavState:
        return self._state

    def _require(self, *states: NavState):
        if self._state not in states:
            allowed = ", ".join(s.name for s in states)
            raise RuntimeError(f"Navigation out of order: in {self._state.name}, expected {allowed}")

    def _settle(self, key: str):
        delay = self.delays_ms.get(key, 0)
        if delay > 0:
            self.page.wait_for_timeout(delay)

    def _wait_for(self, frame, selector: str) -> bool:
        """Wait until ``selector`` is attached; False on timeout."""
        try:
            frame.wait_for_selector(selector, state="attached", timeout=self.wait_timeout)
            return True
        except PlaywrightError as e:
            if is_closed_target_error(e):
                raise ConsoleSessionError(f"Browser closed while waiting for {selector}: {e}") from e
            logger.debug(f"Timed out waiting for {selector}: {e}")
            return False

    def _resolve_list(self):
        return self.resolver.resolve(self.page, self.list_frame, description="product list frame")

    def begin_item(self, code: str):
        """Enter LIST for ``code`` from whatever state the last item left.

        Raises:
            FrameNotFound: if the list frame is not live
        """
        logger.debug(f"Starting navigation for {code} from {self._state.name}")
        frame = self._resolve_list()
        self._state = NavState.LIST
        return frame

    def search(self, code: str):
        """LIST -> SEARCHING: fill the search form and submit it.

        Raises:
            SearchFormMissing: if the date/text/submit controls are absent
        """
        self._require(NavState.LIST)
        self._settle("list_settle_ms")
        frame = self._resolve_list()

        if not self._wait_for(frame, self.selectors["search_text"]):
            raise SearchFormMissing(f"Search form not rendered in list frame ({frame.url})")

        submitted = frame.evaluate(_SEARCH_SCRIPT, [self.selectors, code, self.search_start_date])
        if not submitted:
            raise SearchFormMissing("Search date, text or submit control missing")

        logger.info(f"Search submitted for {code}")
        self._state = NavState.SEARCHING
        self._settle("search_settle_ms")

    def open_row(self, code: str):
        """SEARCHING -> ROW_FOUND: trigger the row's duplicate/open-detail action.

        Raises:
            RowNotFound: if no row label contains ``code`` or the row has no action
        """
        self._require(NavState.SEARCHING)
        frame = self._resolve_list()
        self._wait_for(frame, self.selectors["result_rows"])

        outcome = frame.evaluate(_OPEN_ROW_SCRIPT, [self.selectors, code])
        if outcome == "no_action":
            raise RowNotFound(f"Row for {code} has no open-detail action")
        if outcome != "clicked":
            raise RowNotFound(f"No result row contains {code}")

        self._state = NavState.ROW_FOUND
        self._settle("row_settle_ms")

    def open_detail(self):
        """ROW_FOUND -> DETAIL: resolve the detail frame.

        Raises:
            FrameNotFound: if the detail frame never appears
        """
        self._require(NavState.ROW_FOUND)
        frame = self.resolver.resolve(self.page, self.detail_frame, description="product detail frame")
        self._wait_for(frame, self.selectors["detail_ready"])
        self._settle("detail_settle_ms")
        self._state = NavState.DETAIL
        return frame

    def return_to_list(self):
        """Any state -> RETURNED: navigate back to the canonical list address.

        Raises:
            RecoveryFailed: if the navigation itself failed
            ConsoleSessionError: if the browser is gone
        """
        logger.info("Returning to product list")
        try:
            self.page.goto(
                self.list_url,
                wait_until="domcontentloaded",
                timeout=self.navigation_timeout,
            )
        except PlaywrightError as e:
            if is_closed_target_error(e):
                raise ConsoleSessionError(f"Browser closed while returning to list: {e}") from e
            raise RecoveryFailed(f"Could not return to {self.list_url}: {e}") from e

        self._settle("return_settle_ms")
        self._state = NavState.RETURNED
