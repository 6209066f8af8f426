"""Tests for the per-item navigation state machine."""

import sys
import unittest
from pathlib import Path

from playwright.sync_api import Error as PlaywrightError

sys.path.insert(0, str(Path(__file__).parent.parent))

from shoplinker_extractor.errors import (
    ConsoleSessionError,
    FrameNotFound,
    RecoveryFailed,
    RowNotFound,
    SearchFormMissing,
)
from shoplinker_extractor.frames import FrameResolver
from shoplinker_extractor.navigation import (
    DEFAULT_DELAYS_MS,
    NavigationController,
    NavState,
    _OPEN_ROW_SCRIPT,
    _SEARCH_SCRIPT,
)
from tests.fakes import FakeFrame, FakePage, no_sleep

LIST_URL = "https://ad2.shoplinker.co.kr/admin/product/product_list"
DETAIL_URL = "https://ad2.shoplinker.co.kr/admin/product/product_insert?mode=copy&id=7"


class TestNavigationController(unittest.TestCase):
    def setUp(self):
        self.searches = []
        self.list_frame = FakeFrame(
            LIST_URL,
            handlers={
                _SEARCH_SCRIPT: lambda arg: self.searches.append(arg) or True,
                _OPEN_ROW_SCRIPT: "clicked",
            },
        )
        self.detail_frame = FakeFrame(DETAIL_URL)
        self.page = FakePage([FakeFrame("https://ad2.shoplinker.co.kr/admin/main"), self.list_frame])

    def _controller(self, delays=None):
        resolver = FrameResolver(max_attempts=3, interval_ms=0, sleep=no_sleep)
        return NavigationController(
            self.page,
            resolver=resolver,
            list_url=LIST_URL,
            delays_ms=delays or {key: 0 for key in DEFAULT_DELAYS_MS},
        )

    def _show_detail(self):
        self.page.set_frames([self.list_frame, self.detail_frame])

    def test_full_cycle_reaches_each_state(self):
        controller = self._controller()
        self.assertEqual(controller.state, NavState.RETURNED)

        self.assertIs(controller.begin_item("A1B2C3"), self.list_frame)
        self.assertEqual(controller.state, NavState.LIST)

        controller.search("A1B2C3")
        self.assertEqual(controller.state, NavState.SEARCHING)
        selectors, code, start_date = self.searches[0]
        self.assertEqual(code, "A1B2C3")
        self.assertEqual(start_date, "2005-01-01")
        self.assertEqual(selectors["search_date"], "#st_date")

        controller.open_row("A1B2C3")
        self.assertEqual(controller.state, NavState.ROW_FOUND)
        self.assertEqual(self.list_frame.evaluated[-1][1][1], "A1B2C3")

        self._show_detail()
        self.assertIs(controller.open_detail(), self.detail_frame)
        self.assertEqual(controller.state, NavState.DETAIL)

        controller.return_to_list()
        self.assertEqual(controller.state, NavState.RETURNED)
        self.assertEqual(self.page.gotos, [LIST_URL])

    def test_settle_delays_are_applied(self):
        controller = self._controller(delays=dict(DEFAULT_DELAYS_MS))
        controller.begin_item("A1B2C3")
        controller.search("A1B2C3")

        self.assertEqual(self.page.waits, [5000, 3000])

    def test_missing_search_form_raises(self):
        self.list_frame.missing.add("textarea[name='search_str']")
        controller = self._controller()
        controller.begin_item("A1B2C3")

        with self.assertRaises(SearchFormMissing):
            controller.search("A1B2C3")
        self.assertEqual(controller.state, NavState.LIST)

    def test_search_script_reporting_missing_controls_raises(self):
        self.list_frame.handlers[_SEARCH_SCRIPT] = False
        controller = self._controller()
        controller.begin_item("A1B2C3")

        with self.assertRaises(SearchFormMissing):
            controller.search("A1B2C3")

    def test_row_not_found(self):
        self.list_frame.handlers[_OPEN_ROW_SCRIPT] = "no_row"
        controller = self._controller()
        controller.begin_item("A1B2C3")
        controller.search("A1B2C3")

        with self.assertRaises(RowNotFound) as ctx:
            controller.open_row("A1B2C3")
        self.assertIn("A1B2C3", str(ctx.exception))

    def test_row_without_action_is_row_not_found(self):
        self.list_frame.handlers[_OPEN_ROW_SCRIPT] = "no_action"
        controller = self._controller()
        controller.begin_item("A1B2C3")
        controller.search("A1B2C3")

        with self.assertRaises(RowNotFound):
            controller.open_row("A1B2C3")

    def test_detail_frame_never_appears(self):
        controller = self._controller()
        controller.begin_item("A1B2C3")
        controller.search("A1B2C3")
        controller.open_row("A1B2C3")
        polls_before = self.page.frame_polls

        with self.assertRaises(FrameNotFound):
            controller.open_detail()
        self.assertEqual(self.page.frame_polls - polls_before, 3)

    def test_list_frame_missing_on_begin(self):
        self.page.set_frames([FakeFrame("https://ad2.shoplinker.co.kr/admin/main")])
        controller = self._controller()

        with self.assertRaises(FrameNotFound):
            controller.begin_item("A1B2C3")

    def test_out_of_order_transition_rejected(self):
        controller = self._controller()
        with self.assertRaises(RuntimeError):
            controller.search("A1B2C3")

    def test_begin_item_recovers_from_any_state(self):
        self.list_frame.handlers[_OPEN_ROW_SCRIPT] = "no_row"
        controller = self._controller()
        controller.begin_item("A1B2C3")
        controller.search("A1B2C3")
        with self.assertRaises(RowNotFound):
            controller.open_row("A1B2C3")

        controller.begin_item("D4E5F6")
        self.assertEqual(controller.state, NavState.LIST)

    def test_return_failure_raises_recovery_failed(self):
        self.page.goto_error = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")
        controller = self._controller()

        with self.assertRaises(RecoveryFailed):
            controller.return_to_list()
        self.assertEqual(self.page.gotos, [LIST_URL])

    def test_return_on_closed_browser_is_fatal(self):
        self.page.goto_error = PlaywrightError("Target page, context or browser has been closed")
        controller = self._controller()

        with self.assertRaises(ConsoleSessionError):
            controller.return_to_list()

    def test_from_config_reads_patterns_and_delays(self):
        config = {
            "site": {"list_url": LIST_URL, "navigation_timeout": 9000},
            "scraping": {
                "frames": {"detail": {"include": ["custom_detail"]}},
                "delays": {"list_settle_ms": 10},
                "search": {"start_date": "2010-01-01"},
                "selectors": {"search_submit": "#go"},
            },
        }
        controller = NavigationController.from_config(self.page, config)

        self.assertEqual(controller.navigation_timeout, 9000)
        self.assertEqual(controller.delays_ms["list_settle_ms"], 10)
        self.assertEqual(controller.delays_ms["search_settle_ms"], 3000)
        self.assertEqual(controller.search_start_date, "2010-01-01")
        self.assertEqual(controller.selectors["search_submit"], "#go")
        self.assertEqual(controller.selectors["search_date"], "#st_date")
        self.assertTrue(controller.detail_frame("https://x/custom_detail"))
        self.assertFalse(controller.detail_frame(DETAIL_URL))
        self.assertTrue(controller.list_frame(LIST_URL))


if __name__ == "__main__":
    unittest.main()
