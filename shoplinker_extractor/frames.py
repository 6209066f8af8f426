"""Bounded polling for sub-documents the console creates asynchronously."""

import time
from typing import Any, Callable, Dict, Iterable, Optional

from loguru import logger
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from shoplinker_extractor.errors import FrameNotFound

UrlPredicate = Callable[[str], bool]


def url_matcher(include: Iterable[str], exclude: Iterable[str] = ()) -> UrlPredicate:
    """Predicate true when a URL contains any ``include`` and no ``exclude`` substring."""
    include = tuple(include)
    exclude = tuple(exclude)

    def predicate(url: str) -> bool:
        url = url or ""
        return any(part in url for part in include) and not any(part in url for part in exclude)

    predicate.__doc__ = f"include={list(include)} exclude={list(exclude)}"
    return predicate


class FrameResolver:
    """Finds a live frame by URL, polling until it appears.

    Frame references go stale on every navigation, so callers resolve again
    at each navigation boundary instead of keeping one.
    """

    def __init__(
        self,
        max_attempts: int = 20,
        interval_ms: int = 500,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.max_attempts = max(1, int(max_attempts))
        self.interval_ms = max(0, int(interval_ms))
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "FrameResolver":
        polling = config.get("scraping", {}).get("frame_polling", {}) or {}
        return cls(
            max_attempts=polling.get("max_attempts", 20),
            interval_ms=polling.get("interval_ms", 500),
        )

    def find(self, page, predicate: UrlPredicate):
        """Single lookup over ``page.frames``; first match in frame order."""
        for frame in page.frames:
            if predicate(frame.url):
                return frame
        return None

    def resolve(
        self,
        page,
        predicate: UrlPredicate,
        max_attempts: Optional[int] = None,
        interval_ms: Optional[int] = None,
        description: Optional[str] = None,
    ):
        """Poll until a frame matches ``predicate``.

        Looks up ``max_attempts`` times with ``interval_ms`` between
        lookups, so the longest wait is (max_attempts - 1) * interval_ms.

        Raises:
            FrameNotFound: after ``max_attempts`` lookups without a match
        """
        attempts = self.max_attempts if max_attempts is None else max(1, int(max_attempts))
        interval = self.interval_ms if interval_ms is None else max(0, int(interval_ms))
        label = description or predicate.__doc__ or "frame"

        def _lookup():
            frame = self.find(page, predicate)
            if frame is None:
                raise FrameNotFound(label, attempts)
            return frame

        retryer = Retrying(
            stop=stop_after_attempt(attempts),
            wait=wait_fixed(interval / 1000.0),
            retry=retry_if_exception_type(FrameNotFound),
            sleep=self._sleep,
            before_sleep=lambda state: logger.debug(
                f"Waiting for {label} (attempt {state.attempt_number}/{attempts})"
            ),
            reraise=True,
        )
        frame = retryer(_lookup)
        logger.debug(f"Resolved {label}: {frame.url}")
        return frame
