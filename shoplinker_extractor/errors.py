"""Exception taxonomy for the extractor.

Item errors are local to one input code: the batch logs them and moves on.
Session errors mean no further progress is possible and end the run.
"""


class ExtractorError(Exception):
    """Base class for extractor failures."""
    pass


class ItemError(ExtractorError):
    """Recoverable failure scoped to a single input code."""
    pass


class FrameNotFound(ItemError):
    """Raised when a sub-document never appeared within the polling budget."""

    def __init__(self, description: str, attempts: int):
        super().__init__(f"Frame not found after {attempts} attempts: {description}")
        self.description = description
        self.attempts = attempts


class SearchFormMissing(ItemError):
    """Raised when the list search fields are not rendered."""
    pass


class RowNotFound(ItemError):
    """Raised when no result row carries the target code."""
    pass


class AssetUnavailable(ItemError):
    """Raised when a binary resource could not be fetched."""

    def __init__(self, url: str, status=None, reason: str = ""):
        detail = f"status {status}" if status is not None else (reason or "request failed")
        super().__init__(f"Asset unavailable ({detail}): {url}")
        self.url = url
        self.status = status


class RecoveryFailed(ItemError):
    """Raised when returning to the canonical list address failed."""
    pass


class ConsoleSessionError(ExtractorError):
    """Raised when the browser session cannot be established or was lost."""
    pass
