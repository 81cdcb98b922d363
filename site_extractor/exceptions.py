from typing import Optional


class ExtractionError(Exception):
    """Base class for every error raised by the extraction pipeline."""


class FetchError(ExtractionError):
    """The target page could not be retrieved. Extraction cannot proceed."""

    def __init__(self, url: str, reason: str = "", status: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status = status
        detail = reason or f"HTTP {status}"
        if status is not None and reason:
            detail = f"HTTP {status}, {reason}"
        super().__init__(f"could not fetch {url}: {detail}")


class RenderError(ExtractionError):
    """The browser session used for computed styles failed."""


class AssetError(ExtractionError):
    """A single asset failed validation or download."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"{url}: {reason}")


class InvalidProjectError(ExtractionError, ValueError):
    """The project identifier cannot be used as a storage namespace."""
