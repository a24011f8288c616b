class FontInspectorError(Exception):
    """Base class for font_inspector errors."""


class FetchError(FontInspectorError):
    """A stylesheet or font binary could not be fetched."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to fetch {url}: {reason}")
