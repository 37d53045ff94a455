from __future__ import annotations


class UpstreamError(Exception):
    """Base class for failures that reach the caller of a search."""


class NoInstanceSelected(UpstreamError):
    def __init__(self) -> None:
        super().__init__("No Piped instance selected")


class UpstreamCorruptResponse(UpstreamError):
    """A JSON-typed upstream body could not be parsed."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"An error occurred while parsing the search results from {url}: {reason}")


class SpotifyAuthError(UpstreamError):
    def __init__(self) -> None:
        super().__init__("Failed to authenticate")


class SpotifySearchError(UpstreamError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__("Failed to fetch search results")
