"""Tide error hierarchy.

All tide-specific errors inherit from TideError for easy catching.
"""


class TideError(Exception):
    """Base error for all tide operations."""


class ConfigError(TideError):
    """Invalid or missing configuration."""


class InvalidURL(ConfigError):
    """The configured location cannot be fetched (malformed or unsupported)."""


class StreamError(TideError):
    """Misuse of a stream or pipeline (double start, bad arguments)."""


class FetchError(TideError):
    """A fetch attempt failed. Non-fatal: the previous posts are kept."""


class BadServerResponse(FetchError):
    """No response metadata, or a status code outside 200-299."""

    def __init__(self, status_code: int | None = None) -> None:
        self.status_code = status_code
        if status_code is None:
            msg = "bad server response: no response metadata"
        else:
            msg = f"bad server response: HTTP {status_code}"
        super().__init__(msg)


class DecodeError(FetchError):
    """The payload does not match the expected shape."""


class NetworkError(FetchError):
    """The request never produced a response (connect, read, timeout)."""
