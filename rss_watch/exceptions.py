class RSSWatchError(Exception):
    """Base class for errors raised while checking feeds."""


class NetworkError(RSSWatchError):
    """Raised when a feed URL cannot be downloaded (transport, HTTP status or timeout)."""


class ValidationError(RSSWatchError):
    """Raised when a downloaded body is not a well-formed RSS/Atom document."""


class RedirectLoopExceeded(RSSWatchError):
    """Raised when a feed keeps redirecting past the configured hop limit."""


class UnexpectedError(RSSWatchError):
    """Wraps any other failure caught at the per-feed boundary of a batch."""
