class FeedError(Exception):
    """Base class for failures talking to an upstream data source."""


class UpstreamUnavailable(FeedError):
    def __init__(self, source: str, message: str = "", status=None):
        self.source = source
        self.status = status
        super().__init__(f"{source}: {message}" if message else source)


class RateLimited(UpstreamUnavailable):
    """HTTP 429 (or exchange throttling). Never retried, surfaced so callers can flag fallback data."""


class MalformedPayload(UpstreamUnavailable):
    pass


class UpstreamRejected(UpstreamUnavailable):
    """The source answered but refused the request (unknown symbol, bad credentials). Never retried."""


class AggregationError(Exception):
    """Volume could not be built from the trade feed; caller should fall back to synthetic data."""
    def __init__(self, message: str, rate_limited: bool = False):
        self.rate_limited = rate_limited
        super().__init__(message)


def is_transient(exc: BaseException) -> bool:
    return (isinstance(exc, UpstreamUnavailable)
            and not isinstance(exc, (RateLimited, MalformedPayload, UpstreamRejected)))
