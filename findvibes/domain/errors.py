class FindVibesError(Exception):
    """Base class for errors raised by the recommendation core."""


class EmptyResultError(FindVibesError):
    """No tracks were available to build a request or a playlist."""


class ExpiredSessionError(FindVibesError):
    """The access token was rejected. The caller has to re-authenticate."""


class PerTrackEnrichmentError(FindVibesError):
    """Fetching the top tracks of a single track's artist failed."""

    def __init__(self, track_id: str, cause: Exception) -> None:
        super().__init__(f"Failed to enrich track {track_id}: {cause}")
        self.track_id = track_id
        self.cause = cause


class RateLimited(FindVibesError):
    """Operation was rate limited by provider. Includes suggested wait time in milliseconds."""

    def __init__(self, retry_after_ms: int, message: str = "Rate limited") -> None:
        super().__init__(message)
        self.retry_after_ms = retry_after_ms


class TemporaryFailure(FindVibesError):
    """Transient provider or network failure. Retrying may succeed."""


class PermanentFailure(FindVibesError):
    """Non-retriable failure due to invalid input or authorization issues."""


class NotFound(FindVibesError):
    """Requested resource was not found."""
