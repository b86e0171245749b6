"""Error taxonomy for graph loading, derivation and background jobs."""


class CitegraphError(Exception):
    """Base class for all citegraph errors."""


class NetworkError(CitegraphError):
    """Transient transport failure: connection refused, timeout, 5xx.

    Polling treats it as retryable on the next tick; one-shot calls surface it
    as a banner.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ApiError(CitegraphError):
    """Non-retryable error response from the server (4xx)."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class ValidationError(CitegraphError):
    """Stale or invalid selection/settings, e.g. a cluster id that no longer exists."""


class JobFailure(CitegraphError):
    """Terminal failure reported by the server for a background job."""

    def __init__(self, message: str, job_id: str | None = None, status: str = "failed") -> None:
        super().__init__(message)
        self.job_id = job_id
        self.status = status


class StallWarning(UserWarning):
    """Advisory: a running job made no progress for longer than the grace period."""
