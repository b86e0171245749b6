"""Background job models - reference fetching and embedding generation."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    """Server-side job status."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"

    @property
    def is_active(self) -> bool:
        return self in (JobStatus.PENDING, JobStatus.RUNNING)

    @property
    def is_terminal(self) -> bool:
        return not self.is_active


class CancelReason(str, Enum):
    """Why the server cancelled a job."""

    STALLED = "stalled"
    TIMEOUT = "timeout"
    USER = "user"

    @classmethod
    def parse(cls, value: str | None) -> "CancelReason | None":
        if not value:
            return None
        if value == "user_cancelled":
            return cls.USER
        try:
            return cls(value)
        except ValueError:
            return None


def parse_datetime(value: Any) -> datetime | None:
    """Parse ISO datetimes, tolerating a trailing 'Z'."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _int(value: Any) -> int:
    if value is None:
        return 0
    return int(value)


@dataclass(frozen=True)
class JobState:
    """Snapshot of a background job as last reported by the server."""

    job_id: str | None
    status: JobStatus
    processed: int = 0
    total: int = 0
    errors: int = 0
    error_message: str | None = None
    started_at: datetime | None = None
    last_progress_at: datetime | None = None
    cancel_reason: CancelReason | None = None

    # Optional detail for the progress UI
    current_phase: str | None = None
    phase_progress: str | None = None
    seconds_since_progress: float | None = None
    server_stalled: bool = False

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 0
        return min(100, round(self.processed / self.total * 100))

    @classmethod
    def from_dict(cls, data: dict) -> "JobState":
        """
        Create from a job payload.

        Accepts both the embedding-job shape (processed/total/errors) and the
        reference-fetch status shape (processedArticles/totalArticles).
        """
        processed = data.get("processed", data.get("processedArticles"))
        total = data.get("total", data.get("totalArticles"))
        status = data.get("status") or JobStatus.PENDING.value
        return cls(
            job_id=data.get("jobId") or data.get("id"),
            status=JobStatus(status),
            processed=_int(processed),
            total=_int(total),
            errors=_int(data.get("errors")),
            error_message=data.get("errorMessage"),
            started_at=parse_datetime(data.get("startedAt")),
            last_progress_at=parse_datetime(data.get("lastProgressAt")),
            cancel_reason=CancelReason.parse(data.get("cancelReason")),
            current_phase=data.get("currentPhase"),
            phase_progress=data.get("phaseProgress"),
            seconds_since_progress=data.get("secondsSinceProgress"),
            server_stalled=bool(data.get("isStalled", False)),
        )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
