"""Job families - per-endpoint launch/poll/cancel adapters and their wording.

A JobMonitor is generic; everything that differs between reference fetching
and embedding generation (endpoints, payload shape, user-facing text) lives
here.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from citegraph.client import CitationGraphClient
from citegraph.jobs.notifier import Level
from citegraph.models import CancelReason, JobState, JobStatus
from citegraph.models.job import utcnow

logger = logging.getLogger(__name__)

IMPORT_PHASE_PREFIX = "[Import]"
_IMPORTED_RE = re.compile(r"imported=(\d+)")


@dataclass(frozen=True)
class LaunchResult:
    """Outcome of a launch call.

    `state` is None when the server had nothing to start.
    """

    state: JobState | None
    message: str | None = None


def format_elapsed(seconds: float) -> str:
    """Format seconds as MM:SS."""
    total = max(0, int(seconds))
    return f"{total // 60:02d}:{total % 60:02d}"


class JobFamily(ABC):
    """Endpoints and wording for one kind of background job."""

    name: str = "job"
    reloads_graph: bool = True

    def __init__(self, client: CitationGraphClient, project_id: str) -> None:
        self.client = client
        self.project_id = project_id

    @abstractmethod
    async def launch(self, **options: Any) -> LaunchResult:
        """Start a job on the server."""

    @abstractmethod
    async def fetch_status(self, job_id: str) -> JobState:
        """Current server-side state of a job."""

    @abstractmethod
    async def cancel(self, job_id: str) -> None:
        """Ask the server to cancel a job."""

    @abstractmethod
    async def find_active(self) -> JobState | None:
        """A pending/running job already on the server, if any."""

    @abstractmethod
    def running_message(self, state: JobState) -> str:
        """Progress line for a pending/running job."""

    @abstractmethod
    def completed_message(self, state: JobState) -> str:
        """Success line for a completed job."""

    def terminal_message(self, state: JobState) -> tuple[str, Level]:
        """Text and level for a failed, timed out or cancelled job."""
        if state.status is JobStatus.CANCELLED:
            return self.cancelled_message(state), Level.WARNING
        if state.status is JobStatus.TIMEOUT:
            return self.timeout_message(state), Level.ERROR
        return self.failed_message(state), Level.ERROR

    def failed_message(self, state: JobState) -> str:
        return f"Error: {state.error_message or 'Unknown error'}"

    def timeout_message(self, state: JobState) -> str:
        return f"Timed out: {state.error_message or 'the job exceeded its maximum duration'}"

    def cancelled_message(self, state: JobState) -> str:
        return "Cancelled."


class ReferenceFetchFamily(JobFamily):
    """Fetching references and citing articles for project articles."""

    name = "references"

    async def launch(self, **options: Any) -> LaunchResult:
        response = await self.client.fetch_references(self.project_id, **options)
        job_id = response.get("jobId")
        if not job_id:
            return LaunchResult(state=None, message=response.get("message") or "Nothing to fetch")

        message = response.get("message")
        without_pmid = int(response.get("articlesWithoutPmid") or 0)
        if without_pmid > 0:
            note = f"{without_pmid} articles without PMID will be resolved through Crossref"
            message = f"{message}. {note}" if message else note

        return LaunchResult(
            state=JobState(
                job_id=job_id,
                status=JobStatus.PENDING,
                total=int(response.get("totalArticles") or 0),
                started_at=utcnow(),
            ),
            message=message,
        )

    async def fetch_status(self, job_id: str) -> JobState:
        payload = await self.client.fetch_references_status(self.project_id)
        if not payload.get("hasJob", True):
            # The server no longer tracks any fetch job for this project
            return JobState(
                job_id=job_id,
                status=JobStatus.CANCELLED,
                error_message="The fetch job is no longer tracked by the server",
            )
        state = JobState.from_dict(payload)
        if state.job_id is None:
            state = JobState.from_dict({**payload, "jobId": job_id})
        return state

    async def cancel(self, job_id: str) -> None:
        await self.client.cancel_fetch_references(self.project_id)

    async def find_active(self) -> JobState | None:
        payload = await self.client.fetch_references_status(self.project_id)
        if not payload.get("hasJob"):
            return None
        state = JobState.from_dict(payload)
        return state if state.status.is_active else None

    def running_message(self, state: JobState) -> str:
        text = f"Fetching references: {state.processed}/{state.total} ({state.percent}%)"
        if state.current_phase:
            detail = state.current_phase
            if state.phase_progress:
                detail = f"{detail} {state.phase_progress}"
            text = f"{text} - {detail}"
        return text

    def completed_message(self, state: JobState) -> str:
        return "Reference fetch complete, refreshing graph..."

    def cancelled_message(self, state: JobState) -> str:
        if state.cancel_reason is CancelReason.STALLED:
            return (
                "Fetch cancelled automatically: no progress for more than 60 s. "
                "The PubMed server is not responding, try again later."
            )
        if state.cancel_reason is CancelReason.TIMEOUT:
            return (
                "Fetch cancelled: maximum run time exceeded (30 min). "
                "Try fetching fewer articles."
            )
        return "Fetch cancelled. You can start it again."


class EmbeddingFamily(JobFamily):
    """Generating semantic embeddings, optionally importing missing articles first."""

    name = "embeddings"

    async def launch(self, **options: Any) -> LaunchResult:
        response = await self.client.generate_embeddings(self.project_id, **options)
        state = JobState.from_dict(response)
        if state.status is JobStatus.COMPLETED and state.total == 0:
            return LaunchResult(state=state, message="All articles already have embeddings")
        if not state.job_id:
            return LaunchResult(state=None, message=response.get("message") or "Nothing to embed")

        if state.started_at is None:
            state = JobState.from_dict({**response, "startedAt": utcnow().isoformat()})
        if options.get("import_missing_articles"):
            message = f"Importing missing articles and generating embeddings for {state.total} articles..."
        else:
            message = f"Started embedding generation for {state.total} articles..."
        return LaunchResult(state=state, message=message)

    async def fetch_status(self, job_id: str) -> JobState:
        payload = await self.client.get_embedding_job(self.project_id, job_id)
        return JobState.from_dict({"jobId": job_id, **payload})

    async def cancel(self, job_id: str) -> None:
        await self.client.cancel_embedding_job(self.project_id, job_id)

    async def find_active(self) -> JobState | None:
        payload = await self.client.get_embedding_jobs(self.project_id)
        for job in payload.get("jobs") or ():
            state = JobState.from_dict(job)
            if state.status.is_active:
                return state
        return None

    def running_message(self, state: JobState) -> str:
        if state.error_message and state.error_message.startswith(IMPORT_PHASE_PREFIX):
            # e.g. "[Import] PubMed: imported=50, skipped=2, errors=0"
            match = _IMPORTED_RE.search(state.error_message)
            imported = int(match.group(1)) if match else 0
            return f"Importing citing articles: {imported} imported..."
        if state.total == 0 and state.processed == 0:
            return "Preparing..."
        return f"Generating embeddings: {state.processed}/{state.total} ({state.percent}%)..."

    def completed_message(self, state: JobState) -> str:
        text = f"Done! Processed {state.processed} articles"
        if state.errors > 0:
            text = f"{text}, errors: {state.errors}"
        return text

    def failed_message(self, state: JobState) -> str:
        return f"Error: {state.error_message or 'Unknown error'}. Processed: {state.processed}"

    def timeout_message(self, state: JobState) -> str:
        return f"Timed out: {state.error_message or 'exceeded max duration'}. Processed: {state.processed}"

    def cancelled_message(self, state: JobState) -> str:
        return f"Cancelled. Processed {state.processed} of {state.total}"
