"""Polling state machine for a server-side background job.

    idle -> launching -> running -> completed | failed | cancelled | timeout

One monitor per job family. A generation counter is bumped on every launch,
cancel and reset; any poll response that arrives for an older generation is
dropped, so a cancelled job can never write state back. A cancel that lands
while the launch request is still in flight cancels the job as soon as the
server hands back its id.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from citegraph.config import settings
from citegraph.errors import CitegraphError, JobFailure, StallWarning
from citegraph.jobs.families import JobFamily, format_elapsed
from citegraph.jobs.notifier import Level, Notifier
from citegraph.models import CancelReason, JobState, JobStatus
from citegraph.models.job import utcnow

logger = logging.getLogger(__name__)

JobCallback = Callable[[JobState], Awaitable[None]]


class MonitorPhase(str, Enum):
    IDLE = "idle"
    LAUNCHING = "launching"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"

    @classmethod
    def for_status(cls, status: JobStatus) -> "MonitorPhase":
        if status.is_active:
            return cls.RUNNING
        return cls(status.value)

    @property
    def is_terminal(self) -> bool:
        return self not in (MonitorPhase.IDLE, MonitorPhase.LAUNCHING, MonitorPhase.RUNNING)


@dataclass(frozen=True)
class JobProgress:
    """What the progress UI shows for one job family."""

    family: str
    phase: MonitorPhase
    status: str | None = None
    job_id: str | None = None
    processed: int = 0
    total: int = 0
    percent: int = 0
    message: str | None = None
    stalled: bool = False
    warning: StallWarning | None = None
    elapsed_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "family": self.family,
            "phase": self.phase.value,
            "status": self.status,
            "jobId": self.job_id,
            "processed": self.processed,
            "total": self.total,
            "progress": self.percent,
            "message": self.message,
            "stalled": self.stalled,
            "hint": str(self.warning) if self.warning else None,
            "elapsed": format_elapsed(self.elapsed_seconds),
        }


class JobMonitor:
    """Launches, polls and cancels one family of background jobs."""

    def __init__(
        self,
        family: JobFamily,
        notifier: Notifier,
        poll_interval: float | None = None,
        stall_threshold: float | None = None,
        on_completed: JobCallback | None = None,
        on_settled: JobCallback | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.family = family
        self.notifier = notifier
        self.poll_interval = poll_interval if poll_interval is not None else settings.poll_interval
        self.stall_threshold = stall_threshold if stall_threshold is not None else settings.stall_threshold
        self.on_completed = on_completed  # Completed only
        self.on_settled = on_settled  # Every terminal outcome, including user cancel
        self.clock = clock

        self.phase = MonitorPhase.IDLE
        self.state: JobState | None = None
        self.message: str | None = None

        self._generation = 0
        self._cancelled_launches: set[int] = set()  # Launch generations the user cancelled mid-flight
        self._poll_task: asyncio.Task | None = None
        self._started_clock = 0.0
        self._last_progress_clock = 0.0
        self._stall_reported = False

    @property
    def channel(self) -> str:
        return self.family.name

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_running(self) -> bool:
        return self.phase is MonitorPhase.RUNNING

    @property
    def is_launching(self) -> bool:
        return self.phase is MonitorPhase.LAUNCHING

    @property
    def is_stalled(self) -> bool:
        """Advisory: running with no processed-count change for too long."""
        if not self.is_running or self.state is None:
            return False
        if self.state.server_stalled:
            return True
        since = self.state.seconds_since_progress
        if since is not None and since > self.stall_threshold:
            return True
        return self.clock() - self._last_progress_clock > self.stall_threshold

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def launch(self, **options: Any) -> JobProgress:
        """Start a new job. Any previous terminal job is discarded first."""
        if self.is_launching:
            logger.warning(f"{self.family.name} job is already being started, not relaunching")
            return self.progress()
        if self.is_running:
            logger.warning(f"{self.family.name} job {self.state.job_id} already running, not relaunching")
            return self.progress()

        self._reset()
        self.phase = MonitorPhase.LAUNCHING
        generation = self._generation

        try:
            result = await self.family.launch(**options)
        except CitegraphError as e:
            logger.error(f"Failed to start {self.family.name} job: {e}")
            if generation in self._cancelled_launches:
                self._cancelled_launches.discard(generation)
            elif generation == self._generation:
                self.phase = MonitorPhase.IDLE
                self.notifier.post(self.channel, f"Failed to start: {e}", Level.ERROR)
            return self.progress()

        if generation in self._cancelled_launches:
            self._cancelled_launches.discard(generation)
            await self._cancel_launched(result.state)
            return self.progress()

        if generation != self._generation:
            logger.debug(f"{self.family.name} launch superseded before the server answered")
            return self.progress()

        self.phase = MonitorPhase.IDLE
        if result.state is None:
            self.message = result.message
            if result.message:
                self.notifier.post(self.channel, result.message, Level.INFO)
            return self.progress()

        if result.state.status.is_terminal:
            # Nothing to do on the server side (e.g. every article already embedded)
            self.state = result.state
            self.phase = MonitorPhase.for_status(result.state.status)
            self.message = result.message
            if result.message:
                self.notifier.post(self.channel, result.message, Level.INFO)
            return self.progress()

        logger.info(
            f"Started {self.family.name} job {result.state.job_id} "
            f"({result.state.total} items)"
        )
        self._start(result.state, result.message)
        return self.progress()

    async def resume(self) -> JobProgress:
        """Pick up a job that is already pending/running on the server."""
        if self.is_running or self.is_launching:
            return self.progress()
        generation = self._generation
        try:
            state = await self.family.find_active()
        except CitegraphError as e:
            logger.warning(f"Could not check for an active {self.family.name} job: {e}")
            return self.progress()

        if state is None or generation != self._generation:
            return self.progress()

        logger.info(f"Resuming {self.family.name} job {state.job_id}")
        self._reset()
        self._start(state, None)
        return self.progress()

    async def cancel(self) -> JobProgress:
        """
        Cancel the running job.

        The monitor is idle as soon as this returns, regardless of what the
        server reports afterwards. Cancelling while the launch request is in
        flight leaves the server-side cancel to the pending launch.
        """
        if self.is_launching:
            self._cancelled_launches.add(self._generation)
            self._reset()
            logger.info(f"{self.family.name} job cancelled before the server answered the launch")
            return self.progress()

        if not self.is_running or self.state is None:
            return self.progress()

        previous = self.state
        self._reset()
        snapshot = replace(previous, status=JobStatus.CANCELLED, cancel_reason=CancelReason.USER)
        self.notifier.post(self.channel, self.family.cancelled_message(snapshot), Level.WARNING)

        if previous.job_id:
            try:
                await self.family.cancel(previous.job_id)
                logger.info(f"Cancelled {self.family.name} job {previous.job_id}")
            except CitegraphError as e:
                logger.error(f"Failed to cancel {self.family.name} job {previous.job_id}: {e}")

        await self._run_callback(self.on_settled, snapshot)
        return self.progress()

    async def _cancel_launched(self, state: JobState | None) -> None:
        """Cancel a job whose launch the user already cancelled."""
        if state is None or state.status.is_terminal or not state.job_id:
            return
        snapshot = replace(state, status=JobStatus.CANCELLED, cancel_reason=CancelReason.USER)
        self.notifier.post(self.channel, self.family.cancelled_message(snapshot), Level.WARNING)
        try:
            await self.family.cancel(state.job_id)
            logger.info(f"Cancelled {self.family.name} job {state.job_id} right after launch")
        except CitegraphError as e:
            logger.error(f"Failed to cancel {self.family.name} job {state.job_id}: {e}")
        await self._run_callback(self.on_settled, snapshot)

    def acknowledge(self) -> None:
        """Drop a terminal job state once the UI has shown it."""
        if self.phase.is_terminal:
            self.phase = MonitorPhase.IDLE
            self.state = None
            self.message = None

    async def shutdown(self) -> None:
        """Stop polling without touching the server-side job."""
        self._generation += 1
        await self._stop_polling()

    async def join(self) -> None:
        """Wait for the current poll loop to end (terminal status or cancel)."""
        task = self._poll_task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    def raise_for_status(self) -> None:
        """Raise JobFailure if the last job ended in failure or timeout."""
        if self.phase in (MonitorPhase.FAILED, MonitorPhase.TIMEOUT) and self.state is not None:
            raise JobFailure(
                self.state.error_message or self.message or "Job failed",
                job_id=self.state.job_id,
                status=self.phase.value,
            )

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def poll_once(self) -> JobProgress:
        """One poll tick. Transient errors leave the state untouched."""
        if not self.is_running or self.state is None or not self.state.job_id:
            return self.progress()

        generation = self._generation
        job_id = self.state.job_id
        try:
            state = await self.family.fetch_status(job_id)
        except CitegraphError as e:
            if generation == self._generation:
                logger.warning(f"Polling {self.family.name} job {job_id} failed, will retry: {e}")
            return self.progress()

        if generation != self._generation:
            logger.debug(f"Ignoring stale {self.family.name} status for job {job_id}")
            return self.progress()

        if state.status.is_active:
            self._record_progress(state)
        else:
            await self._finish(state)
        return self.progress()

    async def _poll_loop(self, generation: int) -> None:
        while generation == self._generation and self.is_running:
            await asyncio.sleep(self.poll_interval)
            if generation != self._generation:
                return
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Unexpected error polling {self.family.name} job: {e}")

    def _start(self, state: JobState, message: str | None) -> None:
        now = self.clock()
        if state.started_at is None:
            state = replace(state, started_at=utcnow())
        if state.last_progress_at is None:
            state = replace(state, last_progress_at=state.started_at)

        self.state = state
        self.phase = MonitorPhase.RUNNING
        self._started_clock = now
        self._last_progress_clock = now
        self._stall_reported = False
        self.message = message or self.family.running_message(state)
        self.notifier.post(self.channel, self.message, Level.INFO, sticky=True)

        self._poll_task = asyncio.create_task(self._poll_loop(self._generation))

    def _record_progress(self, state: JobState) -> None:
        previous = self.state
        if previous is not None:
            state = replace(
                state,
                started_at=state.started_at or previous.started_at,
                last_progress_at=state.last_progress_at or previous.last_progress_at,
            )
        if previous is None or state.processed != previous.processed:
            self._last_progress_clock = self.clock()
            self._stall_reported = False
            state = replace(state, last_progress_at=utcnow())

        self.state = state
        self.message = self.family.running_message(state)
        self.notifier.post(self.channel, self.message, Level.INFO, sticky=True)

        if self.is_stalled and not self._stall_reported:
            self._stall_reported = True
            logger.warning(
                f"{StallWarning.__name__}: {self.family.name} job {state.job_id} "
                f"has made no progress at {state.processed}/{state.total}"
            )

    async def _finish(self, state: JobState) -> None:
        previous = self.state
        if previous is not None and state.started_at is None:
            state = replace(state, started_at=previous.started_at)

        self.state = state
        self.phase = MonitorPhase.for_status(state.status)
        self._cancel_poll_task()

        if state.status is JobStatus.COMPLETED:
            self.message = self.family.completed_message(state)
            self.notifier.post(self.channel, self.message, Level.SUCCESS)
            logger.info(f"{self.family.name} job {state.job_id} completed ({state.processed}/{state.total})")
            if self.family.reloads_graph:
                await self._run_callback(self.on_completed, state)
        else:
            self.message, level = self.family.terminal_message(state)
            self.notifier.post(self.channel, self.message, level)
            logger.warning(
                f"{self.family.name} job {state.job_id} ended as {state.status.value}: "
                f"{state.error_message or state.cancel_reason}"
            )

        await self._run_callback(self.on_settled, state)

    async def _run_callback(self, callback: JobCallback | None, state: JobState) -> None:
        if callback is None:
            return
        try:
            await callback(state)
        except CitegraphError as e:
            logger.warning(f"{self.family.name} follow-up failed: {e}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _reset(self) -> None:
        """Back to idle with a fresh generation; no state carries over."""
        self._generation += 1
        self._cancel_poll_task()
        self.phase = MonitorPhase.IDLE
        self.state = None
        self.message = None
        self._stall_reported = False

    def _cancel_poll_task(self) -> None:
        task = self._poll_task
        self._poll_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _stop_polling(self) -> None:
        task = self._poll_task
        self._poll_task = None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def progress(self) -> JobProgress:
        state = self.state
        stalled = self.is_stalled
        warning = None
        if stalled and state is not None:
            idle_for = int(self.clock() - self._last_progress_clock)
            if state.seconds_since_progress is not None:
                idle_for = max(idle_for, int(state.seconds_since_progress))
            warning = StallWarning(f"No progress for {idle_for} s, the job may be stalled")
        return JobProgress(
            family=self.family.name,
            phase=self.phase,
            status=state.status.value if state else None,
            job_id=state.job_id if state else None,
            processed=state.processed if state else 0,
            total=state.total if state else 0,
            percent=state.percent if state else 0,
            message=self.message,
            stalled=stalled,
            warning=warning,
            elapsed_seconds=self.clock() - self._started_clock if self.is_running else 0.0,
        )
