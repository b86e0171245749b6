"""Background job orchestration.

Provides:
- JobMonitor: launch / poll / cancel state machine with stale-response guard
- Job families for reference fetching and embedding generation
- Notifier: auto-dismissing banners
"""

from citegraph.jobs.families import (
    EmbeddingFamily,
    JobFamily,
    LaunchResult,
    ReferenceFetchFamily,
    format_elapsed,
)
from citegraph.jobs.monitor import JobMonitor, JobProgress, MonitorPhase
from citegraph.jobs.notifier import Banner, Level, Notifier

__all__ = [
    "JobMonitor",
    "JobProgress",
    "MonitorPhase",
    "JobFamily",
    "LaunchResult",
    "ReferenceFetchFamily",
    "EmbeddingFamily",
    "format_elapsed",
    "Notifier",
    "Banner",
    "Level",
]
