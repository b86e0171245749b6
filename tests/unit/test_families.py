"""Unit tests for job family adapters."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from citegraph.jobs import EmbeddingFamily, Level, ReferenceFetchFamily, format_elapsed
from citegraph.models import CancelReason, JobState, JobStatus


class TestReferenceFetchFamily:
    """Tests for reference fetching."""

    @pytest.fixture
    def family(self, mock_client: MagicMock) -> ReferenceFetchFamily:
        return ReferenceFetchFamily(mock_client, "project-test")

    @pytest.mark.asyncio
    async def test_launch(self, family, mock_client) -> None:
        """Test launching returns a pending state and Crossref note."""
        mock_client.fetch_references = AsyncMock(return_value={
            "jobId": "ref-1",
            "totalArticles": 12,
            "message": "Fetch started",
            "articlesWithoutPmid": 3,
        })

        result = await family.launch(selected_only=True)

        mock_client.fetch_references.assert_awaited_once_with("project-test", selected_only=True)
        assert result.state.job_id == "ref-1"
        assert result.state.status is JobStatus.PENDING
        assert result.state.total == 12
        assert result.state.started_at is not None
        assert result.message == "Fetch started. 3 articles without PMID will be resolved through Crossref"

    @pytest.mark.asyncio
    async def test_launch_nothing_to_do(self, family, mock_client) -> None:
        """Test launch without a job id."""
        mock_client.fetch_references = AsyncMock(return_value={"message": "No articles to process"})

        result = await family.launch()

        assert result.state is None
        assert result.message == "No articles to process"

    @pytest.mark.asyncio
    async def test_status_without_job(self, family, mock_client) -> None:
        """Test that a job the server forgot is treated as cancelled."""
        mock_client.fetch_references_status = AsyncMock(return_value={"hasJob": False})

        state = await family.fetch_status("ref-1")

        assert state.status is JobStatus.CANCELLED
        assert state.job_id == "ref-1"
        assert "no longer tracked" in state.error_message

    @pytest.mark.asyncio
    async def test_status_fills_job_id(self, family, mock_client) -> None:
        """Test that the polled job id is kept when the payload omits it."""
        mock_client.fetch_references_status = AsyncMock(return_value={
            "hasJob": True,
            "status": "running",
            "processedArticles": 4,
            "totalArticles": 10,
        })

        state = await family.fetch_status("ref-1")

        assert state.job_id == "ref-1"
        assert state.processed == 4

    @pytest.mark.asyncio
    async def test_find_active(self, family, mock_client) -> None:
        """Test resuming only picks active jobs."""
        mock_client.fetch_references_status = AsyncMock(return_value={
            "hasJob": True, "jobId": "ref-9", "status": "running",
        })
        assert (await family.find_active()).job_id == "ref-9"

        mock_client.fetch_references_status = AsyncMock(return_value={
            "hasJob": True, "jobId": "ref-9", "status": "completed",
        })
        assert await family.find_active() is None

    @pytest.mark.asyncio
    async def test_cancel(self, family, mock_client) -> None:
        """Test cancel goes to the project-level endpoint."""
        await family.cancel("ref-1")
        mock_client.cancel_fetch_references.assert_awaited_once_with("project-test")

    def test_running_message_with_phase(self, family) -> None:
        """Test progress text includes the current phase."""
        state = JobState(
            job_id="r", status=JobStatus.RUNNING, processed=5, total=10,
            current_phase="Crossref", phase_progress="2/3",
        )
        assert family.running_message(state) == "Fetching references: 5/10 (50%) - Crossref 2/3"

    @pytest.mark.parametrize("reason,fragment", [
        (CancelReason.STALLED, "no progress for more than 60 s"),
        (CancelReason.TIMEOUT, "maximum run time exceeded"),
        (CancelReason.USER, "You can start it again"),
        (None, "You can start it again"),
    ])
    def test_cancelled_wording(self, family, reason, fragment: str) -> None:
        """Test cancel reasons map to distinct messages."""
        state = JobState(job_id="r", status=JobStatus.CANCELLED, cancel_reason=reason)
        text, level = family.terminal_message(state)
        assert fragment in text
        assert level is Level.WARNING

    def test_failed_message(self, family) -> None:
        """Test failure wording and level."""
        state = JobState(job_id="r", status=JobStatus.FAILED, error_message="PubMed down")
        assert family.terminal_message(state) == ("Error: PubMed down", Level.ERROR)


class TestEmbeddingFamily:
    """Tests for embedding generation."""

    @pytest.fixture
    def family(self, mock_client: MagicMock) -> EmbeddingFamily:
        return EmbeddingFamily(mock_client, "project-test")

    @pytest.mark.asyncio
    async def test_launch_already_embedded(self, family, mock_client) -> None:
        """Test the all-done shortcut."""
        mock_client.generate_embeddings = AsyncMock(return_value={"status": "completed", "total": 0})

        result = await family.launch()

        assert result.state.status is JobStatus.COMPLETED
        assert result.message == "All articles already have embeddings"

    @pytest.mark.asyncio
    async def test_launch_with_import(self, family, mock_client) -> None:
        """Test launching with missing article import."""
        result = await family.launch(import_missing_articles=True, include_cited_by=True)

        mock_client.generate_embeddings.assert_awaited_once_with(
            "project-test", import_missing_articles=True, include_cited_by=True
        )
        assert result.state.job_id == "emb-job"
        assert result.state.started_at is not None
        assert result.message.startswith("Importing missing articles")

    @pytest.mark.asyncio
    async def test_fetch_status(self, family, mock_client) -> None:
        """Test per-job status polling."""
        mock_client.get_embedding_job = AsyncMock(return_value={"status": "running", "processed": 3, "total": 10})

        state = await family.fetch_status("emb-job")

        mock_client.get_embedding_job.assert_awaited_once_with("project-test", "emb-job")
        assert state.job_id == "emb-job"
        assert state.percent == 30

    @pytest.mark.asyncio
    async def test_find_active(self, family, mock_client) -> None:
        """Test the first active job is resumed."""
        mock_client.get_embedding_jobs = AsyncMock(return_value={"jobs": [
            {"id": "old", "status": "completed"},
            {"id": "live", "status": "running", "processed": 1, "total": 4},
        ]})

        state = await family.find_active()

        assert state.job_id == "live"

    def test_import_phase_message(self, family) -> None:
        """Test import progress is parsed from the status message."""
        state = JobState(
            job_id="e", status=JobStatus.RUNNING,
            error_message="[Import] PubMed: imported=50, skipped=2, errors=0",
        )
        assert family.running_message(state) == "Importing citing articles: 50 imported..."

    def test_preparing_message(self, family) -> None:
        """Test the message before any work is counted."""
        assert family.running_message(JobState(job_id="e", status=JobStatus.PENDING)) == "Preparing..."

    def test_progress_message(self, family) -> None:
        """Test the regular progress line."""
        state = JobState(job_id="e", status=JobStatus.RUNNING, processed=3, total=10)
        assert family.running_message(state) == "Generating embeddings: 3/10 (30%)..."

    def test_completed_message_with_errors(self, family) -> None:
        """Test that errors are reported on completion."""
        state = JobState(job_id="e", status=JobStatus.COMPLETED, processed=9, total=10, errors=1)
        assert family.completed_message(state) == "Done! Processed 9 articles, errors: 1"

    def test_timeout_message(self, family) -> None:
        """Test timeout wording and level."""
        state = JobState(job_id="e", status=JobStatus.TIMEOUT, processed=4)
        text, level = family.terminal_message(state)
        assert text == "Timed out: exceeded max duration. Processed: 4"
        assert level is Level.ERROR


@pytest.mark.parametrize("seconds,expected", [
    (0, "00:00"),
    (59.9, "00:59"),
    (125, "02:05"),
    (-3, "00:00"),
])
def test_format_elapsed(seconds: float, expected: str) -> None:
    """Test MM:SS formatting."""
    assert format_elapsed(seconds) == expected
