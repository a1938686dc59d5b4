"""In-process registry of analysis jobs.

A session holds many concurrent jobs (e.g. one per artwork during a bulk
portfolio analysis), each addressable by its job id. Jobs run as background
asyncio tasks; callers poll ``get_job`` or await the job itself. Finished
jobs are evicted once they have been terminal for the retention period.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional
from uuid import UUID

from app.core.analysis_job import AnalysisJob
from app.core.analysis_pipeline import AnalysisPipeline
from app.core.errors import ErrorCode, OrchestrationError, error
from app.core.logging import get_logger
from app.core.result import Err, Ok, Result
from app.core.schemas_orchestration import ArtifactRef, JobStatus, Persona

logger = get_logger(__name__)


class AnalysisSession:
    """Starts, tracks, cancels and retries analysis jobs."""

    def __init__(
        self,
        pipeline: AnalysisPipeline,
        retention_seconds: float = 3600.0,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._pipeline = pipeline
        self._retention = timedelta(seconds=retention_seconds)
        self._clock = clock
        self._jobs: dict[UUID, AnalysisJob] = {}
        self._tasks: dict[UUID, asyncio.Task] = {}

    def start_job(
        self,
        artifact: ArtifactRef,
        task_types: Iterable[str],
        persona: Persona,
        requested_by: Optional[str] = None,
    ) -> Result[AnalysisJob, OrchestrationError]:
        """
        Validate and dispatch a job. Must be called from a running event loop.

        Returns:
            Ok(job) in DISPATCHED state, or Err(INVALID_INPUT) with nothing dispatched
        """
        validated = self._pipeline.validate(artifact, task_types)
        if isinstance(validated, Err):
            return validated

        self.evict_expired()
        job = AnalysisJob(artifact, validated.value, persona, requested_by=requested_by)
        job.dispatch()
        self._jobs[job.job_id] = job

        task = asyncio.create_task(self._pipeline.execute(job))
        self._tasks[job.job_id] = task
        task.add_done_callback(lambda t, job_id=job.job_id: self._on_task_done(job_id, t))

        logger.info(
            f"Dispatched job {job.job_id} for artifact {artifact.artifact_id} "
            f"({len(job.task_types)} tasks, persona={persona.value})"
        )
        return Ok(job)

    def _on_task_done(self, job_id: UUID, task: asyncio.Task) -> None:
        self._tasks.pop(job_id, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Job {job_id} runner crashed: {exc}")

    def get_job(self, job_id: UUID) -> Optional[AnalysisJob]:
        return self._jobs.get(job_id)

    def evict_expired(self) -> int:
        """Drop jobs that have been terminal for longer than the retention period."""
        cutoff = self._clock() - self._retention
        expired = [
            job_id
            for job_id, job in self._jobs.items()
            if job.is_terminal and job.completed_at is not None and job.completed_at <= cutoff
        ]
        for job_id in expired:
            del self._jobs[job_id]
        if expired:
            logger.info(f"Evicted {len(expired)} finished job(s)")
        return len(expired)

    def cancel_job(self, job_id: UUID) -> Result[AnalysisJob, OrchestrationError]:
        """
        Cancel a DISPATCHED or RUNNING job.

        In-flight provider calls run to completion; their results are discarded.
        """
        job = self._jobs.get(job_id)
        if job is None:
            return Err(error(ErrorCode.INVALID_INPUT, f"Unknown job {job_id}"))

        if not job.cancel():
            return Err(
                error(
                    ErrorCode.INVALID_INPUT,
                    f"Job {job_id} is {job.status.value} and cannot be cancelled",
                    status=job.status.value,
                )
            )
        return Ok(job)

    def retry_failed(
        self, job_id: UUID, requested_by: Optional[str] = None
    ) -> Result[AnalysisJob, OrchestrationError]:
        """Start a new job over only the failed task types of a PARTIAL or FAILED job."""
        job = self._jobs.get(job_id)
        if job is None:
            return Err(error(ErrorCode.INVALID_INPUT, f"Unknown job {job_id}"))

        if job.status not in (JobStatus.PARTIAL, JobStatus.FAILED):
            return Err(
                error(
                    ErrorCode.INVALID_INPUT,
                    f"Only partial or failed jobs can be retried (job is {job.status.value})",
                    status=job.status.value,
                )
            )

        return self.start_job(
            job.artifact,
            job.failed_task_types,
            job.persona,
            requested_by=requested_by or job.requested_by,
        )

    def list_jobs(self, requested_by: Optional[str] = None) -> list[AnalysisJob]:
        """Jobs in creation order, optionally only those started by one user."""
        self.evict_expired()
        jobs = sorted(self._jobs.values(), key=lambda j: j.created_at)
        if requested_by is None:
            return jobs
        return [j for j in jobs if j.requested_by == requested_by]
