"""Analysis job state machine.

IDLE -> DISPATCHED -> RUNNING -> COMPLETE | PARTIAL | FAILED, with
CANCELLED reachable from DISPATCHED or RUNNING. Terminal states are entered
exactly once. Task results are held back from callers until the job is
terminal; results arriving after cancellation are discarded.
"""

import asyncio
import logging
from datetime import datetime, timezone
from statistics import fmean
from typing import Iterable, Optional
from uuid import UUID, uuid4

from app.core.errors import OrchestrationError
from app.core.logging import get_logger, log_with_context
from app.core.result import Ok, Result
from app.core.schemas_orchestration import (
    AnalysisJobView,
    ArtifactRef,
    GenerationRequest,
    GenerationResult,
    JobStatus,
    Persona,
)

logger = get_logger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised on a state change the job lifecycle does not allow."""


_ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.IDLE: frozenset({JobStatus.DISPATCHED}),
    JobStatus.DISPATCHED: frozenset({JobStatus.RUNNING, JobStatus.CANCELLED}),
    JobStatus.RUNNING: frozenset(
        {JobStatus.COMPLETE, JobStatus.PARTIAL, JobStatus.FAILED, JobStatus.CANCELLED}
    ),
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AnalysisJob:
    """One analysis of one artifact for one trigger."""

    def __init__(
        self,
        artifact: ArtifactRef,
        task_types: Iterable[str],
        persona: Persona,
        requested_by: Optional[str] = None,
        job_id: Optional[UUID] = None,
    ):
        self.job_id = job_id or uuid4()
        self.artifact = artifact
        # Preserve order, drop duplicates
        self.task_types: list[str] = list(dict.fromkeys(task_types))
        self.persona = persona
        self.requested_by = requested_by
        self.status = JobStatus.IDLE
        self.created_at = _utc_now()
        self.completed_at: Optional[datetime] = None

        self._requests: dict[str, GenerationRequest] = {}
        self._results: dict[str, GenerationResult] = {}
        self._failures: dict[str, OrchestrationError] = {}
        self._discarded: list[str] = []
        self._done = asyncio.Event()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(self, target: JobStatus) -> None:
        allowed = _ALLOWED_TRANSITIONS.get(self.status, frozenset())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Job {self.job_id}: {self.status.value} -> {target.value} not allowed"
            )
        self.status = target
        if target.is_terminal:
            self.completed_at = _utc_now()
            self._done.set()
            log_with_context(
                logger,
                logging.INFO,
                f"Job reached {target.value}",
                job_id=str(self.job_id),
                artifact_id=self.artifact.artifact_id,
                succeeded=len(self._results),
                failed=len(self._failures),
            )

    def dispatch(self) -> None:
        self._transition(JobStatus.DISPATCHED)

    def start(self) -> None:
        self._transition(JobStatus.RUNNING)

    def cancel(self) -> bool:
        """Cancel a DISPATCHED or RUNNING job. Returns False if not cancellable."""
        if self.status not in (JobStatus.DISPATCHED, JobStatus.RUNNING):
            return False
        self._transition(JobStatus.CANCELLED)
        return True

    def record_request(self, task_type: str, request: GenerationRequest) -> None:
        self._requests[task_type] = request

    def settle(
        self, task_type: str, outcome: Result[GenerationResult, OrchestrationError]
    ) -> bool:
        """
        Record one task's outcome at its completion boundary.

        Returns:
            True if recorded, False if discarded because the job was cancelled
        """
        if self.status == JobStatus.CANCELLED:
            self._discarded.append(task_type)
            log_with_context(
                logger,
                logging.INFO,
                "Discarding task result that arrived after cancellation",
                job_id=str(self.job_id),
                task_type=task_type,
            )
            return False

        if self.status != JobStatus.RUNNING:
            raise InvalidTransitionError(
                f"Job {self.job_id}: cannot settle task in state {self.status.value}"
            )
        if task_type not in self.task_types:
            raise InvalidTransitionError(f"Job {self.job_id}: unknown task type {task_type}")
        if task_type in self._results or task_type in self._failures:
            raise InvalidTransitionError(f"Job {self.job_id}: task {task_type} already settled")

        if isinstance(outcome, Ok):
            self._results[task_type] = outcome.value
        else:
            self._failures[task_type] = outcome.error
        return True

    def finalize(self) -> JobStatus:
        """Move a RUNNING job whose tasks have all settled to its terminal state."""
        if self.pending:
            raise InvalidTransitionError(
                f"Job {self.job_id}: {len(self.pending)} task(s) still pending"
            )
        if not self._results:
            target = JobStatus.FAILED
        elif self._failures:
            target = JobStatus.PARTIAL
        else:
            target = JobStatus.COMPLETE
        self._transition(target)
        return target

    async def wait(self) -> JobStatus:
        await self._done.wait()
        return self.status

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def pending(self) -> list[str]:
        return [
            t for t in self.task_types if t not in self._results and t not in self._failures
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def results(self) -> dict[str, GenerationResult]:
        """Succeeded task results; empty until the job is COMPLETE or PARTIAL."""
        if self.status not in (JobStatus.COMPLETE, JobStatus.PARTIAL):
            return {}
        return dict(self._results)

    @property
    def failures(self) -> dict[str, OrchestrationError]:
        if self.status not in (JobStatus.PARTIAL, JobStatus.FAILED):
            return {}
        return dict(self._failures)

    @property
    def requests(self) -> dict[str, GenerationRequest]:
        return dict(self._requests)

    @property
    def discarded(self) -> list[str]:
        return list(self._discarded)

    @property
    def aggregate_confidence(self) -> Optional[float]:
        """Mean confidence over succeeded tasks; undefined until tasks resolve."""
        if self.status not in (JobStatus.COMPLETE, JobStatus.PARTIAL):
            return None
        return fmean(r.confidence for r in self._results.values())

    @property
    def failed_task_types(self) -> list[str]:
        return [t for t in self.task_types if t in self.failures]

    def view(self) -> AnalysisJobView:
        results = self.results
        return AnalysisJobView(
            job_id=self.job_id,
            artifact_id=self.artifact.artifact_id,
            owner_id=self.artifact.owner_id,
            persona=self.persona,
            status=self.status,
            task_types=list(self.task_types),
            succeeded=[t for t in self.task_types if t in results],
            failed=self.failures,
            results=results,
            aggregate_confidence=self.aggregate_confidence,
            created_at=self.created_at,
            completed_at=self.completed_at,
        )
