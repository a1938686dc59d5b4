"""Analysis pipeline: one generation call per task type, run concurrently.

Builds each request from the prompt catalog plus persona framing and
dispatches all tasks through the provider gateway as one task group. Each
call carries the normalizer for its catalog entry's output format, so output
that fails to parse can still take the fallback hop. The job settles once
every task has resolved.
"""

import asyncio
import json
import logging
from functools import partial
from typing import Iterable, Mapping, Optional

from app.core.analysis_job import AnalysisJob
from app.core.errors import ErrorCode, OrchestrationError, error
from app.core.llm import strip_llm_fences
from app.core.logging import get_logger, log_with_context
from app.core.personas import frame_instruction
from app.core.prompt_catalog import PROMPT_CATALOG, PromptEntry, build_prompt
from app.core.provider_gateway import ProviderGateway
from app.core.result import Err, Ok, Result
from app.core.schemas_orchestration import (
    ArtifactRef,
    GenerationRequest,
    GenerationResult,
    JobStatus,
    OutputFormat,
    Persona,
)

logger = get_logger(__name__)

_BULLET_CHARS = "-*•\"' \t."


def parse_tags(raw_output: str) -> list[str]:
    """
    Parse a comma-separated tag list.

    Items are trimmed and de-duplicated case-insensitively; the first spelling
    seen wins and order is preserved.
    """
    cleaned = strip_llm_fences(raw_output)
    tags: list[str] = []
    seen: set[str] = set()
    for line in cleaned.splitlines():
        for item in line.split(","):
            tag = " ".join(item.strip().strip(_BULLET_CHARS).split())
            if not tag:
                continue
            key = tag.casefold()
            if key in seen:
                continue
            seen.add(key)
            tags.append(tag)
    return tags


def parse_report(raw_output: str) -> Optional[tuple[str, list[str]]]:
    """Parse a ``{"summary": ..., "recommendations": [...]}`` report, or None."""
    try:
        data = json.loads(strip_llm_fences(raw_output))
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    summary = data.get("summary")
    recommendations = data.get("recommendations")
    if not isinstance(summary, str) or not summary.strip():
        return None
    if not isinstance(recommendations, list):
        return None

    items = []
    for item in recommendations:
        text = item if isinstance(item, str) else json.dumps(item, ensure_ascii=False)
        if text.strip():
            items.append(text.strip())
    return summary.strip(), items


def normalize_result(
    result: GenerationResult, output_format: OutputFormat
) -> Result[GenerationResult, OrchestrationError]:
    """
    Normalize raw provider text for a task.

    Malformed output (e.g. no tags where tags were expected) is a task-level
    error, never coerced to an empty result.
    """
    raw = result.text or ""

    if output_format == OutputFormat.TAGS:
        tags = parse_tags(raw)
        if not tags:
            return Err(
                error(
                    ErrorCode.MALFORMED_OUTPUT,
                    f"Expected a tag list for '{result.task_type}'",
                    provider=result.provider_used.value,
                )
            )
        return Ok(result.model_copy(update={"text": None, "structured_payload": tags}))

    if output_format == OutputFormat.REPORT:
        report = parse_report(raw)
        if report is None:
            return Err(
                error(
                    ErrorCode.MALFORMED_OUTPUT,
                    f"Expected a JSON report with summary and recommendations for '{result.task_type}'",
                    provider=result.provider_used.value,
                )
            )
        summary, recommendations = report
        return Ok(result.model_copy(update={"text": summary, "structured_payload": recommendations}))

    if output_format == OutputFormat.LINE:
        lines = [ln.strip().strip("\"'*#").strip() for ln in strip_llm_fences(raw).splitlines()]
        line = next((ln for ln in lines if ln), "")
        if not line:
            return Err(
                error(
                    ErrorCode.MALFORMED_OUTPUT,
                    f"Expected a single line for '{result.task_type}'",
                    provider=result.provider_used.value,
                )
            )
        return Ok(result.model_copy(update={"text": line}))

    prose = raw.strip()
    if not prose:
        return Err(
            error(
                ErrorCode.MALFORMED_OUTPUT,
                f"Expected prose for '{result.task_type}'",
                provider=result.provider_used.value,
            )
        )
    return Ok(result.model_copy(update={"text": prose}))


class AnalysisPipeline:
    """Runs analysis jobs against the provider gateway."""

    def __init__(
        self,
        gateway: ProviderGateway,
        catalog: Optional[Mapping[str, PromptEntry]] = None,
    ):
        self._gateway = gateway
        self._catalog = catalog if catalog is not None else PROMPT_CATALOG

    def validate(
        self, artifact: Optional[ArtifactRef], task_types: Iterable[str]
    ) -> Result[list[str], OrchestrationError]:
        """Reject malformed requests before any dispatch or I/O."""
        if artifact is None or not artifact.artifact_id.strip():
            return Err(error(ErrorCode.INVALID_INPUT, "Artifact reference is required"))

        requested = list(dict.fromkeys(task_types))
        if not requested:
            return Err(error(ErrorCode.INVALID_INPUT, "At least one task type is required"))

        unknown = [t for t in requested if t not in self._catalog]
        if unknown:
            return Err(
                error(
                    ErrorCode.INVALID_INPUT,
                    "Unknown task type(s)",
                    unknown=unknown,
                    known=sorted(self._catalog),
                )
            )
        return Ok(requested)

    def build_request(
        self, task_type: str, artifact: ArtifactRef, persona: Persona
    ) -> GenerationRequest:
        """Catalog prompt plus persona framing for one task."""
        built = build_prompt(task_type, artifact.descriptor(), catalog=self._catalog)
        parameters = {
            "system_instruction": frame_instruction(persona, artifact.kind),
            "output_format": built.output_format.value,
        }
        if artifact.image_url:
            parameters["image_url"] = artifact.image_url

        return GenerationRequest(
            task_type=task_type,
            prompt_template=built.template,
            temperature=built.temperature,
            parameters=parameters,
            persona=persona,
            artifact_ref=artifact,
        )

    async def _run_task(self, job: AnalysisJob, task_type: str) -> None:
        entry = self._catalog[task_type]
        request = self.build_request(task_type, job.artifact, job.persona)
        job.record_request(task_type, request)

        try:
            outcome = await self._gateway.generate(
                request, normalize=partial(normalize_result, output_format=entry.output_format)
            )
        except Exception as e:
            # One task's crash must not abort its siblings
            logger.exception(f"Task {task_type} crashed for job {job.job_id}")
            outcome = Err(error(ErrorCode.UNEXPECTED_ERROR, str(e) or type(e).__name__))

        if isinstance(outcome, Err):
            log_with_context(
                logger,
                logging.WARNING,
                "Task failed",
                job_id=str(job.job_id),
                task_type=task_type,
                code=outcome.error.code.value,
            )
        job.settle(task_type, outcome)

    async def execute(self, job: AnalysisJob) -> AnalysisJob:
        """
        Run every task of a job concurrently and settle it.

        Waits for all tasks (success or error) before the job leaves RUNNING.
        A job cancelled meanwhile stays CANCELLED.
        """
        if job.status == JobStatus.IDLE:
            job.dispatch()
        if job.status != JobStatus.DISPATCHED:
            return job

        job.start()
        await asyncio.gather(*(self._run_task(job, t) for t in job.task_types))

        if job.status == JobStatus.RUNNING:
            job.finalize()
        return job

    async def run_analysis(
        self,
        artifact: ArtifactRef,
        task_types: Iterable[str],
        persona: Persona,
        requested_by: Optional[str] = None,
    ) -> Result[AnalysisJob, OrchestrationError]:
        """
        Analyze one artifact across the requested task types.

        Returns:
            Ok(job) in a terminal state, or Err(INVALID_INPUT) before dispatch
        """
        validated = self.validate(artifact, task_types)
        if isinstance(validated, Err):
            return validated

        job = AnalysisJob(artifact, validated.value, persona, requested_by=requested_by)
        await self.execute(job)
        return Ok(job)
