"""Content-creation boundary for AI-authored artworks.

Only a COMPLETE job can yield AgentMetadata, so partial results never reach
the artworks table.
"""

import asyncio
import re
from typing import Any, Optional
from urllib.parse import urlparse

from app.core.analysis_job import AnalysisJob
from app.core.errors import ErrorCode, OrchestrationError, error
from app.core.logging import get_logger
from app.core.result import Err, Ok, Result
from app.core.schemas_orchestration import (
    AccessibilityInfo,
    AgentMetadata,
    AnalysisResultRecord,
    GenerationInfo,
    GenerationResult,
    ImageRef,
    JobStatus,
    PostArtworkParams,
    PublishJobRequest,
)
from app.db.artworks import insert_ai_artwork

logger = get_logger(__name__)

MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 1000
MAX_IMAGES = 10
MAX_TAGS = 10
MAX_TAG_LENGTH = 30
MAX_ALT_TEXT_LENGTH = 125

_SENTENCE_END = re.compile(r"(?<=[.!?])\s")


def first_sentence(text: str, limit: int = MAX_ALT_TEXT_LENGTH) -> str:
    """First sentence of ``text``, cut at a word boundary if over ``limit``."""
    collapsed = " ".join(text.split())
    sentence = _SENTENCE_END.split(collapsed, maxsplit=1)[0]
    if len(sentence) <= limit:
        return sentence
    cut = sentence[:limit].rsplit(" ", 1)[0]
    return cut or sentence[:limit]


def _truncate_prose(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    head = text[:limit]
    end = max(head.rfind(". "), head.rfind(".\n"))
    if end > 0:
        return head[: end + 1]
    return head.rsplit(" ", 1)[0]


# ============================================================================
# Validation
# ============================================================================


def validate_post_params(params: PostArtworkParams) -> Result[PostArtworkParams, OrchestrationError]:
    """
    Check an AI-authored post before it is written.

    Returns:
        Ok(cleaned params) with trimmed title, description and tags, or Err with
        INVALID_INPUT / IMAGE_PROCESSING_ERROR / ACCESSIBILITY_ERROR
    """
    title = params.title.strip()
    if not title:
        return Err(error(ErrorCode.INVALID_INPUT, "Title is required", field="title"))
    if len(title) > MAX_TITLE_LENGTH:
        return Err(
            error(
                ErrorCode.INVALID_INPUT,
                f"Title must be at most {MAX_TITLE_LENGTH} characters",
                field="title",
                max_length=MAX_TITLE_LENGTH,
            )
        )

    if not params.images:
        return Err(error(ErrorCode.INVALID_INPUT, "At least one image is required", field="images"))
    if len(params.images) > MAX_IMAGES:
        return Err(
            error(
                ErrorCode.INVALID_INPUT,
                f"Maximum {MAX_IMAGES} images allowed",
                field="images",
                max_images=MAX_IMAGES,
            )
        )
    for image in params.images:
        parsed = urlparse(image.url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return Err(
                error(
                    ErrorCode.IMAGE_PROCESSING_ERROR,
                    "Image URL must be an http(s) URL",
                    field="images",
                    url=image.url,
                )
            )
        if not image.alt.strip():
            return Err(
                error(
                    ErrorCode.ACCESSIBILITY_ERROR,
                    "Alt text is required for all images",
                    field="images",
                    url=image.url,
                )
            )

    description = params.description.strip() if params.description else None
    if description and len(description) > MAX_DESCRIPTION_LENGTH:
        return Err(
            error(
                ErrorCode.INVALID_INPUT,
                f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters",
                field="description",
                max_length=MAX_DESCRIPTION_LENGTH,
            )
        )

    tags = None
    if params.tags:
        tags = [t.strip() for t in params.tags if t.strip()]
        if len(tags) > MAX_TAGS:
            return Err(
                error(
                    ErrorCode.INVALID_INPUT,
                    f"Maximum {MAX_TAGS} tags allowed",
                    field="tags",
                    max_tags=MAX_TAGS,
                )
            )
        too_long = [t for t in tags if len(t) > MAX_TAG_LENGTH]
        if too_long:
            return Err(
                error(
                    ErrorCode.INVALID_INPUT,
                    f"Tags must be at most {MAX_TAG_LENGTH} characters",
                    field="tags",
                    invalid_tags=too_long,
                )
            )

    accessibility = params.metadata.accessibility
    if not accessibility.alt_text.strip() or not accessibility.description.strip():
        return Err(
            error(
                ErrorCode.ACCESSIBILITY_ERROR,
                "Metadata must include alt text and an accessible description",
                field="metadata.accessibility",
            )
        )

    return Ok(
        params.model_copy(update={"title": title, "description": description, "tags": tags})
    )


# ============================================================================
# Metadata
# ============================================================================


def build_agent_metadata(job: AnalysisJob) -> Result[AgentMetadata, OrchestrationError]:
    """
    Package a finished job for the content boundary.

    Only COMPLETE jobs with a description result qualify; PARTIAL, FAILED and
    CANCELLED jobs never produce metadata.
    """
    if job.status == JobStatus.CANCELLED:
        return Err(error(ErrorCode.CANCELLED, f"Job {job.job_id} was cancelled"))
    if job.status != JobStatus.COMPLETE:
        return Err(
            error(
                ErrorCode.INVALID_INPUT,
                f"Job {job.job_id} is {job.status.value}; only complete jobs can be published",
                status=job.status.value,
            )
        )

    results = job.results
    described = results.get("description")
    if described is None or not described.text:
        return Err(
            error(ErrorCode.INVALID_INPUT, f"Job {job.job_id} has no description result")
        )

    request = job.requests.get("description")
    parameters: dict[str, Any] = {
        "persona": job.persona.value,
        "task_types": list(job.task_types),
        "providers": sorted({r.provider_used.value for r in results.values()}),
        "fallback_used": any(r.is_fallback_used for r in results.values()),
    }
    if request is not None:
        parameters["temperature"] = request.temperature

    return Ok(
        AgentMetadata(
            confidence=job.aggregate_confidence,
            model=described.model or described.provider_used.value,
            generation=GenerationInfo(
                prompt=request.prompt_template if request else "",
                parameters=parameters,
            ),
            accessibility=AccessibilityInfo(
                alt_text=first_sentence(described.text),
                description=described.text,
            ),
        )
    )


def _result_content(result: GenerationResult) -> str:
    if result.structured_payload is not None:
        return ", ".join(result.structured_payload)
    return result.text or ""


def _collect_tags(results: dict[str, GenerationResult]) -> list[str]:
    tags: list[str] = []
    seen: set[str] = set()
    for task_type in ("keywords", "style", "techniques"):
        result = results.get(task_type)
        for tag in (result.structured_payload or []) if result else []:
            if len(tag) > MAX_TAG_LENGTH or tag.casefold() in seen:
                continue
            seen.add(tag.casefold())
            tags.append(tag)
    return tags[:MAX_TAGS]


def compose_post_params(
    job: AnalysisJob, request: PublishJobRequest
) -> Result[PostArtworkParams, OrchestrationError]:
    """Build post parameters from a COMPLETE job."""
    metadata = build_agent_metadata(job)
    if isinstance(metadata, Err):
        return metadata

    results = job.results
    titled = results.get("title")
    title = request.title or (titled.text if titled else None) or job.artifact.title or ""
    timestamp = int((job.completed_at or job.created_at).timestamp() * 1000)
    alt_text = metadata.value.accessibility.alt_text

    return Ok(
        PostArtworkParams(
            title=title,
            images=[
                ImageRef(url=img.url, alt=img.alt.strip() or alt_text) for img in request.images
            ],
            description=_truncate_prose(results["description"].text, MAX_DESCRIPTION_LENGTH),
            tags=_collect_tags(results) or None,
            ai_context={
                **request.ai_context,
                "job_id": str(job.job_id),
                "artifact_id": job.artifact.artifact_id,
            },
            analysis_results=[
                AnalysisResultRecord(
                    type=task_type,
                    content=_result_content(result),
                    timestamp=timestamp,
                    status="success",
                )
                for task_type, result in results.items()
            ],
            metadata=metadata.value,
        )
    )


# ============================================================================
# Posting
# ============================================================================


async def post_ai_artwork(
    params: PostArtworkParams, request_meta: Optional[dict[str, Any]] = None
) -> Result[str, OrchestrationError]:
    """
    Validate and insert an AI-authored artwork under the reserved profile.

    Returns:
        Ok(artwork id), or Err with a validation code / DATABASE_ERROR
    """
    validated = validate_post_params(params)
    if isinstance(validated, Err):
        logger.warning(f"AI artwork rejected: {validated.error.code.value} {validated.error.message}")
        return validated

    clean = validated.value
    ai_metadata = {
        "agent": clean.metadata.model_dump(by_alias=True),
        "request": request_meta or {},
    }

    try:
        artwork_id = await asyncio.to_thread(
            insert_ai_artwork,
            title=clean.title,
            images=[img.model_dump() for img in clean.images],
            description=clean.description,
            tags=clean.tags,
            ai_context=clean.ai_context,
            analysis_results=(
                [r.model_dump(by_alias=True) for r in clean.analysis_results]
                if clean.analysis_results
                else None
            ),
            ai_metadata=ai_metadata,
        )
    except Exception as e:
        logger.error(f"Failed to create AI artwork: {e}")
        return Err(error(ErrorCode.DATABASE_ERROR, "Failed to create artwork"))

    return Ok(artwork_id)


async def publish_job(
    job: AnalysisJob,
    request: PublishJobRequest,
    request_meta: Optional[dict[str, Any]] = None,
) -> Result[str, OrchestrationError]:
    """Compose metadata from a COMPLETE job and post it as an AI artwork."""
    params = compose_post_params(job, request)
    if isinstance(params, Err):
        return params

    meta = {"source": "analysis_job", "job_id": str(job.job_id), **(request_meta or {})}
    return await post_ai_artwork(params.value, meta)
