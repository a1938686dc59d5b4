"""API endpoints for artwork analysis jobs, provider settings and personas."""

import asyncio
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app.api.errors import raise_for_error
from app.core.analysis_job import AnalysisJob
from app.core.analysis_session import AnalysisSession
from app.core.auth_middleware import require_settings_reader, require_settings_writer, require_user
from app.core.authorization import Action, AdminPrincipal, Principal, authorize
from app.core.config import get_settings
from app.core.content_publishing import publish_job
from app.core.errors import ErrorCode, error
from app.core.logging import get_logger
from app.core.orchestrator import get_session, get_settings_cache
from app.core.personas import get_persona_profile, resolve_persona
from app.core.provider_settings import ProviderSettingsCache
from app.core.result import Err
from app.core.schemas_orchestration import (
    AnalysisJobView,
    AnalysisRequest,
    ArtifactKind,
    ArtifactRef,
    ProviderSettings,
    ProviderSettingsUpdate,
    PublishJobRequest,
)
from app.db.artworks import get_artwork_owner
from app.db.profiles import get_profile_owner
from app.db.provider_settings import upsert_provider_settings

logger = get_logger(__name__)

router = APIRouter()


def _check(principal: Principal, action: Action, owner_id: Optional[str] = None) -> None:
    decision = authorize(principal, action, owner_id, admin_role=get_settings().ADMIN_ROLE)
    if isinstance(decision, Err):
        raise_for_error(decision.error)


def _load_job(session: AnalysisSession, job_id: UUID, principal: Principal) -> AnalysisJob:
    job = session.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    _check(principal, Action.VIEW_JOB, job.artifact.owner_id)
    return job


# ============================================================================
# Analysis jobs
# ============================================================================


async def _resolve_owner(artifact: ArtifactRef) -> str:
    """Owner of the artifact as recorded in the store. Missing artifacts are denied."""
    lookup = get_artwork_owner if artifact.kind == ArtifactKind.ARTWORK else get_profile_owner
    try:
        owner = await asyncio.to_thread(lookup, artifact.artifact_id)
    except Exception:
        logger.exception(f"Failed to resolve owner of {artifact.kind.value} {artifact.artifact_id}")
        raise_for_error(error(ErrorCode.DATABASE_ERROR, "Failed to load artifact"))

    if owner is None:
        raise_for_error(
            error(
                ErrorCode.UNAUTHORIZED,
                f"Unknown {artifact.kind.value} {artifact.artifact_id}",
                artifact_id=artifact.artifact_id,
            )
        )
    return owner


@router.post("/analysis", status_code=status.HTTP_202_ACCEPTED, response_model=AnalysisJobView)
async def start_analysis(
    body: AnalysisRequest,
    wait: bool = Query(False, description="Block until the job reaches a terminal state"),
    principal: Principal = Depends(require_user),
    session: AnalysisSession = Depends(get_session),
) -> AnalysisJobView:
    """
    Start an analysis job for one artifact.

    The owner is read from the artifact store, never from the request body.
    The persona comes from the caller's role. Results are only included once
    the job is terminal; poll GET /ai/analysis/{job_id} or pass ``wait=true``.
    """
    owner_id = await _resolve_owner(body.artifact)
    _check(principal, Action.RUN_ANALYSIS, owner_id)
    artifact = body.artifact.model_copy(update={"owner_id": owner_id})

    persona = resolve_persona(principal.role)
    started = session.start_job(
        artifact, body.task_types, persona, requested_by=principal.user_id
    )
    if isinstance(started, Err):
        raise_for_error(started.error)

    job = started.value
    if wait:
        await job.wait()
    return job.view()


@router.get("/analysis")
async def list_analysis_jobs(
    principal: Principal = Depends(require_user),
    session: AnalysisSession = Depends(get_session),
) -> dict:
    """List the caller's jobs (all jobs for admins)."""
    owner = None if isinstance(principal, AdminPrincipal) else principal.user_id
    jobs = [job.view() for job in session.list_jobs(requested_by=owner)]
    return {"jobs": jobs, "count": len(jobs)}


@router.get("/analysis/{job_id}", response_model=AnalysisJobView)
async def get_analysis_job(
    job_id: UUID,
    principal: Principal = Depends(require_user),
    session: AnalysisSession = Depends(get_session),
) -> AnalysisJobView:
    """Job status; per-task results and errors appear once the job is terminal."""
    return _load_job(session, job_id, principal).view()


@router.post("/analysis/{job_id}/cancel", response_model=AnalysisJobView)
async def cancel_analysis_job(
    job_id: UUID,
    principal: Principal = Depends(require_user),
    session: AnalysisSession = Depends(get_session),
) -> AnalysisJobView:
    """Cancel a dispatched or running job."""
    _load_job(session, job_id, principal)
    cancelled = session.cancel_job(job_id)
    if isinstance(cancelled, Err):
        raise_for_error(cancelled.error)
    return cancelled.value.view()


@router.post(
    "/analysis/{job_id}/retry",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=AnalysisJobView,
)
async def retry_analysis_job(
    job_id: UUID,
    wait: bool = Query(False, description="Block until the retry job reaches a terminal state"),
    principal: Principal = Depends(require_user),
    session: AnalysisSession = Depends(get_session),
) -> AnalysisJobView:
    """Start a new job over only the failed task types of a partial or failed job."""
    _load_job(session, job_id, principal)
    retried = session.retry_failed(job_id, requested_by=principal.user_id)
    if isinstance(retried, Err):
        raise_for_error(retried.error)

    job = retried.value
    if wait:
        await job.wait()
    return job.view()


@router.post("/analysis/{job_id}/publish", status_code=status.HTTP_201_CREATED)
async def publish_analysis_job(
    job_id: UUID,
    body: PublishJobRequest,
    request: Request,
    principal: Principal = Depends(require_user),
    session: AnalysisSession = Depends(get_session),
) -> dict:
    """Post a completed job as an AI-authored artwork (admin only)."""
    _check(principal, Action.POST_AI_CONTENT)
    job = session.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")

    published = await publish_job(
        job,
        body,
        request_meta={
            "request_id": request.headers.get("x-request-id"),
            "user_agent": request.headers.get("user-agent"),
            "published_by": principal.user_id,
        },
    )
    if isinstance(published, Err):
        raise_for_error(published.error)
    return {"id": published.value}


# ============================================================================
# Provider settings
# ============================================================================


@router.get("/settings", response_model=ProviderSettings)
async def read_provider_settings(
    _: Principal = Depends(require_settings_reader),
    cache: ProviderSettingsCache = Depends(get_settings_cache),
) -> ProviderSettings:
    """Active primary/fallback provider record."""
    try:
        return await cache.get()
    except Exception:
        logger.exception("Failed to read provider settings")
        raise_for_error(error(ErrorCode.DATABASE_ERROR, "Failed to read provider settings"))


@router.put("/settings", response_model=ProviderSettings)
async def write_provider_settings(
    body: ProviderSettingsUpdate,
    principal: Principal = Depends(require_settings_writer),
    cache: ProviderSettingsCache = Depends(get_settings_cache),
) -> ProviderSettings:
    """
    Replace the provider settings record.

    In-flight reads keep the previous value; this process's cache is primed
    with the stored record.
    """
    try:
        new_settings = ProviderSettings(
            primary_provider=body.primary_provider,
            fallback_provider=body.fallback_provider,
        )
    except ValueError as e:
        raise_for_error(error(ErrorCode.INVALID_INPUT, str(e)))

    try:
        stored = await asyncio.to_thread(upsert_provider_settings, new_settings)
    except Exception:
        logger.exception("Failed to write provider settings")
        raise_for_error(error(ErrorCode.DATABASE_ERROR, "Failed to update provider settings"))

    cache.prime(stored)
    logger.info(
        f"Provider settings changed by {principal.user_id}: "
        f"primary={stored.primary_provider.value} "
        f"fallback={stored.fallback_provider.value if stored.fallback_provider else None}"
    )
    return stored


# ============================================================================
# Persona
# ============================================================================


@router.get("/persona")
async def get_caller_persona(principal: Principal = Depends(require_user)) -> dict:
    """Persona the assistant uses for the calling viewer."""
    persona = resolve_persona(principal.role)
    profile = get_persona_profile(persona)
    return {
        "role": principal.role,
        "persona": persona.value,
        "display_name": profile.display_name,
        "description": profile.description,
        "tone": profile.tone,
    }
