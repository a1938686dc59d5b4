"""Pydantic schemas for AI orchestration: providers, requests, results, jobs, posting."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from app.core.errors import OrchestrationError


# ============================================================================
# Enums
# ============================================================================


class ProviderName(str, Enum):
    """AI backends the gateway can route to."""
    CHATGPT = "chatgpt"
    GEMINI = "gemini"


class UserRole(str, Enum):
    """Viewer roles known to the storefront."""
    ADMIN = "admin"
    VERIFIED_ARTIST = "verified_artist"
    EMERGING_ARTIST = "emerging_artist"
    ARTIST = "artist"
    PATRON = "patron"
    USER = "user"


class Persona(str, Enum):
    """Assistant identities. GALLERIST is the universal default."""
    MENTOR = "mentor"
    COLLECTOR = "collector"
    CURATOR = "curator"
    ADVISOR = "advisor"
    GALLERIST = "gallerist"


class TemperatureClass(str, Enum):
    """Sampling presets for prompt catalog entries."""
    CREATIVE = "creative"
    FACTUAL = "factual"
    BALANCED = "balanced"


TEMPERATURE_BY_CLASS: dict[TemperatureClass, float] = {
    TemperatureClass.CREATIVE: 0.7,
    TemperatureClass.FACTUAL: 0.3,
    TemperatureClass.BALANCED: 0.5,
}


class OutputFormat(str, Enum):
    """How a task's raw provider text is normalized."""
    PROSE = "prose"    # kept as free text
    TAGS = "tags"      # comma-separated list, trimmed and de-duplicated
    LINE = "line"      # single line (titles)
    REPORT = "report"  # JSON object with summary and recommendations


class ArtifactKind(str, Enum):
    """Kinds of things an analysis can target."""
    ARTWORK = "artwork"
    PROFILE = "profile"
    BIO_SOURCE = "bio_source"


class JobStatus(str, Enum):
    """Lifecycle of a single analysis job."""
    IDLE = "idle"
    DISPATCHED = "dispatched"
    RUNNING = "running"
    COMPLETE = "complete"
    PARTIAL = "partial"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {JobStatus.COMPLETE, JobStatus.PARTIAL, JobStatus.FAILED, JobStatus.CANCELLED}
)


# ============================================================================
# Provider settings
# ============================================================================


class ProviderSettings(BaseModel):
    """The single active primary/fallback provider record."""

    model_config = ConfigDict(frozen=True)

    primary_provider: ProviderName
    fallback_provider: Optional[ProviderName] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _fallback_differs_from_primary(self) -> "ProviderSettings":
        if self.fallback_provider is not None and self.fallback_provider == self.primary_provider:
            raise ValueError("fallback_provider must differ from primary_provider")
        return self


class ProviderSettingsUpdate(BaseModel):
    """Admin payload for changing provider settings."""
    primary_provider: ProviderName
    fallback_provider: Optional[ProviderName] = None


# ============================================================================
# Generation
# ============================================================================


class ArtifactRef(BaseModel):
    """Reference to the thing being analyzed, plus descriptor fields for prompts."""
    artifact_id: str = Field(..., min_length=1, description="Artwork / profile / source id")
    owner_id: Optional[str] = Field(None, description="Owning profile id, resolved from the store on dispatch")
    kind: ArtifactKind = ArtifactKind.ARTWORK
    title: Optional[str] = None
    image_url: Optional[str] = None
    description: Optional[str] = None
    medium: Optional[str] = None
    source_url: Optional[str] = Field(None, description="Website a bio source was scraped from")

    def descriptor(self) -> dict[str, str]:
        """Substitution values for prompt templates."""
        return {
            "title": self.title or "",
            "image_url": self.image_url or "",
            "description": self.description or "",
            "medium": self.medium or "",
            "source_url": self.source_url or "",
        }


class GenerationRequest(BaseModel):
    """One generation call. Built fresh per call, never mutated after dispatch."""

    model_config = ConfigDict(frozen=True)

    task_type: str
    prompt_template: str = Field(..., description="Rendered catalog prompt")
    temperature: float
    parameters: dict[str, Any] = Field(default_factory=dict)
    persona: Persona
    artifact_ref: ArtifactRef


class GenerationResult(BaseModel):
    """Normalized output of one task. Names the provider that actually produced it."""

    model_config = ConfigDict(frozen=True)

    task_type: str
    text: Optional[str] = None
    structured_payload: Optional[list[str]] = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    provider_used: ProviderName
    is_fallback_used: bool = False
    model: str = ""


class AnalysisJobView(BaseModel):
    """Caller-facing snapshot of a job. Results appear only once terminal."""
    job_id: UUID
    artifact_id: str
    owner_id: Optional[str] = None
    persona: Persona
    status: JobStatus
    task_types: list[str]
    succeeded: list[str] = Field(default_factory=list)
    failed: dict[str, OrchestrationError] = Field(default_factory=dict)
    results: dict[str, GenerationResult] = Field(default_factory=dict)
    aggregate_confidence: Optional[float] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class AnalysisRequest(BaseModel):
    """Body of POST /ai/analysis."""
    artifact: ArtifactRef
    task_types: list[str] = Field(
        default_factory=lambda: ["description", "style", "techniques", "keywords"]
    )


# ============================================================================
# Content creation boundary
# ============================================================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ImageRef(_CamelModel):
    url: str
    alt: str = ""


class GenerationInfo(_CamelModel):
    prompt: str
    parameters: dict[str, Any] = Field(default_factory=dict)


class AccessibilityInfo(_CamelModel):
    alt_text: str
    description: str


class AgentMetadata(_CamelModel):
    """Finalized result package handed to content creation. Never partial."""
    confidence: float = Field(..., ge=0.0, le=1.0)
    model: str
    generation: GenerationInfo
    accessibility: AccessibilityInfo


class AnalysisResultRecord(_CamelModel):
    """Per-task record stored alongside an AI-authored artwork."""
    type: str
    content: str
    timestamp: int
    status: Literal["pending", "success", "error"]
    error: Optional[str] = None


class PostArtworkParams(_CamelModel):
    """Payload accepted by the AI-authored artwork boundary."""
    title: str
    images: list[ImageRef]
    description: Optional[str] = None
    tags: Optional[list[str]] = None
    ai_generated: Literal[True] = True
    ai_context: dict[str, Any] = Field(default_factory=dict)
    analysis_results: Optional[list[AnalysisResultRecord]] = None
    metadata: AgentMetadata


class PublishJobRequest(BaseModel):
    """Body of POST /ai/analysis/{job_id}/publish."""
    title: Optional[str] = None
    images: list[ImageRef]
    ai_context: dict[str, Any] = Field(default_factory=dict)
