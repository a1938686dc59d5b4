"""Persona resolution and tone framing.

Maps a viewer role to an assistant persona through a total table with an
explicit default, and builds the system instruction that frames a request in
that persona's voice. Pure functions, no I/O.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

from app.core.schemas_orchestration import ArtifactKind, Persona, UserRole


@dataclass(frozen=True)
class PersonaProfile:
    """Voice and focus of one persona."""
    persona: Persona
    display_name: str
    description: str
    tone: str
    context_behaviors: dict[str, str] = field(default_factory=dict)


DEFAULT_PERSONA = Persona.GALLERIST

ROLE_PERSONAS: dict[UserRole, Persona] = {
    UserRole.ADMIN: Persona.ADVISOR,
    UserRole.VERIFIED_ARTIST: Persona.MENTOR,
    UserRole.EMERGING_ARTIST: Persona.MENTOR,
    UserRole.ARTIST: Persona.MENTOR,
    UserRole.PATRON: Persona.COLLECTOR,
    UserRole.USER: Persona.CURATOR,
}

_unmapped = set(UserRole) - set(ROLE_PERSONAS)
if _unmapped:
    raise RuntimeError(f"Roles without a persona: {sorted(r.value for r in _unmapped)}")


PERSONA_PROFILES: dict[Persona, PersonaProfile] = {
    Persona.MENTOR: PersonaProfile(
        persona=Persona.MENTOR,
        display_name="Artist Mentor",
        description="Experienced mentor focused on artistic growth and development",
        tone="supportive, analytical, encouraging",
        context_behaviors={
            "artwork": "Focus on artistic technique, composition, and potential improvements.",
            "profile": "Focus on portfolio development, career growth, and professional presentation.",
            "general": "Consider career development, artistic growth, and professional opportunities.",
        },
    ),
    Persona.COLLECTOR: PersonaProfile(
        persona=Persona.COLLECTOR,
        display_name="Art Collector",
        description="Sophisticated art collector with deep market knowledge",
        tone="sophisticated, insightful, strategic",
        context_behaviors={
            "artwork": "Focus on collectible value, market position, and how it might fit into a collection.",
            "profile": "Focus on the artist's career trajectory, body of work, and collecting opportunities.",
            "general": "Consider market trends, collecting strategies, and portfolio development.",
        },
    ),
    Persona.CURATOR: PersonaProfile(
        persona=Persona.CURATOR,
        display_name="Gallery Curator",
        description="Curator who explains artworks and helps visitors discover new work",
        tone="approachable, informative, gallery-appropriate",
        context_behaviors={
            "artwork": "Provide context and insights that enhance appreciation of the piece.",
            "profile": "Introduce the artist and highlight their most significant works.",
            "general": "Help the visitor explore the collection and understand styles and techniques.",
        },
    ),
    Persona.ADVISOR: PersonaProfile(
        persona=Persona.ADVISOR,
        display_name="Strategic Advisor",
        description="Data-driven advisor focused on platform growth and metrics",
        tone="analytical, precise, strategic",
        context_behaviors={
            "artwork": "Focus on market trends, platform metrics, and engagement analytics.",
            "profile": "Focus on visibility, engagement rates, and growth opportunities.",
            "general": "Consider platform metrics, user behavior, and growth opportunities.",
        },
    ),
    Persona.GALLERIST: PersonaProfile(
        persona=Persona.GALLERIST,
        display_name="Meaning Machine",
        description="AI gallery assistant with a dry wit, focused on the art on display",
        tone="witty, concise, helpful",
        context_behaviors={
            "general": "Keep the conversation focused on the gallery, the artwork, and the artist.",
        },
    ),
}


def resolve_persona(role: Union[UserRole, str, None]) -> Persona:
    """Map a viewer role to a persona. Unknown or absent roles get the default."""
    if role is None:
        return DEFAULT_PERSONA
    try:
        key = UserRole(role)
    except ValueError:
        return DEFAULT_PERSONA
    return ROLE_PERSONAS.get(key, DEFAULT_PERSONA)


def get_persona_profile(persona: Persona) -> PersonaProfile:
    return PERSONA_PROFILES[persona]


_KIND_CONTEXT = {
    ArtifactKind.ARTWORK: "artwork",
    ArtifactKind.PROFILE: "profile",
    ArtifactKind.BIO_SOURCE: "profile",
}


def frame_instruction(persona: Persona, kind: Optional[ArtifactKind] = None) -> str:
    """
    Build the system instruction that applies a persona's tone to a request.

    Factual task instructions live in the prompt catalog; this only sets voice
    and focus.

    Args:
        persona: Resolved persona
        kind: Kind of artifact under analysis, selects the context behaviour

    Returns:
        System instruction text
    """
    profile = PERSONA_PROFILES[persona]
    context_key = _KIND_CONTEXT.get(kind, "general") if kind else "general"
    behavior = profile.context_behaviors.get(
        context_key, profile.context_behaviors.get("general", "")
    )

    lines = [
        f"You are {profile.display_name}: {profile.description}.",
        f"Tone: {profile.tone}.",
    ]
    if behavior:
        lines.append(behavior)
    lines.append("Follow the task instructions exactly and respect the requested output format.")
    return "\n".join(lines)
