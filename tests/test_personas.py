"""Tests for app.core.personas: role -> persona table and tone framing."""

import pytest

from app.core.personas import (
    DEFAULT_PERSONA,
    ROLE_PERSONAS,
    frame_instruction,
    resolve_persona,
)
from app.core.schemas_orchestration import ArtifactKind, Persona, UserRole


@pytest.mark.parametrize(
    "role,expected",
    [
        ("admin", Persona.ADVISOR),
        ("verified_artist", Persona.MENTOR),
        ("emerging_artist", Persona.MENTOR),
        ("artist", Persona.MENTOR),
        ("patron", Persona.COLLECTOR),
        ("user", Persona.CURATOR),
    ],
)
def test_known_roles_map_to_personas(role, expected):
    assert resolve_persona(role) == expected
    assert resolve_persona(UserRole(role)) == expected


def test_every_role_is_mapped():
    assert set(ROLE_PERSONAS) == set(UserRole)


@pytest.mark.parametrize("role", [None, "", "superuser", "ADMIN"])
def test_unknown_or_absent_roles_get_default(role):
    assert resolve_persona(role) == DEFAULT_PERSONA


def test_default_persona_is_not_a_role_persona():
    assert DEFAULT_PERSONA not in set(ROLE_PERSONAS.values())


def test_resolution_is_deterministic():
    for role in list(UserRole) + [None, "unknown"]:
        assert resolve_persona(role) == resolve_persona(role)


def test_frame_instruction_uses_kind_specific_behaviour():
    artwork = frame_instruction(Persona.COLLECTOR, ArtifactKind.ARTWORK)
    profile = frame_instruction(Persona.COLLECTOR, ArtifactKind.PROFILE)

    assert "Art Collector" in artwork
    assert "collectible value" in artwork
    assert "career trajectory" in profile


def test_frame_instruction_falls_back_to_general_behaviour():
    instruction = frame_instruction(Persona.GALLERIST, ArtifactKind.ARTWORK)

    assert "Meaning Machine" in instruction
    assert "focused on the gallery" in instruction
