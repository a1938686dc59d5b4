"""Tests for app.core.authorization: principals, actions and the agent bearer path."""

from unittest.mock import patch

import pytest

from app.core.auth_middleware import resolve_principal
from app.core.authorization import (
    Action,
    AdminPrincipal,
    AgentPrincipal,
    EndUserPrincipal,
    agent_principal_for,
    authorize,
    parse_bearer,
)
from app.core.errors import ErrorCode
from app.core.result import Err, Ok

SECRET = "s3cret-agent-token"
AGENT_KEY = "test-agent-key"  # MM_AI_AGENT_KEY in tests/conftest.py


# ---------------------------------------------------------------------------
# authorize
# ---------------------------------------------------------------------------


def test_end_user_can_analyze_own_artifact():
    user = EndUserPrincipal(user_id="u1", role="verified_artist")

    assert isinstance(authorize(user, Action.RUN_ANALYSIS, "u1"), Ok)
    assert isinstance(authorize(user, Action.VIEW_JOB, "u1"), Ok)


def test_end_user_cannot_analyze_someone_elses_artifact():
    user = EndUserPrincipal(user_id="u1", role="artist")

    result = authorize(user, Action.RUN_ANALYSIS, "u2")

    assert isinstance(result, Err)
    assert result.error.code == ErrorCode.UNAUTHORIZED


def test_end_user_without_owner_is_denied():
    user = EndUserPrincipal(user_id="u1")

    assert isinstance(authorize(user, Action.RUN_ANALYSIS, None), Err)


@pytest.mark.parametrize(
    "action",
    [Action.READ_PROVIDER_SETTINGS, Action.WRITE_PROVIDER_SETTINGS, Action.POST_AI_CONTENT],
)
def test_end_user_never_touches_admin_actions(action):
    user = EndUserPrincipal(user_id="u1", role="patron")

    assert isinstance(authorize(user, action, "u1"), Err)


@pytest.mark.parametrize("action", list(Action))
def test_admin_is_allowed_everything(action):
    admin = AdminPrincipal(user_id="a1", role="admin")

    assert isinstance(authorize(admin, action, "someone-else", admin_role="admin"), Ok)


def test_admin_role_is_rechecked_on_every_call():
    demoted = AdminPrincipal(user_id="a1", role="patron")

    result = authorize(demoted, Action.WRITE_PROVIDER_SETTINGS, admin_role="admin")

    assert isinstance(result, Err)
    assert result.error.code == ErrorCode.UNAUTHORIZED


def test_agent_may_only_post_content():
    agent = AgentPrincipal(token_hash="abc")

    assert isinstance(authorize(agent, Action.POST_AI_CONTENT), Ok)
    assert isinstance(authorize(agent, Action.RUN_ANALYSIS, "u1"), Err)
    assert isinstance(authorize(agent, Action.WRITE_PROVIDER_SETTINGS), Err)


def test_missing_principal_fails_closed():
    result = authorize(None, Action.VIEW_JOB, "u1")

    assert isinstance(result, Err)
    assert result.error.code == ErrorCode.UNAUTHORIZED


# ---------------------------------------------------------------------------
# Agent bearer token
# ---------------------------------------------------------------------------


def test_exact_token_yields_agent_principal():
    principal = agent_principal_for(SECRET, SECRET)

    assert isinstance(principal, AgentPrincipal)
    assert SECRET not in principal.token_hash
    assert len(principal.token_hash) == 64


@pytest.mark.parametrize("token", ["wrongtoken", SECRET[:-1], f"{SECRET}extra", f" {SECRET}", ""])
def test_inexact_token_is_not_agent(token):
    assert agent_principal_for(token, SECRET) is None


def test_unconfigured_secret_never_matches():
    assert agent_principal_for("anything", "") is None
    assert agent_principal_for("anything", None) is None


@pytest.mark.asyncio
async def test_configured_agent_key_resolves_to_agent():
    result = await resolve_principal(f"Bearer {AGENT_KEY}")

    assert isinstance(result, Ok)
    assert isinstance(result.value, AgentPrincipal)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "header",
    [
        "Bearer wrongtoken",
        "wrongtoken",
        AGENT_KEY,
        f"bearer {AGENT_KEY}",
        f"Bearer  {AGENT_KEY}",
        f"Bearer {AGENT_KEY} ",
        f"Bearer {AGENT_KEY[:-1]}",
        f"Bearer {AGENT_KEY}extra",
        f"Basic {AGENT_KEY}",
        "Bearer ",
        "",
        None,
    ],
)
async def test_malformed_or_mismatched_headers_are_unauthorized(header):
    with patch("app.core.auth_middleware.get_user_id_for_token", return_value=None):
        result = await resolve_principal(header)

    assert isinstance(result, Err)
    assert result.error.code == ErrorCode.UNAUTHORIZED


def test_parse_bearer_returns_token():
    assert parse_bearer("Bearer abc.def").value == "abc.def"
