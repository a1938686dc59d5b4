"""Authorization guard for end users, admins and the machine agent.

Every check returns a Result; denial is always an explicit UNAUTHORIZED
error and nothing here defaults to allow.
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from app.core.config import get_settings
from app.core.errors import ErrorCode, OrchestrationError, error
from app.core.logging import get_logger, log_with_context
from app.core.result import Err, Ok, Result

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "


class Action(str, Enum):
    """Operations the guard can authorize."""
    RUN_ANALYSIS = "run_analysis"
    VIEW_JOB = "view_job"
    READ_PROVIDER_SETTINGS = "read_provider_settings"
    WRITE_PROVIDER_SETTINGS = "write_provider_settings"
    POST_AI_CONTENT = "post_ai_content"


@dataclass(frozen=True)
class EndUserPrincipal:
    user_id: str
    role: Optional[str] = None


@dataclass(frozen=True)
class AdminPrincipal:
    user_id: str
    role: str


@dataclass(frozen=True)
class AgentPrincipal:
    """Machine caller holding the shared secret. Only a digest is kept."""
    token_hash: str


Principal = Union[EndUserPrincipal, AdminPrincipal, AgentPrincipal]

_END_USER_ACTIONS = frozenset({Action.RUN_ANALYSIS, Action.VIEW_JOB})
_AGENT_ACTIONS = frozenset({Action.POST_AI_CONTENT})


def _deny(reason: str, **fields) -> Err[OrchestrationError]:
    log_with_context(logger, logging.WARNING, f"Authorization denied: {reason}", **fields)
    return Err(error(ErrorCode.UNAUTHORIZED, reason))


def authorize(
    principal: Optional[Principal],
    action: Action,
    resource_owner_id: Optional[str] = None,
    admin_role: Optional[str] = None,
) -> Result[None, OrchestrationError]:
    """
    Decide whether a principal may perform an action.

    Args:
        principal: Resolved caller, or None when unauthenticated
        action: Requested operation
        resource_owner_id: Owner of the targeted artifact or job, if any
        admin_role: Reserved admin role (defaults to configured ADMIN_ROLE)

    Returns:
        Ok(None) if permitted, Err(UNAUTHORIZED) otherwise
    """
    if principal is None:
        return _deny("No authenticated principal", action=action.value)

    if isinstance(principal, AdminPrincipal):
        reserved = admin_role or get_settings().ADMIN_ROLE
        if principal.role != reserved:
            return _deny("Admin role check failed", action=action.value, user_id=principal.user_id)
        return Ok(None)

    if isinstance(principal, AgentPrincipal):
        if action not in _AGENT_ACTIONS:
            return _deny("Agent may only post AI content", action=action.value)
        return Ok(None)

    if isinstance(principal, EndUserPrincipal):
        if action not in _END_USER_ACTIONS:
            return _deny("Action requires admin", action=action.value, user_id=principal.user_id)
        if resource_owner_id is None or resource_owner_id != principal.user_id:
            return _deny(
                "Resource not owned by caller",
                action=action.value,
                user_id=principal.user_id,
            )
        return Ok(None)

    return _deny("Unknown principal type", action=action.value)


def parse_bearer(header: Optional[str]) -> Result[str, OrchestrationError]:
    """Extract the token from an exact ``Bearer <token>`` header."""
    if not header:
        return _deny("Missing Authorization header")
    if not header.startswith(BEARER_PREFIX):
        return _deny("Authorization header must use the Bearer scheme")

    token = header[len(BEARER_PREFIX):]
    if not token or token != token.strip():
        return _deny("Malformed bearer token")
    return Ok(token)


def token_matches(token: str, configured_secret: Optional[str]) -> bool:
    """Constant-time full-string comparison. An unset secret never matches."""
    if not configured_secret:
        return False
    return hmac.compare_digest(token.encode("utf-8"), configured_secret.encode("utf-8"))


def agent_principal_for(token: str, configured_secret: Optional[str]) -> Optional[AgentPrincipal]:
    """
    AgentPrincipal when ``token`` is exactly the configured shared secret.

    Returns None otherwise (including when no secret is configured); callers
    decide whether a non-agent token may still be a user session.
    """
    if not token_matches(token, configured_secret):
        return None
    return AgentPrincipal(token_hash=hashlib.sha256(token.encode("utf-8")).hexdigest())
