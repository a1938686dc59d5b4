"""Authentication dependencies for FastAPI.

Resolves the ``Authorization: Bearer <token>`` header into a principal:
the shared agent secret yields an AgentPrincipal; otherwise the token must
be a valid Supabase session, and the profile role is looked up on every
request (admin status is never cached between requests).
"""

import asyncio
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from app.core.authorization import (
    Action,
    AdminPrincipal,
    AgentPrincipal,
    EndUserPrincipal,
    Principal,
    agent_principal_for,
    authorize,
    parse_bearer,
)
from app.core.config import get_settings
from app.core.errors import ErrorCode, OrchestrationError, error
from app.core.logging import get_logger
from app.core.result import Err, Ok, Result
from app.db.profiles import get_profile_role
from app.db.supabase_client import get_user_id_for_token

logger = get_logger(__name__)


def unauthorized(err: OrchestrationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=err.model_dump(mode="json"),
        headers={"WWW-Authenticate": "Bearer"},
    )


async def resolve_principal(header: Optional[str]) -> Result[Principal, OrchestrationError]:
    """
    Resolve an Authorization header value to a principal.

    Fails closed: any malformed header, unknown token or lookup failure is
    UNAUTHORIZED.
    """
    parsed = parse_bearer(header)
    if isinstance(parsed, Err):
        return parsed
    token = parsed.value

    settings = get_settings()
    agent = agent_principal_for(token, settings.MM_AI_AGENT_KEY)
    if agent is not None:
        return Ok(agent)

    try:
        user_id = await asyncio.to_thread(get_user_id_for_token, token)
    except Exception as e:
        logger.warning(f"Session verification failed: {e}")
        return Err(error(ErrorCode.UNAUTHORIZED, "Invalid session"))

    if not user_id:
        return Err(error(ErrorCode.UNAUTHORIZED, "Invalid session"))

    try:
        role = await asyncio.to_thread(get_profile_role, user_id)
    except Exception as e:
        logger.warning(f"Role lookup failed for {user_id}: {e}")
        return Err(error(ErrorCode.UNAUTHORIZED, "Could not verify role"))

    if role == settings.ADMIN_ROLE:
        return Ok(AdminPrincipal(user_id=user_id, role=role))
    return Ok(EndUserPrincipal(user_id=user_id, role=role))


async def require_principal(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> Principal:
    """Require any authenticated principal. Raises 401 otherwise."""
    resolved = await resolve_principal(authorization)
    if isinstance(resolved, Err):
        raise unauthorized(resolved.error)
    return resolved.value


async def require_user(principal: Principal = Depends(require_principal)) -> Principal:
    """Require a human caller (end user or admin)."""
    if isinstance(principal, AgentPrincipal):
        raise unauthorized(error(ErrorCode.UNAUTHORIZED, "Agent token not accepted here"))
    return principal


class ActionGuard:
    """Dependency that authorizes a fixed action with no resource owner."""

    def __init__(self, action: Action):
        self.action = action

    async def __call__(self, principal: Principal = Depends(require_principal)) -> Principal:
        decision = authorize(principal, self.action, admin_role=get_settings().ADMIN_ROLE)
        if isinstance(decision, Err):
            raise unauthorized(decision.error)
        return principal


require_settings_reader = ActionGuard(Action.READ_PROVIDER_SETTINGS)
require_settings_writer = ActionGuard(Action.WRITE_PROVIDER_SETTINGS)
require_content_poster = ActionGuard(Action.POST_AI_CONTENT)
