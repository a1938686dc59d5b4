"""Machine-to-machine endpoint for posting AI-authored artworks."""

from fastapi import APIRouter, Depends, Request, status

from app.api.errors import raise_for_error
from app.core.auth_middleware import require_content_poster
from app.core.authorization import AgentPrincipal, Principal
from app.core.content_publishing import post_ai_artwork
from app.core.logging import get_logger
from app.core.result import Err
from app.core.schemas_orchestration import PostArtworkParams

logger = get_logger(__name__)

router = APIRouter()


@router.post("/mm-ai", status_code=status.HTTP_201_CREATED)
async def post_mm_ai_artwork(
    params: PostArtworkParams,
    request: Request,
    principal: Principal = Depends(require_content_poster),
) -> dict:
    """
    Create a published artwork under the reserved AI profile.

    Accepts the agent bearer secret or an admin session.

    Returns:
        {"id": <artwork id>}
    """
    result = await post_ai_artwork(
        params,
        request_meta={
            "request_id": request.headers.get("x-request-id"),
            "user_agent": request.headers.get("user-agent"),
            "source": "agent" if isinstance(principal, AgentPrincipal) else "admin",
        },
    )
    if isinstance(result, Err):
        raise_for_error(result.error)
    return {"id": result.value}
