"""Artwork database operations for AI-authored content."""

from typing import Any, Optional

from app.core.config import get_settings
from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)


def insert_ai_artwork(
    title: str,
    images: list[dict[str, Any]],
    description: str | None,
    tags: list[str] | None,
    ai_context: dict[str, Any],
    analysis_results: list[dict[str, Any]] | None,
    ai_metadata: dict[str, Any],
) -> str:
    """
    Insert a published artwork owned by the reserved AI profile.

    Args:
        title: Artwork title
        images: Image records ({url, alt})
        description: Optional description
        tags: Optional keywords
        ai_context: Free-form generation context
        analysis_results: Per-task analysis records
        ai_metadata: Finalized agent metadata plus request metadata

    Returns:
        New artwork id

    Raises:
        Exception: If database operation fails
    """
    supabase = get_supabase()
    profile_id = get_settings().MM_AI_PROFILE_ID

    try:
        response = (
            supabase.table("artworks")
            .insert(
                {
                    "title": title,
                    "description": description,
                    "images": images,
                    "keywords": tags,
                    "artist_id": profile_id,
                    "status": "published",
                    "ai_generated": True,
                    "ai_context": ai_context,
                    "analysis_results": analysis_results,
                    "ai_metadata": ai_metadata,
                }
            )
            .execute()
        )

        if not response.data:
            raise ValueError("No data returned from insert_ai_artwork")

        artwork_id = str(response.data[0]["id"])
        logger.info(f"Inserted AI artwork {artwork_id} under profile {profile_id}")
        return artwork_id

    except Exception as e:
        logger.error(f"Failed to insert AI artwork: {e}")
        raise


def get_artwork_owner(artwork_id: str) -> Optional[str]:
    """
    Look up the profile that owns an artwork.

    Returns:
        artist_id, or None if the artwork does not exist

    Raises:
        Exception: If database operation fails
    """
    supabase = get_supabase()

    try:
        response = (
            supabase.table("artworks").select("artist_id").eq("id", artwork_id).limit(1).execute()
        )
    except Exception as e:
        logger.error(f"Failed to load owner of artwork {artwork_id}: {e}")
        raise

    if not response.data:
        return None
    return response.data[0].get("artist_id")
