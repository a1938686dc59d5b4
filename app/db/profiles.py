"""Database operations for viewer profiles (role and ownership lookup)."""

from typing import Optional

from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)


def get_profile_role(user_id: str) -> Optional[str]:
    """
    Look up the role stored on a user's profile.

    Args:
        user_id: Auth user id (profiles.id)

    Returns:
        Role string, or None if the profile is missing or has no role

    Raises:
        Exception: If database operation fails
    """
    supabase = get_supabase()

    try:
        response = supabase.table("profiles").select("role").eq("id", user_id).limit(1).execute()
    except Exception as e:
        logger.error(f"Failed to load profile role for {user_id}: {e}")
        raise

    if not response.data:
        return None
    return response.data[0].get("role")


def get_profile_owner(profile_id: str) -> Optional[str]:
    """Profiles own themselves: the profile id if it exists, else None."""
    supabase = get_supabase()

    try:
        response = supabase.table("profiles").select("id").eq("id", profile_id).limit(1).execute()
    except Exception as e:
        logger.error(f"Failed to load profile {profile_id}: {e}")
        raise

    if not response.data:
        return None
    return str(response.data[0]["id"])
