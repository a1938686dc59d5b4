"""Supabase client initialization and session token verification."""

from functools import lru_cache
from typing import Optional

from supabase import Client, create_client

from app.core.config import get_settings


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Get Supabase client instance (cached singleton).

    Returns:
        Supabase client configured with service role key

    Raises:
        RuntimeError: If client initialization fails
    """
    try:
        settings = get_settings()
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    except Exception as e:
        raise RuntimeError(f"Failed to initialize Supabase client: {e}") from e


def get_user_id_for_token(token: str) -> Optional[str]:
    """
    Verify a Supabase session token (signature and expiry).

    Returns:
        Auth user id, or None if the token is not a valid session

    Raises:
        Exception: If the auth service cannot be reached
    """
    auth_response = get_supabase().auth.get_user(token)
    if not auth_response or not auth_response.user:
        return None
    return str(auth_response.user.id)
