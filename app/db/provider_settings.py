"""Provider settings database operations (single ai_settings row)."""

from datetime import datetime, timezone
from typing import Any

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.schemas_orchestration import ProviderName, ProviderSettings
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)

TABLE = "ai_settings"


def _default_settings() -> ProviderSettings:
    settings = get_settings()
    fallback = settings.DEFAULT_FALLBACK_PROVIDER
    if fallback == settings.DEFAULT_PRIMARY_PROVIDER:
        fallback = None
    return ProviderSettings(
        primary_provider=ProviderName(settings.DEFAULT_PRIMARY_PROVIDER),
        fallback_provider=ProviderName(fallback) if fallback else None,
    )


def _row_to_settings(row: dict[str, Any]) -> ProviderSettings:
    primary = ProviderName(row["primary_provider"])
    fallback_raw = row.get("fallback_provider")
    fallback = ProviderName(fallback_raw) if fallback_raw else None
    if fallback == primary:
        logger.warning(
            f"Stored fallback provider equals primary ({primary.value}), ignoring fallback"
        )
        fallback = None

    updated_at = row.get("updated_at")
    return ProviderSettings(
        primary_provider=primary,
        fallback_provider=fallback,
        updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
    )


def get_provider_settings() -> ProviderSettings:
    """
    Load the active provider settings record.

    Returns:
        ProviderSettings; configured defaults when no row exists

    Raises:
        Exception: If database operation fails
    """
    supabase = get_supabase()

    try:
        response = supabase.table(TABLE).select("*").limit(1).execute()
    except Exception as e:
        logger.error(f"Failed to load provider settings: {e}")
        raise

    if not response.data:
        logger.warning("No ai_settings row found, using configured defaults")
        return _default_settings()

    return _row_to_settings(response.data[0])


def upsert_provider_settings(new_settings: ProviderSettings) -> ProviderSettings:
    """
    Replace the active provider settings record.

    Args:
        new_settings: Validated settings (fallback already checked against primary)

    Returns:
        Stored settings

    Raises:
        Exception: If database operation fails
    """
    supabase = get_supabase()

    try:
        existing = supabase.table(TABLE).select("id").limit(1).execute()
        payload: dict[str, Any] = {
            "primary_provider": new_settings.primary_provider.value,
            "fallback_provider": (
                new_settings.fallback_provider.value if new_settings.fallback_provider else None
            ),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        if existing.data:
            payload["id"] = existing.data[0]["id"]

        response = supabase.table(TABLE).upsert(payload, on_conflict="id").execute()

        if not response.data:
            raise ValueError("No data returned from upsert_provider_settings")

        logger.info(
            f"Provider settings updated: primary={payload['primary_provider']} "
            f"fallback={payload['fallback_provider']}"
        )
        return _row_to_settings(response.data[0])

    except Exception as e:
        logger.error(f"Failed to update provider settings: {e}")
        raise
