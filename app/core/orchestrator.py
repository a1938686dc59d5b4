"""Process-wide wiring of the orchestration components.

Each getter is cached so the service shares one settings cache, gateway,
pipeline and session. The API depends on these getters, which tests replace
through ``app.dependency_overrides``.
"""

import asyncio
from functools import lru_cache

from app.core.analysis_pipeline import AnalysisPipeline
from app.core.analysis_session import AnalysisSession
from app.core.config import get_settings
from app.core.llm import build_providers
from app.core.provider_gateway import ProviderGateway
from app.core.provider_settings import ProviderSettingsCache
from app.core.schemas_orchestration import ProviderSettings
from app.db.provider_settings import get_provider_settings


async def load_provider_settings() -> ProviderSettings:
    """Read the settings row without blocking the event loop."""
    return await asyncio.to_thread(get_provider_settings)


@lru_cache(maxsize=1)
def get_settings_cache() -> ProviderSettingsCache:
    return ProviderSettingsCache(
        loader=load_provider_settings,
        ttl_seconds=get_settings().PROVIDER_SETTINGS_TTL_SECONDS,
    )


@lru_cache(maxsize=1)
def get_gateway() -> ProviderGateway:
    return ProviderGateway(
        providers=build_providers(),
        settings_accessor=get_settings_cache().get,
        timeout_seconds=get_settings().GENERATION_TIMEOUT_SECONDS,
    )


@lru_cache(maxsize=1)
def get_pipeline() -> AnalysisPipeline:
    return AnalysisPipeline(get_gateway())


@lru_cache(maxsize=1)
def get_session() -> AnalysisSession:
    return AnalysisSession(get_pipeline(), retention_seconds=get_settings().JOB_RETENTION_SECONDS)
