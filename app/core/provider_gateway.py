"""Provider gateway: primary provider with exactly one fallback hop.

Reads the active ProviderSettings through an injected accessor, tries the
primary provider under a per-call timeout, and on a transient failure tries
the configured fallback once. Output the task parser rejects counts as a
transient failure too. Results are tagged with the provider that
actually produced them.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Mapping, Optional

from app.core.errors import ErrorCode, OrchestrationError, error
from app.core.llm import FailureKind, GenerationProvider, ProviderFailure, ProviderResponse
from app.core.logging import get_logger, log_with_context
from app.core.result import Err, Ok, Result
from app.core.schemas_orchestration import (
    GenerationRequest,
    GenerationResult,
    ProviderName,
    ProviderSettings,
)

logger = get_logger(__name__)

SettingsAccessor = Callable[[], Awaitable[ProviderSettings]]
Normalizer = Callable[[GenerationResult], Result[GenerationResult, OrchestrationError]]


def _tag(
    request: GenerationRequest,
    response: ProviderResponse,
    provider_used: ProviderName,
    is_fallback_used: bool,
) -> GenerationResult:
    return GenerationResult(
        task_type=request.task_type,
        text=response.text,
        confidence=response.confidence,
        provider_used=provider_used,
        is_fallback_used=is_fallback_used,
        model=response.model,
    )


class ProviderGateway:
    """Uniform generate() over the configured providers."""

    def __init__(
        self,
        providers: Mapping[ProviderName, GenerationProvider],
        settings_accessor: SettingsAccessor,
        timeout_seconds: float = 30.0,
    ):
        """
        Args:
            providers: Adapter per provider name
            settings_accessor: Async callable returning the active settings (cached)
            timeout_seconds: Budget per provider call; exceeding it is a transient failure
        """
        self._providers = dict(providers)
        self._settings_accessor = settings_accessor
        self._timeout = timeout_seconds

    async def _attempt(
        self, provider_name: ProviderName, request: GenerationRequest
    ) -> Result[ProviderResponse, ProviderFailure]:
        provider = self._providers.get(provider_name)
        if provider is None:
            return Err(
                ProviderFailure(
                    provider=provider_name,
                    kind=FailureKind.REJECTED,
                    message=f"Provider {provider_name.value} is not registered",
                )
            )

        try:
            return await asyncio.wait_for(
                provider.generate(
                    request.prompt_template,
                    request.temperature,
                    dict(request.parameters),
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            return Err(
                ProviderFailure(
                    provider=provider_name,
                    kind=FailureKind.TIMEOUT,
                    message=f"No response within {self._timeout}s",
                )
            )

    async def _serve(
        self,
        provider_name: ProviderName,
        request: GenerationRequest,
        is_fallback_used: bool,
        normalize: Optional[Normalizer],
    ) -> Result[GenerationResult, ProviderFailure]:
        attempt = await self._attempt(provider_name, request)
        if isinstance(attempt, Err):
            return attempt

        tagged = _tag(request, attempt.value, provider_name, is_fallback_used)
        if normalize is None:
            return Ok(tagged)

        normalized = normalize(tagged)
        if isinstance(normalized, Err):
            return Err(
                ProviderFailure(
                    provider=provider_name,
                    kind=FailureKind.MALFORMED_OUTPUT,
                    message=normalized.error.message,
                )
            )
        return normalized

    async def generate(
        self,
        request: GenerationRequest,
        normalize: Optional[Normalizer] = None,
    ) -> Result[GenerationResult, OrchestrationError]:
        """
        Run one generation request with at most one fallback hop.

        Args:
            request: Fully built request (prompt, temperature, parameters, persona)
            normalize: Parser for the task's output format; output it rejects
                counts as a transient failure of the provider that produced it

        Returns:
            Ok(GenerationResult) tagged with provider_used / is_fallback_used,
            Err(MALFORMED_OUTPUT) when every attempt answered unusably,
            Err(PROVIDER_UNAVAILABLE) when attempts are otherwise exhausted,
            or Err(DATABASE_ERROR) when provider settings cannot be loaded
        """
        try:
            settings = await self._settings_accessor()
        except Exception as e:
            logger.error(f"Provider settings unavailable for task '{request.task_type}': {e}")
            return Err(error(ErrorCode.DATABASE_ERROR, "Provider settings unavailable"))
        primary = settings.primary_provider

        first = await self._serve(primary, request, False, normalize)
        if isinstance(first, Ok):
            return first

        primary_failure = first.error
        log_with_context(
            logger,
            logging.WARNING,
            "Primary provider failed",
            task_type=request.task_type,
            provider=primary.value,
            kind=primary_failure.kind.value,
            transient=primary_failure.transient,
        )

        fallback = self._fallback_for(settings, primary)
        if fallback is None or not primary_failure.transient:
            return Err(self._exhausted(request, [primary_failure]))

        log_with_context(
            logger,
            logging.INFO,
            "Falling back to secondary provider",
            task_type=request.task_type,
            provider=fallback.value,
        )
        second = await self._serve(fallback, request, True, normalize)
        if isinstance(second, Ok):
            return second

        log_with_context(
            logger,
            logging.WARNING,
            "Fallback provider failed",
            task_type=request.task_type,
            provider=fallback.value,
            kind=second.error.kind.value,
        )
        return Err(self._exhausted(request, [primary_failure, second.error]))

    @staticmethod
    def _fallback_for(settings: ProviderSettings, tried: ProviderName) -> Optional[ProviderName]:
        fallback = settings.fallback_provider
        if fallback is None or fallback == tried:
            return None
        return fallback

    @staticmethod
    def _exhausted(request: GenerationRequest, failures: list[ProviderFailure]) -> OrchestrationError:
        attempts = [
            {"provider": f.provider.value, "kind": f.kind.value, "message": f.message}
            for f in failures
        ]
        if all(f.kind == FailureKind.MALFORMED_OUTPUT for f in failures):
            return error(
                ErrorCode.MALFORMED_OUTPUT,
                failures[-1].message,
                kind=FailureKind.MALFORMED_OUTPUT.value,
                attempts=attempts,
            )
        return error(
            ErrorCode.PROVIDER_UNAVAILABLE,
            f"No provider could serve task '{request.task_type}'",
            kind=failures[-1].kind.value,
            attempts=attempts,
        )
