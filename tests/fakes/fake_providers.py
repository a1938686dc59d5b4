"""Scripted in-memory generation providers for gateway and pipeline tests."""

import asyncio
from typing import Any, Optional, Union

from app.core.llm import FailureKind, ProviderFailure, ProviderResponse
from app.core.result import Err, Ok, Result
from app.core.schemas_orchestration import ProviderName, ProviderSettings

# Substrings that identify each catalog prompt
TASK_MARKERS = {
    "description": "detailed, engaging description",
    "style": "artistic styles",
    "techniques": "artistic techniques",
    "keywords": "Suggest relevant keywords",
    "title": "Create a creative, engaging title",
    "bio": "professional bio or CV",
    "portfolio_composition": "Assess the composition of this portfolio",
    "portfolio_presentation": "Assess how this portfolio is presented",
    "portfolio_pricing": "Assess the pricing of this portfolio",
    "portfolio_market": "market position",
}

Outcome = Union[str, ProviderResponse, FailureKind, BaseException]


def reply(text: str, confidence: float = 0.9, model: str = "fake-model") -> ProviderResponse:
    return ProviderResponse(text=text, model=model, finish_reason="stop", confidence=confidence)


class FakeProvider:
    """
    Provider whose answers are scripted per task.

    ``routes`` maps a task type to an outcome, or to a list of outcomes
    consumed one per call. ``default`` answers anything unrouted. An outcome
    is reply text, a ProviderResponse, a FailureKind (returned as a
    failure) or an exception instance (raised).
    """

    def __init__(
        self,
        name: ProviderName,
        routes: Optional[dict[str, Union[Outcome, list[Outcome]]]] = None,
        default: Optional[Outcome] = "ok",
        delay: float = 0.0,
    ):
        self.name = name
        self.routes = {k: (list(v) if isinstance(v, list) else v) for k, v in (routes or {}).items()}
        self.default = default
        self.delay = delay
        self.calls: list[dict[str, Any]] = []
        self.release = asyncio.Event()
        self.release.set()

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def calls_for(self, task_type: str) -> int:
        marker = TASK_MARKERS[task_type]
        return sum(1 for c in self.calls if marker in c["prompt"])

    def hold(self) -> None:
        """Block every call until ``release.set()``."""
        self.release.clear()

    def _outcome_for(self, prompt: str) -> Outcome:
        for task_type, outcome in self.routes.items():
            if TASK_MARKERS.get(task_type, task_type) in prompt:
                if isinstance(outcome, list):
                    return outcome.pop(0) if len(outcome) > 1 else outcome[0]
                return outcome
        return self.default

    async def generate(
        self, prompt: str, temperature: float, parameters: dict[str, Any]
    ) -> Result[ProviderResponse, ProviderFailure]:
        self.calls.append({"prompt": prompt, "temperature": temperature, "parameters": parameters})
        if self.delay:
            await asyncio.sleep(self.delay)
        await self.release.wait()

        outcome = self._outcome_for(prompt)
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, FailureKind):
            return Err(ProviderFailure(provider=self.name, kind=outcome, message=f"scripted {outcome.value}"))
        if isinstance(outcome, ProviderResponse):
            return Ok(outcome)
        return Ok(reply(outcome, model=f"{self.name.value}-fake"))


def fixed_settings(
    primary: ProviderName = ProviderName.GEMINI,
    fallback: Optional[ProviderName] = ProviderName.CHATGPT,
):
    """Settings accessor returning a constant record."""
    # model_construct so tests can express a fallback equal to the primary
    settings = ProviderSettings.model_construct(primary_provider=primary, fallback_provider=fallback)

    async def accessor() -> ProviderSettings:
        return settings

    return accessor
