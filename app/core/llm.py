"""Provider adapters behind a uniform "generate" capability.

Each adapter wraps one SDK (OpenAI for ``chatgpt``, google-genai for
``gemini``) and classifies SDK failures into a ``ProviderFailure`` so the
gateway can decide whether the single fallback hop applies.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol

import httpx
import openai
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from openai import AsyncOpenAI

from app.core.config import Settings, get_settings
from app.core.logging import get_logger
from app.core.result import Err, Ok, Result
from app.core.schemas_orchestration import ProviderName

logger = get_logger(__name__)


class FailureKind(str, Enum):
    """Why a single provider call failed."""
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    CONNECTION_ERROR = "connection_error"
    EMPTY_OUTPUT = "empty_output"
    MALFORMED_OUTPUT = "malformed_output"
    REJECTED = "rejected"


TRANSIENT_KINDS = frozenset(
    {
        FailureKind.TIMEOUT,
        FailureKind.RATE_LIMITED,
        FailureKind.SERVER_ERROR,
        FailureKind.CONNECTION_ERROR,
        FailureKind.EMPTY_OUTPUT,
        FailureKind.MALFORMED_OUTPUT,
    }
)


@dataclass(frozen=True)
class ProviderResponse:
    """Raw text returned by one provider call."""
    text: str
    model: str
    finish_reason: Optional[str] = None
    confidence: float = 0.75


@dataclass(frozen=True)
class ProviderFailure:
    """Classified failure of one provider call."""
    provider: ProviderName
    kind: FailureKind
    message: str

    @property
    def transient(self) -> bool:
        return self.kind in TRANSIENT_KINDS


class GenerationProvider(Protocol):
    """Capability: generate content given a prompt and parameters."""

    name: ProviderName

    async def generate(
        self, prompt: str, temperature: float, parameters: dict[str, Any]
    ) -> Result[ProviderResponse, ProviderFailure]: ...


def confidence_for_finish_reason(finish_reason: Optional[str]) -> float:
    """Map a provider finish reason to a per-call confidence."""
    if not finish_reason:
        return 0.75
    reason = finish_reason.lower()
    if reason == "stop":
        return 0.9
    if reason in ("length", "max_tokens"):
        return 0.6
    return 0.75


def strip_llm_fences(raw_output: str) -> str:
    """Strip markdown code fences from LLM output.

    Handles: ```json ... ```, ``` ... ```, leading/trailing whitespace.
    """
    cleaned = raw_output.strip()

    fence_match = re.search(r"```(?:\w+)?\s*\n?(.*?)```", cleaned, re.DOTALL)
    if fence_match:
        return fence_match.group(1).strip()

    if cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


# ============================================================================
# chatgpt
# ============================================================================


class ChatGPTProvider:
    """OpenAI chat completions adapter."""

    name = ProviderName.CHATGPT

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        max_output_tokens: int = 1024,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.max_output_tokens = max_output_tokens
        self._api_key = api_key
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    def _failure(self, kind: FailureKind, message: str) -> Err[ProviderFailure]:
        return Err(ProviderFailure(provider=self.name, kind=kind, message=message))

    async def generate(
        self, prompt: str, temperature: float, parameters: dict[str, Any]
    ) -> Result[ProviderResponse, ProviderFailure]:
        if self._client is None and not self._api_key:
            return self._failure(FailureKind.REJECTED, "OPENAI_API_KEY not configured")

        messages: list[dict[str, Any]] = []
        system_instruction = parameters.get("system_instruction")
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})

        image_url = parameters.get("image_url")
        if image_url:
            messages.append(
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": image_url}},
                    ],
                }
            )
        else:
            messages.append({"role": "user", "content": prompt})

        try:
            response = await self._get_client().chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=parameters.get("max_output_tokens", self.max_output_tokens),
            )
        except openai.APITimeoutError as e:
            return self._failure(FailureKind.TIMEOUT, str(e))
        except openai.APIConnectionError as e:
            return self._failure(FailureKind.CONNECTION_ERROR, str(e))
        except openai.RateLimitError as e:
            return self._failure(FailureKind.RATE_LIMITED, str(e))
        except openai.APIStatusError as e:
            kind = FailureKind.SERVER_ERROR if e.status_code >= 500 else FailureKind.REJECTED
            return self._failure(kind, str(e))
        except openai.OpenAIError as e:
            return self._failure(FailureKind.REJECTED, str(e))

        choice = response.choices[0] if response.choices else None
        text = (choice.message.content or "") if choice else ""
        if not text.strip():
            return self._failure(FailureKind.EMPTY_OUTPUT, "Provider returned no text")

        finish_reason = choice.finish_reason if choice else None
        return Ok(
            ProviderResponse(
                text=text.strip(),
                model=response.model or self.model,
                finish_reason=finish_reason,
                confidence=confidence_for_finish_reason(finish_reason),
            )
        )


# ============================================================================
# gemini
# ============================================================================


class GeminiProvider:
    """google-genai generate_content adapter."""

    name = ProviderName.GEMINI

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        max_output_tokens: int = 1024,
        client: Optional[genai.Client] = None,
    ):
        self.model = model
        self.max_output_tokens = max_output_tokens
        self._api_key = api_key
        self._client = client

    def _get_client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    def _failure(self, kind: FailureKind, message: str) -> Err[ProviderFailure]:
        return Err(ProviderFailure(provider=self.name, kind=kind, message=message))

    async def generate(
        self, prompt: str, temperature: float, parameters: dict[str, Any]
    ) -> Result[ProviderResponse, ProviderFailure]:
        if self._client is None and not self._api_key:
            return self._failure(FailureKind.REJECTED, "GOOGLE_AI_API_KEY not configured")

        contents: Any = prompt
        image_url = parameters.get("image_url")
        if image_url:
            contents = [
                genai_types.Part.from_uri(
                    file_uri=image_url,
                    mime_type=parameters.get("image_mime_type", "image/jpeg"),
                ),
                prompt,
            ]

        config = genai_types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=parameters.get("max_output_tokens", self.max_output_tokens),
            system_instruction=parameters.get("system_instruction"),
        )

        try:
            response = await self._get_client().aio.models.generate_content(
                model=self.model,
                contents=contents,
                config=config,
            )
        except genai_errors.ClientError as e:
            kind = FailureKind.RATE_LIMITED if e.code == 429 else FailureKind.REJECTED
            return self._failure(kind, str(e))
        except genai_errors.APIError as e:
            return self._failure(FailureKind.SERVER_ERROR, str(e))
        except httpx.TimeoutException as e:
            return self._failure(FailureKind.TIMEOUT, str(e))
        except httpx.TransportError as e:
            return self._failure(FailureKind.CONNECTION_ERROR, str(e))

        text = response.text or ""
        if not text.strip():
            return self._failure(FailureKind.EMPTY_OUTPUT, "Provider returned no text")

        finish_reason = None
        if response.candidates:
            raw_reason = response.candidates[0].finish_reason
            if raw_reason is not None:
                finish_reason = getattr(raw_reason, "name", str(raw_reason))

        return Ok(
            ProviderResponse(
                text=text.strip(),
                model=getattr(response, "model_version", None) or self.model,
                finish_reason=finish_reason,
                confidence=confidence_for_finish_reason(finish_reason),
            )
        )


def build_providers(settings: Optional[Settings] = None) -> dict[ProviderName, GenerationProvider]:
    """
    Build one adapter per known provider from configuration.

    Adapters with no credential are still registered; they fail with a
    non-transient REJECTED failure when called.
    """
    settings = settings or get_settings()
    return {
        ProviderName.CHATGPT: ChatGPTProvider(
            api_key=settings.OPENAI_API_KEY,
            model=settings.CHATGPT_MODEL,
            max_output_tokens=settings.MAX_OUTPUT_TOKENS,
        ),
        ProviderName.GEMINI: GeminiProvider(
            api_key=settings.GOOGLE_AI_API_KEY,
            model=settings.GEMINI_MODEL,
            max_output_tokens=settings.MAX_OUTPUT_TOKENS,
        ),
    }
