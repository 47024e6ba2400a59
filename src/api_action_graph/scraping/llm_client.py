"""Completion requester for the language model backends.

The client only turns a prompt into a completion string. It knows nothing
about actions or prerequisites; the model selector only picks the backend.
"""

import asyncio
from enum import Enum
from typing import Protocol, runtime_checkable

import httpx
from google import genai
from google.genai import errors as genai_errors
from openai import AsyncOpenAI, OpenAIError

from ..errors import ModelError
from ..settings import PipelineSettings, get_gemini_api_key, get_openai_api_key
from .logging_config import get_logger

logger = get_logger(__name__)


class ModelBackend(str, Enum):
    """Supported completion backends."""

    OPENAI = "openai"
    GEMINI = "gemini"


def resolve_backend(model: str | ModelBackend) -> ModelBackend:
    """Map a model selector onto a backend.

    Raises:
        ValueError: If the selector names no known backend.
    """
    try:
        return ModelBackend(str(getattr(model, "value", model)).lower())
    except ValueError:
        raise ValueError(
            f"Invalid model {model!r}. Must be one of: "
            + ", ".join(b.value for b in ModelBackend)
        ) from None


def default_credential(model: str | ModelBackend) -> str | None:
    """Get the environment credential for the selected backend."""
    if resolve_backend(model) is ModelBackend.OPENAI:
        return get_openai_api_key()
    return get_gemini_api_key()


@runtime_checkable
class CompletionRequester(Protocol):
    """Anything that turns a prompt into a completion."""

    async def complete(
        self,
        prompt: str,
        credential: str | None,
        model: str = "openai",
    ) -> str:
        """Return the model's completion for prompt."""
        ...


class LLMClient:
    """Completion requester backed by OpenAI or Gemini."""

    def __init__(self, settings: PipelineSettings | None = None):
        """Initialize the client.

        Args:
            settings: Pipeline settings holding model names and temperature.
        """
        self.settings = settings or PipelineSettings()

    async def complete(
        self,
        prompt: str,
        credential: str | None,
        model: str = "openai",
    ) -> str:
        """Send a prompt to the selected backend.

        Args:
            prompt: The full prompt text.
            credential: API key. Falls back to the backend's environment variable.
            model: Backend selector ("openai" or "gemini").

        Returns:
            The completion text (empty string if the backend returned none).

        Raises:
            ModelError: On missing credential, auth, quota or transport failure.
        """
        backend = resolve_backend(model)
        log = logger.bind(component="llm_client", backend=backend.value)
        log.debug("requesting_completion", prompt_chars=len(prompt))

        api_key = credential or default_credential(backend)
        if backend is ModelBackend.OPENAI:
            text = await self._complete_openai(prompt, api_key)
        else:
            text = await self._complete_gemini(prompt, api_key)

        log.debug("completion_received", response_chars=len(text))
        return text

    async def _complete_openai(self, prompt: str, api_key: str | None) -> str:
        if not api_key:
            raise ModelError("openai", "no API key supplied and OPENAI_API_KEY not set")

        client = AsyncOpenAI(api_key=api_key)
        try:
            response = await client.chat.completions.create(
                model=self.settings.openai_model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.settings.temperature,
            )
        except OpenAIError as e:
            logger.warning("openai_completion_failed", error=str(e))
            raise ModelError("openai", str(e)) from e
        finally:
            await client.close()

        return response.choices[0].message.content or ""

    async def _complete_gemini(self, prompt: str, api_key: str | None) -> str:
        if not api_key:
            raise ModelError("gemini", "no API key supplied and GEMINI_API_KEY not set")

        client = genai.Client(api_key=api_key)
        try:
            response = await asyncio.to_thread(
                client.models.generate_content,
                model=self.settings.gemini_model,
                contents=prompt,
            )
        except genai_errors.APIError as e:
            logger.warning("gemini_completion_failed", error=str(e))
            raise ModelError("gemini", str(e)) from e
        except httpx.HTTPError as e:
            # The SDK re-raises transport failures after its retries
            logger.warning("gemini_transport_failed", error_type=type(e).__name__, error=str(e))
            raise ModelError("gemini", str(e) or type(e).__name__) from e

        return response.text or ""
