"""LLM provider adapter (Gemini) used by the extraction and update stages."""

from typing import Protocol, TypeVar

import instructor
from google import genai
from google.genai import types
from loguru import logger
from pydantic import BaseModel
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from deadline.config import Settings, get_settings
from deadline.exceptions import ConfigurationError


ModelT = TypeVar("ModelT", bound=BaseModel)


class LLMProvider(Protocol):
    """Request/response contract the pipeline expects from a language model."""

    async def complete(self, prompt: str, json_mode: bool = False) -> str:
        ...

    async def structured(self, prompt: str, response_model: type[ModelT]) -> ModelT:
        ...


class GeminiProvider:
    """
    Gemini chat completions.

    - complete(): raw text through google-genai (optionally JSON-constrained)
    - structured(): pydantic-validated output through instructor
    Model id, temperature and token budget come from settings.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def _api_key(self) -> str:
        if not self.settings.gemini_api_key:
            raise ConfigurationError("GEMINI_API_KEY not configured")
        return self.settings.gemini_api_key

    async def complete(self, prompt: str, json_mode: bool = False) -> str:
        """Send a single user prompt and return the response text."""
        api_key = self._api_key()
        return await self._generate(api_key, prompt, json_mode)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        retry=retry_if_exception_type(Exception),
        reraise=True,
    )
    async def _generate(self, api_key: str, prompt: str, json_mode: bool) -> str:
        client = genai.Client(api_key=api_key)
        config = types.GenerateContentConfig(
            temperature=self.settings.llm_temperature,
            max_output_tokens=self.settings.llm_max_tokens,
            response_mime_type="application/json" if json_mode else None,
        )

        response = await client.aio.models.generate_content(
            model=self.settings.llm_model,
            contents=prompt,
            config=config,
        )

        text = response.text
        if not text:
            raise ValueError("Empty response from Gemini")

        logger.debug(f"[LLM] {self.settings.llm_model} returned {len(text)} chars")
        return text

    async def structured(self, prompt: str, response_model: type[ModelT]) -> ModelT:
        """Ask for a response validated against `response_model`."""
        client = instructor.from_provider(
            f"google/{self.settings.llm_model}",
            api_key=self._api_key(),
            async_client=True,
        )

        return await client.create(
            response_model=response_model,
            messages=[{"role": "user", "content": prompt}],
            max_retries=2,  # Instructor's internal retry
        )
