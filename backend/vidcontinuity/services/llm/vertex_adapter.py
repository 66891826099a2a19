"""Vertex AI adapter for the LLM abstraction layer.

Wraps google-genai client with location-aware routing.
Uses tenacity for retry logic with configurable max_retries.
"""

import logging
from typing import Optional

from google.genai import types as genai_types
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from vidcontinuity.services.llm.base import LLMAdapter
from vidcontinuity.services.vertex_client import get_vertex_client, location_for_model

logger = logging.getLogger(__name__)


class VertexAIAdapter(LLMAdapter):
    """LLM adapter backed by Google Vertex AI (google-genai SDK).

    Uses the location-aware client cache from vertex_client.py.
    """

    def __init__(self, model_id: str) -> None:
        """Initialize adapter for the given Vertex AI model.

        Args:
            model_id: Vertex AI model identifier (e.g., "gemini-2.5-flash").
        """
        self._model_id = model_id

    async def generate_text(
        self,
        prompt: str,
        *,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_output: bool = False,
        max_retries: int = 1,
    ) -> Optional[str]:
        """Generate a completion using Vertex AI.

        Args:
            prompt: User prompt to send.
            system_prompt: Optional system instruction.
            temperature: Sampling temperature.
            max_tokens: Output token budget (max_output_tokens).
            json_output: Request application/json output.
            max_retries: Retry attempts on failure.

        Returns:
            Response text (may be None when the model returns no parts).
        """
        config = genai_types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_tokens,
            response_mime_type="application/json" if json_output else None,
            system_instruction=system_prompt,
        )

        @retry(
            stop=stop_after_attempt(max_retries),
            wait=wait_exponential(multiplier=1, min=2, max=30),
            retry=retry_if_exception_type(Exception),
            reraise=True,
        )
        async def _call() -> Optional[str]:
            client = get_vertex_client(location=location_for_model(self._model_id))
            response = await client.aio.models.generate_content(
                model=self._model_id,
                contents=prompt,
                config=config,
            )
            return response.text

        logger.debug(
            "Vertex request model=%s json=%s max_tokens=%s",
            self._model_id,
            json_output,
            max_tokens,
        )
        return await _call()
