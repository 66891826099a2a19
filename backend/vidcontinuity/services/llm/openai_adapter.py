"""OpenAI adapter for the LLM abstraction layer.

Wraps openai.AsyncOpenAI chat completions. JSON output is requested with
response_format={"type": "json_object"}.
"""

import logging
from typing import Optional

from openai import AsyncOpenAI
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from vidcontinuity.services.llm.base import LLMAdapter

logger = logging.getLogger(__name__)


class OpenAIAdapter(LLMAdapter):
    """LLM adapter backed by the OpenAI chat completions API."""

    def __init__(
        self,
        model_id: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        """Initialize adapter for the given OpenAI model.

        Args:
            model_id: Model identifier (e.g., "gpt-4o-mini").
            api_key: API key; None lets the SDK read OPENAI_API_KEY.
            base_url: Optional alternative endpoint (OpenAI-compatible APIs).
            client: Pre-built client, mainly for tests.
        """
        self._model_id = model_id
        self._api_key = api_key
        self._base_url = base_url
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        """Lazy-init client so constructing an adapter never needs credentials."""
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key, base_url=self._base_url)
        return self._client

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
        """Generate a completion using an OpenAI chat model.

        Args:
            prompt: User prompt to send.
            system_prompt: Optional system instruction.
            temperature: Sampling temperature.
            max_tokens: Output token budget.
            json_output: Request a JSON object response.
            max_retries: Retry attempts on failure.

        Returns:
            Message content of the first choice (may be None).
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs = {
            "model": self._model_id,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        if json_output:
            kwargs["response_format"] = {"type": "json_object"}

        @retry(
            stop=stop_after_attempt(max_retries),
            wait=wait_exponential(multiplier=1, min=2, max=30),
            retry=retry_if_exception_type(Exception),
            reraise=True,
        )
        async def _call() -> Optional[str]:
            response = await self.client.chat.completions.create(**kwargs)
            if not response.choices:
                return None
            return response.choices[0].message.content

        logger.debug(
            "OpenAI request model=%s json=%s max_tokens=%s",
            self._model_id,
            json_output,
            max_tokens,
        )
        return await _call()
