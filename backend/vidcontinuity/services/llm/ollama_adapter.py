"""Ollama adapter for the LLM abstraction layer.

Connects via ollama.AsyncClient with optional auth headers. JSON output is
requested with format='json'; some models still wrap the object in markdown
code fences, which are stripped before the text is returned.
"""

import logging
from typing import Optional

from ollama import AsyncClient
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from vidcontinuity.services.llm.base import LLMAdapter

logger = logging.getLogger(__name__)


def _strip_code_fences(raw: str) -> str:
    """Remove a surrounding ```json ... ``` fence if present."""
    stripped = raw.strip()
    if not stripped.startswith("```"):
        return raw
    # Remove opening fence (```json or ```)
    first_newline = stripped.find("\n")
    if first_newline == -1:
        return stripped.strip("`")
    stripped = stripped[first_newline + 1:]
    if stripped.endswith("```"):
        stripped = stripped[:-3].rstrip()
    return stripped


class OllamaAdapter(LLMAdapter):
    """LLM adapter backed by a local or cloud Ollama instance.

    Strips the "ollama/" prefix from model IDs before passing to the ollama
    library. Always passes stream=False to avoid async generator responses.
    """

    def __init__(
        self,
        model_id: str,
        base_url: str = "http://localhost:11434",
        api_key: Optional[str] = None,
    ) -> None:
        """Initialize adapter for the given Ollama model.

        Args:
            model_id: Model identifier, optionally prefixed with "ollama/"
                      (e.g., "ollama/llama3.1" or "llama3.1").
            base_url: Base URL of the Ollama server.
            api_key: Optional API key for authentication (cloud deployments).
        """
        # The ollama library expects bare model names
        self._ollama_model = model_id.removeprefix("ollama/")
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = AsyncClient(host=base_url, headers=headers)

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
        """Generate a completion using an Ollama model.

        Args:
            prompt: User prompt to send.
            system_prompt: Optional system instruction.
            temperature: Sampling temperature.
            max_tokens: Output token budget (mapped to num_predict).
            json_output: Request JSON-only output.
            max_retries: Retry attempts on failure.

        Returns:
            Response message content, fences stripped for JSON output.
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        options = {"temperature": temperature}
        if max_tokens is not None:
            options["num_predict"] = max_tokens

        @retry(
            stop=stop_after_attempt(max_retries),
            wait=wait_exponential(multiplier=1, min=2, max=30),
            retry=retry_if_exception_type(Exception),
            reraise=True,
        )
        async def _call() -> Optional[str]:
            response = await self._client.chat(
                model=self._ollama_model,
                messages=messages,
                format="json" if json_output else None,
                options=options,
                stream=False,
            )

            raw = response.message.content
            if raw and json_output:
                raw = _strip_code_fences(raw)
            return raw

        logger.debug(
            "Ollama request model=%s json=%s max_tokens=%s",
            self._ollama_model,
            json_output,
            max_tokens,
        )
        return await _call()
