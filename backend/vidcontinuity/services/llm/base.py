"""Abstract base class for LLM provider adapters.

Defines the consistent async interface that all adapters must implement:
a two-message (system + user) completion returning the raw text payload.
Parsing and validation of that payload is left to the caller.
"""

from abc import ABC, abstractmethod
from typing import Optional


class LLMAdapter(ABC):
    """Abstract base class for LLM provider adapters.

    All adapters implement generate_text() with the same async signature.
    Provider errors propagate to the caller once retries are exhausted.
    """

    @abstractmethod
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
        """Generate a completion for a prompt.

        Args:
            prompt: The user message to send to the model.
            system_prompt: Optional system/instruction message.
            temperature: Sampling temperature. Lower = more deterministic.
            max_tokens: Upper bound on generated tokens (None = provider default).
            json_output: Ask the provider to return a single JSON object.
            max_retries: Total attempts before the last error is re-raised.

        Returns:
            The text content of the response, or None if the provider
            returned no content.
        """
        ...
