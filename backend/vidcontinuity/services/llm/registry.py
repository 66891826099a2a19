"""Provider registry for LLM adapters.

Routes model IDs to the correct adapter implementation based on the model
ID prefix. Supports Ollama (ollama/ prefix), Vertex AI (gemini- prefix)
and the OpenAI API (everything else).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from vidcontinuity.services.llm.base import LLMAdapter

if TYPE_CHECKING:
    from vidcontinuity.config import LLMConfig

logger = logging.getLogger(__name__)


def _is_ollama_model(model_id: str) -> bool:
    """Return True if the model ID uses the ollama/ prefix."""
    return model_id.startswith("ollama/")


def _is_gemini_model(model_id: str) -> bool:
    """Return True if the model ID uses the gemini- prefix."""
    return model_id.startswith("gemini-")


def get_adapter(
    model_id: str,
    llm_config: Optional["LLMConfig"] = None,
) -> LLMAdapter:
    """Return the appropriate LLM adapter for the given model ID.

    Routing logic:
    - "ollama/*"  → OllamaAdapter (llm_config.ollama_endpoint)
    - "gemini-*"  → VertexAIAdapter
    - anything else → OpenAIAdapter (fallback)

    Args:
        model_id: Model identifier string (e.g., "gpt-4o-mini",
                  "ollama/llama3.1", "gemini-2.5-flash").
        llm_config: Provider credentials; defaults to settings.llm.

    Returns:
        Configured LLMAdapter instance ready for use.
    """
    if llm_config is None:
        from vidcontinuity.config import settings

        llm_config = settings.llm

    if _is_ollama_model(model_id):
        from vidcontinuity.services.llm.ollama_adapter import OllamaAdapter

        logger.debug(
            "Routing %s to OllamaAdapter (base_url=%s, has_key=%s)",
            model_id,
            llm_config.ollama_endpoint,
            bool(llm_config.ollama_api_key),
        )
        return OllamaAdapter(
            model_id=model_id,
            base_url=llm_config.ollama_endpoint,
            api_key=llm_config.ollama_api_key,
        )

    if _is_gemini_model(model_id):
        from vidcontinuity.services.llm.vertex_adapter import VertexAIAdapter

        logger.debug("Routing %s to VertexAIAdapter", model_id)
        return VertexAIAdapter(model_id=model_id)

    # Default: OpenAI chat completions (handles gpt-* and compatible endpoints)
    from vidcontinuity.services.llm.openai_adapter import OpenAIAdapter

    logger.debug("Routing %s to OpenAIAdapter", model_id)
    return OpenAIAdapter(
        model_id=model_id,
        api_key=llm_config.openai_api_key,
        base_url=llm_config.openai_base_url,
    )
