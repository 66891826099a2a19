"""LLM provider abstraction layer.

Provides a unified async text-completion interface across multiple LLM
providers (OpenAI, Vertex AI, Ollama).

Usage:
    from vidcontinuity.services.llm import get_adapter, LLMAdapter

    adapter = get_adapter("gpt-4o-mini")
    text = await adapter.generate_text(prompt, system_prompt=system, json_output=True)

    adapter = get_adapter("ollama/llama3.1")
    text = await adapter.generate_text(prompt, temperature=0.5)
"""

from vidcontinuity.services.llm.base import LLMAdapter
from vidcontinuity.services.llm.registry import get_adapter

__all__ = ["LLMAdapter", "get_adapter"]
