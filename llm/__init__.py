"""
LLM client and prompt management.
"""

from .llm_client import (
    AnthropicClient,
    GenerationOptions,
    LLMClient,
    OllamaClient,
    create_llm_client,
    extract_json_object,
)
from .prompts import PromptTemplates

__all__ = [
    "AnthropicClient",
    "GenerationOptions",
    "LLMClient",
    "OllamaClient",
    "create_llm_client",
    "extract_json_object",
    "PromptTemplates",
]
