"""
Text-generation clients.
Supports: Anthropic Messages API, Ollama (local).
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from core.errors import ProviderError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationOptions:
    """Per-call sampling options."""

    temperature: float = 0.7
    max_tokens: int = 1024
    system_prompt: Optional[str] = None


class LLMClient(ABC):
    """Abstract base class for text-generation clients."""

    provider = "llm"

    @abstractmethod
    def generate(self, prompt: str, options: Optional[GenerationOptions] = None) -> str:
        """Generate text from a prompt.

        Raises:
            ProviderError: on transport/auth failure or a non-success response
        """

    def _post(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None):
        try:
            response = requests.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.error(f"[{type(self).__name__}] Timeout after {self.timeout}s")
            raise ProviderError(f"Request timed out: {e}", provider=self.provider) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"[{type(self).__name__}] Request error: {e}")
            raise ProviderError(str(e), provider=self.provider) from e

        if not response.ok:
            raise ProviderError(
                _error_message(response), provider=self.provider, status_code=response.status_code
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError("Response was not JSON", provider=self.provider) from e


def _error_message(response) -> str:
    try:
        error = response.json().get("error", {})
    except ValueError:
        return response.text[:200] or "Unknown error"
    if isinstance(error, dict):
        return f"{error.get('type', 'unknown_error')} - {error.get('message', 'Unknown error')}"
    return str(error)


class AnthropicClient(LLMClient):
    """Client for the Anthropic Messages API."""

    provider = "anthropic"
    API_URL = "https://api.anthropic.com/v1/messages"
    API_VERSION = "2023-06-01"
    DEFAULT_SYSTEM_PROMPT = (
        "You are a professional cover letter writer with expertise in "
        "crafting compelling job applications."
    )

    def __init__(
        self,
        api_key: str,
        model_name: str = "claude-3-5-sonnet-latest",
        base_url: Optional[str] = None,
        timeout: int = 60,
    ):
        """Initialize Anthropic client.

        Args:
            api_key: Anthropic API key
            model_name: Model identifier
            base_url: Override for the messages endpoint
            timeout: Request timeout in seconds
        """
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY is not configured")
        self.api_key = api_key
        self.model_name = model_name
        self.api_url = base_url or self.API_URL
        self.timeout = timeout

        logger.info(f"[AnthropicClient] Initialized with model={self.model_name}")

    def generate(self, prompt: str, options: Optional[GenerationOptions] = None) -> str:
        options = options or GenerationOptions()
        payload = {
            "model": self.model_name,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
            "system": options.system_prompt or self.DEFAULT_SYSTEM_PROMPT,
        }
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": self.API_VERSION,
            "content-type": "application/json",
        }

        data = self._post(self.api_url, payload, headers)
        content = data.get("content") or []
        text = "".join(block.get("text", "") for block in content if block.get("type") == "text")
        return text.strip()


class OllamaClient(LLMClient):
    """Ollama client for local LLM inference."""

    provider = "ollama"

    def __init__(
        self,
        model_name: str = "llama3:8b",
        base_url: str = "http://localhost:11434",
        timeout: int = 120,
    ):
        """Initialize Ollama client.

        Args:
            model_name: Name of the model (e.g., "llama3:8b")
            base_url: Ollama API base URL
            timeout: Request timeout in seconds
        """
        self.model_name = model_name
        self.base_url = base_url.rstrip("/")
        self.api_url = f"{self.base_url}/api/generate"
        self.timeout = timeout

        logger.info(f"[OllamaClient] Initialized with model={self.model_name}")

    def generate(self, prompt: str, options: Optional[GenerationOptions] = None) -> str:
        options = options or GenerationOptions()
        payload = {
            "model": self.model_name,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": options.temperature,
                "num_predict": options.max_tokens,
            },
        }
        if options.system_prompt:
            payload["system"] = options.system_prompt

        data = self._post(self.api_url, payload)
        return (data.get("response") or "").strip()


def create_llm_client(config: Dict[str, Any]) -> LLMClient:
    """Factory function to create LLM client based on configuration.

    Args:
        config: LLM configuration dictionary (see Config.get_llm_config)

    Returns:
        LLMClient instance
    """
    provider = (config.get("provider") or "anthropic").lower()

    if provider == "anthropic":
        return AnthropicClient(
            api_key=config.get("api_key"),
            model_name=config.get("model_name") or "claude-3-5-sonnet-latest",
            base_url=config.get("base_url"),
            timeout=int(config.get("timeout", 60)),
        )
    elif provider == "ollama":
        return OllamaClient(
            model_name=config.get("model_name") or "llama3:8b",
            base_url=config.get("base_url") or "http://localhost:11434",
            timeout=int(config.get("timeout", 120)),
        )
    else:
        raise ValueError(f"Unsupported LLM provider: {provider}")


def extract_json_object(text: str) -> Dict[str, Any]:
    """Parse the first JSON object embedded in generated text.

    Raises:
        ValidationError: if no JSON object can be parsed
    """
    text = (text or "").strip()
    start_idx = text.find("{")
    end_idx = text.rfind("}") + 1
    if start_idx == -1 or end_idx <= start_idx:
        raise ValidationError(f"No JSON object in response: {text[:100]!r}")

    try:
        data = json.loads(text[start_idx:end_idx])
    except json.JSONDecodeError as e:
        logger.debug(f"[LLMClient] Unparsable response: {text[:200]}")
        raise ValidationError(f"Invalid JSON in response: {e}") from e

    if not isinstance(data, dict):
        raise ValidationError("Response JSON is not an object")
    return data
