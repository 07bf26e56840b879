"""
Tests for the text-generation clients.
"""

import pytest
import requests
from unittest.mock import Mock, patch

from core.errors import ProviderError, ValidationError
from llm.llm_client import (
    AnthropicClient,
    GenerationOptions,
    OllamaClient,
    create_llm_client,
    extract_json_object,
)


def response(status_code=200, payload=None):
    mock_response = Mock()
    mock_response.status_code = status_code
    mock_response.ok = status_code < 400
    mock_response.json.return_value = payload or {}
    mock_response.text = str(payload)
    return mock_response


@pytest.fixture
def anthropic_client():
    return AnthropicClient(api_key="test_key", model_name="claude-test", timeout=5)


@patch("llm.llm_client.requests.post")
def test_anthropic_generate(mock_post, anthropic_client):
    mock_post.return_value = response(
        payload={"content": [{"type": "text", "text": " Hello "}, {"type": "tool_use"}]}
    )

    text = anthropic_client.generate("Hi", GenerationOptions(temperature=0.2, max_tokens=50, system_prompt="Be brief"))

    assert text == "Hello"
    url = mock_post.call_args[0][0]
    kwargs = mock_post.call_args[1]
    assert url == AnthropicClient.API_URL
    assert kwargs["json"]["system"] == "Be brief"
    assert kwargs["json"]["max_tokens"] == 50
    assert kwargs["headers"]["x-api-key"] == "test_key"
    assert kwargs["timeout"] == 5


@patch("llm.llm_client.requests.post")
def test_anthropic_error_response(mock_post, anthropic_client):
    mock_post.return_value = response(
        status_code=429, payload={"error": {"type": "rate_limit_error", "message": "slow down"}}
    )

    with pytest.raises(ProviderError) as exc_info:
        anthropic_client.generate("Hi")

    assert exc_info.value.status_code == 429
    assert exc_info.value.provider == "anthropic"
    assert "rate_limit_error" in str(exc_info.value)


@patch("llm.llm_client.requests.post")
def test_timeout_becomes_provider_error(mock_post, anthropic_client):
    mock_post.side_effect = requests.exceptions.Timeout("read timed out")

    with pytest.raises(ProviderError, match="timed out"):
        anthropic_client.generate("Hi")
    assert mock_post.call_count == 1


@patch("llm.llm_client.requests.post")
def test_ollama_generate(mock_post):
    mock_post.return_value = response(payload={"response": "  done  "})
    client = OllamaClient(model_name="llama3:8b", base_url="http://localhost:11434/")

    assert client.generate("Hi") == "done"
    assert mock_post.call_args[0][0] == "http://localhost:11434/api/generate"
    assert "system" not in mock_post.call_args[1]["json"]


def test_anthropic_requires_key():
    with pytest.raises(ValueError):
        AnthropicClient(api_key="")


def test_factory():
    assert isinstance(create_llm_client({"provider": "ollama"}), OllamaClient)
    assert isinstance(create_llm_client({"provider": "anthropic", "api_key": "k"}), AnthropicClient)
    with pytest.raises(ValueError):
        create_llm_client({"provider": "unknown"})


def test_extract_json_object():
    assert extract_json_object('Sure! {"a": 1, "b": {"c": 2}} Hope that helps') == {"a": 1, "b": {"c": 2}}
    with pytest.raises(ValidationError):
        extract_json_object("no braces")
    with pytest.raises(ValidationError):
        extract_json_object("{not: valid}")
