"""
LLM Provider Abstraction.

Provides a unified interface for LLM calls that can be swapped between:
- AnthropicProvider: Real Claude API calls
- NullLLMProvider: Test stub for CI/CD without API keys

Provider errors are translated into Cookit errors here, so callers never
depend on the SDK's exception types.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, List, Any, Dict
import os
import logging

import anthropic

from cookit.errors import ExternalServiceError, RateLimitedError

logger = logging.getLogger(__name__)


@dataclass
class MockTextBlock:
    """Minimal text block for NullLLM responses."""
    text: str
    type: str = "text"


@dataclass
class MockResponse:
    """Minimal response structure matching the Anthropic Messages API."""
    content: List[Any]
    model: str = "null-llm"


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    def create_message(
        self,
        model: str,
        max_tokens: int,
        messages: List[Dict[str, Any]],
        system: Optional[str] = None,
        **kwargs
    ) -> Any:
        """Create a message/completion request."""
        pass

    @property
    @abstractmethod
    def is_null(self) -> bool:
        """Return True if this is a null/mock provider."""
        pass


class AnthropicProvider(LLMProvider):
    """Real Anthropic Claude API provider."""

    def __init__(self, api_key: Optional[str] = None, timeout: float = 60.0):
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not self.api_key:
            raise ValueError("ANTHROPIC_API_KEY required for AnthropicProvider")
        # Single-shot calls: the curator falls back instead of retrying
        self.client = anthropic.Anthropic(api_key=self.api_key, timeout=timeout, max_retries=0)

    def create_message(
        self,
        model: str,
        max_tokens: int,
        messages: List[Dict[str, Any]],
        system: Optional[str] = None,
        **kwargs
    ) -> Any:
        params = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": messages,
        }
        if system:
            params["system"] = system
        params.update(kwargs)

        try:
            return self.client.messages.create(**params)
        except anthropic.RateLimitError as e:
            logger.warning(f"Anthropic rate limit hit: {e}")
            raise RateLimitedError(f"Anthropic rate limit: {e}") from e
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
            raise ExternalServiceError(f"Anthropic API error: {e}") from e

    @property
    def is_null(self) -> bool:
        return False


class NullLLMProvider(LLMProvider):
    """
    Offline provider used when no API key is configured.

    Every call answers with an empty selection list, which sends curation
    down its top-matches fallback.
    """

    def __init__(self):
        self.call_count = 0
        logger.info("NullLLMProvider initialized - LLM calls will return canned responses")

    def create_message(
        self,
        model: str,
        max_tokens: int,
        messages: List[Dict[str, Any]],
        system: Optional[str] = None,
        **kwargs
    ) -> MockResponse:
        self.call_count += 1

        logger.debug(f"NullLLM call #{self.call_count}: model={model}, messages={len(messages)}")

        # Empty selection list: the curator falls back to top matches
        return MockResponse(
            content=[MockTextBlock(text='{"selections": []}')],
            model="null-llm",
        )

    @property
    def is_null(self) -> bool:
        return True


def get_llm_provider(
    api_key: Optional[str] = None,
    use_null: bool = False
) -> LLMProvider:
    """
    Get an LLM provider instance.

    Args:
        api_key: Optional API key (uses env var if not provided)
        use_null: Force use of NullLLMProvider (for testing)

    Returns:
        LLMProvider instance

    Environment Variables:
        USE_NULL_LLM: Set to "true" to use NullLLMProvider
        ANTHROPIC_API_KEY: API key for AnthropicProvider
    """
    if use_null or os.environ.get("USE_NULL_LLM", "").lower() == "true":
        return NullLLMProvider()

    # Try to create real provider, fall back to null if no API key
    api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
    if not api_key:
        logger.warning("No ANTHROPIC_API_KEY found, using NullLLMProvider")
        return NullLLMProvider()

    return AnthropicProvider(api_key=api_key)
