"""
LLM Provider Abstraction.

Provides a unified interface for LLM calls that can be swapped between:
- AnthropicProvider: Real Claude API calls
- NullLLMProvider: Stub for runs without an API key
"""

from abc import ABC, abstractmethod
from typing import Optional, List
import logging

import anthropic

from .config import Settings, DEFAULT_MODEL
from .errors import AuthenticationError

logger = logging.getLogger(__name__)

JSON_SYSTEM_PROMPT = (
    "You are a meal-planning assistant. Reply with a single valid JSON value "
    "and nothing else: no prose, no markdown code fences."
)
TEXT_SYSTEM_PROMPT = "You are a meal-planning assistant. Reply briefly in plain text."


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def complete(self, prompt: str, json_mode: bool = False) -> str:
        """Send a single prompt and return the reply text."""
        pass

    @property
    @abstractmethod
    def is_null(self) -> bool:
        """Return True if this is a null/stub provider."""
        pass


class AnthropicProvider(LLMProvider):
    """Real Anthropic Claude API provider."""

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL, max_tokens: int = 4096):
        if not api_key:
            raise ValueError("API key required for AnthropicProvider")
        self.model = model
        self.max_tokens = max_tokens
        self.client = anthropic.AsyncAnthropic(api_key=api_key)

    async def complete(self, prompt: str, json_mode: bool = False) -> str:
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=JSON_SYSTEM_PROMPT if json_mode else TEXT_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            )
        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as e:
            raise AuthenticationError(str(e)) from e

        for block in response.content:
            if getattr(block, "type", None) == "text":
                return block.text
        return ""

    @property
    def is_null(self) -> bool:
        return False


class NullLLMProvider(LLMProvider):
    """
    NullLLMProvider is NOT a mock of Anthropic behavior.
    It exists to:
    - let the app start without an API key
    - verify control flow
    - assert call boundaries

    Do NOT make this "smart" or try to simulate real responses.
    """

    REPLY = "[NullLLM: No real LLM call made]"

    def __init__(self):
        self.call_count = 0
        self.prompts: List[str] = []
        logger.info("NullLLMProvider initialized - LLM calls will return canned responses")

    async def complete(self, prompt: str, json_mode: bool = False) -> str:
        self.call_count += 1
        self.prompts.append(prompt)
        logger.debug(f"NullLLM call #{self.call_count}: json_mode={json_mode}")
        return self.REPLY

    @property
    def is_null(self) -> bool:
        return True


def get_llm_provider(
    api_key: Optional[str],
    settings: Optional[Settings] = None,
    use_null: bool = False,
) -> LLMProvider:
    """
    Get an LLM provider instance for a user-supplied API key.

    Args:
        api_key: The household's API key
        settings: Runtime settings (model, token limit, USE_NULL_LLM)
        use_null: Force use of NullLLMProvider

    Returns:
        LLMProvider instance
    """
    settings = settings or Settings()
    if use_null or settings.use_null_llm:
        return NullLLMProvider()

    if not api_key:
        logger.warning("No API key supplied, using NullLLMProvider")
        return NullLLMProvider()

    return AnthropicProvider(api_key=api_key, model=settings.model, max_tokens=settings.max_tokens)

