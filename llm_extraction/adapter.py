"""LLM adapters used by the AI-assisted matching tier."""

import json
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from openai import OpenAI


class BaseLLMAdapter(ABC):
    """Turns one prompt into the model's raw text reply."""

    @abstractmethod
    def generate(self, prompt: str) -> str:
        """Return the raw reply; JSON is expected but not checked here."""


class OpenAILLMAdapter(BaseLLMAdapter):
    """Chat-completions adapter in JSON mode.

    Temperature 0 and a fixed seed keep repeated extraction of the same
    description stable, so re-running a chunk reproduces its matches.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        max_tokens: int = 300,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._client = OpenAI(
            api_key=api_key or os.environ.get("OPENAI_API_KEY", ""),
            base_url=base_url or None,
            timeout=timeout_seconds,
            max_retries=0,
        )
        self._model = model
        self._max_tokens = max_tokens

    def generate(self, prompt: str) -> str:
        response = self._client.chat.completions.create(
            model=self._model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0,
            max_tokens=self._max_tokens,
            response_format={"type": "json_object"},
            seed=42,
        )
        return response.choices[0].message.content or ""


_MOCK_ATTRIBUTES: Dict[str, Any] = {
    "brand": "HP",
    "product_type": "ink_cartridge",
    "model": "64",
    "color": "black",
    "size": "standard",
    "search_query": "HP 64 Black Ink",
}


class MockLLMAdapter(BaseLLMAdapter):
    """Offline adapter replying with fixed attributes; records every prompt."""

    def __init__(self, response: Optional[Dict[str, Any]] = None) -> None:
        self._reply = json.dumps(response or _MOCK_ATTRIBUTES)
        self.prompts: List[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self._reply


def create_llm_adapter(kind: str, **options: Any) -> BaseLLMAdapter:
    """Adapter by name: ``openai`` (options go to the constructor) or ``mock``."""
    normalized = kind.strip().lower()
    if normalized == "openai":
        return OpenAILLMAdapter(**options)
    if normalized == "mock":
        return MockLLMAdapter()
    raise ValueError(f"Unknown LLM adapter {kind!r}; expected 'openai' or 'mock'.")
