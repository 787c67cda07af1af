"""Configuration objects for the property chat module."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from .prompts import SYSTEM_PROMPT


def _env(name: str) -> Optional[str]:
    value = os.getenv(name)
    return value.strip() if value and value.strip() else None


@dataclass
class ChatLLMConfig:
    """LLM connection details."""

    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o"
    api_key: Optional[str] = field(default_factory=lambda: _env("OPENAI_API_KEY"))
    max_tokens: int = 1000
    temperature: float = 0.7
    request_timeout: int = 60

    @property
    def chat_endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"

    @property
    def embeddings_endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/embeddings"


@dataclass
class ListingsConfig:
    """Where and how to read property listings."""

    endpoint: str = "https://api.tesoro.estate/property/property-website/filter-properties"
    api_key: Optional[str] = field(default_factory=lambda: _env("LISTINGS_API_KEY"))
    page_size: int = 50
    sort: str = "-created_at"
    return_fields: str = "results,pagination,facets"
    request_timeout: int = 30


@dataclass
class ChatConfig:
    """Runtime controls for chat behaviour."""

    llm: ChatLLMConfig = field(default_factory=ChatLLMConfig)
    listings: ListingsConfig = field(default_factory=ListingsConfig)
    # Shared with ChatApiClient so both sides trim history identically.
    max_history_messages: int = 20
    system_prompt: str = SYSTEM_PROMPT
    model_kwargs: Dict[str, object] = field(default_factory=dict)
