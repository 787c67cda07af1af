"""Configuration objects for the listing ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from property_chat.config import ChatLLMConfig, ListingsConfig, _env


@dataclass
class VectorStoreConfig:
    """Pinecone index the embedded listings are written to."""

    index_name: str = "properties"
    namespace: str = ""
    api_key: Optional[str] = field(default_factory=lambda: _env("PINECONE_API_KEY"))


@dataclass
class IngestionConfig:
    """Runtime controls for one ingestion run."""

    llm: ChatLLMConfig = field(default_factory=ChatLLMConfig)
    listings: ListingsConfig = field(default_factory=ListingsConfig)
    vector_store: VectorStoreConfig = field(default_factory=VectorStoreConfig)
    page: int = 1
    batch_size: int = 5
    batch_delay_seconds: float = 2.0
    max_images_per_property: int = 3
    image_mime_types: Tuple[str, ...] = ("image/jpeg", "image/png", "image/webp", "image/gif")
    image_delay_seconds: float = 0.5
    caption_attempts: int = 3
    caption_retry_step_seconds: float = 1.0
    caption_max_tokens: int = 150
    vision_model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
