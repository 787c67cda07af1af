"""Batch ingestion of property listings into a vector index."""

from .config import IngestionConfig, VectorStoreConfig
from .pipeline import IngestionPipeline, IngestionSummary
from .vector_store import VectorStoreWriter

__all__ = ["IngestionConfig", "VectorStoreConfig", "IngestionPipeline", "IngestionSummary", "VectorStoreWriter"]
