"""Write embedded listings to a Pinecone index."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pinecone import Pinecone

from property_chat.errors import ConfigurationError, UpsertError

from .config import VectorStoreConfig

logger = logging.getLogger(__name__)


class VectorStoreWriter:
    """Upsert ``{id, values, metadata}`` records into a named index.

    The Pinecone connection is opened on first use.  Pass ``index`` (any
    object exposing ``upsert(vectors=..., namespace=...)``) to skip that.
    """

    def __init__(self, config: Optional[VectorStoreConfig] = None, *, index: Any = None) -> None:
        self.config = config or VectorStoreConfig()
        self._index = index

    def ensure_configured(self) -> None:
        if self._index is None and not self.config.api_key:
            raise ConfigurationError("PINECONE_API_KEY is not set")

    @property
    def index(self) -> Any:
        if self._index is None:
            self.ensure_configured()
            logger.info("Connecting to Pinecone index %s", self.config.index_name)
            self._index = Pinecone(api_key=self.config.api_key).Index(self.config.index_name)
        return self._index

    def upsert(self, records: List[Dict[str, Any]]) -> int:
        """Submit ``records`` as a single upsert call and return the count written."""
        if not records:
            return 0
        logger.info(
            "Upserting %d vector(s) into %s (namespace=%r)",
            len(records),
            self.config.index_name,
            self.config.namespace,
        )
        try:
            response = self.index.upsert(vectors=records, namespace=self.config.namespace)
        except ConfigurationError:
            raise
        except Exception as exc:
            raise UpsertError(f"Upsert of {len(records)} vector(s) failed: {exc}") from exc

        if isinstance(response, dict):
            count = response.get("upserted_count")
        else:
            count = getattr(response, "upserted_count", None)
        return int(count) if count is not None else len(records)
