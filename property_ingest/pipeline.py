"""Refresh the property vector index from the listings API.

One run fetches a single page of listings, then walks it in fixed-size
batches.  For each property it captions up to a few images with a vision
model, synthesises one descriptive text, embeds that text and finally
upserts the whole batch.  Everything is strictly sequential and paced:
a short pause between images, a longer one between batches.

Failure policy is per item.  A caption that keeps failing is replaced by a
sentinel string; an embedding failure drops that property only; an upsert
failure drops that batch only.  Fetching the page is the only stage whose
failure ends the run.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from property_chat.errors import CaptionError, EmbeddingError, UpsertError
from property_chat.listings import ListingsClient, extract_properties
from property_chat.llm_client import ChatLLMClient
from property_chat.prompts import CAPTION_PROMPT, CAPTION_UNAVAILABLE
from property_chat.retry import RetryPolicy, constant_backoff, linear_backoff

from .config import IngestionConfig
from .records import build_metadata, build_property_text, partition, property_id, select_images, summarize
from .vector_store import VectorStoreWriter

logger = logging.getLogger(__name__)


@dataclass
class IngestionSummary:
    total_found: int = 0
    processed: int = 0
    properties: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    batches: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "processed": self.processed,
            "total_found": self.total_found,
            "properties": self.properties,
            "failed": self.failed,
            "batches": self.batches,
        }


class IngestionPipeline:
    """Fetch, caption, synthesise, embed and upsert listings."""

    def __init__(
        self,
        llm: ChatLLMClient,
        listings: ListingsClient,
        store: VectorStoreWriter,
        config: Optional[IngestionConfig] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or IngestionConfig()
        self.llm = llm
        self.listings = listings
        self.store = store
        self.caption_policy = RetryPolicy(
            max_attempts=self.config.caption_attempts,
            backoff=linear_backoff(self.config.caption_retry_step_seconds),
            retryable=lambda exc: isinstance(exc, CaptionError),
            sleep=sleep,
        )
        self.image_pacing = RetryPolicy(
            max_attempts=1, backoff=constant_backoff(self.config.image_delay_seconds), sleep=sleep
        )
        self.batch_pacing = RetryPolicy(
            max_attempts=1, backoff=constant_backoff(self.config.batch_delay_seconds), sleep=sleep
        )

    def run(self) -> IngestionSummary:
        """Run one full ingestion and return what was written."""
        self.llm.ensure_configured()
        self.store.ensure_configured()
        started = time.perf_counter()

        payload = self.listings.fetch_page(self.config.page)
        properties = extract_properties(payload)
        logger.info("Found %d properties on page %d", len(properties), self.config.page)

        summary = self.ingest(properties)
        logger.info(
            "Ingestion finished in %.1f seconds: %d/%d processed, %d failed",
            time.perf_counter() - started,
            summary.processed,
            summary.total_found,
            len(summary.failed),
        )
        return summary

    def ingest(self, properties: List[Dict[str, Any]]) -> IngestionSummary:
        """Process ``properties`` in sequential batches with pacing between them."""
        summary = IngestionSummary(total_found=len(properties))
        for batch_index, batch in enumerate(partition(properties, self.config.batch_size)):
            if batch_index:
                self.batch_pacing.pause()
            summary.batches += 1
            self._process_batch(batch_index, list(batch), summary)
        return summary

    def caption_image(self, image_url: str, prop_id: str = "") -> str:
        """Describe one image, falling back to the sentinel caption."""

        def attempt() -> str:
            try:
                caption = self.llm.describe_image(
                    image_url,
                    CAPTION_PROMPT,
                    model=self.config.vision_model,
                    max_tokens=self.config.caption_max_tokens,
                )
            except Exception as exc:
                raise CaptionError(str(exc)) from exc
            if not caption:
                raise CaptionError("Vision model returned an empty caption")
            return caption

        try:
            return self.caption_policy.call(attempt)
        except CaptionError as exc:
            logger.warning(
                "Captioning failed for property %s image %s after %d attempt(s): %s",
                prop_id,
                image_url,
                self.config.caption_attempts,
                exc,
            )
            return CAPTION_UNAVAILABLE

    def caption_property(self, record: Dict[str, Any]) -> List[str]:
        prop_id = property_id(record)
        images = select_images(record, self.config.max_images_per_property, self.config.image_mime_types)
        captions: List[str] = []
        for position, url in enumerate(images):
            if position:
                self.image_pacing.pause()
            captions.append(self.caption_image(url, prop_id))
        record["image_captions"] = captions
        logger.debug("Captioned %d image(s) for property %s", len(captions), prop_id)
        return captions

    def embed_property(self, record: Dict[str, Any]) -> List[float]:
        """Embed the synthesised text; failures propagate to the caller."""
        text = build_property_text(record)
        record["embedding_text"] = text
        vector = self.llm.embed([text], model=self.config.embedding_model)[0]
        record["embedding"] = vector
        return vector

    def process_property(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Enrich one listing in place and return its vector-store record."""
        self.caption_property(record)
        vector = self.embed_property(record)
        return {"id": property_id(record), "values": vector, "metadata": build_metadata(record)}

    def _process_batch(self, batch_index: int, batch: List[Dict[str, Any]], summary: IngestionSummary) -> None:
        logger.info("Processing batch %d (%d properties)", batch_index, len(batch))
        vectors: List[Dict[str, Any]] = []
        done: List[Dict[str, Any]] = []

        for record in batch:
            label = record.get("id", "<missing id>")
            try:
                vectors.append(self.process_property(record))
                done.append(record)
            except EmbeddingError as exc:
                logger.error("Embedding failed for property %s in batch %d: %s", label, batch_index, exc)
                summary.failed.append(str(label))
            except Exception:
                logger.exception("Skipping property %s in batch %d", label, batch_index)
                summary.failed.append(str(label))

        try:
            self.store.upsert(vectors)
        except UpsertError as exc:
            logger.error("Upsert failed for batch %d (%d vectors): %s", batch_index, len(vectors), exc)
            summary.failed.extend(vector["id"] for vector in vectors)
            for record in done:
                record.pop("embedding", None)
            return

        for record, vector in zip(done, vectors):
            summary.properties.append(summarize(record, vector["metadata"]))
            # Vectors are not kept once written.
            record.pop("embedding", None)
        summary.processed += len(done)
