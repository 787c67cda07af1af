"""Client for the external property listings API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from .config import ListingsConfig
from .errors import ConfigurationError, ListingsError

logger = logging.getLogger(__name__)


class ListingsClient:
    """Fetch one page of listings with a fixed page size and sort order."""

    def __init__(self, config: ListingsConfig, session: Optional[requests.Session] = None) -> None:
        self.config = config
        self.session = session or requests.Session()

    def fetch_page(self, page: int = 1) -> Dict[str, Any]:
        """Return the raw JSON payload for ``page``.

        Any non-success status is a hard failure: there is no retry and no
        automatic pagination.
        """
        if not self.config.api_key:
            raise ConfigurationError("LISTINGS_API_KEY is not set")

        params = {
            "return": self.config.return_fields,
            "sort": self.config.sort,
            "per-page": str(self.config.page_size),
            "page": str(page),
        }
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "X-Api-Key": self.config.api_key,
        }
        logger.info("Fetching listings page %d (per-page=%d)", page, self.config.page_size)
        try:
            response = self.session.get(
                self.config.endpoint,
                params=params,
                headers=headers,
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as exc:
            logger.error("Listings request failed: %s", exc)
            raise ListingsError(f"Listings request failed: {exc}") from exc

        if not response.ok:
            logger.error("Listings API returned HTTP %d", response.status_code)
            raise ListingsError(f"Listings API returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ListingsError("Listings API returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise ListingsError("Listings API returned an unexpected payload")
        return payload


def extract_properties(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Pull the property list out of a listings payload."""
    for key in ("properties", "results"):
        items = payload.get(key)
        if isinstance(items, list):
            return [item for item in items if isinstance(item, dict)]
    return []
