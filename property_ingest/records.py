"""Turn raw listing records into embedding text and vector-store metadata.

Listings arrive with a loosely specified schema: nested ``address``,
``price``, ``rooms``, ``details`` and ``features`` objects plus a list of
``media_files``.  Any of them may be missing, ``null`` or of the wrong type,
so every accessor here tolerates absence and the metadata builder always
falls back to an explicit default.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from property_chat.prompts import CAPTION_UNAVAILABLE

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ("street", "city", "province", "postal_code", "country")
DESCRIPTION_METADATA_LIMIT = 1000
TEXT_METADATA_LIMIT = 4000


def _section(record: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = record.get(key)
    return value if isinstance(value, Mapping) else {}


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, dict)):
        return bool(value)
    return True


def _as_str(value: Any, default: str = "") -> str:
    if not _present(value):
        return default
    if isinstance(value, Mapping):
        value = value.get("name") or value.get("label") or default
    return str(value).strip()


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return number if math.isfinite(number) else default


def property_id(record: Mapping[str, Any]) -> str:
    value = record.get("id")
    if not _present(value):
        raise ValueError("Property record has no id")
    return str(value)


def select_images(
    record: Mapping[str, Any],
    max_images: int,
    mime_types: Sequence[str],
) -> List[str]:
    """Return up to ``max_images`` image URLs ordered by ``sort_order``."""
    files = record.get("media_files") or []
    images = []
    for position, item in enumerate(files):
        if not isinstance(item, Mapping) or not _present(item.get("url")):
            continue
        mime_type = str(item.get("mime_type") or "").lower()
        file_type = str(item.get("file_type") or "").lower()
        supported = mime_type in mime_types if mime_type else file_type == "image"
        if not supported:
            continue
        images.append((_as_int(item.get("sort_order"), position), position, str(item["url"])))
    images.sort()
    return [url for _, _, url in images[:max_images]]


def location_text(record: Mapping[str, Any]) -> str:
    address = record.get("address")
    if isinstance(address, str):
        return address.strip()
    address = _section(record, "address")
    return ", ".join(_as_str(address.get(key)) for key in ADDRESS_FIELDS if _present(address.get(key)))


def feature_names(record: Mapping[str, Any]) -> List[str]:
    features = record.get("features")
    if isinstance(features, Mapping):
        return [str(name).replace("_", " ") for name, enabled in features.items() if enabled is True]
    if isinstance(features, (list, tuple)):
        return [_as_str(item) for item in features if _present(item)]
    return []


def _captions(record: Mapping[str, Any]) -> List[str]:
    return [c for c in record.get("image_captions") or [] if _present(c) and c != CAPTION_UNAVAILABLE]


def build_property_text(record: Mapping[str, Any]) -> str:
    """Concatenate the descriptive fields of a listing into one text blob.

    Only fields that are present contribute a line, in a fixed order, so the
    same record always yields the same text.
    """
    lines: List[str] = [f"Property ID: {property_id(record)}"]

    def add(label: str, value: Any, suffix: str = "") -> None:
        if _present(value):
            lines.append(f"{label}: {_as_str(value)}{suffix}")

    add("Reference", record.get("reference"))
    add("Title", record.get("title"))
    add("Property type", record.get("property_type"))
    add("Operation", record.get("operation"))
    add("Location", location_text(record))

    price = _section(record, "price")
    if _present(price.get("amount")):
        currency = _as_str(price.get("currency"))
        lines.append(f"Price: {_as_str(price.get('amount'))}{' ' + currency if currency else ''}")

    rooms = _section(record, "rooms")
    add("Bedrooms", rooms.get("bedrooms"))
    add("Bathrooms", rooms.get("bathrooms"))
    add("Total rooms", rooms.get("total"))

    details = _section(record, "details")
    add("Built area", details.get("built_area"), " m2")
    add("Plot area", details.get("plot_area"), " m2")
    add("Year built", details.get("year_built"))
    add("Floor", details.get("floor"))
    add("Condition", details.get("condition"))
    add("Energy rating", details.get("energy_rating"))

    features = feature_names(record)
    if features:
        lines.append("Features: " + ", ".join(features))

    add("Description", record.get("description"))

    captions = _captions(record)
    if captions:
        lines.append("Images: " + " | ".join(captions))

    return "\n".join(lines)


def build_metadata(record: Mapping[str, Any]) -> Dict[str, Any]:
    """Flatten a listing into primitive metadata with no ``None`` values."""
    address = _section(record, "address")
    price = _section(record, "price")
    rooms = _section(record, "rooms")
    details = _section(record, "details")
    description = _as_str(record.get("description"))
    text = _as_str(record.get("embedding_text"))

    metadata: Dict[str, Any] = {
        "property_id": property_id(record),
        "reference": _as_str(record.get("reference")),
        "title": _as_str(record.get("title")),
        "property_type": _as_str(record.get("property_type")),
        "operation": _as_str(record.get("operation")),
        "location": location_text(record),
        "price": _as_float(price.get("amount")),
        "currency": _as_str(price.get("currency")),
        "bedrooms": _as_int(rooms.get("bedrooms")),
        "bathrooms": _as_int(rooms.get("bathrooms")),
        "total_rooms": _as_int(rooms.get("total")),
        "built_area": _as_float(details.get("built_area")),
        "plot_area": _as_float(details.get("plot_area")),
        "year_built": _as_int(details.get("year_built")),
        "floor": _as_str(details.get("floor")),
        "condition": _as_str(details.get("condition")),
        "energy_rating": _as_str(details.get("energy_rating")),
        "features": feature_names(record),
        "image_captions": [str(c) for c in record.get("image_captions") or []],
        "description": description[:DESCRIPTION_METADATA_LIMIT],
        "text": text[:TEXT_METADATA_LIMIT],
    }
    if not isinstance(record.get("address"), str):
        metadata.update({key: _as_str(address.get(key)) for key in ADDRESS_FIELDS})
    else:
        metadata.update({key: "" for key in ADDRESS_FIELDS})
    return metadata


def partition(items: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    """Yield consecutive slices of ``items`` of at most ``size`` elements."""
    if size <= 0:
        raise ValueError("batch size must be positive")
    for start in range(0, len(items), size):
        yield items[start : start + size]


def summarize(record: Mapping[str, Any], metadata: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Caller-facing view of a processed record (no vector)."""
    return {
        "id": property_id(record),
        "text": record.get("embedding_text", ""),
        "image_captions": list(record.get("image_captions") or []),
        "metadata": dict(metadata) if metadata is not None else build_metadata(record),
    }
