"""
Tests for listing text synthesis and metadata flattening.
"""

import pytest

from property_chat.prompts import CAPTION_UNAVAILABLE
from property_ingest.records import (
    build_metadata,
    build_property_text,
    feature_names,
    location_text,
    partition,
    property_id,
    select_images,
    summarize,
)

MIME_TYPES = ("image/jpeg", "image/png", "image/webp")


def _full_record():
    return {
        "id": 42,
        "reference": "TS-042",
        "title": "Sea view apartment",
        "property_type": "apartment",
        "operation": "sale",
        "address": {"street": "Rua Nova 5", "city": "Lagos", "province": "Faro", "country": "Portugal"},
        "price": {"amount": 325000, "currency": "EUR"},
        "rooms": {"bedrooms": 2, "bathrooms": 1},
        "details": {"built_area": 85, "year_built": 2004, "energy_rating": "B"},
        "features": {"pool": True, "sea_view": True, "garage": False},
        "description": "Bright flat close to the beach.",
        "media_files": [
            {"url": "https://img/3.jpg", "mime_type": "image/jpeg", "sort_order": 3},
            {"url": "https://img/1.jpg", "mime_type": "image/jpeg", "sort_order": 1},
            {"url": "https://img/plan.pdf", "mime_type": "application/pdf", "sort_order": 0},
            {"url": "https://img/2.png", "mime_type": "image/png", "sort_order": 2},
            {"url": "https://img/4.webp", "mime_type": "image/webp", "sort_order": 4},
        ],
    }


def _assert_no_none(value):
    assert value is not None
    if isinstance(value, dict):
        for item in value.values():
            _assert_no_none(item)
    elif isinstance(value, list):
        for item in value:
            _assert_no_none(item)


class TestImageSelection:
    def test_sorted_filtered_and_capped(self):
        assert select_images(_full_record(), 3, MIME_TYPES) == [
            "https://img/1.jpg",
            "https://img/2.png",
            "https://img/3.jpg",
        ]

    def test_file_type_used_when_mime_missing(self):
        record = {"media_files": [{"url": "https://img/a", "file_type": "image"}, {"url": "https://doc", "file_type": "doc"}]}
        assert select_images(record, 3, MIME_TYPES) == ["https://img/a"]

    def test_entries_without_url_are_skipped(self):
        record = {"media_files": [{"mime_type": "image/jpeg"}, "junk", None]}
        assert select_images(record, 3, MIME_TYPES) == []

    def test_no_media(self):
        assert select_images({"id": 1, "media_files": None}, 3, MIME_TYPES) == []


class TestPropertyText:
    def test_full_record_lines(self):
        record = _full_record()
        record["image_captions"] = ["Living room with balcony.", CAPTION_UNAVAILABLE]

        text = build_property_text(record)

        assert text.splitlines()[0] == "Property ID: 42"
        assert "Location: Rua Nova 5, Lagos, Faro, Portugal" in text
        assert "Price: 325000 EUR" in text
        assert "Bedrooms: 2" in text
        assert "Built area: 85 m2" in text
        assert "Features: pool, sea view" in text
        assert "Images: Living room with balcony." in text
        assert CAPTION_UNAVAILABLE not in text

    def test_minimal_record_keeps_identity_and_location(self):
        text = build_property_text({"id": "p-1", "address": {"city": "Porto"}})
        assert text == "Property ID: p-1\nLocation: Porto"

    def test_same_record_same_text(self):
        assert build_property_text(_full_record()) == build_property_text(_full_record())

    def test_missing_id_rejected(self):
        with pytest.raises(ValueError):
            property_id({"title": "No id"})

    def test_string_address_and_feature_list(self):
        record = {"id": 1, "address": " Main Street ", "features": ["lift", "", None]}
        assert location_text(record) == "Main Street"
        assert feature_names(record) == ["lift"]


class TestMetadata:
    def test_minimal_record_has_no_none(self):
        metadata = build_metadata({"id": 7, "price": None, "rooms": None, "features": None})

        _assert_no_none(metadata)
        assert metadata["property_id"] == "7"
        assert metadata["price"] == 0.0
        assert metadata["bedrooms"] == 0
        assert metadata["features"] == []
        assert metadata["city"] == ""

    def test_full_record_values(self):
        record = _full_record()
        record["image_captions"] = [CAPTION_UNAVAILABLE]
        metadata = build_metadata(record)

        _assert_no_none(metadata)
        assert metadata["price"] == 325000.0
        assert metadata["currency"] == "EUR"
        assert metadata["city"] == "Lagos"
        assert metadata["postal_code"] == ""
        assert metadata["image_captions"] == [CAPTION_UNAVAILABLE]

    def test_bad_numbers_fall_back(self):
        metadata = build_metadata({"id": 1, "rooms": {"bedrooms": "many"}, "details": {"plot_area": "n/a"}})
        assert metadata["bedrooms"] == 0
        assert metadata["plot_area"] == 0.0

    def test_non_finite_numbers_fall_back(self):
        record = {
            "id": 1,
            "price": {"amount": "1e400"},
            "rooms": {"bedrooms": "inf", "bathrooms": float("nan")},
            "details": {"built_area": float("nan"), "year_built": 1e400},
        }
        metadata = build_metadata(record)

        assert metadata["price"] == 0.0
        assert metadata["bedrooms"] == 0
        assert metadata["bathrooms"] == 0
        assert metadata["built_area"] == 0.0
        assert metadata["year_built"] == 0

    def test_long_description_truncated(self):
        metadata = build_metadata({"id": 1, "description": "x" * 5000})
        assert len(metadata["description"]) == 1000

    def test_summary_has_no_vector(self):
        record = {"id": 3, "embedding": [0.1], "embedding_text": "Property ID: 3"}
        view = summarize(record)

        assert "embedding" not in view
        assert view["text"] == "Property ID: 3"


class TestPartition:
    def test_twelve_by_five(self):
        assert [len(batch) for batch in partition(list(range(12)), 5)] == [5, 5, 2]

    def test_empty(self):
        assert list(partition([], 5)) == []

    def test_rejects_zero_size(self):
        with pytest.raises(ValueError):
            list(partition([1], 0))
