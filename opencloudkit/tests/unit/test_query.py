"""
Unit tests for query encoding.
"""
import pytest

from opencloudkit.core.models import Location
from opencloudkit.core.query import (
    Comparator,
    Filter,
    LocationSortDescriptor,
    Query,
    SortDescriptor,
    encode_query,
)


class TestEncodeQuery:
    """Test encode_query."""

    def test_items_example(self):
        """Single filter and sort descriptor produce the exact document."""
        document = encode_query(
            "Items",
            [Filter("status", Comparator.EQUALS, "active")],
            [SortDescriptor("name", ascending=True)],
        )

        assert document == {
            "recordType": "Items",
            "filterBy": [{"fieldName": "status", "comparator": "EQUALS", "fieldValue": "active"}],
            "sortBy": [{"fieldName": "name", "ascending": True}],
        }

    def test_filter_order_is_preserved(self):
        filters = [Filter(f"field{i}", Comparator.GREATER_THAN, i) for i in range(7)]

        document = encode_query("Items", filters, [])

        assert len(document["filterBy"]) == 7
        assert [f["fieldName"] for f in document["filterBy"]] == [f"field{i}" for i in range(7)]

    def test_sort_order_is_preserved(self):
        descriptors = [
            SortDescriptor("priority", ascending=False),
            SortDescriptor("created"),
            SortDescriptor("name", ascending=False),
        ]

        document = encode_query("Items", [], descriptors)

        assert document["sortBy"] == [
            {"fieldName": "priority", "ascending": False},
            {"fieldName": "created", "ascending": True},
            {"fieldName": "name", "ascending": False},
        ]

    def test_sort_descriptors_without_key_are_dropped(self):
        """Empty and missing keys have no wire form and are skipped silently."""
        document = encode_query(
            "Items",
            [],
            [SortDescriptor(None), SortDescriptor("name"), SortDescriptor("")],
        )

        assert document["sortBy"] == [{"fieldName": "name", "ascending": True}]

    def test_location_sort_descriptor_includes_relative_location(self):
        location = Location(latitude=-33.86, longitude=151.21)

        document = encode_query("Stores", [], [LocationSortDescriptor("location", relative_location=location)])

        assert document["sortBy"] == [{
            "fieldName": "location",
            "ascending": True,
            "relativeLocation": {
                "value": {"latitude": -33.86, "longitude": 151.21},
                "type": "LOCATION",
            },
        }]

    def test_location_sort_descriptor_requires_location(self):
        with pytest.raises(ValueError):
            LocationSortDescriptor("location")

    def test_filter_documents_are_copied_verbatim(self):
        raw = {"fieldName": "tags", "comparator": "LIST_CONTAINS", "fieldValue": {"value": "x"}}

        document = encode_query("Items", [raw, Filter("a", Comparator.IN, [1, 2])], [])

        assert document["filterBy"][0] == raw
        assert document["filterBy"][1] == {"fieldName": "a", "comparator": "IN", "fieldValue": [1, 2]}

    def test_location_filter_value(self):
        near = Filter("location", Comparator.NEAR, Location(1.0, 2.0, horizontal_accuracy=5.0))

        assert near.to_document()["fieldValue"] == {
            "value": {"latitude": 1.0, "longitude": 2.0, "horizontalAccuracy": 5.0},
            "type": "LOCATION",
        }

    def test_empty_query(self):
        assert encode_query("Items") == {"recordType": "Items", "filterBy": [], "sortBy": []}


class TestQuery:
    """Test the Query holder."""

    def test_predicate_is_compiled(self):
        """Predicates are turned into filters by the supplied compiler."""
        calls = []

        def compile_predicate(predicate):
            calls.append(predicate)
            return [Filter("status", Comparator.EQUALS, "active")]

        query = Query("Items", predicate="status == 'active'", predicate_compiler=compile_predicate)

        assert calls == ["status == 'active'"]
        assert query.to_document()["filterBy"] == [
            {"fieldName": "status", "comparator": "EQUALS", "fieldValue": "active"}
        ]

    def test_predicate_without_compiler_is_rejected(self):
        with pytest.raises(ValueError):
            Query("Items", predicate="anything")

    def test_filters_and_predicate_are_exclusive(self):
        with pytest.raises(ValueError):
            Query("Items", filters=[], predicate="x", predicate_compiler=lambda p: [])

    def test_to_document_uses_sort_descriptors(self):
        query = Query("Items", sort_descriptors=[SortDescriptor("name", ascending=False)])

        assert query.to_document() == {
            "recordType": "Items",
            "filterBy": [],
            "sortBy": [{"fieldName": "name", "ascending": False}],
        }
