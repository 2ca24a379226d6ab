"""
Query Encoding

Serializes a record type, filters and sort descriptors into the query
document sent with ``records/query`` requests:

    {"recordType": ..., "filterBy": [...], "sortBy": [...]}

Filters are self-describing documents; turning a predicate into filters is
the job of an external predicate compiler passed to ``Query``.
Filter and sort order are preserved exactly as given.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Sequence, Union

from opencloudkit.core.models import JSONDocument, JSONValue, Location

logger = logging.getLogger(__name__)


class Comparator(str, Enum):
    """Filter comparators understood by the service."""
    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"
    LESS_THAN = "LESS_THAN"
    LESS_THAN_OR_EQUALS = "LESS_THAN_OR_EQUALS"
    GREATER_THAN = "GREATER_THAN"
    GREATER_THAN_OR_EQUALS = "GREATER_THAN_OR_EQUALS"
    NEAR = "NEAR"
    CONTAINS_ALL_TOKENS = "CONTAINS_ALL_TOKENS"
    IN = "IN"
    NOT_IN = "NOT_IN"
    CONTAINS_ANY_TOKENS = "CONTAINS_ANY_TOKENS"
    LIST_CONTAINS = "LIST_CONTAINS"
    NOT_LIST_CONTAINS = "NOT_LIST_CONTAINS"
    NOT_LIST_CONTAINS_ANY = "NOT_LIST_CONTAINS_ANY"
    BEGINS_WITH = "BEGINS_WITH"
    NOT_BEGINS_WITH = "NOT_BEGINS_WITH"
    LIST_MEMBER_BEGINS_WITH = "LIST_MEMBER_BEGINS_WITH"
    NOT_LIST_MEMBER_BEGINS_WITH = "NOT_LIST_MEMBER_BEGINS_WITH"
    LIST_CONTAINS_ALL = "LIST_CONTAINS_ALL"
    NOT_LIST_CONTAINS_ALL = "NOT_LIST_CONTAINS_ALL"


@dataclass(frozen=True)
class Filter:
    field_name: str
    comparator: Comparator
    value: Any = None

    def to_document(self) -> JSONDocument:
        value = self.value
        if isinstance(value, Location):
            value = value.to_field_document()
        return {
            "fieldName": self.field_name,
            "comparator": Comparator(self.comparator).value,
            "fieldValue": value,
        }


@dataclass(frozen=True)
class SortDescriptor:
    """Sort by a record field. Descriptors without a key have no wire form."""
    key: Optional[str]
    ascending: bool = True


@dataclass(frozen=True)
class LocationSortDescriptor(SortDescriptor):
    """Sort by distance from a location."""
    relative_location: Optional[Location] = None

    def __post_init__(self):
        if self.relative_location is None:
            raise ValueError("LocationSortDescriptor requires a relative_location")


FilterLike = Union[Filter, Mapping[str, JSONValue]]
PredicateCompiler = Callable[[Any], Sequence[FilterLike]]


def _filter_document(query_filter: FilterLike) -> JSONDocument:
    if isinstance(query_filter, Mapping):
        return dict(query_filter)
    return query_filter.to_document()


def _sort_document(descriptor: SortDescriptor) -> Optional[JSONDocument]:
    if not descriptor.key:
        return None
    document: JSONDocument = {
        "fieldName": descriptor.key,
        "ascending": bool(descriptor.ascending),
    }
    if isinstance(descriptor, LocationSortDescriptor):
        document["relativeLocation"] = descriptor.relative_location.to_field_document()
    return document


def encode_query(
    record_type: str,
    filters: Sequence[FilterLike] = (),
    sort_descriptors: Sequence[SortDescriptor] = (),
) -> JSONDocument:
    """
    Encode a query document.

    Args:
        record_type: Record type to query
        filters: Filters, as Filter objects or ready-made filter documents
        sort_descriptors: Sort descriptors in priority order

    Returns:
        Query document with recordType, filterBy and sortBy

    Example:
        >>> document = encode_query("Items", [Filter("status", Comparator.EQUALS, "active")],
        ...                         [SortDescriptor("name"), SortDescriptor(None)])
        >>> document["sortBy"]
        [{'fieldName': 'name', 'ascending': True}]
    """
    sort_by = []
    for descriptor in sort_descriptors:
        document = _sort_document(descriptor)
        if document is None:
            logger.debug(f"Dropping sort descriptor without a field name: {descriptor!r}")
            continue
        sort_by.append(document)

    return {
        "recordType": record_type,
        "filterBy": [_filter_document(query_filter) for query_filter in filters],
        "sortBy": sort_by,
    }


class Query:
    """
    A query over one record type.

    Filters are given directly, or compiled from a predicate by the
    supplied predicate compiler.
    """

    def __init__(
        self,
        record_type: str,
        filters: Optional[Sequence[FilterLike]] = None,
        predicate: Any = None,
        predicate_compiler: Optional[PredicateCompiler] = None,
        sort_descriptors: Optional[Sequence[SortDescriptor]] = None,
    ):
        if filters is not None and predicate is not None:
            raise ValueError("Pass either filters or a predicate, not both")
        if predicate is not None and predicate_compiler is None:
            raise ValueError("A predicate requires a predicate_compiler")

        self.record_type = record_type
        self.predicate = predicate
        if predicate is not None:
            self.filters: List[FilterLike] = list(predicate_compiler(predicate))
        else:
            self.filters = list(filters or [])
        self.sort_descriptors: List[SortDescriptor] = list(sort_descriptors or [])

    def to_document(self) -> JSONDocument:
        return encode_query(self.record_type, self.filters, self.sort_descriptors)

    def __repr__(self) -> str:
        return (
            f"Query(record_type={self.record_type!r}, filters={len(self.filters)}, "
            f"sort_descriptors={len(self.sort_descriptors)})"
        )
