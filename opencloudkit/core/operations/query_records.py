"""
Query Records Operation

Runs a query against one zone.

Request (POST {database}/records/query):
    {"zoneID": {...}, "query": {...}, "resultsLimit": n,
     "desiredKeys": [...], "continuationMarker": "..."}

Response:
    {"records": [...], "continuationMarker": "..."}

Per-record and completion callbacks follow the same partial-failure rules
as AssetReferenceOperation.
"""
import logging
from typing import Callable, List, Optional, Sequence

from opencloudkit.core.errors import MalformedResponseError
from opencloudkit.core.models import JSONDocument, Record, ZoneID
from opencloudkit.core.operations.base import DatabaseOperation
from opencloudkit.core.operations.rereference_assets import item_failure
from opencloudkit.core.query import Query

logger = logging.getLogger(__name__)


QUERY_ENDPOINT = "records/query"

RecordFetchedCallback = Callable[[Optional[Record], Optional[Exception]], None]
QueryCompletionCallback = Callable[[Optional[List[Record]], Optional[str], Optional[Exception]], None]


class QueryRecordsOperation(DatabaseOperation):
    """Fetch the records matching a query, one page per operation."""

    def __init__(
        self,
        query: Query,
        zone_id: Optional[ZoneID] = None,
        results_limit: Optional[int] = None,
        desired_keys: Optional[Sequence[str]] = None,
        continuation_marker: Optional[str] = None,
        database=None,
    ):
        super().__init__(database)
        if results_limit is not None and results_limit <= 0:
            raise ValueError("results_limit must be positive")
        self.query = query
        self.zone_id = zone_id or ZoneID()
        self.results_limit = results_limit
        self.desired_keys = list(desired_keys) if desired_keys is not None else None
        self.continuation_marker = continuation_marker

        self.records: Optional[List[Record]] = None
        self.next_continuation_marker: Optional[str] = None

        self.record_fetched_callback: Optional[RecordFetchedCallback] = None
        self.completion_callback: Optional[QueryCompletionCallback] = None

    def request_document(self) -> JSONDocument:
        document: JSONDocument = {
            "zoneID": self.zone_id.to_document(),
            "query": self.query.to_document(),
        }
        if self.results_limit is not None:
            document["resultsLimit"] = self.results_limit
        if self.desired_keys is not None:
            document["desiredKeys"] = self.desired_keys
        if self.continuation_marker:
            document["continuationMarker"] = self.continuation_marker
        return document

    async def perform_request(self) -> None:
        response = await self.send(QUERY_ENDPOINT, self.request_document())

        if self.is_cancelled:
            self.finish()
            return

        items = response.get("records")
        if not isinstance(items, list):
            raise MalformedResponseError("Query response has no 'records' array")

        records = []
        for index, item in enumerate(items):
            if self.is_cancelled:
                break

            record = None
            if not (isinstance(item, dict) and item.get("serverErrorCode")):
                record = Record.from_response(item, self.zone_id)

            if record is None:
                self._invoke(self.record_fetched_callback, None, item_failure(index, item, "record"))
                continue

            records.append(record)
            self._invoke(self.record_fetched_callback, record, None)

        marker = response.get("continuationMarker")
        self.next_continuation_marker = marker if isinstance(marker, str) else None
        self.records = records
        logger.debug(f"{self!r}: {len(records)} record(s) for {self.query!r}")
        self.finish()

    def finish_on_callback_context(self, error: Optional[Exception]) -> None:
        self._invoke(
            self.completion_callback,
            self.records,
            self.next_continuation_marker,
            error,
        )
