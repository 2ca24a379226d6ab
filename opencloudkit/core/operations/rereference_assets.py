"""
Re-reference Assets Operation

Duplicates existing assets so they can be attached to new records without
uploading the file again.

Request (POST {database}/assets/rereference):
    {"zoneID": {...}, "assets": [{"recordName": ..., "fieldName": ...}, ...]}

Response:
    {"assets": [{"size": ..., "downloadURL": ..., "fileChecksum": ..., "receipt": ...}, ...]}

Callbacks:
- per_asset_callback(asset, None) for each parsed asset, or
  per_asset_callback(None, PartialFailureError) for each element that could
  not be parsed; in response order
- completion_callback(assets, error) exactly once, after all per-asset calls

A partial failure never sets the batch error: ``error`` is None whenever the
call succeeded and the response had an ``assets`` array. Check both the
per-asset stream and the batch error to know whether every asset succeeded.
"""
import logging
from typing import Callable, Iterable, List, Optional

from opencloudkit.core.errors import MalformedResponseError, PartialFailureError
from opencloudkit.core.models import Asset, AssetReferenceInfo, JSONDocument, ZoneID
from opencloudkit.core.operations.base import DatabaseOperation

logger = logging.getLogger(__name__)


REREFERENCE_ENDPOINT = "assets/rereference"

PerAssetCallback = Callable[[Optional[Asset], Optional[Exception]], None]
AssetsCompletionCallback = Callable[[Optional[List[Asset]], Optional[Exception]], None]


def item_failure(index: int, item, what: str) -> PartialFailureError:
    """Build the per-item error for a response element that can't be used."""
    server_error_code = item.get("serverErrorCode") if isinstance(item, dict) else None
    if server_error_code:
        reason = item.get("reason") or "no reason given"
        message = f"Server rejected {what} #{index}: {server_error_code} ({reason})"
    else:
        message = f"Failed to parse {what} #{index} from server"
    return PartialFailureError(message, index=index, item=item, server_error_code=server_error_code)


class AssetReferenceOperation(DatabaseOperation):
    """
    Re-reference existing assets.

    Example:
        >>> operation = AssetReferenceOperation([AssetReferenceInfo(RecordID("photo-1"), "image")])
        >>> operation.per_asset_callback = lambda asset, error: ...
        >>> operation.completion_callback = lambda assets, error: ...
        >>> container.public_database.add(operation)
    """

    def __init__(
        self,
        reference_infos: Optional[Iterable[AssetReferenceInfo]] = None,
        zone_id: Optional[ZoneID] = None,
        database=None,
    ):
        super().__init__(database)
        self.reference_infos: List[AssetReferenceInfo] = list(reference_infos or [])
        self.zone_id = zone_id or ZoneID()
        self.fetched_assets: Optional[List[Asset]] = None

        self.per_asset_callback: Optional[PerAssetCallback] = None
        self.completion_callback: Optional[AssetsCompletionCallback] = None

    def request_document(self) -> JSONDocument:
        return {
            "zoneID": self.zone_id.to_document(),
            "assets": [info.to_document() for info in self.reference_infos],
        }

    async def perform_request(self) -> None:
        response = await self.send(REREFERENCE_ENDPOINT, self.request_document())

        if self.is_cancelled:
            self.finish()
            return

        items = response.get("assets")
        if not isinstance(items, list):
            raise MalformedResponseError("Re-reference response has no 'assets' array")

        fetched_assets = []
        failures = 0
        for index, item in enumerate(items):
            if self.is_cancelled:
                logger.info(f"{self!r} cancelled after {index}/{len(items)} assets")
                break

            asset = None
            if not (isinstance(item, dict) and item.get("serverErrorCode")):
                asset = Asset.from_response(item)

            if asset is None:
                failures += 1
                self._invoke(self.per_asset_callback, None, item_failure(index, item, "asset"))
                continue

            fetched_assets.append(asset)
            self._invoke(self.per_asset_callback, asset, None)

        if failures:
            logger.warning(f"{self!r}: {failures} of {len(items)} assets failed")
        self.fetched_assets = fetched_assets
        self.finish()

    def finish_on_callback_context(self, error: Optional[Exception]) -> None:
        self._invoke(self.completion_callback, self.fetched_assets, error)
