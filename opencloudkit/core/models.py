"""
CloudKit Value Models

Plain value holders used at the protocol boundary. Every model converts to
and from the generic JSON document shape the web service speaks; nothing
here performs I/O beyond stat-ing a local file for an upload asset.
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote


# Generic JSON values exchanged with the service
JSONValue = Union[None, bool, int, float, str, List["JSONValue"], Dict[str, "JSONValue"]]
JSONDocument = Dict[str, JSONValue]

DEFAULT_ZONE_NAME = "_defaultZone"

# Characters left unescaped when turning a download URL into a file URL
_URL_QUERY_SAFE = "!$&'()*+,;=:@/?~-._%#"


class Environment(str, Enum):
    """Container environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class DatabaseScope(str, Enum):
    """Database scope within a container."""
    PUBLIC = "public"
    PRIVATE = "private"
    SHARED = "shared"


@dataclass(frozen=True)
class ZoneID:
    zone_name: str = DEFAULT_ZONE_NAME
    owner_name: Optional[str] = None

    def to_document(self) -> JSONDocument:
        document: JSONDocument = {"zoneName": self.zone_name}
        if self.owner_name:
            document["ownerName"] = self.owner_name
        return document

    @classmethod
    def default(cls) -> "ZoneID":
        return cls()


@dataclass(frozen=True)
class RecordID:
    record_name: str
    zone_id: ZoneID = field(default_factory=ZoneID)

    def to_document(self) -> JSONDocument:
        return {"recordName": self.record_name, "zoneID": self.zone_id.to_document()}


@dataclass(frozen=True)
class AssetReferenceInfo:
    """
    Identifies an existing asset that should be duplicated.

    Attributes:
        record_id: Record holding the asset
        field_name: Name of the asset field on that record
    """
    record_id: RecordID
    field_name: str

    def to_document(self) -> JSONDocument:
        return {
            "recordName": self.record_id.record_name,
            "fieldName": self.field_name,
        }


@dataclass(frozen=True)
class Location:
    """Geographic location as stored in a LOCATION record field."""
    latitude: float
    longitude: float
    horizontal_accuracy: Optional[float] = None
    vertical_accuracy: Optional[float] = None
    altitude: Optional[float] = None
    speed: Optional[float] = None
    course: Optional[float] = None
    timestamp: Optional[int] = None

    def to_document(self) -> JSONDocument:
        document: JSONDocument = {
            "latitude": self.latitude,
            "longitude": self.longitude,
        }
        optional = {
            "horizontalAccuracy": self.horizontal_accuracy,
            "verticalAccuracy": self.vertical_accuracy,
            "altitude": self.altitude,
            "speed": self.speed,
            "course": self.course,
            "timestamp": self.timestamp,
        }
        document.update({key: value for key, value in optional.items() if value is not None})
        return document

    def to_field_document(self) -> JSONDocument:
        """Wrap the location the way record fields are encoded."""
        return {"value": self.to_document(), "type": "LOCATION"}


def _parse_size(value: Any) -> Optional[int]:
    """Non-negative integer size, or None. Integral floats such as 1024.0 are accepted."""
    # bool is an int subclass but never a valid size
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and value >= 0:
        return value
    return None


@dataclass
class Asset:
    """
    A file stored alongside a record.

    Assets have two lifecycles:
    - client side, created from a local file before an upload
      (see ``from_file``)
    - server side, created from a response document for a download or
      a re-referenced asset (see ``from_response``); these always carry a size
    """
    file_url: Optional[str] = None
    size: Optional[int] = None
    checksum: Optional[str] = None
    download_url: Optional[str] = None
    upload_receipt: Optional[str] = None
    record_id: Optional[RecordID] = None
    record_key: Optional[str] = None
    uploaded: bool = False
    downloaded: bool = False

    @property
    def has_size(self) -> bool:
        return self.size is not None

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Asset":
        """
        Create an upload asset for a local file.

        Args:
            path: Local file path

        Returns:
            Asset pointing at the file, sized when the file exists
        """
        path = Path(path).expanduser()
        size = path.stat().st_size if path.is_file() else None
        return cls(file_url=str(path), size=size)

    @classmethod
    def from_response(cls, document: JSONDocument) -> Optional["Asset"]:
        """
        Build an asset from a server response element.

        Args:
            document: Asset dictionary from the response

        Returns:
            Asset, or None when the document has no valid ``size``
        """
        if not isinstance(document, dict):
            return None
        size = _parse_size(document.get("size"))
        if size is None:
            return None

        download_url = document.get("downloadURL")
        if not isinstance(download_url, str):
            download_url = None
        checksum = document.get("fileChecksum")
        receipt = document.get("receipt")

        return cls(
            file_url=quote(download_url, safe=_URL_QUERY_SAFE) if download_url else None,
            size=size,
            checksum=checksum if isinstance(checksum, str) else None,
            download_url=download_url,
            upload_receipt=receipt if isinstance(receipt, str) else None,
            downloaded=False,
        )

    def to_document(self) -> JSONDocument:
        document: JSONDocument = {}
        if self.record_id is not None and self.record_key is not None:
            document["recordName"] = self.record_id.record_name
            document["fieldName"] = self.record_key
        if self.checksum is not None:
            document["fileChecksum"] = self.checksum
        if self.size is not None:
            document["size"] = self.size
        if self.upload_receipt is not None:
            document["receipt"] = self.upload_receipt
        return document


@dataclass
class Record:
    """Minimal record holder returned by query operations."""
    record_type: str
    record_id: RecordID
    fields: Dict[str, JSONValue] = field(default_factory=dict)
    record_change_tag: Optional[str] = None

    def __getitem__(self, key: str) -> JSONValue:
        return self.fields[key]

    @classmethod
    def from_response(cls, document: JSONDocument, zone_id: Optional[ZoneID] = None) -> Optional["Record"]:
        """
        Build a record from a response element.

        Field values are unwrapped from their ``{"value": ..., "type": ...}``
        envelopes. Returns None if ``recordName`` or ``recordType`` is missing.
        """
        if not isinstance(document, dict):
            return None
        record_name = document.get("recordName")
        record_type = document.get("recordType")
        if not isinstance(record_name, str) or not isinstance(record_type, str):
            return None

        fields = {}
        raw_fields = document.get("fields") or {}
        if not isinstance(raw_fields, dict):
            return None
        for name, raw_value in raw_fields.items():
            if isinstance(raw_value, dict) and "value" in raw_value:
                fields[name] = raw_value["value"]
            else:
                fields[name] = raw_value

        return cls(
            record_type=record_type,
            record_id=RecordID(record_name, zone_id or ZoneID()),
            fields=fields,
            record_change_tag=document.get("recordChangeTag"),
        )
