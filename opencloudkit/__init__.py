"""
OpenCloudKit

Python client for the CloudKit web services: server-to-server request
signing, query encoding and asynchronous database operations.

Architecture:
    Operation → WebTransport → attach_auth (signing) → HTTPS/JSON API
"""
from opencloudkit.core.config import (
    CloudKitConfig,
    ContainerConfig,
    ServerToServerKeyAuth,
    Settings,
    get_settings,
    load_config,
)
from opencloudkit.core.database import Container, Database
from opencloudkit.core.errors import (
    CloudKitError,
    ConfigError,
    KeyNotFoundError,
    MalformedResponseError,
    OperationCancelledError,
    OperationStateError,
    PartialFailureError,
    SigningError,
    TransportError,
)
from opencloudkit.core.models import (
    Asset,
    AssetReferenceInfo,
    DatabaseScope,
    Environment,
    Location,
    Record,
    RecordID,
    ZoneID,
)
from opencloudkit.core.operations import (
    AssetReferenceOperation,
    Operation,
    OperationQueue,
    OperationState,
    QueryRecordsOperation,
)
from opencloudkit.core.query import (
    Comparator,
    Filter,
    LocationSortDescriptor,
    Query,
    SortDescriptor,
    encode_query,
)
from opencloudkit.core.signing import RequestSigner, attach_auth, sign_request
from opencloudkit.core.transport import WebTransport

__all__ = [
    # Config
    "CloudKitConfig",
    "ContainerConfig",
    "ServerToServerKeyAuth",
    "Settings",
    "get_settings",
    "load_config",
    # Containers
    "Container",
    "Database",
    # Errors
    "CloudKitError",
    "ConfigError",
    "KeyNotFoundError",
    "MalformedResponseError",
    "OperationCancelledError",
    "OperationStateError",
    "PartialFailureError",
    "SigningError",
    "TransportError",
    # Models
    "Asset",
    "AssetReferenceInfo",
    "DatabaseScope",
    "Environment",
    "Location",
    "Record",
    "RecordID",
    "ZoneID",
    # Operations
    "AssetReferenceOperation",
    "Operation",
    "OperationQueue",
    "OperationState",
    "QueryRecordsOperation",
    # Query
    "Comparator",
    "Filter",
    "LocationSortDescriptor",
    "Query",
    "SortDescriptor",
    "encode_query",
    # Signing / transport
    "RequestSigner",
    "attach_auth",
    "sign_request",
    "WebTransport",
]
