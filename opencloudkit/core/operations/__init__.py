"""
Operations

Asynchronous, cancellable units of work, each issuing one web service call.
"""

from opencloudkit.core.operations.base import (
    DatabaseOperation,
    Operation,
    OperationQueue,
    OperationState,
)
from opencloudkit.core.operations.rereference_assets import AssetReferenceOperation
from opencloudkit.core.operations.query_records import QueryRecordsOperation

__all__ = [
    "DatabaseOperation",
    "Operation",
    "OperationQueue",
    "OperationState",
    "AssetReferenceOperation",
    "QueryRecordsOperation",
]
