"""
CloudKit Client Errors

Error taxonomy shared by signing, transport and operations.

- KeyNotFoundError / SigningError: raised before a request is sent
- TransportError: network or HTTP-level failure (timeouts included)
- MalformedResponseError: response is missing its expected top-level shape
- PartialFailureError: a single item of a batch could not be processed
"""
from typing import Any, Optional


class CloudKitError(Exception):
    """Base class for all client errors."""
    pass


class ConfigError(CloudKitError):
    """Container configuration is missing or invalid."""
    pass


class KeyNotFoundError(CloudKitError):
    """Private key file does not exist."""
    def __init__(self, message: str, path: str = None):
        super().__init__(message)
        self.path = path


class SigningError(CloudKitError):
    """Request could not be signed (malformed key, I/O error, missing body)."""
    pass


class TransportError(CloudKitError):
    """Raised when the HTTP call fails or the server answers with an error status."""
    def __init__(
        self,
        message: str,
        status_code: int = None,
        server_error_code: str = None,
        reason: str = None,
        details: str = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.server_error_code = server_error_code
        self.reason = reason
        self.details = details


class MalformedResponseError(CloudKitError):
    """Response document does not have the expected top-level shape."""
    pass


class PartialFailureError(CloudKitError):
    """
    One item of a batch response could not be processed.

    Only ever delivered through per-item callbacks; the batch itself
    still completes without an error.
    """
    def __init__(
        self,
        message: str,
        index: Optional[int] = None,
        item: Any = None,
        server_error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.index = index
        self.item = item
        self.server_error_code = server_error_code


class OperationCancelledError(CloudKitError):
    """Operation was cancelled before it finished."""
    def __init__(self, message: str = "Operation was cancelled"):
        super().__init__(message)


class OperationStateError(CloudKitError):
    """Operation was started twice or used in an invalid state."""
    pass
