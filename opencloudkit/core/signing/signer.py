"""
Server-to-Server Request Signing

Produces the per-request signature for server-to-server authentication.

Signing Payload Format:
    {request_date}:{body_hash}:{url_path}

Where:
    - request_date: UTC timestamp formatted as yyyy-MM-ddTHH:mm:ssZ
    - body_hash: base64 of the raw SHA-256 digest of the request body
    - url_path: URL path of the request (no scheme, host or query string)

The server rebuilds the payload byte for byte, so any deviation (timezone
suffix, trailing slash, hex instead of base64 digest) invalidates the signature.
"""
import base64
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa

from opencloudkit.core.config import ServerToServerKeyAuth
from opencloudkit.core.errors import SigningError
from opencloudkit.core.signing.keys import PrivateKey, load_private_key

logger = logging.getLogger(__name__)


# strftime directives are locale independent for numeric fields
REQUEST_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RequestSignature:
    """
    Signature of a single request.

    Attributes:
        signature: Base64-encoded signature
        request_date: Date string that was signed (sent as a header)
    """
    signature: str
    request_date: str


def format_request_date(moment: datetime) -> str:
    """
    Format a timestamp the way the server expects it.

    Naive datetimes are taken to be UTC.

    Example:
        >>> format_request_date(datetime(2016, 7, 11, 9, 5, 3, tzinfo=timezone.utc))
        '2016-07-11T09:05:03Z'
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(REQUEST_DATE_FORMAT)


def hash_body(body: bytes) -> bytes:
    """Raw SHA-256 digest of the request body."""
    return hashlib.sha256(body).digest()


def create_signing_payload(request_date: str, body: bytes, url_path: str) -> str:
    """
    Create the payload string that gets signed.

    Args:
        request_date: Formatted request date
        body: Request body bytes
        url_path: URL path of the request

    Returns:
        Payload string
    """
    body_hash = base64.b64encode(hash_body(body)).decode("ascii")
    return f"{request_date}:{body_hash}:{url_path}"


def sign_payload(payload: bytes, private_key: PrivateKey) -> bytes:
    """
    Sign payload bytes with SHA-256.

    RSA keys use PKCS#1 v1.5 padding; EC keys use ECDSA.

    Raises:
        SigningError: If the key type is unsupported or signing fails
    """
    try:
        if isinstance(private_key, rsa.RSAPrivateKey):
            return private_key.sign(payload, padding.PKCS1v15(), hashes.SHA256())
        if isinstance(private_key, ec.EllipticCurvePrivateKey):
            return private_key.sign(payload, ec.ECDSA(hashes.SHA256()))
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise SigningError(f"Signing failed: {e}") from e
    raise SigningError(f"Unsupported key type: {type(private_key).__name__}")


def sign_request(
    request_body: bytes,
    url_path: str,
    private_key_path: Union[str, Path],
    passphrase: Optional[str] = None,
    clock: Optional[Clock] = None,
) -> RequestSignature:
    """
    Sign a request body and path with the key at private_key_path.

    Deterministic for a fixed clock and an RSA key.

    Args:
        request_body: Exact body bytes that will be sent
        url_path: URL path of the request
        private_key_path: Path to the PEM private key
        passphrase: Passphrase for an encrypted key
        clock: Zero-argument callable returning the current time

    Returns:
        RequestSignature with base64 signature and the signed request date

    Raises:
        KeyNotFoundError: If the key file doesn't exist
        SigningError: For any other key or cryptographic error
    """
    request_date = format_request_date((clock or utc_now)())
    private_key = load_private_key(private_key_path, passphrase)

    payload = create_signing_payload(request_date, request_body, url_path)
    signature = sign_payload(payload.encode("utf-8"), private_key)

    logger.debug(f"Signed {url_path} ({len(request_body)} body bytes) at {request_date}")
    return RequestSignature(
        signature=base64.b64encode(signature).decode("ascii"),
        request_date=request_date,
    )


class RequestSigner:
    """
    Signs requests with one container's server key.

    The key auth is shared read-only by every request of the container;
    the key file is re-read for each signature.
    """

    def __init__(self, auth: ServerToServerKeyAuth, clock: Optional[Clock] = None):
        self.auth = auth
        self.clock = clock or utc_now

    @property
    def key_id(self) -> str:
        return self.auth.key_id

    def sign(self, request_body: bytes, url_path: str) -> RequestSignature:
        return sign_request(
            request_body,
            url_path,
            self.auth.private_key_file,
            passphrase=self.auth.private_key_passphrase,
            clock=self.clock,
        )
