"""
Authenticated Request Builder

Attaches the server-to-server authentication headers to an outgoing
httpx request:

    X-Apple-CloudKit-Request-KeyID         key identifier
    X-Apple-CloudKit-Request-ISO8601Date   signed request date
    X-Apple-CloudKit-Request-SignatureV1   base64 signature

Headers are assigned, never appended, so re-signing a request replaces the
previous values. The request body is read but never modified.
"""
import logging
from typing import Optional

import httpx

from opencloudkit.core.config import ServerToServerKeyAuth
from opencloudkit.core.errors import SigningError
from opencloudkit.core.signing.signer import Clock, RequestSigner

logger = logging.getLogger(__name__)


KEY_ID_HEADER = "X-Apple-CloudKit-Request-KeyID"
REQUEST_DATE_HEADER = "X-Apple-CloudKit-Request-ISO8601Date"
SIGNATURE_HEADER = "X-Apple-CloudKit-Request-SignatureV1"

AUTH_HEADERS = (KEY_ID_HEADER, REQUEST_DATE_HEADER, SIGNATURE_HEADER)


def attach_auth(
    request: httpx.Request,
    auth: ServerToServerKeyAuth,
    clock: Optional[Clock] = None,
) -> httpx.Request:
    """
    Sign a request and set its authentication headers.

    Args:
        request: Request with a body and a URL path
        auth: Server-to-server key credentials
        clock: Optional time source (for deterministic signatures)

    Returns:
        The same request, with the three auth headers set

    Raises:
        SigningError: If the request has no body or no path, or signing fails
        KeyNotFoundError: If the private key file doesn't exist
    """
    body = request.content
    path = request.url.path
    # httpx reports a URL without a path as "/"
    if not body or path in ("", "/"):
        logger.debug(f"Cannot authenticate request without body and path: {request.url}")
        raise SigningError("Server-to-server auth requires a request body and a URL path")

    signed = RequestSigner(auth, clock=clock).sign(body, path)

    request.headers[KEY_ID_HEADER] = auth.key_id
    request.headers[REQUEST_DATE_HEADER] = signed.request_date
    request.headers[SIGNATURE_HEADER] = signed.signature
    logger.debug(f"Authenticated {path} with key {auth.key_id[:8]}...")
    return request
