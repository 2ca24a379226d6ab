"""
Signature Verification

Checks a request signature against the public half of a server key.
The client never needs this to talk to the service; it exists so a
configured key pair (and the signing payload format) can be validated locally.
"""
import base64
import binascii
import logging

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa

from opencloudkit.core.signing.keys import PublicKey
from opencloudkit.core.signing.signer import create_signing_payload

logger = logging.getLogger(__name__)


def verify_signature(
    public_key: PublicKey,
    signature_b64: str,
    request_date: str,
    body: bytes,
    url_path: str,
) -> bool:
    """
    Verify a request signature.

    Args:
        public_key: RSA or EC public key
        signature_b64: Base64 signature (from the signature header)
        request_date: Request date (from the date header)
        body: Request body bytes
        url_path: URL path of the request

    Returns:
        True if the signature matches the rebuilt payload
    """
    try:
        signature = base64.b64decode(signature_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        logger.debug(f"Invalid base64 signature: {e}")
        return False

    payload = create_signing_payload(request_date, body, url_path).encode("utf-8")

    try:
        if isinstance(public_key, rsa.RSAPublicKey):
            public_key.verify(signature, payload, padding.PKCS1v15(), hashes.SHA256())
        elif isinstance(public_key, ec.EllipticCurvePublicKey):
            public_key.verify(signature, payload, ec.ECDSA(hashes.SHA256()))
        else:
            raise TypeError(f"Unsupported public key type: {type(public_key).__name__}")
    except InvalidSignature:
        return False
    return True
