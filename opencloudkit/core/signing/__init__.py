"""
Server-to-Server Request Signing

Signature generation and header attachment for server-to-server
authentication, plus local verification of configured key pairs.
"""

from opencloudkit.core.signing.keys import (
    generate_private_key,
    load_private_key,
    load_public_key,
    private_key_to_pem,
    public_key_to_pem,
    save_private_key,
)
from opencloudkit.core.signing.signer import (
    RequestSignature,
    RequestSigner,
    create_signing_payload,
    format_request_date,
    sign_request,
)
from opencloudkit.core.signing.request_auth import (
    KEY_ID_HEADER,
    REQUEST_DATE_HEADER,
    SIGNATURE_HEADER,
    attach_auth,
)
from opencloudkit.core.signing.verify import verify_signature

__all__ = [
    # Keys
    "generate_private_key",
    "load_private_key",
    "load_public_key",
    "private_key_to_pem",
    "public_key_to_pem",
    "save_private_key",
    # Signing
    "RequestSignature",
    "RequestSigner",
    "create_signing_payload",
    "format_request_date",
    "sign_request",
    # Headers
    "KEY_ID_HEADER",
    "REQUEST_DATE_HEADER",
    "SIGNATURE_HEADER",
    "attach_auth",
    # Verification
    "verify_signature",
]
