"""
OpenCloudKit command line.

Usage:
    python -m opencloudkit keygen --out keys/server.pem [--type ec]
    python -m opencloudkit sign --key keys/server.pem --key-id KEY_ID \
        --path /database/1/iCloud.com.example/development/public/records/query --body body.json
"""
import argparse
import logging
import sys
from pathlib import Path

from opencloudkit.core.config import configure_logging
from opencloudkit.core.errors import CloudKitError
from opencloudkit.core.signing.keys import generate_private_key, public_key_to_pem, save_private_key
from opencloudkit.core.signing.request_auth import (
    KEY_ID_HEADER,
    REQUEST_DATE_HEADER,
    SIGNATURE_HEADER,
)
from opencloudkit.core.signing.signer import sign_request

logger = logging.getLogger(__name__)


def _keygen(args: argparse.Namespace) -> int:
    key = generate_private_key(args.type)
    path = save_private_key(key, args.out, passphrase=args.passphrase)
    logger.info(f"Wrote {args.type} private key to {path}")
    print(public_key_to_pem(key.public_key()), end="")
    return 0


def _sign(args: argparse.Namespace) -> int:
    body = Path(args.body).read_bytes() if args.body else b""
    if not body:
        print("error: a non-empty --body is required", file=sys.stderr)
        return 2
    signed = sign_request(body, args.path, args.key, passphrase=args.passphrase)
    print(f"{KEY_ID_HEADER}: {args.key_id}")
    print(f"{REQUEST_DATE_HEADER}: {signed.request_date}")
    print(f"{SIGNATURE_HEADER}: {signed.signature}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="opencloudkit",
        description="CloudKit web services helper tools",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    keygen = subparsers.add_parser("keygen", help="Generate a server-to-server private key")
    keygen.add_argument("--out", required=True, help="Path of the PEM file to write")
    keygen.add_argument("--type", choices=["rsa", "ec"], default="rsa", help="Key type (default: rsa)")
    keygen.add_argument("--passphrase", help="Encrypt the key with this passphrase")
    keygen.set_defaults(handler=_keygen)

    sign = subparsers.add_parser("sign", help="Print authentication headers for a request")
    sign.add_argument("--key", required=True, help="Path to the PEM private key")
    sign.add_argument("--key-id", required=True, help="Server-to-server key ID")
    sign.add_argument("--path", required=True, help="Request URL path")
    sign.add_argument("--body", help="File containing the exact request body")
    sign.add_argument("--passphrase", help="Passphrase of an encrypted key")
    sign.set_defaults(handler=_sign)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    try:
        return args.handler(args)
    except CloudKitError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
