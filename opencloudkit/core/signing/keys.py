"""
Server Key Management

Loads, generates and serializes the private keys used for server-to-server
request signing. RSA keys are the protocol default; EC P-256 keys (what the
CloudKit dashboard issues) are accepted as well.
Uses the cryptography library for all cryptographic operations.
"""
import logging
import os
from pathlib import Path
from typing import Optional, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from opencloudkit.core.errors import KeyNotFoundError, SigningError

logger = logging.getLogger(__name__)


# Transient read failures are retried this many times before giving up
KEY_READ_ATTEMPTS = 3

RSA_KEY_SIZE = 2048

PrivateKey = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]
PublicKey = Union[rsa.RSAPublicKey, ec.EllipticCurvePublicKey]


def _read_key_bytes(path: Path, attempts: int = KEY_READ_ATTEMPTS) -> bytes:
    last_error = None
    for attempt in range(1, attempts + 1):
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise KeyNotFoundError(f"Private key not found: {path}", path=str(path)) from e
        except OSError as e:
            last_error = e
            logger.warning(f"Reading private key {path} failed (attempt {attempt}/{attempts}): {e}")
    raise SigningError(
        f"Failed to read private key {path} after {attempts} attempts: {last_error}"
    ) from last_error


def load_private_key(path: Union[str, Path], passphrase: Optional[str] = None) -> PrivateKey:
    """
    Load a private key from a PEM file.

    Args:
        path: Path to private key file
        passphrase: Passphrase for an encrypted key

    Returns:
        RSA or EC private key object

    Raises:
        KeyNotFoundError: If the file doesn't exist
        SigningError: If the file can't be read or the key is invalid
    """
    path = Path(path).expanduser()
    if not path.exists():
        raise KeyNotFoundError(f"Private key not found: {path}", path=str(path))

    pem_data = _read_key_bytes(path)
    password = passphrase.encode("utf-8") if passphrase else None

    try:
        private_key = serialization.load_pem_private_key(pem_data, password=password)
    except (ValueError, TypeError) as e:
        raise SigningError(f"Failed to load private key from {path}: {e}") from e

    if not isinstance(private_key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise SigningError(f"Unsupported key type in {path}: {type(private_key).__name__}")
    return private_key


def generate_private_key(key_type: str = "rsa") -> PrivateKey:
    """
    Generate a new signing key.

    Args:
        key_type: "rsa" (2048 bit) or "ec" (P-256)

    Returns:
        Private key object
    """
    if key_type == "rsa":
        return rsa.generate_private_key(public_exponent=65537, key_size=RSA_KEY_SIZE)
    if key_type == "ec":
        return ec.generate_private_key(ec.SECP256R1())
    raise ValueError(f"Unknown key type: {key_type}")


def private_key_to_pem(private_key: PrivateKey, passphrase: Optional[str] = None) -> bytes:
    """
    Serialize a private key to PKCS#8 PEM.

    WARNING: Private key bytes are sensitive! Handle with care.
    """
    if passphrase:
        encryption = serialization.BestAvailableEncryption(passphrase.encode("utf-8"))
    else:
        encryption = serialization.NoEncryption()
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    )


def public_key_to_pem(public_key: PublicKey) -> str:
    """Serialize a public key to SubjectPublicKeyInfo PEM text."""
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")


def save_private_key(
    private_key: PrivateKey,
    path: Union[str, Path],
    passphrase: Optional[str] = None,
) -> Path:
    """
    Write a private key to a PEM file readable only by the owner.

    Returns:
        Path of the written file
    """
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(private_key_to_pem(private_key, passphrase))
    os.chmod(path, 0o600)  # Owner read/write only
    return path


def load_public_key(path: Union[str, Path]) -> PublicKey:
    """
    Load a public key from a PEM file.

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If key is invalid
    """
    pem_data = Path(path).read_bytes()
    public_key = serialization.load_pem_public_key(pem_data)
    if not isinstance(public_key, (rsa.RSAPublicKey, ec.EllipticCurvePublicKey)):
        raise ValueError(f"Unsupported public key type: {type(public_key).__name__}")
    return public_key
