"""
Context Key Authenticated Cipher

AES-256-GCM with a 12-byte nonce and the 16-byte tag appended to the
ciphertext. Decryption failures collapse into one opaque AuthenticationError
so callers cannot tell a wrong key from a corrupted ciphertext.
"""

from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import AuthenticationError

NONCE_LENGTH = 12
KEY_LENGTH = 32
TAG_LENGTH = 16
ALGORITHM = "AES-256-GCM"


def _check(key: bytes, nonce: bytes) -> None:
    if len(key) != KEY_LENGTH:
        raise ValueError(f"key must be {KEY_LENGTH} bytes")
    if len(nonce) != NONCE_LENGTH:
        raise ValueError(f"nonce must be {NONCE_LENGTH} bytes")


def encrypt(
    key: bytes,
    nonce: bytes,
    plaintext: bytes,
    associated_data: Optional[bytes] = None
) -> bytes:
    """
    Encrypt and authenticate `plaintext`.

    The nonce must never be reused with the same key.

    Returns:
        ciphertext || tag
    """
    _check(key, nonce)
    return AESGCM(bytes(key)).encrypt(bytes(nonce), plaintext, associated_data)


def decrypt(
    key: bytes,
    nonce: bytes,
    ciphertext: bytes,
    associated_data: Optional[bytes] = None
) -> bytes:
    """
    Authenticate and decrypt `ciphertext`.

    Raises:
        AuthenticationError: on any tag mismatch, truncated input, or wrong key
    """
    _check(key, nonce)
    if len(ciphertext) < TAG_LENGTH:
        raise AuthenticationError()
    try:
        return AESGCM(bytes(key)).decrypt(bytes(nonce), ciphertext, associated_data)
    except InvalidTag:
        raise AuthenticationError() from None
