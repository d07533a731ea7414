"""
Utility functions for Context Key.

Provides encoding, fingerprinting, and key-material hygiene helpers.
"""

import base64
import binascii
import hashlib
import hmac
from typing import Union


def b64e(b: bytes) -> str:
    """Base64 encode bytes to string."""
    return base64.b64encode(bytes(b)).decode('ascii')


def b64d(s: str) -> bytes:
    """
    Strict base64 decode of a string.

    Raises:
        ValueError: if the input is not a string or not valid base64
    """
    if not isinstance(s, str):
        raise ValueError("base64 value must be a string")
    try:
        return base64.b64decode(s.encode('ascii'), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError("invalid base64") from e


def fingerprint(public_key: bytes) -> str:
    """Short SHA-256 fingerprint of a public key, colon-separated for humans."""
    digest = hashlib.sha256(bytes(public_key)).hexdigest()
    return ':'.join(digest[i:i+2] for i in range(0, 16, 2))


def constant_time_compare(a: Union[str, bytes], b: Union[str, bytes]) -> bool:
    """
    Compare two strings/bytes in constant time to prevent timing attacks.
    """
    if isinstance(a, str):
        a = a.encode('utf-8')
    if isinstance(b, str):
        b = b.encode('utf-8')
    return hmac.compare_digest(a, b)


def wipe(buf: bytearray) -> None:
    """Overwrite a mutable buffer with zeros."""
    for i in range(len(buf)):
        buf[i] = 0
