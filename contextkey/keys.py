"""
Context Key Signing Keys

Uses Ed25519 (RFC 8032) for record signing. This module only creates and
parses key pairs; custody of the private key is the caller's business.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from nacl.signing import SigningKey

from .entropy import SecureRandom
from .errors import ValidationError
from .logging_config import audit_log
from .util import b64d, b64e, constant_time_compare, fingerprint


SEED_LENGTH = 32
PUBLIC_KEY_LENGTH = 32
SECRET_KEY_LENGTH = 64  # libsodium layout: seed || public key
ALGORITHM = "Ed25519"


@dataclass(frozen=True)
class SigningKeyPair:
    """Ed25519 key pair as raw bytes."""
    public_key: bytes
    private_key: bytes = field(repr=False)
    algorithm: str = ALGORITHM

    @property
    def fingerprint(self) -> str:
        return fingerprint(self.public_key)

    @classmethod
    def from_private_key(cls, private_key: bytes) -> 'SigningKeyPair':
        """
        Rebuild a key pair from a private key.

        Accepts a 32-byte seed or a 64-byte libsodium secret key. For the
        64-byte form the embedded public half must match the derived one.

        Raises:
            ValidationError: on wrong length or mismatched public half
        """
        private_key = bytes(private_key)
        if len(private_key) == SECRET_KEY_LENGTH:
            seed, embedded_public = private_key[:SEED_LENGTH], private_key[SEED_LENGTH:]
        elif len(private_key) == SEED_LENGTH:
            seed, embedded_public = private_key, None
        else:
            raise ValidationError(
                "private_key",
                f"must be {SEED_LENGTH} or {SECRET_KEY_LENGTH} bytes",
            )

        public_key = bytes(SigningKey(seed).verify_key)
        if embedded_public is not None and not constant_time_compare(embedded_public, public_key):
            raise ValidationError("private_key", "public half does not match the private seed")

        return cls(public_key=public_key, private_key=seed)

    def to_dict(self) -> Dict[str, Any]:
        """Key file format. Contains the private key; store it accordingly."""
        return {
            "algorithm": self.algorithm,
            "public_key_b64": b64e(self.public_key),
            "private_key_b64": b64e(self.private_key),
            "fingerprint": self.fingerprint,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SigningKeyPair':
        if not isinstance(data, dict):
            raise ValidationError("key", "key file must be a JSON object")
        if data.get("algorithm", ALGORITHM) != ALGORITHM:
            raise ValidationError("algorithm", f"unsupported key algorithm {data.get('algorithm')!r}")
        try:
            private_key = b64d(data["private_key_b64"])
        except (KeyError, ValueError) as e:
            raise ValidationError("private_key_b64", "missing or not base64") from e

        pair = cls.from_private_key(private_key)
        declared = data.get("public_key_b64")
        if declared is not None and declared != b64e(pair.public_key):
            raise ValidationError("public_key_b64", "does not match the private key")
        return pair


def generate_key_pair(rng: Optional[SecureRandom] = None) -> SigningKeyPair:
    """
    Generate a new Ed25519 key pair.

    Args:
        rng: Secure random provider (default: libsodium randombytes)

    Returns:
        SigningKeyPair with 32-byte public key and 32-byte private seed

    Raises:
        GenerationError: if the entropy source is exhausted
    """
    rng = rng or SecureRandom()
    seed = rng.token_bytes(SEED_LENGTH)
    signing_key = SigningKey(seed)

    pair = SigningKeyPair(
        public_key=bytes(signing_key.verify_key),
        private_key=bytes(signing_key),
    )
    audit_log.key_generated(pair.fingerprint)
    return pair
