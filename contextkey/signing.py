"""
Context Key Signing

Detached Ed25519 signatures over the canonical encoding of a ContextRecord.
"""

import logging
from typing import Any, Dict, Union

from nacl.exceptions import CryptoError
from nacl.signing import SigningKey, VerifyKey
from pydantic import BaseModel, ConfigDict, Field

from .canonicalization import canonicalize
from .errors import FormatError, ValidationError
from .keys import PUBLIC_KEY_LENGTH, SigningKeyPair
from .logging_config import audit_log
from .schema import ContextRecord
from .util import b64d, b64e, fingerprint

logger = logging.getLogger(__name__)

SIGNATURE_LENGTH = 64


class SignedEnvelope(BaseModel):
    """
    A record, its detached signature, and the public key that produced it.

    Immutable: a changed record needs a new `sign` call, never a patch.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    record: ContextRecord
    signature: bytes = Field(repr=False)
    public_key: bytes

    @property
    def signer_fingerprint(self) -> str:
        return fingerprint(self.public_key)

    def to_dict(self) -> Dict[str, Any]:
        """Wire form carried inside the ciphertext."""
        return {
            "data": self.record.to_dict(),
            "signature": b64e(self.signature),
            "public_key": b64e(self.public_key),
        }

    @classmethod
    def from_dict(cls, data: Any) -> 'SignedEnvelope':
        """
        Parse the wire form. Does not verify the signature.

        Raises:
            FormatError: if the structure, encoding, or record is malformed
        """
        if not isinstance(data, dict) or set(data) != {"data", "signature", "public_key"}:
            raise FormatError("envelope must contain exactly data, signature and public_key")
        try:
            signature = b64d(data["signature"])
            public_key = b64d(data["public_key"])
        except ValueError as e:
            raise FormatError("envelope signature or public key is not base64") from e
        try:
            record = ContextRecord.from_dict(data["data"])
        except ValidationError as e:
            raise FormatError(f"envelope record is invalid: {e.field}") from e
        return cls(record=record, signature=signature, public_key=public_key)


def sign(record: ContextRecord, private_key: Union[bytes, SigningKeyPair]) -> SignedEnvelope:
    """
    Sign a record with an Ed25519 private key.

    The embedded public key is always derived from `private_key`.

    Args:
        record: Validated context record
        private_key: 32-byte seed, 64-byte secret key, or a SigningKeyPair

    Returns:
        SignedEnvelope

    Raises:
        ValidationError: if the record or key is malformed
    """
    if not isinstance(record, ContextRecord):
        raise ValidationError("record", "must be a ContextRecord")

    if isinstance(private_key, SigningKeyPair):
        pair = SigningKeyPair.from_private_key(private_key.private_key)
    else:
        pair = SigningKeyPair.from_private_key(private_key)

    message = canonicalize(record)
    signature = SigningKey(pair.private_key).sign(message).signature

    audit_log.envelope_signed(record.id, pair.fingerprint)
    return SignedEnvelope(record=record, signature=signature, public_key=pair.public_key)


def verify(envelope: SignedEnvelope) -> bool:
    """
    Verify an envelope's signature against its embedded public key.

    Returns:
        True if the signature is valid, False otherwise (never raises)
    """
    try:
        if len(envelope.public_key) != PUBLIC_KEY_LENGTH or len(envelope.signature) != SIGNATURE_LENGTH:
            return False
        message = canonicalize(envelope.record)
        VerifyKey(envelope.public_key).verify(message, envelope.signature)
        return True
    except (CryptoError, ValidationError, ValueError, TypeError, AttributeError):
        logger.debug("Signature verification failed")
        return False
