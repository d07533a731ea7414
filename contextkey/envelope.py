"""
Context Key Envelope Orchestration

Composes signing, key derivation and authenticated encryption into the two
operations other packages are allowed to call:

    seal:  record -> sign -> serialize -> derive(password, salt) -> AES-GCM -> SealedBlob
    open:  SealedBlob -> derive -> AES-GCM open -> parse -> verify -> OpenResult

Sign-before-encrypt is fixed, so the plaintext protected by encryption
already carries its own integrity proof.

Usage:
    sealer = ContextKeySealer()
    blob = sealer.seal(record, key_pair.private_key, "correct-horse")
    result = sealer.open(blob, "correct-horse")
    if result.is_verified():
        record = result.envelope.record
"""

import asyncio
import functools
import json
import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from . import config
from .canonicalization import canonicalize
from .cipher import NONCE_LENGTH, decrypt, encrypt
from .entropy import SecureRandom
from .errors import (
    AuthenticationError,
    ContextKeyError,
    FormatError,
    SignatureError,
    ValidationError,
)
from .kdf import SALT_LENGTH, KdfParams, derive_key
from .keys import SigningKeyPair
from .logging_config import audit_log, operation_context
from .schema import MIN_PASSWORD_LENGTH, ContextRecord
from .signing import SignedEnvelope, sign, verify
from .util import b64d, b64e, wipe

logger = logging.getLogger(__name__)

BLOB_FIELDS = frozenset({"encrypted_data", "iv", "salt", "kdf_params"})


class SealedBlob(BaseModel):
    """
    The only form of a context key that may cross a trust boundary.

    Serialized as the `.ckey` JSON document.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    encrypted_data: bytes = Field(repr=False)
    iv: bytes
    salt: bytes
    kdf_params: KdfParams

    @model_validator(mode="after")
    def _check_lengths(self) -> 'SealedBlob':
        if len(self.iv) != NONCE_LENGTH:
            raise ValueError(f"iv must be {NONCE_LENGTH} bytes")
        if len(self.salt) != SALT_LENGTH:
            raise ValueError(f"salt must be {SALT_LENGTH} bytes")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "encrypted_data": b64e(self.encrypted_data),
            "iv": b64e(self.iv),
            "salt": b64e(self.salt),
            "kdf_params": self.kdf_params.to_dict(),
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Any) -> 'SealedBlob':
        """
        Parse a `.ckey` document.

        Raises:
            FormatError: on missing or extra fields, bad base64, wrong
                nonce/salt length, or unsupported KDF parameters
        """
        if not isinstance(data, dict):
            raise FormatError("context key blob must be a JSON object")
        if set(data) != BLOB_FIELDS:
            raise FormatError("context key blob has missing or unexpected fields")

        try:
            encrypted_data = b64d(data["encrypted_data"])
            iv = b64d(data["iv"])
            salt = b64d(data["salt"])
        except ValueError as e:
            raise FormatError("context key blob contains invalid base64") from e

        kdf_params = KdfParams.from_dict(data["kdf_params"])
        try:
            return cls(encrypted_data=encrypted_data, iv=iv, salt=salt, kdf_params=kdf_params)
        except PydanticValidationError as e:
            raise FormatError(e.errors()[0].get("msg", "invalid context key blob")) from None

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> 'SealedBlob':
        try:
            data = json.loads(text)
        except (ValueError, TypeError, RecursionError) as e:
            raise FormatError("context key file is not valid JSON") from e
        return cls.from_dict(data)


class OpenOutcome(str, Enum):
    """
    Outcomes of opening a sealed blob.

    VERIFIED: decrypted and the signature verifies
    SIGNATURE_INVALID: decrypted, but the signature does not verify
    FORMAT_INVALID: blob or decrypted bytes do not parse
    AUTHENTICATION_FAILED: wrong password or corrupted ciphertext
    """
    VERIFIED = "VERIFIED"
    SIGNATURE_INVALID = "SIGNATURE_INVALID"
    FORMAT_INVALID = "FORMAT_INVALID"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"


@dataclass(frozen=True)
class OpenResult:
    """
    Result of opening a sealed blob.

    `envelope` is set for VERIFIED and for SIGNATURE_INVALID. In the latter
    case the caller decides whether to trust the content; nothing here
    rejects it automatically.
    """
    outcome: OpenOutcome
    envelope: Optional[SignedEnvelope] = None
    error: Optional[ContextKeyError] = None

    def is_verified(self) -> bool:
        return self.outcome == OpenOutcome.VERIFIED

    def unwrap(self) -> SignedEnvelope:
        """
        Return the envelope if verified, otherwise raise the carried error.
        """
        if self.is_verified():
            return self.envelope
        raise self.error

    @classmethod
    def verified(cls, envelope: SignedEnvelope) -> 'OpenResult':
        return cls(outcome=OpenOutcome.VERIFIED, envelope=envelope)

    @classmethod
    def signature_invalid(cls, envelope: SignedEnvelope) -> 'OpenResult':
        return cls(
            outcome=OpenOutcome.SIGNATURE_INVALID,
            envelope=envelope,
            error=SignatureError(envelope),
        )

    @classmethod
    def format_invalid(cls, error: FormatError) -> 'OpenResult':
        return cls(outcome=OpenOutcome.FORMAT_INVALID, error=error)

    @classmethod
    def authentication_failed(cls) -> 'OpenResult':
        return cls(outcome=OpenOutcome.AUTHENTICATION_FAILED, error=AuthenticationError())


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name} is not allowed")


def _reject_duplicates(pairs) -> Dict[str, Any]:
    obj = {}
    for key, value in pairs:
        if key in obj:
            raise ValueError(f"duplicate key {key!r}")
        obj[key] = value
    return obj


def _decode_envelope(plaintext: bytes) -> SignedEnvelope:
    try:
        data = json.loads(
            plaintext.decode("utf-8"),
            parse_constant=_reject_constant,
            object_pairs_hook=_reject_duplicates,
        )
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        raise FormatError("decrypted context key is not valid JSON") from e
    return SignedEnvelope.from_dict(data)


class ContextKeySealer:
    """
    Envelope orchestrator.

    Holds no secrets between calls: only the random provider, default KDF
    parameters and an optional executor for the async variants.
    """

    def __init__(
        self,
        rng: Optional[SecureRandom] = None,
        kdf_params: Optional[KdfParams] = None,
        executor: Optional[Executor] = None
    ):
        """
        Args:
            rng: Secure random provider for salts and nonces
            kdf_params: Defaults for `seal` (default: from config)
            executor: Executor for `seal_async`/`open_async` (default: the loop's)
        """
        self.rng = rng or SecureRandom(max_attempts=config.ENTROPY_RETRIES)
        self.kdf_params = kdf_params
        self.executor = executor

    def seal(
        self,
        record: ContextRecord,
        private_key: Union[bytes, SigningKeyPair],
        password: str,
        kdf_params: Optional[KdfParams] = None
    ) -> SealedBlob:
        """
        Sign, serialize, and encrypt a record.

        Args:
            record: The record to protect
            private_key: Ed25519 private key (seed, secret key, or key pair)
            password: Encryption password
            kdf_params: Override the sealer's default KDF parameters

        Returns:
            SealedBlob with fresh salt and nonce

        Raises:
            ValidationError: malformed record, key, or password
            GenerationError: entropy source exhausted
        """
        if not isinstance(password, str) or not password:
            raise ValidationError("password", "must be a non-empty string")
        params = kdf_params or self.kdf_params or config.default_kdf_params()

        with operation_context():
            envelope = sign(record, private_key)
            plaintext = canonicalize(envelope.to_dict())

            if len(password) < MIN_PASSWORD_LENGTH:
                audit_log.security_event(
                    "WEAK_PASSWORD",
                    severity="low",
                    record_id=record.id,
                    minimum_length=MIN_PASSWORD_LENGTH,
                )

            salt = self.rng.token_bytes(SALT_LENGTH)
            nonce = self.rng.token_bytes(NONCE_LENGTH)

            key = derive_key(password, salt, params)
            try:
                ciphertext = encrypt(key, nonce, plaintext)
            finally:
                wipe(key)

            audit_log.blob_sealed(record.id, params.algorithm.value)
            return SealedBlob(encrypted_data=ciphertext, iv=nonce, salt=salt, kdf_params=params)

    def open(self, blob: Union[SealedBlob, Dict[str, Any], str, bytes], password: str) -> OpenResult:
        """
        Decrypt and verify a sealed blob.

        All-or-nothing: there is no partially opened state. Failures are
        returned as an explicit OpenResult, never raised.

        Args:
            blob: SealedBlob, its dict form, or `.ckey` JSON text
            password: Password used at seal time

        Returns:
            OpenResult
        """
        with operation_context():
            try:
                blob = self._coerce_blob(blob)
            except FormatError as e:
                audit_log.blob_opened(OpenOutcome.FORMAT_INVALID.value)
                return OpenResult.format_invalid(e)

            # blob.salt is length-checked, so only the password can be rejected here
            try:
                key = derive_key(password, blob.salt, blob.kdf_params)
            except ValidationError:
                audit_log.blob_opened(OpenOutcome.AUTHENTICATION_FAILED.value)
                return OpenResult.authentication_failed()

            try:
                plaintext = decrypt(key, blob.iv, blob.encrypted_data)
            except AuthenticationError:
                audit_log.blob_opened(OpenOutcome.AUTHENTICATION_FAILED.value)
                return OpenResult.authentication_failed()
            finally:
                wipe(key)

            try:
                envelope = _decode_envelope(plaintext)
            except FormatError as e:
                audit_log.blob_opened(OpenOutcome.FORMAT_INVALID.value)
                return OpenResult.format_invalid(e)

            if not verify(envelope):
                audit_log.blob_opened(
                    OpenOutcome.SIGNATURE_INVALID.value,
                    record_id=envelope.record.id,
                    key_fingerprint=envelope.signer_fingerprint,
                )
                return OpenResult.signature_invalid(envelope)

            audit_log.blob_opened(
                OpenOutcome.VERIFIED.value,
                record_id=envelope.record.id,
                key_fingerprint=envelope.signer_fingerprint,
            )
            return OpenResult.verified(envelope)

    def verify(self, envelope: SignedEnvelope) -> bool:
        """Check an envelope's signature. Never raises."""
        return verify(envelope)

    async def seal_async(
        self,
        record: ContextRecord,
        private_key: Union[bytes, SigningKeyPair],
        password: str,
        kdf_params: Optional[KdfParams] = None
    ) -> SealedBlob:
        """
        `seal` on a worker thread so key derivation never blocks the event loop.

        Cancelling the awaiting task abandons the result; the worker still
        wipes its derived key.
        """
        loop = asyncio.get_running_loop()
        call = functools.partial(self.seal, record, private_key, password, kdf_params)
        return await loop.run_in_executor(self.executor, call)

    async def open_async(
        self,
        blob: Union[SealedBlob, Dict[str, Any], str, bytes],
        password: str
    ) -> OpenResult:
        """`open` on a worker thread; see `seal_async`."""
        loop = asyncio.get_running_loop()
        call = functools.partial(self.open, blob, password)
        return await loop.run_in_executor(self.executor, call)

    @staticmethod
    def _coerce_blob(blob: Any) -> SealedBlob:
        if isinstance(blob, SealedBlob):
            return blob
        if isinstance(blob, (str, bytes, bytearray)):
            return SealedBlob.from_json(bytes(blob) if isinstance(blob, bytearray) else blob)
        return SealedBlob.from_dict(blob)


# Convenience functions

def seal_context_key(
    record: ContextRecord,
    private_key: Union[bytes, SigningKeyPair],
    password: str,
    kdf_params: Optional[KdfParams] = None,
    rng: Optional[SecureRandom] = None
) -> SealedBlob:
    """Seal a record with a fresh ContextKeySealer."""
    return ContextKeySealer(rng=rng, kdf_params=kdf_params).seal(record, private_key, password)


def open_context_key(
    blob: Union[SealedBlob, Dict[str, Any], str, bytes],
    password: str
) -> OpenResult:
    """Open a sealed blob. The blob's own KDF parameters are replayed."""
    return ContextKeySealer().open(blob, password)


def verify_context_key(envelope: SignedEnvelope) -> bool:
    """Verify a decrypted envelope's signature."""
    return verify(envelope)
