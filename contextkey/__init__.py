"""
Context Key

Portable, tamper-evident, password-protected bundles of personal AI
interaction preferences.

A context key is a ContextRecord, signed with Ed25519 over its canonical
JSON encoding, then encrypted with AES-256-GCM under a key derived from the
owner's password (Argon2id by default). Only the sealed form (`.ckey`) is
ever stored or transmitted.

Usage:
    from datetime import datetime, timezone
    from contextkey import (
        ContextKeySealer,
        create_context_record,
        generate_key_pair,
    )

    record = create_context_record(
        "Ana", "concise", ["ml"], now=datetime.now(timezone.utc)
    )
    identity = generate_key_pair()

    sealer = ContextKeySealer()
    blob = sealer.seal(record, identity, "correct-horse")

    result = sealer.open(blob.to_json(), "correct-horse")
    if result.is_verified():
        profile = result.envelope.record.profile
"""

__version__ = "1.0.0"
__license__ = "Apache-2.0"

# Records
from .schema import (
    CONTEXT_KEY_VERSION,
    CKEY_FILE_EXTENSION,
    MIN_PASSWORD_LENGTH,
    DEFAULT_TONES,
    DEFAULT_DOMAINS,
    ContextRecord,
    UserProfile,
    Policies,
    DataSource,
    DataSourceType,
    MemoryEntry,
    Persistence,
    PiiHandling,
    create_context_record,
    append_memory,
    suggested_filename,
)

# Canonicalization
from .canonicalization import canonicalize, canonicalize_str

# Keys and signing
from .entropy import SecureRandom
from .keys import SigningKeyPair, generate_key_pair
from .signing import SignedEnvelope, sign, verify

# Key derivation and encryption
from .kdf import KdfAlgorithm, KdfParams, derive_key
from .cipher import encrypt, decrypt

# Orchestration
from .envelope import (
    ContextKeySealer,
    SealedBlob,
    OpenOutcome,
    OpenResult,
    seal_context_key,
    open_context_key,
    verify_context_key,
)

# Errors
from .errors import (
    ContextKeyError,
    ValidationError,
    GenerationError,
    AuthenticationError,
    FormatError,
    SignatureError,
)


__all__ = [
    # Version
    "__version__",

    # Records
    "CONTEXT_KEY_VERSION",
    "CKEY_FILE_EXTENSION",
    "MIN_PASSWORD_LENGTH",
    "DEFAULT_TONES",
    "DEFAULT_DOMAINS",
    "ContextRecord",
    "UserProfile",
    "Policies",
    "DataSource",
    "DataSourceType",
    "MemoryEntry",
    "Persistence",
    "PiiHandling",
    "create_context_record",
    "append_memory",
    "suggested_filename",

    # Canonicalization
    "canonicalize",
    "canonicalize_str",

    # Keys and signing
    "SecureRandom",
    "SigningKeyPair",
    "generate_key_pair",
    "SignedEnvelope",
    "sign",
    "verify",

    # Key derivation and encryption
    "KdfAlgorithm",
    "KdfParams",
    "derive_key",
    "encrypt",
    "decrypt",

    # Orchestration
    "ContextKeySealer",
    "SealedBlob",
    "OpenOutcome",
    "OpenResult",
    "seal_context_key",
    "open_context_key",
    "verify_context_key",

    # Errors
    "ContextKeyError",
    "ValidationError",
    "GenerationError",
    "AuthenticationError",
    "FormatError",
    "SignatureError",
]
