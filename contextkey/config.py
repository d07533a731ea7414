"""
Configuration module for Context Key.

Centralizes environment-driven settings. Values are read once at import.
"""

import os

from .kdf import (
    DEFAULT_ARGON2ID_ITERATIONS,
    DEFAULT_ARGON2ID_MEMORY_KIB,
    DEFAULT_ARGON2ID_PARALLELISM,
    DEFAULT_PBKDF2_ITERATIONS,
    KdfAlgorithm,
    KdfParams,
)

# ============================================================
# Environment Configuration
# ============================================================

# Key derivation
KDF_ALGORITHM = os.getenv("CONTEXTKEY_KDF_ALGORITHM", KdfAlgorithm.ARGON2ID.value)
KDF_ITERATIONS = os.getenv("CONTEXTKEY_KDF_ITERATIONS", "")
KDF_MEMORY = os.getenv("CONTEXTKEY_KDF_MEMORY", "")
KDF_PARALLELISM = os.getenv("CONTEXTKEY_KDF_PARALLELISM", "")

# Entropy
ENTROPY_RETRIES = int(os.getenv("CONTEXTKEY_ENTROPY_RETRIES", "3"))

# Logging
LOG_LEVEL = os.getenv("CONTEXTKEY_LOG_LEVEL", "WARNING")
LOG_JSON = os.getenv("CONTEXTKEY_LOG_JSON", "true").lower() in ("1", "true", "yes")


# ============================================================
# Derived Settings
# ============================================================

def default_kdf_params() -> KdfParams:
    """
    Build the default KdfParams from the environment.

    Unset values fall back to the per-algorithm defaults.

    Raises:
        ValidationError: if the configured values are below the minimums
    """
    if KDF_ALGORITHM == KdfAlgorithm.PBKDF2_SHA256.value:
        return KdfParams.build(
            KDF_ALGORITHM,
            int(KDF_ITERATIONS or DEFAULT_PBKDF2_ITERATIONS),
            int(KDF_MEMORY or 0),
            int(KDF_PARALLELISM or 1),
        )
    return KdfParams.build(
        KDF_ALGORITHM,
        int(KDF_ITERATIONS or DEFAULT_ARGON2ID_ITERATIONS),
        int(KDF_MEMORY or DEFAULT_ARGON2ID_MEMORY_KIB),
        int(KDF_PARALLELISM or DEFAULT_ARGON2ID_PARALLELISM),
    )


# ============================================================
# Feature Flags
# ============================================================

def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("CONTEXTKEY_DEBUG", "").lower() in ("1", "true", "yes")
