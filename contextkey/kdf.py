"""
Context Key Password-Based Key Derivation

Stretches a password and a 32-byte salt into a 256-bit AES key. The
algorithm named in KdfParams is always the one executed, so a blob's
recorded parameters replay exactly at open time.

Supported algorithms:
- argon2id (default): iterations = time cost, memory = KiB, parallelism = lanes
- pbkdf2-sha256: iterations = rounds; memory must be 0 and parallelism 1
"""

from enum import Enum
from typing import Any, Dict

from argon2.low_level import Type, hash_secret_raw
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from pydantic import BaseModel, ConfigDict, model_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import FormatError, ValidationError

SALT_LENGTH = 32
KEY_LENGTH = 32


class KdfAlgorithm(str, Enum):
    ARGON2ID = "argon2id"
    PBKDF2_SHA256 = "pbkdf2-sha256"


# Minimums: OWASP password storage guidance. Maximums cap what a hostile blob can demand.
ARGON2ID_MIN_ITERATIONS = 2
ARGON2ID_MAX_ITERATIONS = 64
ARGON2ID_MIN_MEMORY_KIB = 19456
ARGON2ID_MAX_MEMORY_KIB = 4 * 1024 * 1024
MAX_PARALLELISM = 64

PBKDF2_MIN_ITERATIONS = 100_000
PBKDF2_MAX_ITERATIONS = 10_000_000

# RFC 9106 second recommended option
DEFAULT_ARGON2ID_ITERATIONS = 3
DEFAULT_ARGON2ID_MEMORY_KIB = 65536
DEFAULT_ARGON2ID_PARALLELISM = 4

DEFAULT_PBKDF2_ITERATIONS = 600_000


class KdfParams(BaseModel):
    """Key derivation parameters, recorded verbatim in every sealed blob."""
    model_config = ConfigDict(frozen=True, extra="forbid", strict=True)

    algorithm: KdfAlgorithm
    iterations: int
    memory: int
    parallelism: int

    @model_validator(mode="after")
    def _check_bounds(self) -> "KdfParams":
        if self.algorithm == KdfAlgorithm.ARGON2ID:
            if not ARGON2ID_MIN_ITERATIONS <= self.iterations <= ARGON2ID_MAX_ITERATIONS:
                raise ValueError(
                    f"argon2id iterations must be between {ARGON2ID_MIN_ITERATIONS} "
                    f"and {ARGON2ID_MAX_ITERATIONS}"
                )
            if not ARGON2ID_MIN_MEMORY_KIB <= self.memory <= ARGON2ID_MAX_MEMORY_KIB:
                raise ValueError(
                    f"argon2id memory must be between {ARGON2ID_MIN_MEMORY_KIB} "
                    f"and {ARGON2ID_MAX_MEMORY_KIB} KiB"
                )
            if not 1 <= self.parallelism <= MAX_PARALLELISM:
                raise ValueError(f"argon2id parallelism must be between 1 and {MAX_PARALLELISM}")
            # argon2 requires at least 8 KiB per lane
            if self.memory < 8 * self.parallelism:
                raise ValueError("argon2id memory too small for the requested parallelism")
        else:
            if not PBKDF2_MIN_ITERATIONS <= self.iterations <= PBKDF2_MAX_ITERATIONS:
                raise ValueError(
                    f"pbkdf2-sha256 iterations must be between {PBKDF2_MIN_ITERATIONS} "
                    f"and {PBKDF2_MAX_ITERATIONS}"
                )
            if self.memory != 0 or self.parallelism != 1:
                raise ValueError("pbkdf2-sha256 requires memory=0 and parallelism=1")
        return self

    @classmethod
    def argon2id(
        cls,
        iterations: int = DEFAULT_ARGON2ID_ITERATIONS,
        memory: int = DEFAULT_ARGON2ID_MEMORY_KIB,
        parallelism: int = DEFAULT_ARGON2ID_PARALLELISM,
    ) -> "KdfParams":
        return cls.build(KdfAlgorithm.ARGON2ID.value, iterations, memory, parallelism)

    @classmethod
    def pbkdf2_sha256(cls, iterations: int = DEFAULT_PBKDF2_ITERATIONS) -> "KdfParams":
        return cls.build(KdfAlgorithm.PBKDF2_SHA256.value, iterations, 0, 1)

    @classmethod
    def build(cls, algorithm: str, iterations: int, memory: int, parallelism: int) -> "KdfParams":
        """
        Build parameters supplied by a caller.

        Raises:
            ValidationError: if the algorithm is unknown or a value is out of range
        """
        try:
            return cls._parse({
                "algorithm": algorithm,
                "iterations": iterations,
                "memory": memory,
                "parallelism": parallelism,
            })
        except ValueError as e:
            raise ValidationError("kdf_params", str(e)) from None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "algorithm": self.algorithm.value,
            "iterations": self.iterations,
            "memory": self.memory,
            "parallelism": self.parallelism,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "KdfParams":
        """
        Parse parameters read from a blob.

        Raises:
            FormatError: if the parameters are missing, unknown, or out of range
        """
        try:
            return cls._parse(data)
        except ValueError as e:
            raise FormatError(f"unsupported kdf_params: {e}") from None

    @classmethod
    def _parse(cls, data: Any) -> "KdfParams":
        if not isinstance(data, dict):
            raise ValueError("kdf_params must be an object")
        try:
            algorithm = KdfAlgorithm(data.get("algorithm"))
        except ValueError:
            raise ValueError(f"unknown algorithm {data.get('algorithm')!r}") from None
        try:
            return cls.model_validate({**data, "algorithm": algorithm})
        except PydanticValidationError as e:
            first = e.errors()[0]
            raise ValueError(first.get("msg", "invalid kdf_params")) from None


def derive_key(password: str, salt: bytes, params: KdfParams) -> bytearray:
    """
    Derive a 32-byte key from a password.

    Deterministic: identical password, salt and params always give the same
    key. CPU (and for argon2id, memory) intensive; run it off any thread
    serving interactive work.

    Args:
        password: User password
        salt: 32 random bytes
        params: Validated KdfParams

    Returns:
        Derived key as a bytearray the caller should wipe after use. Wiping
        is best effort: the immutable bytes returned by argon2 and
        cryptography, and the encoded password, are left to the garbage
        collector.

    Raises:
        ValidationError: on an empty or unencodable password, or wrong salt length
    """
    if not isinstance(password, str) or not password:
        raise ValidationError("password", "must be a non-empty string")
    if len(salt) != SALT_LENGTH:
        raise ValidationError("salt", f"must be {SALT_LENGTH} bytes")

    try:
        secret = password.encode("utf-8")
    except UnicodeEncodeError:
        raise ValidationError("password", "must be encodable as UTF-8") from None

    if params.algorithm == KdfAlgorithm.ARGON2ID:
        raw = hash_secret_raw(
            secret=secret,
            salt=bytes(salt),
            time_cost=params.iterations,
            memory_cost=params.memory,
            parallelism=params.parallelism,
            hash_len=KEY_LENGTH,
            type=Type.ID,
        )
    else:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LENGTH,
            salt=bytes(salt),
            iterations=params.iterations,
        )
        raw = kdf.derive(secret)

    return bytearray(raw)
