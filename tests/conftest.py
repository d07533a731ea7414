import os

# Cheapest argon2id settings the library accepts; set before contextkey.config is imported
os.environ.setdefault("CONTEXTKEY_KDF_ALGORITHM", "argon2id")
os.environ.setdefault("CONTEXTKEY_KDF_ITERATIONS", "2")
os.environ.setdefault("CONTEXTKEY_KDF_MEMORY", "19456")
os.environ.setdefault("CONTEXTKEY_KDF_PARALLELISM", "1")

import pytest

from contextkey import KdfParams, generate_key_pair


@pytest.fixture
def fast_kdf():
    return KdfParams.argon2id(iterations=2, memory=19456, parallelism=1)


@pytest.fixture
def identity():
    return generate_key_pair()
