"""
Secure random provider.

The only process-wide collaborator the envelope pipeline consumes. It is
injected into the key generator and the orchestrator so tests can substitute
a failing source.
"""

import logging
from typing import Callable, Optional

import nacl.utils

from .errors import GenerationError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


class SecureRandom:
    """
    Cryptographically secure byte source backed by libsodium's randombytes.

    Transient OS-level failures are retried up to `max_attempts` times;
    after that a GenerationError is raised and must be treated as fatal.
    """

    def __init__(
        self,
        source: Optional[Callable[[int], bytes]] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._source = source or nacl.utils.random
        self._max_attempts = max_attempts

    def token_bytes(self, n: int) -> bytes:
        """Return `n` random bytes."""
        last_error: Optional[BaseException] = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                data = self._source(n)
            except OSError as e:
                last_error = e
                logger.warning("Entropy source failed (attempt %d/%d)", attempt, self._max_attempts)
                continue
            if len(data) != n:
                raise GenerationError(f"entropy source returned {len(data)} bytes, expected {n}")
            return data
        raise GenerationError("entropy source exhausted") from last_error
