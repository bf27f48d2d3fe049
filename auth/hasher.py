"""One-way hashing for passwords and action tokens.

bcrypt is deliberately slow, so every call runs on a worker thread and
never stalls the event loop.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

import bcrypt

from auth.exceptions import InternalError

logger = logging.getLogger(__name__)

# bcrypt only reads the first 72 bytes. Longer secrets are refused rather
# than truncated, otherwise two different secrets could share a hash.
BCRYPT_MAX_BYTES = 72


def secret_too_long(plaintext: str) -> bool:
    return len(plaintext.encode("utf-8")) > BCRYPT_MAX_BYTES


class SecretHasher:
    """Salted bcrypt hashing with a configurable cost factor.

    Used for passwords and for verification/reset tokens alike: neither is
    ever stored in plaintext.
    """

    def __init__(self, rounds: int = 10, max_workers: int = 4):
        self._rounds = rounds
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="secret-hasher",
        )

    def _hash_sync(self, plaintext: str) -> str:
        try:
            hashed = bcrypt.hashpw(plaintext.encode("utf-8"), bcrypt.gensalt(rounds=self._rounds))
        except (ValueError, TypeError) as e:
            logger.error(f"Secret hashing failed: {e}")
            raise InternalError("Failed to hash secret") from e
        return hashed.decode("utf-8")

    def _verify_sync(self, plaintext: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            logger.warning("Stored hash is malformed; treating as mismatch")
            return False

    async def hash(self, plaintext: str) -> str:
        """Hash plaintext.

        Raises:
            ValueError: plaintext is longer than 72 UTF-8 bytes.
            InternalError: Unexpected bcrypt failure.
        """
        if secret_too_long(plaintext):
            raise ValueError(f"Secret exceeds {BCRYPT_MAX_BYTES} bytes")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._hash_sync, plaintext)

    async def verify(self, plaintext: str, hashed: str) -> bool:
        """Check plaintext against a stored hash. Mismatch returns False."""
        # Nothing longer than the limit was ever hashed
        if secret_too_long(plaintext):
            return False
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._verify_sync, plaintext, hashed)

    def close(self) -> None:
        """Shut down the worker pool."""
        self._executor.shutdown(wait=True)
