"""Password hashing.

bcrypt is deliberately slow (~250ms per hash at 12 rounds), so hashing and
verification run on a small dedicated thread pool instead of the event
loop.  A burst of logins then queues behind the pool's workers rather than
stalling every other request being served.

bcrypt only looks at the first 72 bytes of a password; longer inputs are
truncated explicitly because recent bcrypt releases refuse them.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

import bcrypt

logger = logging.getLogger(__name__)

_BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """bcrypt hashing dispatched to a bounded worker pool."""

    def __init__(self, rounds: int = 12, max_workers: int = 4) -> None:
        self.rounds = rounds
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="password-hash",
        )

    def _hash_sync(self, password: str) -> str:
        return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    @staticmethod
    def _verify_sync(password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
        except ValueError:
            # Not a bcrypt hash at all; treat as a mismatch.
            logger.warning("stored password hash is not a valid bcrypt hash")
            return False

    async def hash(self, password: str) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._hash_sync, password)

    async def verify(self, password: str, password_hash: str) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._verify_sync, password, password_hash)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
