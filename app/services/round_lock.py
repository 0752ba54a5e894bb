import logging
from contextlib import asynccontextmanager

from redis.exceptions import LockError, RedisError

from app.constants import k_settle_lock
from app.core.config import settings
from app.core.errors import ConflictError, TransactionError

logger = logging.getLogger(__name__)


class RoundLock:
    """Single writer per round: a non-blocking redis-py lock on a per-round key."""

    def __init__(self, client, ttl_seconds: int = settings.SETTLEMENT_LOCK_TTL_SECONDS):
        self.client = client
        self.ttl_seconds = ttl_seconds

    @asynccontextmanager
    async def hold(self, round_id: int):
        key = k_settle_lock(round_id)
        lk = self.client.lock(key, timeout=self.ttl_seconds, blocking=False)
        try:
            acquired = await lk.acquire()
        except LockError as e:
            raise ConflictError(f"round {round_id} is already being settled") from e
        except RedisError as e:
            raise TransactionError("settlement lock is unavailable, try again") from e
        if not acquired:
            raise ConflictError(f"round {round_id} is already being settled")
        try:
            yield
        finally:
            try:
                await lk.release()
            except LockError:
                logger.warning("settlement lock %s expired before release", key)
            except RedisError:
                # key still expires after ttl_seconds
                logger.exception("failed to release settlement lock %s", key)


def get_round_lock() -> RoundLock:
    from app.db.redis import r
    return RoundLock(r)
