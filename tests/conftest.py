"""
Shared fixtures: a fresh SQLite database per test, a seeding helper and an
in-memory stand-in for the Redis client used by the settlement lock.
"""
import os
import uuid

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("PASSWORD_SALT", "test-salt")

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError, LockError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from app.db.session import Base
from app.models import bet as _bet, lottery_round as _round, lottery_type as _lt  # noqa: F401
from app.models import settlement as _settlement, user as _user, wallet as _wallet  # noqa: F401
from app.models.bet import Bet, BET_PENDING
from app.models.lottery_round import LotteryRound, ROUND_CLOSED
from app.models.lottery_type import LotteryType
from app.models.user import User, ROLE_ADMIN
from app.models.wallet import Wallet
from app.services.round_lock import RoundLock


class FakeLock:
    """Non-blocking lock over FakeRedis.store, same surface as redis.asyncio.lock.Lock."""

    def __init__(self, redis, name, timeout=None, blocking=True):
        self.redis = redis
        self.store = redis.store
        self.name = name
        self.timeout = timeout
        self.token = uuid.uuid4().hex

    async def acquire(self):
        if self.redis.fail:
            raise RedisConnectionError("redis is down")
        if self.name in self.store:
            return False
        self.store[self.name] = self.token
        return True

    async def release(self):
        if self.store.get(self.name) != self.token:
            raise LockError("Cannot release a lock that's no longer owned")
        del self.store[self.name]


class FakeRedis:
    """Implements just the calls RoundLock makes."""

    def __init__(self):
        self.store = {}
        self.fail = False

    def lock(self, name, timeout=None, blocking=True):
        return FakeLock(self, name, timeout=timeout, blocking=blocking)


class Seeder:
    """Each row is written in its own session, so returned objects are detached and fully loaded."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def _save(self, obj):
        async with self.session_factory() as s:
            s.add(obj)
            await s.commit()
            await s.refresh(obj)
        return obj

    async def lottery_type(self, code="gov", payout_rates=None, status="active"):
        return await self._save(LotteryType(
            name=f"หวย {code}", code=code, status=status, payout_rates=payout_rates,
        ))

    async def round(self, lottery_type, status=ROUND_CLOSED, round_number="2026-10-16", close_in_minutes=-5):
        now = datetime.now().replace(microsecond=0)
        return await self._save(LotteryRound(
            lottery_type_id=lottery_type.id,
            round_number=round_number,
            open_time=now - timedelta(days=1),
            close_time=now + timedelta(minutes=close_in_minutes),
            status=status,
        ))

    async def wallet(self, user_id, balance="0"):
        return await self._save(Wallet(user_id=user_id, balance=Decimal(balance), version=0))

    async def bet(self, rnd, bet_type, numbers, amount, user_id=1, status=BET_PENDING, payout=None):
        return await self._save(Bet(
            user_id=user_id,
            lottery_round_id=rnd.id,
            bet_type=bet_type,
            numbers=list(numbers),
            amount=Decimal(str(amount)),
            status=status,
            payout=Decimal(str(payout)) if payout is not None else None,
        ))

    async def admin(self, username="admin", password_hash="x", role=ROLE_ADMIN):
        return await self._save(User(username=username, password_hash=password_hash, role=role, status=1))


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'huay.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def lock(fake_redis):
    return RoundLock(fake_redis, ttl_seconds=60)
