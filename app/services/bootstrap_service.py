import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.security import hash_password
from app.db.session import engine, Base
from app.models.user import User, ROLE_ADMIN
# register every table on Base.metadata
from app.models import bet, lottery_round, lottery_type, settlement, user, wallet  # noqa: F401

logger = logging.getLogger(__name__)

async def init_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

async def ensure_default_admin(session: AsyncSession) -> User:
    u = await session.scalar(select(User).where(User.username == settings.ADMIN_DEFAULT_USERNAME))
    if u is None:
        u = User(
            username=settings.ADMIN_DEFAULT_USERNAME,
            password_hash=hash_password(settings.ADMIN_DEFAULT_PASSWORD),
            nickname=settings.ADMIN_DEFAULT_USERNAME,
            role=ROLE_ADMIN,
            status=1,
        )
        session.add(u)
        await session.commit()
        logger.warning("created default admin %r, change its password", u.username)
    return u
