from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ValidationError
from app.models.bet import Bet, BET_PENDING, BET_WON, BET_LOST, BET_CANCELLED
from app.models.lottery_round import LotteryRound
from app.models.lottery_type import LotteryType
from app.models.user import User
from app.services.bet_types import parse_bet_type

BET_STATUSES = (BET_PENDING, BET_WON, BET_LOST, BET_CANCELLED)


@dataclass
class BetFilter:
    status: Optional[str] = None
    user_id: Optional[int] = None
    round_id: Optional[int] = None
    bet_type: Optional[str] = None

    def conditions(self) -> list:
        cond = []
        if self.status:
            if self.status not in BET_STATUSES:
                raise ValidationError(f"unknown bet status: {self.status}")
            cond.append(Bet.status == self.status)
        if self.user_id is not None:
            cond.append(Bet.user_id == self.user_id)
        if self.round_id is not None:
            cond.append(Bet.lottery_round_id == self.round_id)
        if self.bet_type:
            bt = parse_bet_type(self.bet_type)
            if bt is None:
                raise ValidationError(f"unknown bet type: {self.bet_type}")
            cond.append(Bet.bet_type == bt.value)
        return cond


@dataclass
class BetContext:
    """Rows the admin bet list shows next to each bet."""
    users: Dict[int, User]
    rounds: Dict[int, LotteryRound]
    types: Dict[int, LotteryType]


async def list_bets(
    session: AsyncSession, flt: BetFilter, page: int = 1, limit: int = 10
) -> Tuple[List[Bet], int]:
    cond = flt.conditions()
    total = await session.scalar(select(func.count(Bet.id)).where(*cond))
    rs = await session.execute(
        select(Bet).where(*cond).order_by(Bet.id.desc()).offset((page - 1) * limit).limit(limit)
    )
    return list(rs.scalars().all()), int(total or 0)


async def load_context(session: AsyncSession, bets: List[Bet]) -> BetContext:
    user_ids = {b.user_id for b in bets}
    round_ids = {b.lottery_round_id for b in bets}

    users: Dict[int, User] = {}
    if user_ids:
        rs = await session.execute(select(User).where(User.id.in_(user_ids)))
        users = {u.id: u for u in rs.scalars().all()}

    rounds: Dict[int, LotteryRound] = {}
    if round_ids:
        rs = await session.execute(select(LotteryRound).where(LotteryRound.id.in_(round_ids)))
        rounds = {r.id: r for r in rs.scalars().all()}

    types: Dict[int, LotteryType] = {}
    type_ids = {r.lottery_type_id for r in rounds.values()}
    if type_ids:
        rs = await session.execute(select(LotteryType).where(LotteryType.id.in_(type_ids)))
        types = {t.id: t for t in rs.scalars().all()}

    return BetContext(users=users, rounds=rounds, types=types)
