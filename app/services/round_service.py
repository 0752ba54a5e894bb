from __future__ import annotations
import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError, ValidationError
from app.core.timeutil import now_naive, to_naive
from app.models.bet import Bet, BET_WON
from app.models.lottery_type import LotteryType
from app.models.lottery_round import (
    LotteryRound, ROUND_OPEN, ROUND_CLOSED, ROUND_DRAWING, ROUND_COMPLETED,
)

logger = logging.getLogger(__name__)

ROUND_STATUSES = (ROUND_OPEN, ROUND_CLOSED, ROUND_DRAWING, ROUND_COMPLETED)

# open -> closed -> completed; drawing is a display alias of closed.
# completed -> completed is a result re-submission.
ALLOWED_TRANSITIONS: Dict[str, set[str]] = {
    ROUND_OPEN: {ROUND_CLOSED, ROUND_DRAWING, ROUND_COMPLETED},
    ROUND_CLOSED: {ROUND_DRAWING, ROUND_COMPLETED},
    ROUND_DRAWING: {ROUND_CLOSED, ROUND_COMPLETED},
    ROUND_COMPLETED: {ROUND_COMPLETED},
}


def ensure_transition(current: str, target: str) -> None:
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        raise ValidationError(f"round cannot move from {current!r} to {target!r}")


async def get_round(session: AsyncSession, round_id: int) -> LotteryRound:
    rnd = await session.get(LotteryRound, round_id)
    if rnd is None:
        raise NotFoundError(f"round {round_id} not found")
    return rnd


async def create_round(
    session: AsyncSession,
    lottery_type_id: int,
    round_number: str,
    open_time: datetime,
    close_time: datetime,
) -> LotteryRound:
    open_time, close_time = to_naive(open_time), to_naive(close_time)
    if open_time >= close_time:
        raise ValidationError("openTime must be earlier than closeTime")
    round_number = round_number.strip()
    if not round_number:
        raise ValidationError("roundNumber is required")

    try:
        lt = await session.get(LotteryType, lottery_type_id)
        if lt is None:
            raise NotFoundError(f"lottery type {lottery_type_id} not found")
        if lt.status != "active":
            raise ValidationError(f"lottery type {lt.code} is inactive")

        rnd = LotteryRound(
            lottery_type_id=lottery_type_id,
            round_number=round_number,
            open_time=open_time,
            close_time=close_time,
            status=ROUND_OPEN,
        )
        session.add(rnd)
        await session.commit()
        await session.refresh(rnd)
        return rnd
    except Exception:
        await session.rollback(); raise


async def list_rounds(
    session: AsyncSession,
    page: int = 1,
    limit: int = 10,
    statuses: Optional[Iterable[str]] = None,
) -> Tuple[List[LotteryRound], int]:
    cond = []
    statuses = [s for s in (statuses or []) if s]
    if statuses:
        unknown = set(statuses) - set(ROUND_STATUSES)
        if unknown:
            raise ValidationError(f"unknown round status: {', '.join(sorted(unknown))}")
        cond.append(LotteryRound.status.in_(statuses))

    total = await session.scalar(select(func.count(LotteryRound.id)).where(*cond))
    rs = await session.execute(
        select(LotteryRound).where(*cond)
        .order_by(LotteryRound.close_time.desc(), LotteryRound.id.desc())
        .offset((page - 1) * limit).limit(limit)
    )
    return list(rs.scalars().all()), int(total or 0)


async def list_round_bets(
    session: AsyncSession, round_id: int, page: int = 1, limit: int = 10
) -> Tuple[List[Bet], int, Dict[str, object]]:
    """Bets of a round, newest first, plus totals over the whole round."""
    await get_round(session, round_id)

    rs = await session.execute(
        select(Bet).where(Bet.lottery_round_id == round_id)
        .order_by(Bet.id.desc())
        .offset((page - 1) * limit).limit(limit)
    )
    bets = list(rs.scalars().all())

    total_bets, total_amount = (await session.execute(
        select(func.count(Bet.id), func.coalesce(func.sum(Bet.amount), 0))
        .where(Bet.lottery_round_id == round_id)
    )).one()
    won_bets, total_payout = (await session.execute(
        select(func.count(Bet.id), func.coalesce(func.sum(Bet.payout), 0))
        .where(Bet.lottery_round_id == round_id, Bet.status == BET_WON)
    )).one()

    stats = {
        "total_bets": int(total_bets or 0),
        "total_amount": Decimal(str(total_amount or 0)),
        "won_bets": int(won_bets or 0),
        "total_payout": Decimal(str(total_payout or 0)),
    }
    return bets, int(total_bets or 0), stats


async def close_due_rounds(session: AsyncSession, now: Optional[datetime] = None) -> int:
    """open -> closed for every round whose betting window has ended."""
    now = to_naive(now) if now else now_naive()
    try:
        res = await session.execute(
            update(LotteryRound)
            .where(LotteryRound.status == ROUND_OPEN, LotteryRound.close_time <= now)
            .values(status=ROUND_CLOSED)
        )
        await session.commit()
    except Exception:
        await session.rollback(); raise
    closed = res.rowcount or 0
    if closed:
        logger.info("closed %d rounds past close_time", closed)
    return closed


async def list_open_rounds(session: AsyncSession, lottery_type_id: Optional[int] = None) -> List[LotteryRound]:
    """Rounds still taking bets, soonest close first."""
    stmt = select(LotteryRound).where(LotteryRound.status == ROUND_OPEN)
    if lottery_type_id is not None:
        stmt = stmt.where(LotteryRound.lottery_type_id == lottery_type_id)
    rs = await session.execute(stmt.order_by(LotteryRound.close_time.asc(), LotteryRound.id.asc()))
    return list(rs.scalars().all())
