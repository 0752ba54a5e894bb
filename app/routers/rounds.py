from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_admin
from app.core.timeutil import localize
from app.db.session import get_session
from app.models.lottery_round import LotteryRound, ROUND_COMPLETED
from app.models.lottery_type import LotteryType
from app.models.user import User
from app.schemas.bets import BetOut, BetRoundBrief, BetUserBrief, RoundBetPage, RoundBetStats
from app.schemas.common import PaginationMeta
from app.schemas.lottery import LotteryTypeBrief
from app.schemas.rounds import (
    CalculationResult, ResultOut, RoundCreateIn, RoundOut, RoundPage, SubmitResultIn, SubmitResultOut,
)
from app.services import round_service
from app.services.round_lock import RoundLock, get_round_lock
from app.services.round_result import RoundResult
from app.services.settlement import settle_round

router = APIRouter(prefix="/lottery/admin/rounds", tags=["rounds"])
public_router = APIRouter(prefix="/lottery/rounds", tags=["rounds"])


async def _type_map(session: AsyncSession, type_ids) -> dict[int, LotteryType]:
    ids = set(type_ids)
    if not ids:
        return {}
    rs = await session.execute(select(LotteryType).where(LotteryType.id.in_(ids)))
    return {t.id: t for t in rs.scalars().all()}


def round_out(rnd: LotteryRound, lt: Optional[LotteryType] = None) -> RoundOut:
    result = None
    if rnd.status == ROUND_COMPLETED:
        result = ResultOut.model_validate(RoundResult.from_round(rnd).as_dict())
    return RoundOut(
        id=rnd.id,
        lottery_type_id=rnd.lottery_type_id,
        round_number=rnd.round_number,
        open_time=localize(rnd.open_time),
        close_time=localize(rnd.close_time),
        status=rnd.status,
        result=result,
        lottery_type=LotteryTypeBrief.model_validate(lt) if lt else None,
    )


def bet_out(bet, user=None, lottery_round: Optional[BetRoundBrief] = None) -> BetOut:
    return BetOut(
        id=bet.id,
        user_id=bet.user_id,
        lottery_round_id=bet.lottery_round_id,
        bet_type=bet.bet_type,
        numbers=[str(n) for n in (bet.numbers or [])],
        amount=float(bet.amount),
        status=bet.status,
        payout=float(bet.payout) if bet.payout is not None else None,
        created_at=localize(bet.created_at),
        settled_at=localize(bet.settled_at),
        user=BetUserBrief.model_validate(user) if user is not None else None,
        lottery_round=lottery_round,
    )


@router.get("", response_model=RoundPage)
async def list_rounds(
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        status: Optional[List[str]] = Query(None, description="filter, may repeat"),
        session: AsyncSession = Depends(get_session),
        admin: User = Depends(get_current_admin),
):
    rows, total = await round_service.list_rounds(session, page, limit, status)
    types = await _type_map(session, (r.lottery_type_id for r in rows))
    return RoundPage(
        data=[round_out(r, types.get(r.lottery_type_id)) for r in rows],
        meta=PaginationMeta.build(page, limit, total),
    )


@router.post("", response_model=RoundOut, status_code=201)
async def create_round(
        payload: RoundCreateIn,
        session: AsyncSession = Depends(get_session),
        admin: User = Depends(get_current_admin),
):
    rnd = await round_service.create_round(
        session,
        lottery_type_id=payload.lottery_type_id,
        round_number=payload.round_number,
        open_time=payload.open_time,
        close_time=payload.close_time,
    )
    lt = await session.get(LotteryType, rnd.lottery_type_id)
    return round_out(rnd, lt)


@router.get("/{round_id}", response_model=RoundOut)
async def get_round(
        round_id: int,
        session: AsyncSession = Depends(get_session),
        admin: User = Depends(get_current_admin),
):
    rnd = await round_service.get_round(session, round_id)
    lt = await session.get(LotteryType, rnd.lottery_type_id)
    return round_out(rnd, lt)


@router.get("/{round_id}/bets", response_model=RoundBetPage)
async def list_round_bets(
        round_id: int,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        session: AsyncSession = Depends(get_session),
        admin: User = Depends(get_current_admin),
):
    bets, total, stats = await round_service.list_round_bets(session, round_id, page, limit)
    return RoundBetPage(
        data=[bet_out(b) for b in bets],
        meta=PaginationMeta.build(page, limit, total),
        stats=RoundBetStats(
            total_bets=stats["total_bets"],
            total_amount=float(stats["total_amount"]),
            won_bets=stats["won_bets"],
            total_payout=float(stats["total_payout"]),
        ),
    )


@router.api_route("/{round_id}/result", methods=["POST", "PUT"], response_model=SubmitResultOut)
async def submit_result(
        round_id: int,
        payload: SubmitResultIn,
        session: AsyncSession = Depends(get_session),
        admin: User = Depends(get_current_admin),
        lock: RoundLock = Depends(get_round_lock),
):
    """
    Enter the official numbers and settle the round:
      - every pending bet is matched against the result
      - winners are paid out to their wallets
      - the round becomes completed
    Submitting again recomputes the whole round.
    """
    result = RoundResult.parse(
        first_prize=payload.result.first_prize,
        last_two_digits=payload.result.last_two_digits,
        last_three_digits=payload.result.last_three_digits,
    )
    summary = await settle_round(session, round_id, result, lock=lock, settled_by=admin.id)
    return SubmitResultOut(calculation_result=CalculationResult(
        won=summary.won,
        lost=summary.lost,
        skipped=summary.skipped,
        total_payout=float(summary.total_payout),
    ))


@public_router.get("/open", response_model=List[RoundOut])
async def list_open_rounds(
        lottery_type_id: Optional[int] = Query(None, alias="lotteryTypeId"),
        session: AsyncSession = Depends(get_session),
):
    rows = await round_service.list_open_rounds(session, lottery_type_id)
    types = await _type_map(session, (r.lottery_type_id for r in rows))
    return [round_out(r, types.get(r.lottery_type_id)) for r in rows]
