from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_admin
from app.db.session import get_session
from app.models.user import User
from app.routers.rounds import bet_out
from app.schemas.bets import BetPage, BetRoundBrief
from app.schemas.common import PaginationMeta
from app.schemas.lottery import LotteryTypeBrief
from app.services.bet_service import BetFilter, list_bets, load_context

router = APIRouter(prefix="/admin/bets", tags=["bets"])


@router.get("", response_model=BetPage)
async def admin_list_bets(
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        status: Optional[str] = Query(None),
        user_id: Optional[int] = Query(None, alias="userId"),
        round_id: Optional[int] = Query(None, alias="roundId"),
        bet_type: Optional[str] = Query(None, alias="betType"),
        session: AsyncSession = Depends(get_session),
        admin: User = Depends(get_current_admin),
):
    """All bets across rounds, newest first, with the player and round attached."""
    flt = BetFilter(status=status, user_id=user_id, round_id=round_id, bet_type=bet_type)
    bets, total = await list_bets(session, flt, page, limit)
    ctx = await load_context(session, bets)

    data = []
    for b in bets:
        rnd = ctx.rounds.get(b.lottery_round_id)
        brief = None
        if rnd is not None:
            lt = ctx.types.get(rnd.lottery_type_id)
            brief = BetRoundBrief(
                id=rnd.id,
                round_number=rnd.round_number,
                lottery_type=LotteryTypeBrief.model_validate(lt) if lt else None,
            )
        data.append(bet_out(b, ctx.users.get(b.user_id), brief))

    return BetPage(data=data, meta=PaginationMeta.build(page, limit, total))
