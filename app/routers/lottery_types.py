from typing import List

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_admin
from app.db.session import get_session
from app.models.user import User
from app.schemas.common import PaginationMeta
from app.schemas.lottery import (
    LotteryTypeOut, LotteryTypePage, LotteryTypeCreateIn, LotteryTypeUpdateIn, EffectiveRatesOut,
)
from app.services import lottery_type_service as svc
from app.services.payout_rates import effective_rates

router = APIRouter(prefix="/lottery", tags=["lottery-types"])


@router.get("/types", response_model=List[LotteryTypeOut])
async def list_types(
        active_only: bool = Query(False, alias="activeOnly"),
        session: AsyncSession = Depends(get_session),
):
    return [LotteryTypeOut.model_validate(t) for t in await svc.list_types(session, active_only)]


@router.get("/admin/types", response_model=LotteryTypePage)
async def list_types_page(
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        session: AsyncSession = Depends(get_session),
        admin: User = Depends(get_current_admin),
):
    rows, total = await svc.list_types_page(session, page, limit)
    return LotteryTypePage(
        data=[LotteryTypeOut.model_validate(t) for t in rows],
        meta=PaginationMeta.build(page, limit, total),
    )


@router.post("/admin/types", response_model=LotteryTypeOut, status_code=201)
async def create_type(
        payload: LotteryTypeCreateIn,
        session: AsyncSession = Depends(get_session),
        admin: User = Depends(get_current_admin),
):
    lt = await svc.create_type(
        session,
        name=payload.name,
        code=payload.code,
        status=payload.status,
        payout_rates=payload.payout_rates,
    )
    return LotteryTypeOut.model_validate(lt)


@router.api_route("/admin/types/{type_id}", methods=["PATCH", "PUT"], response_model=LotteryTypeOut)
async def update_type(
        type_id: int,
        payload: LotteryTypeUpdateIn,
        session: AsyncSession = Depends(get_session),
        admin: User = Depends(get_current_admin),
):
    lt = await svc.update_type(session, type_id, payload.model_dump(exclude_unset=True))
    return LotteryTypeOut.model_validate(lt)


@router.delete("/admin/types/{type_id}", status_code=204)
async def delete_type(
        type_id: int,
        session: AsyncSession = Depends(get_session),
        admin: User = Depends(get_current_admin),
):
    """Only types no round refers to; otherwise set status inactive."""
    await svc.delete_type(session, type_id)
    return Response(status_code=204)


@router.get("/admin/types/{type_id}/rates", response_model=EffectiveRatesOut)
async def get_effective_rates(
        type_id: int,
        session: AsyncSession = Depends(get_session),
        admin: User = Depends(get_current_admin),
):
    lt = await svc.get_type(session, type_id)
    rates = effective_rates(lt)
    return EffectiveRatesOut(
        lottery_type_id=lt.id,
        rates={t.value: float(v) for t, v in rates.items()},
        overrides={k: float(v) for k, v in (lt.payout_rates or {}).items()},
    )
