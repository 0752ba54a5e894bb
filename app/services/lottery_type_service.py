from __future__ import annotations
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.lottery_round import LotteryRound
from app.models.lottery_type import LotteryType
from app.services.bet_types import parse_bet_type

TYPE_STATUSES = ("active", "inactive")


def normalize_payout_rates(raw: Optional[Dict[str, Any]]) -> Optional[Dict[str, float | int]]:
    """
    Admin input -> stored JSON.
    Keys must be bet types, values numbers >= 1; None values drop the override.
    """
    if raw is None:
        return None
    out: Dict[str, float | int] = {}
    for key, value in raw.items():
        bt = parse_bet_type(key)
        if bt is None:
            raise ValidationError(f"unknown bet type in payoutRates: {key!r}")
        if value is None:
            continue
        if isinstance(value, bool):
            raise ValidationError(f"payoutRates.{bt.value} must be a number")
        try:
            v = Decimal(str(value))
        except InvalidOperation as e:
            raise ValidationError(f"payoutRates.{bt.value} must be a number") from e
        if not v.is_finite() or v < 1:
            raise ValidationError(f"payoutRates.{bt.value} must be at least 1")
        out[bt.value] = int(v) if v == v.to_integral_value() else float(v)
    return out or None


async def get_type(session: AsyncSession, type_id: int) -> LotteryType:
    lt = await session.get(LotteryType, type_id)
    if lt is None:
        raise NotFoundError(f"lottery type {type_id} not found")
    return lt


async def list_types(session: AsyncSession, active_only: bool = False) -> List[LotteryType]:
    stmt = select(LotteryType).order_by(LotteryType.id.asc())
    if active_only:
        stmt = stmt.where(LotteryType.status == "active")
    return list((await session.execute(stmt)).scalars().all())


async def list_types_page(session: AsyncSession, page: int = 1, limit: int = 10) -> Tuple[List[LotteryType], int]:
    total = await session.scalar(select(func.count(LotteryType.id)))
    rs = await session.execute(
        select(LotteryType).order_by(LotteryType.id.asc()).offset((page - 1) * limit).limit(limit)
    )
    return list(rs.scalars().all()), int(total or 0)


async def _ensure_code_free(session: AsyncSession, code: str, exclude_id: Optional[int] = None) -> None:
    stmt = select(LotteryType.id).where(LotteryType.code == code)
    if exclude_id is not None:
        stmt = stmt.where(LotteryType.id != exclude_id)
    if await session.scalar(stmt):
        raise ConflictError(f"lottery type code already exists: {code}")


def _check_status(status: str) -> str:
    if status not in TYPE_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(TYPE_STATUSES)}")
    return status


async def create_type(
    session: AsyncSession,
    name: str,
    code: str,
    status: str = "active",
    payout_rates: Optional[Dict[str, Any]] = None,
) -> LotteryType:
    name, code = name.strip(), code.strip()
    if not name or not code:
        raise ValidationError("name and code are required")
    rates = normalize_payout_rates(payout_rates)
    try:
        await _ensure_code_free(session, code)
        lt = LotteryType(name=name, code=code, status=_check_status(status), payout_rates=rates)
        session.add(lt)
        await session.commit()
        await session.refresh(lt)
        return lt
    except Exception:
        await session.rollback(); raise


async def update_type(session: AsyncSession, type_id: int, changes: Dict[str, Any]) -> LotteryType:
    """Partial update; only keys present in `changes` are touched."""
    try:
        lt = await get_type(session, type_id)
        if "name" in changes and changes["name"] is not None:
            name = changes["name"].strip()
            if not name:
                raise ValidationError("name is required")
            lt.name = name
        if "code" in changes and changes["code"] is not None:
            code = changes["code"].strip()
            if not code:
                raise ValidationError("code is required")
            await _ensure_code_free(session, code, exclude_id=lt.id)
            lt.code = code
        if "status" in changes and changes["status"] is not None:
            lt.status = _check_status(changes["status"])
        if "payout_rates" in changes:
            lt.payout_rates = normalize_payout_rates(changes["payout_rates"])
        await session.commit()
        await session.refresh(lt)
        return lt
    except Exception:
        await session.rollback(); raise


async def delete_type(session: AsyncSession, type_id: int) -> None:
    """Remove a lottery type that no round points at yet."""
    try:
        lt = await get_type(session, type_id)
        used = await session.scalar(
            select(func.count(LotteryRound.id)).where(LotteryRound.lottery_type_id == lt.id)
        )
        if used:
            raise ConflictError(f"lottery type {lt.code} is used by {used} rounds, set it inactive instead")
        await session.delete(lt)
        await session.commit()
    except Exception:
        await session.rollback(); raise
