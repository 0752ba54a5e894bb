from __future__ import annotations
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from app.services.bet_types import BetType, DEFAULT_RATES


def _positive_decimal(raw: Any) -> Optional[Decimal]:
    if raw is None or isinstance(raw, bool):
        return None
    if not isinstance(raw, (int, float, Decimal, str)):
        return None
    try:
        v = Decimal(str(raw).strip())
    except InvalidOperation:
        return None
    if not v.is_finite() or v <= 0:
        return None
    return v


def resolve_rate(lottery_type, bet_type: BetType) -> Decimal:
    """
    Effective multiplier for (lottery type, bet type).
    Uses lottery_type.payout_rates[bet_type] when it is a positive number,
    otherwise the registry default. Never raises.
    """
    rates = getattr(lottery_type, "payout_rates", None)
    raw = rates.get(bet_type.value) if isinstance(rates, dict) else None
    rate = _positive_decimal(raw)
    return rate if rate is not None else DEFAULT_RATES[bet_type]


def effective_rates(lottery_type) -> Dict[BetType, Decimal]:
    return {t: resolve_rate(lottery_type, t) for t in BetType}
