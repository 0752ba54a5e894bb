from datetime import datetime
from typing import Dict, List, Literal, Optional
from pydantic import Field

from app.schemas.common import CamelModel, PaginationMeta

# payoutRates keys are bet types: two_digit, three_digit, running, set, high_low, todd, odd_even, rood
PayoutRates = Dict[str, Optional[float]]

class LotteryTypeBrief(CamelModel):
    id: int
    name: str
    code: str

class LotteryTypeOut(CamelModel):
    id: int
    name: str
    code: str
    status: str
    payout_rates: Optional[Dict[str, float]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class LotteryTypePage(CamelModel):
    data: List[LotteryTypeOut]
    meta: PaginationMeta

class LotteryTypeCreateIn(CamelModel):
    name: str = Field(min_length=1, max_length=64)
    code: str = Field(min_length=1, max_length=32)
    status: Literal["active", "inactive"] = "active"
    payout_rates: Optional[PayoutRates] = None

class LotteryTypeUpdateIn(CamelModel):
    name: Optional[str] = Field(default=None, max_length=64)
    code: Optional[str] = Field(default=None, max_length=32)
    status: Optional[Literal["active", "inactive"]] = None
    payout_rates: Optional[PayoutRates] = None

class EffectiveRatesOut(CamelModel):
    lottery_type_id: int
    # every bet type, override or default
    rates: Dict[str, float]
    overrides: Dict[str, float]
