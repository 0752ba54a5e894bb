from datetime import datetime
from typing import List, Optional
from pydantic import Field

from app.schemas.common import CamelModel, PaginationMeta
from app.schemas.lottery import LotteryTypeBrief

class ResultIn(CamelModel):
    # digit strings; blank means not drawn yet
    first_prize: Optional[str] = None
    last_two_digits: Optional[str] = None
    last_three_digits: Optional[str] = None

class ResultOut(CamelModel):
    first_prize: Optional[str] = None
    last_two_digits: Optional[str] = None
    last_three_digits: Optional[str] = None

class SubmitResultIn(CamelModel):
    result: ResultIn

class CalculationResult(CamelModel):
    won: int
    lost: int
    skipped: int = 0
    total_payout: float

class SubmitResultOut(CamelModel):
    calculation_result: CalculationResult

class RoundCreateIn(CamelModel):
    lottery_type_id: int
    round_number: str = Field(min_length=1, max_length=32)
    open_time: datetime
    close_time: datetime

class RoundOut(CamelModel):
    id: int
    lottery_type_id: int
    round_number: str
    open_time: datetime
    close_time: datetime
    status: str
    result: Optional[ResultOut] = None
    lottery_type: Optional[LotteryTypeBrief] = None

class RoundPage(CamelModel):
    data: List[RoundOut]
    meta: PaginationMeta
