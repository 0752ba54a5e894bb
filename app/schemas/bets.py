from datetime import datetime
from typing import List, Optional

from app.schemas.common import CamelModel, PaginationMeta
from app.schemas.lottery import LotteryTypeBrief

class BetUserBrief(CamelModel):
    id: int
    username: str

class BetRoundBrief(CamelModel):
    id: int
    round_number: str
    lottery_type: Optional[LotteryTypeBrief] = None

class BetOut(CamelModel):
    id: int
    user_id: int
    lottery_round_id: int
    bet_type: str
    numbers: List[str]
    amount: float
    status: str
    payout: Optional[float] = None
    created_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None
    # filled by the cross-round admin list only
    user: Optional[BetUserBrief] = None
    lottery_round: Optional[BetRoundBrief] = None

class BetPage(CamelModel):
    data: List[BetOut]
    meta: PaginationMeta

class RoundBetStats(CamelModel):
    total_bets: int
    total_amount: float
    won_bets: int
    total_payout: float

class RoundBetPage(CamelModel):
    data: List[BetOut]
    meta: PaginationMeta
    stats: RoundBetStats
