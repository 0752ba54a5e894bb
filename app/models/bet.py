
from datetime import datetime
from decimal import Decimal
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Numeric, DateTime, BigInteger, JSON, func
from app.db.session import Base, BigIntPK

BET_PENDING = "pending"
BET_WON = "won"
BET_LOST = "lost"
BET_CANCELLED = "cancelled"

class Bet(Base):
    __tablename__ = "bet"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    lottery_round_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    bet_type: Mapped[str] = mapped_column(String(16), nullable=False)
    numbers: Mapped[list] = mapped_column(JSON, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(16,2), nullable=False)
    status: Mapped[str] = mapped_column(String(16), default=BET_PENDING, index=True)
    payout: Mapped[Decimal | None] = mapped_column(Numeric(16,2))  # set iff won
    settled_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())
