from datetime import datetime
from decimal import Decimal
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Numeric, DateTime, BigInteger, func
from app.db.session import Base, BigIntPK

class SettlementRecord(Base):
    """One row per committed result submission, kept for audit."""
    __tablename__ = "settlement_record"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    lottery_round_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    won: Mapped[int] = mapped_column(Integer, default=0)
    lost: Mapped[int] = mapped_column(Integer, default=0)
    skipped: Mapped[int] = mapped_column(Integer, default=0)
    total_payout: Mapped[Decimal] = mapped_column(Numeric(16,2), default=0)
    # payouts of the previous submission taken back before recomputing
    reversed_payout: Mapped[Decimal] = mapped_column(Numeric(16,2), default=0)

    first_prize: Mapped[str | None] = mapped_column(String(8))
    last_two_digits: Mapped[str | None] = mapped_column(String(2))
    last_three_digits: Mapped[str | None] = mapped_column(String(3))

    settled_by: Mapped[int | None] = mapped_column(BigInteger)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
