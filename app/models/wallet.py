
from datetime import datetime
from decimal import Decimal
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Numeric, DateTime, BigInteger, SmallInteger, func
from app.db.session import Base, BigIntPK

DIRECTION_IN = 1
DIRECTION_OUT = 2

BIZ_PAYOUT = 30
BIZ_PAYOUT_REVERSAL = 31

class Wallet(Base):
    __tablename__ = "wallet"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)
    balance: Mapped[Decimal] = mapped_column(Numeric(16,2), default=0)
    version: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

class WalletLedger(Base):
    __tablename__ = "wallet_ledger"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    direction: Mapped[int] = mapped_column(SmallInteger, nullable=False)  # 1 in 2 out
    amount: Mapped[Decimal] = mapped_column(Numeric(16,2), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(Numeric(16,2), nullable=False)
    biz_type: Mapped[int] = mapped_column(SmallInteger, nullable=False)  # 30 payout 31 payout reversal
    ref_table: Mapped[str | None] = mapped_column(String(32))
    ref_id: Mapped[int | None] = mapped_column(BigInteger)
    remark: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
