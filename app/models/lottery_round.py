from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, DateTime, BigInteger, func
from app.db.session import Base, BigIntPK

ROUND_OPEN = "open"
ROUND_CLOSED = "closed"
ROUND_DRAWING = "drawing"     # display state, settles like closed
ROUND_COMPLETED = "completed"

class LotteryRound(Base):
    __tablename__ = "lottery_round"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    lottery_type_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    round_number: Mapped[str] = mapped_column(String(32), nullable=False)

    open_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    close_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default=ROUND_OPEN, index=True)

    # set iff status == completed
    first_prize: Mapped[str | None] = mapped_column(String(8))
    last_two_digits: Mapped[str | None] = mapped_column(String(2))
    last_three_digits: Mapped[str | None] = mapped_column(String(3))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )
