# app/services/settlement.py
from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import IntegrityError, NotFoundError, SettlementError, TransactionError
from app.core.timeutil import now_naive
from app.models.bet import Bet, BET_PENDING, BET_WON, BET_LOST
from app.models.lottery_type import LotteryType
from app.models.lottery_round import LotteryRound, ROUND_COMPLETED
from app.models.settlement import SettlementRecord
from app.models.wallet import (
    Wallet, WalletLedger, DIRECTION_IN, DIRECTION_OUT, BIZ_PAYOUT, BIZ_PAYOUT_REVERSAL,
)
from app.services.bet_types import BetType, parse_bet_type
from app.services.matcher import Outcome, ZERO, evaluate, q2
from app.services.payout_rates import resolve_rate
from app.services.round_lock import RoundLock
from app.services.round_result import RoundResult
from app.services.round_service import ensure_transition

logger = logging.getLogger(__name__)


@dataclass
class SettlementSummary:
    round_id: int
    won: int = 0
    lost: int = 0
    skipped: int = 0
    total_payout: Decimal = ZERO
    reversed_payout: Decimal = ZERO


@dataclass
class _WalletBook:
    """Wallet rows locked FOR UPDATE for the lifetime of the settlement transaction."""

    session: AsyncSession
    wallets: Dict[int, Wallet] = field(default_factory=dict)

    async def _get(self, user_id: int) -> Wallet:
        w = self.wallets.get(user_id)
        if w is not None:
            return w
        w = await self.session.scalar(
            select(Wallet).where(Wallet.user_id == user_id).with_for_update()
        )
        if w is None:
            raise IntegrityError(f"wallet of user {user_id} not found")
        self.wallets[user_id] = w
        return w

    async def lock(self, user_ids) -> None:
        # fixed order keeps concurrent lockers from deadlocking
        for uid in sorted(set(user_ids)):
            await self._get(uid)

    async def credit(self, bet: Bet, amount: Decimal) -> None:
        w = await self._get(bet.user_id)
        bal = q2(Decimal(str(w.balance or 0)) + amount)
        w.balance = bal
        w.version = int(w.version or 0) + 1
        self.session.add(WalletLedger(
            user_id=bet.user_id,
            direction=DIRECTION_IN,
            amount=amount,
            balance_after=bal,
            biz_type=BIZ_PAYOUT,
            ref_table="bet",
            ref_id=bet.id,
            remark=f"payout round {bet.lottery_round_id}",
        ))

    async def debit(self, bet: Bet, amount: Decimal) -> None:
        w = await self._get(bet.user_id)
        cur = Decimal(str(w.balance or 0))
        if cur < amount:
            raise IntegrityError(
                f"cannot reverse payout of bet {bet.id}: wallet of user {bet.user_id} has {q2(cur)}, needs {amount}"
            )
        bal = q2(cur - amount)
        w.balance = bal
        w.version = int(w.version or 0) + 1
        self.session.add(WalletLedger(
            user_id=bet.user_id,
            direction=DIRECTION_OUT,
            amount=amount,
            balance_after=bal,
            biz_type=BIZ_PAYOUT_REVERSAL,
            ref_table="bet",
            ref_id=bet.id,
            remark=f"payout reversal round {bet.lottery_round_id}",
        ))


async def _reopen_settled_bets(session: AsyncSession, book: _WalletBook, round_id: int) -> Decimal:
    """Undo a previous settlement of the round: take back payouts, reset bets to pending."""
    rs = await session.execute(
        select(Bet)
        .where(Bet.lottery_round_id == round_id, Bet.status.in_([BET_WON, BET_LOST]))
        .order_by(Bet.id.asc())
        .with_for_update()
    )
    settled = rs.scalars().all()
    if not settled:
        return ZERO

    winners = [b for b in settled if b.status == BET_WON]
    await book.lock(b.user_id for b in winners)

    reversed_total = ZERO
    for bet in settled:
        if bet.status == BET_WON and bet.payout:
            amount = q2(bet.payout)
            await book.debit(bet, amount)
            reversed_total += amount
        bet.status = BET_PENDING
        bet.payout = None
        bet.settled_at = None

    logger.info("round %s: reopened %d settled bets, reversed %.2f", round_id, len(settled), reversed_total)
    return reversed_total


async def _settle_in_tx(
    session: AsyncSession,
    round_id: int,
    result: RoundResult,
    settled_by: Optional[int],
) -> SettlementSummary:
    # ① lock the round row
    rnd = await session.get(LotteryRound, round_id, with_for_update=True)
    if rnd is None:
        raise NotFoundError(f"round {round_id} not found")
    ensure_transition(rnd.status, ROUND_COMPLETED)

    lottery_type = await session.get(LotteryType, rnd.lottery_type_id)
    if lottery_type is None:
        raise IntegrityError(f"lottery type {rnd.lottery_type_id} of round {round_id} not found")

    summary = SettlementSummary(round_id=round_id)
    book = _WalletBook(session)

    # ② re-submission recomputes from scratch
    summary.reversed_payout = await _reopen_settled_bets(session, book, round_id)

    # ③ result + completed
    now = now_naive()
    rnd.first_prize = result.first_prize
    rnd.last_two_digits = result.last_two_digits
    rnd.last_three_digits = result.last_three_digits
    rnd.status = ROUND_COMPLETED
    rnd.completed_at = now

    # ④ classify pending bets
    rs = await session.execute(
        select(Bet)
        .where(Bet.lottery_round_id == round_id, Bet.status == BET_PENDING)
        .order_by(Bet.id.asc())
        .with_for_update()
    )
    bets = rs.scalars().all()

    rates: Dict[BetType, Decimal] = {}
    winners: List[tuple[Bet, Decimal]] = []
    for bet in bets:
        bet_type = parse_bet_type(bet.bet_type)
        rate = ZERO
        if bet_type is not None:
            if bet_type not in rates:
                rates[bet_type] = resolve_rate(lottery_type, bet_type)
            rate = rates[bet_type]

        ev = evaluate(bet, result, rate)
        if ev.outcome is Outcome.SKIPPED:
            summary.skipped += 1
            continue
        if ev.outcome is Outcome.WON:
            payout = ev.payout(bet.amount)
            bet.status = BET_WON
            bet.payout = payout
            bet.settled_at = now
            winners.append((bet, payout))
            summary.won += 1
            summary.total_payout += payout
        else:
            bet.status = BET_LOST
            bet.payout = None
            bet.settled_at = now
            summary.lost += 1

    # ⑤ credit winners
    await book.lock(bet.user_id for bet, _ in winners)
    for bet, payout in sorted(winners, key=lambda x: (x[0].user_id, x[0].id)):
        await book.credit(bet, payout)

    # ⑥ audit
    session.add(SettlementRecord(
        lottery_round_id=round_id,
        won=summary.won,
        lost=summary.lost,
        skipped=summary.skipped,
        total_payout=q2(summary.total_payout),
        reversed_payout=q2(summary.reversed_payout),
        first_prize=result.first_prize,
        last_two_digits=result.last_two_digits,
        last_three_digits=result.last_three_digits,
        settled_by=settled_by,
    ))
    await session.flush()
    summary.total_payout = q2(summary.total_payout)
    return summary


async def settle_round(
    session: AsyncSession,
    round_id: int,
    result: RoundResult,
    *,
    lock: RoundLock,
    settled_by: Optional[int] = None,
    timeout: Optional[float] = None,
) -> SettlementSummary:
    """
    Enter the official result of a round and settle its bets.

    Everything (bet outcomes, wallet credits, round completion, audit row)
    commits together or not at all. Raises:
      NotFoundError    unknown round
      ConflictError    another settlement of the same round is running
      IntegrityError   missing wallet / lottery type, or a reversal would overdraw
      TransactionError timeout or database failure
    """
    timeout = settings.SETTLEMENT_TIMEOUT_SECONDS if timeout is None else timeout

    async with lock.hold(round_id):
        try:
            summary = await asyncio.wait_for(
                _settle_in_tx(session, round_id, result, settled_by), timeout=timeout
            )
            await session.commit()
        except SettlementError as e:
            await session.rollback()
            logger.warning("settlement of round %s aborted: %s", round_id, e.message)
            raise
        except asyncio.TimeoutError as e:
            await session.rollback()
            logger.error("settlement of round %s timed out after %ss", round_id, timeout)
            raise TransactionError(f"settlement of round {round_id} timed out, try again") from e
        except SQLAlchemyError as e:
            await session.rollback()
            logger.exception("settlement of round %s failed", round_id)
            raise TransactionError(f"settlement of round {round_id} could not be saved, try again") from e
        except Exception:
            await session.rollback(); raise

    logger.info(
        "round %s settled: won=%d lost=%d skipped=%d payout=%.2f",
        round_id, summary.won, summary.lost, summary.skipped, summary.total_payout,
    )
    return summary
