import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.constants import k_settle_lock
from app.core.errors import ConflictError, IntegrityError, NotFoundError, TransactionError, ValidationError
from app.models.bet import Bet
from app.models.lottery_round import LotteryRound
from app.models.settlement import SettlementRecord
from app.models.wallet import Wallet, WalletLedger, BIZ_PAYOUT, BIZ_PAYOUT_REVERSAL
from app.services import settlement as settlement_module
from app.services.round_result import RoundResult
from app.services.settlement import settle_round


async def load(session_factory, model, pk):
    async with session_factory() as s:
        return await s.get(model, pk)


async def balance(session_factory, user_id):
    async with session_factory() as s:
        w = await s.scalar(select(Wallet).where(Wallet.user_id == user_id))
        return w.balance


@pytest.mark.asyncio
async def test_two_digit_win_with_default_rate(session, session_factory, seed, lock):
    lt = await seed.lottery_type()
    rnd = await seed.round(lt)
    await seed.wallet(1, "0")
    b = await seed.bet(rnd, "two_digit", ["25"], "100")

    summary = await settle_round(session, rnd.id, RoundResult(last_two_digits="25"), lock=lock)

    assert (summary.won, summary.lost, summary.total_payout) == (1, 0, Decimal("9000.00"))
    stored = await load(session_factory, Bet, b.id)
    assert stored.status == "won"
    assert stored.payout == Decimal("9000.00")
    assert await balance(session_factory, 1) == Decimal("9000.00")

    rnd_after = await load(session_factory, LotteryRound, rnd.id)
    assert rnd_after.status == "completed"
    assert rnd_after.last_two_digits == "25"


@pytest.mark.asyncio
async def test_two_digit_loss(session, session_factory, seed, lock):
    lt = await seed.lottery_type()
    rnd = await seed.round(lt)
    await seed.wallet(1, "0")
    b = await seed.bet(rnd, "two_digit", ["26"], "100")

    summary = await settle_round(session, rnd.id, RoundResult(last_two_digits="25"), lock=lock)

    assert (summary.won, summary.lost, summary.total_payout) == (0, 1, Decimal("0"))
    stored = await load(session_factory, Bet, b.id)
    assert stored.status == "lost"
    assert stored.payout is None
    assert await balance(session_factory, 1) == Decimal("0")


@pytest.mark.asyncio
async def test_lottery_type_override_rate(session, session_factory, seed, lock):
    lt = await seed.lottery_type(payout_rates={"two_digit": 95})
    rnd = await seed.round(lt)
    await seed.wallet(1)
    b = await seed.bet(rnd, "two_digit", ["25"], "100")

    summary = await settle_round(session, rnd.id, RoundResult(last_two_digits="25"), lock=lock)

    assert summary.total_payout == Decimal("9500.00")
    assert (await load(session_factory, Bet, b.id)).payout == Decimal("9500.00")


@pytest.mark.asyncio
async def test_high_low_and_odd_even(session, session_factory, seed, lock):
    lt = await seed.lottery_type()
    rnd = await seed.round(lt)
    await seed.wallet(1)
    await seed.wallet(2)
    high = await seed.bet(rnd, "high_low", ["high"], "50", user_id=1)
    even = await seed.bet(rnd, "odd_even", ["even"], "20", user_id=2)

    summary = await settle_round(session, rnd.id, RoundResult(last_two_digits="73"), lock=lock)

    assert (summary.won, summary.lost) == (1, 1)
    assert (await load(session_factory, Bet, high.id)).payout == Decimal("100.00")
    assert (await load(session_factory, Bet, even.id)).status == "lost"
    assert await balance(session_factory, 1) == Decimal("100.00")
    assert await balance(session_factory, 2) == Decimal("0")


@pytest.mark.asyncio
async def test_bet_missing_its_field_stays_pending(session, session_factory, seed, lock):
    lt = await seed.lottery_type()
    rnd = await seed.round(lt)
    await seed.wallet(1)
    three = await seed.bet(rnd, "three_digit", ["456"], "10")
    two = await seed.bet(rnd, "two_digit", ["25"], "10")

    summary = await settle_round(session, rnd.id, RoundResult(last_two_digits="25"), lock=lock)

    assert (summary.won, summary.lost, summary.skipped) == (1, 0, 1)
    assert (await load(session_factory, Bet, three.id)).status == "pending"
    assert (await load(session_factory, Bet, two.id)).status == "won"


@pytest.mark.asyncio
async def test_two_digit_pending_when_only_three_digit_fields(session, session_factory, seed, lock):
    lt = await seed.lottery_type()
    rnd = await seed.round(lt)
    b = await seed.bet(rnd, "two_digit", ["25"], "10")

    summary = await settle_round(
        session, rnd.id, RoundResult(first_prize="123456", last_three_digits="456"), lock=lock
    )

    assert (summary.won, summary.lost, summary.skipped) == (0, 0, 1)
    assert (await load(session_factory, Bet, b.id)).status == "pending"


@pytest.mark.asyncio
async def test_summary_matches_stored_bets(session, session_factory, seed, lock):
    lt = await seed.lottery_type(payout_rates={"running": 3.5})
    rnd = await seed.round(lt)
    for uid in (1, 2, 3):
        await seed.wallet(uid)
    await seed.bet(rnd, "two_digit", ["25"], "10.50", user_id=1)
    await seed.bet(rnd, "running", ["6"], "33.33", user_id=1)
    await seed.bet(rnd, "set", ["52"], "5", user_id=2)
    await seed.bet(rnd, "todd", ["todd"], "7", user_id=3)
    await seed.bet(rnd, "three_digit", ["999"], "1", user_id=3)
    await seed.bet(rnd, "rood", ["9"], "2", user_id=2)

    summary = await settle_round(
        session, rnd.id, RoundResult(last_two_digits="25", last_three_digits="456"), lock=lock
    )

    async with session_factory() as s:
        bets = (await s.execute(select(Bet).where(Bet.lottery_round_id == rnd.id))).scalars().all()
    won = [b for b in bets if b.status == "won"]
    lost = [b for b in bets if b.status == "lost"]
    assert summary.won == len(won) == 4
    assert summary.lost == len(lost) == 2
    assert summary.won + summary.lost <= len(bets)
    assert summary.total_payout == sum(b.payout for b in won)
    # 10.50*90 + 33.33*3.5 + 5*3 + 7*3
    assert summary.total_payout == Decimal("945.00") + Decimal("116.66") + Decimal("15.00") + Decimal("21.00")
    assert all(b.payout is None for b in lost)


@pytest.mark.asyncio
async def test_one_ledger_row_per_winning_bet(session, session_factory, seed, lock):
    lt = await seed.lottery_type()
    rnd = await seed.round(lt)
    await seed.wallet(1, "5.00")
    b1 = await seed.bet(rnd, "two_digit", ["25"], "1")
    b2 = await seed.bet(rnd, "odd_even", ["odd"], "10")

    await settle_round(session, rnd.id, RoundResult(last_two_digits="25"), lock=lock, settled_by=7)

    async with session_factory() as s:
        rows = (await s.execute(select(WalletLedger).order_by(WalletLedger.id))).scalars().all()
        record = await s.scalar(select(SettlementRecord).where(SettlementRecord.lottery_round_id == rnd.id))
    assert [(r.ref_id, r.amount, r.biz_type) for r in rows] == [
        (b1.id, Decimal("90.00"), BIZ_PAYOUT),
        (b2.id, Decimal("20.00"), BIZ_PAYOUT),
    ]
    assert rows[-1].balance_after == Decimal("115.00")
    assert record.won == 2
    assert record.total_payout == Decimal("110.00")
    assert record.settled_by == 7
    assert await balance(session_factory, 1) == Decimal("115.00")


@pytest.mark.asyncio
async def test_missing_wallet_rolls_back_everything(session, session_factory, seed, lock):
    lt = await seed.lottery_type()
    rnd = await seed.round(lt)
    await seed.wallet(1)
    ok = await seed.bet(rnd, "two_digit", ["25"], "10", user_id=1)
    orphan = await seed.bet(rnd, "two_digit", ["25"], "10", user_id=2)

    with pytest.raises(IntegrityError):
        await settle_round(session, rnd.id, RoundResult(last_two_digits="25"), lock=lock)

    rnd_after = await load(session_factory, LotteryRound, rnd.id)
    assert rnd_after.status == "closed"
    assert rnd_after.last_two_digits is None
    assert (await load(session_factory, Bet, ok.id)).status == "pending"
    assert (await load(session_factory, Bet, orphan.id)).status == "pending"
    assert await balance(session_factory, 1) == Decimal("0")
    # lock released for a retry
    assert k_settle_lock(rnd.id) not in lock.client.store


@pytest.mark.asyncio
async def test_unknown_round(session, lock):
    with pytest.raises(NotFoundError):
        await settle_round(session, 404, RoundResult(last_two_digits="25"), lock=lock)


@pytest.mark.asyncio
async def test_round_with_unknown_status_is_rejected(session, session_factory, seed, lock):
    lt = await seed.lottery_type()
    rnd = await seed.round(lt, status="cancelled")

    with pytest.raises(ValidationError):
        await settle_round(session, rnd.id, RoundResult(last_two_digits="25"), lock=lock)
    assert (await load(session_factory, LotteryRound, rnd.id)).status == "cancelled"


@pytest.mark.asyncio
async def test_open_round_can_be_settled(session, session_factory, seed, lock):
    lt = await seed.lottery_type()
    rnd = await seed.round(lt, status="open", close_in_minutes=30)

    await settle_round(session, rnd.id, RoundResult(last_two_digits="25"), lock=lock)
    assert (await load(session_factory, LotteryRound, rnd.id)).status == "completed"


@pytest.mark.asyncio
async def test_lock_held_raises_conflict(session, session_factory, seed, lock):
    lt = await seed.lottery_type()
    rnd = await seed.round(lt)
    lock.client.store[k_settle_lock(rnd.id)] = "someone-else"

    with pytest.raises(ConflictError):
        await settle_round(session, rnd.id, RoundResult(last_two_digits="25"), lock=lock)
    assert (await load(session_factory, LotteryRound, rnd.id)).status == "closed"


@pytest.mark.asyncio
async def test_concurrent_submissions_one_wins(session_factory, seed, lock):
    lt = await seed.lottery_type()
    rnd = await seed.round(lt)
    await seed.wallet(1)
    await seed.bet(rnd, "two_digit", ["25"], "10")

    async def submit():
        async with session_factory() as s:
            return await settle_round(s, rnd.id, RoundResult(last_two_digits="25"), lock=lock)

    results = await asyncio.gather(submit(), submit(), return_exceptions=True)

    conflicts = [r for r in results if isinstance(r, ConflictError)]
    summaries = [r for r in results if not isinstance(r, Exception)]
    assert len(conflicts) == 1
    assert len(summaries) == 1
    assert await balance(session_factory, 1) == Decimal("900.00")


@pytest.mark.asyncio
async def test_resubmission_recomputes_and_reverses_credit(session, session_factory, seed, lock):
    lt = await seed.lottery_type()
    rnd = await seed.round(lt)
    await seed.wallet(1)
    await seed.wallet(2)
    b1 = await seed.bet(rnd, "two_digit", ["25"], "10", user_id=1)
    b2 = await seed.bet(rnd, "two_digit", ["26"], "10", user_id=2)

    first = await settle_round(session, rnd.id, RoundResult(last_two_digits="25"), lock=lock)
    assert (first.won, first.lost) == (1, 1)
    assert await balance(session_factory, 1) == Decimal("900.00")

    async with session_factory() as s2:
        second = await settle_round(s2, rnd.id, RoundResult(last_two_digits="26"), lock=lock)

    assert (second.won, second.lost) == (1, 1)
    assert second.reversed_payout == Decimal("900.00")
    assert await balance(session_factory, 1) == Decimal("0.00")
    assert await balance(session_factory, 2) == Decimal("900.00")
    assert (await load(session_factory, Bet, b1.id)).status == "lost"
    assert (await load(session_factory, Bet, b2.id)).status == "won"

    async with session_factory() as s:
        reversals = (await s.execute(
            select(WalletLedger).where(WalletLedger.biz_type == BIZ_PAYOUT_REVERSAL)
        )).scalars().all()
        records = (await s.execute(select(SettlementRecord).order_by(SettlementRecord.id))).scalars().all()
    assert [(r.user_id, r.amount) for r in reversals] == [(1, Decimal("900.00"))]
    assert [r.reversed_payout for r in records] == [Decimal("0.00"), Decimal("900.00")]
    assert [r.total_payout for r in records] == [Decimal("900.00"), Decimal("900.00")]


@pytest.mark.asyncio
async def test_resubmission_with_same_result_is_idempotent(session, session_factory, seed, lock):
    lt = await seed.lottery_type()
    rnd = await seed.round(lt)
    await seed.wallet(1)
    await seed.bet(rnd, "two_digit", ["25"], "10")

    await settle_round(session, rnd.id, RoundResult(last_two_digits="25"), lock=lock)
    async with session_factory() as s2:
        again = await settle_round(s2, rnd.id, RoundResult(last_two_digits="25"), lock=lock)

    assert again.total_payout == Decimal("900.00")
    assert await balance(session_factory, 1) == Decimal("900.00")


@pytest.mark.asyncio
async def test_reversal_that_would_overdraw_aborts(session, session_factory, seed, lock):
    lt = await seed.lottery_type()
    rnd = await seed.round(lt, status="completed")
    await seed.wallet(1, "100.00")
    b = await seed.bet(rnd, "two_digit", ["25"], "10", status="won", payout="900")

    with pytest.raises(IntegrityError):
        await settle_round(session, rnd.id, RoundResult(last_two_digits="26"), lock=lock)

    assert (await load(session_factory, Bet, b.id)).status == "won"
    assert await balance(session_factory, 1) == Decimal("100.00")


@pytest.mark.asyncio
async def test_timeout_raises_transaction_error(session, session_factory, seed, lock, monkeypatch):
    lt = await seed.lottery_type()
    rnd = await seed.round(lt)

    async def slow(*args, **kwargs):
        await asyncio.sleep(5)

    monkeypatch.setattr(settlement_module, "_settle_in_tx", slow)

    with pytest.raises(TransactionError):
        await settle_round(session, rnd.id, RoundResult(last_two_digits="25"), lock=lock, timeout=0.05)
    assert (await load(session_factory, LotteryRound, rnd.id)).status == "closed"
    assert k_settle_lock(rnd.id) not in lock.client.store


@pytest.mark.asyncio
async def test_commit_failure_raises_transaction_error(session, session_factory, seed, lock, monkeypatch):
    lt = await seed.lottery_type()
    rnd = await seed.round(lt)
    await seed.wallet(1)
    b = await seed.bet(rnd, "two_digit", ["25"], "10")

    async def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(session, "commit", broken_commit)

    with pytest.raises(TransactionError):
        await settle_round(session, rnd.id, RoundResult(last_two_digits="25"), lock=lock)
    assert (await load(session_factory, LotteryRound, rnd.id)).status == "closed"
    assert (await load(session_factory, Bet, b.id)).status == "pending"
    assert await balance(session_factory, 1) == Decimal("0")
