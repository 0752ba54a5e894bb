from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional

from app.services.bet_types import get_rule, parse_bet_type
from app.services.round_result import RoundResult

ZERO = Decimal("0")


def q2(v) -> Decimal:
    return Decimal(str(v)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class Outcome(str, Enum):
    WON = "won"
    LOST = "lost"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Evaluation:
    outcome: Outcome
    multiplier: Decimal

    @property
    def is_winner(self) -> bool:
        return self.outcome is Outcome.WON

    def payout(self, amount) -> Optional[Decimal]:
        if not self.is_winner:
            return None
        return calc_payout(amount, self.multiplier)


def calc_payout(amount, rate) -> Decimal:
    return q2(Decimal(str(amount)) * Decimal(str(rate)))


def selection_of(bet) -> Optional[str]:
    numbers = bet.numbers or []
    if not numbers or numbers[0] is None:
        return None
    return str(numbers[0]).strip()


def evaluate(bet, result: RoundResult, effective_rate: Decimal) -> Evaluation:
    """
    Win / lose / skip for one bet.
    Unknown bet types and empty selections lose once any result is in.
    """
    bet_type = parse_bet_type(bet.bet_type)
    if bet_type is None:
        return Evaluation(Outcome.LOST, ZERO)

    rule = get_rule(bet_type)
    sel = selection_of(bet)
    if not sel:
        if all(getattr(result, f) is None for f in rule.fields):
            return Evaluation(Outcome.SKIPPED, ZERO)
        return Evaluation(Outcome.LOST, ZERO)

    hit = rule.match(sel, result)
    if hit is None:
        return Evaluation(Outcome.SKIPPED, ZERO)
    if hit:
        return Evaluation(Outcome.WON, Decimal(str(effective_rate)))
    return Evaluation(Outcome.LOST, ZERO)
