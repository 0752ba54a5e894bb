"""
Bet type registry.

Every bet type carries its default payout multiplier, the result fields it
reads and its matching function. A matching function returns:
  True  -> the bet wins
  False -> the bet loses
  None  -> none of the fields it needs is drawn yet (bet stays pending)
"""
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from app.services.round_result import RoundResult


class BetType(str, Enum):
    TWO_DIGIT = "two_digit"
    THREE_DIGIT = "three_digit"
    RUNNING = "running"
    SET = "set"
    HIGH_LOW = "high_low"
    TODD = "todd"
    ODD_EVEN = "odd_even"
    ROOD = "rood"


Matcher = Callable[[str, RoundResult], Optional[bool]]


@dataclass(frozen=True)
class BetTypeRule:
    bet_type: BetType
    default_rate: Decimal
    fields: Tuple[str, ...]
    match: Matcher
    label: str


def _drawn(*values: Optional[str]) -> list[str]:
    return [v for v in values if v is not None]


def _match_two_digit(sel: str, res: RoundResult) -> Optional[bool]:
    if res.last_two_digits is None:
        return None
    return sel == res.last_two_digits


def _match_three_digit(sel: str, res: RoundResult) -> Optional[bool]:
    drawn = _drawn(res.first_prize, res.last_three_digits)
    if not drawn:
        return None
    return sel in drawn


def _match_running(sel: str, res: RoundResult) -> Optional[bool]:
    # trailing digit of either drawn number
    drawn = _drawn(res.last_two_digits, res.last_three_digits)
    if not drawn:
        return None
    if len(sel) != 1 or not sel.isdigit():
        return False
    return any(v[-1] == sel for v in drawn)


def _match_set(sel: str, res: RoundResult) -> Optional[bool]:
    if not sel.isdigit():
        return False
    if len(sel) == 2:
        drawn = res.last_two_digits
    elif len(sel) == 3:
        drawn = res.last_three_digits
    else:
        return False
    if drawn is None:
        return None
    return sorted(sel) == sorted(drawn)


def _match_high_low(sel: str, res: RoundResult) -> Optional[bool]:
    if res.last_two_digits is None:
        return None
    value = int(res.last_two_digits)
    choice = sel.lower()
    if choice == "high":
        return value >= 50
    if choice == "low":
        return value < 50
    return False


def _match_todd(sel: str, res: RoundResult) -> Optional[bool]:
    if res.last_three_digits is None:
        return None
    if sel.lower() == "todd":
        # "ทุกเลข": any drawn 3-digit number
        return True
    return len(sel) == 3 and sel.isdigit() and sorted(sel) == sorted(res.last_three_digits)


def _match_odd_even(sel: str, res: RoundResult) -> Optional[bool]:
    if res.last_two_digits is None:
        return None
    parity = "odd" if int(res.last_two_digits) % 2 == 1 else "even"
    choice = sel.lower()
    if choice not in ("odd", "even"):
        return False
    return choice == parity


def _match_rood(sel: str, res: RoundResult) -> Optional[bool]:
    drawn = res.last_two_digits if res.last_two_digits is not None else res.last_three_digits
    if drawn is None:
        return None
    if sel.lower() == "rood":
        return True
    return len(sel) == 1 and sel.isdigit() and sel in drawn


BET_TYPE_RULES: Dict[BetType, BetTypeRule] = {
    BetType.TWO_DIGIT: BetTypeRule(
        BetType.TWO_DIGIT, Decimal("90"), ("last_two_digits",), _match_two_digit, "2 ตัว"),
    BetType.THREE_DIGIT: BetTypeRule(
        BetType.THREE_DIGIT, Decimal("900"), ("first_prize", "last_three_digits"), _match_three_digit, "3 ตัว"),
    BetType.RUNNING: BetTypeRule(
        BetType.RUNNING, Decimal("3"), ("last_two_digits", "last_three_digits"), _match_running, "วิ่ง"),
    BetType.SET: BetTypeRule(
        BetType.SET, Decimal("3"), ("last_two_digits", "last_three_digits"), _match_set, "ชุด"),
    BetType.HIGH_LOW: BetTypeRule(
        BetType.HIGH_LOW, Decimal("2"), ("last_two_digits",), _match_high_low, "บนล่าง"),
    BetType.TODD: BetTypeRule(
        BetType.TODD, Decimal("3"), ("last_three_digits",), _match_todd, "โต๊ด"),
    BetType.ODD_EVEN: BetTypeRule(
        BetType.ODD_EVEN, Decimal("2"), ("last_two_digits",), _match_odd_even, "คู่/คี่"),
    BetType.ROOD: BetTypeRule(
        BetType.ROOD, Decimal("3"), ("last_two_digits", "last_three_digits"), _match_rood, "รูด"),
}

DEFAULT_RATES: Dict[BetType, Decimal] = {t: rule.default_rate for t, rule in BET_TYPE_RULES.items()}


def parse_bet_type(value: str | BetType | None) -> Optional[BetType]:
    """Stored bet_type string -> BetType, or None when unknown."""
    if isinstance(value, BetType):
        return value
    try:
        return BetType(str(value).strip().lower())
    except ValueError:
        return None


def get_rule(bet_type: BetType) -> BetTypeRule:
    return BET_TYPE_RULES[bet_type]
