from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Dict, Optional

from app.core.errors import ValidationError

# field -> (min digits, max digits)
FIELD_LENGTHS: Dict[str, tuple[int, int]] = {
    "first_prize": (3, 6),
    "last_two_digits": (2, 2),
    "last_three_digits": (3, 3),
}


@dataclass(frozen=True)
class RoundResult:
    """Official numbers of a round. A missing field means "not drawn yet"."""

    first_prize: Optional[str] = None
    last_two_digits: Optional[str] = None
    last_three_digits: Optional[str] = None

    @classmethod
    def parse(
        cls,
        first_prize: Optional[str] = None,
        last_two_digits: Optional[str] = None,
        last_three_digits: Optional[str] = None,
    ) -> "RoundResult":
        """
        Validate admin input:
          - blank strings count as absent
          - every given field must be digits of the allowed length
          - at least one field must be given
        """
        raw = {
            "first_prize": first_prize,
            "last_two_digits": last_two_digits,
            "last_three_digits": last_three_digits,
        }
        clean: Dict[str, Optional[str]] = {}
        for name, value in raw.items():
            if value is None:
                clean[name] = None
                continue
            v = str(value).strip()
            if not v:
                clean[name] = None
                continue
            lo, hi = FIELD_LENGTHS[name]
            if not v.isdigit():
                raise ValidationError(f"{name} must contain digits only: {v!r}")
            if not lo <= len(v) <= hi:
                size = f"{lo}" if lo == hi else f"{lo}-{hi}"
                raise ValidationError(f"{name} must be {size} digits: {v!r}")
            clean[name] = v

        if all(v is None for v in clean.values()):
            raise ValidationError("at least one result field is required")
        return cls(**clean)

    @classmethod
    def from_round(cls, rnd) -> "RoundResult":
        return cls(
            first_prize=rnd.first_prize,
            last_two_digits=rnd.last_two_digits,
            last_three_digits=rnd.last_three_digits,
        )

    def as_dict(self) -> Dict[str, Optional[str]]:
        return asdict(self)
