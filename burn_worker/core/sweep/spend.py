"""Safe-spend arithmetic for native-coin and token balances."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

INSUFFICIENT_AFTER_RESERVE = "insufficient_after_reserve"
INSUFFICIENT_AFTER_SAFETY_MARGIN = "insufficient_after_safety_margin"

Fraction = Union[Decimal, int, float, str]


@dataclass(frozen=True)
class SpendDecision:
    amount: int
    spendable: int
    reason: Optional[str] = None

    @property
    def is_zero(self) -> bool:
        return self.amount == 0


def _as_decimal(value: Fraction) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        # str() keeps 0.85 as 0.85 instead of its binary float expansion
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Invalid safety fraction: {value!r}") from exc


def compute_spendable(balance: int, reserve: int, safety_fraction: Fraction) -> SpendDecision:
    """
    Compute how much of ``balance`` may be committed.

    ``spendable = max(0, balance - reserve)`` and the result is
    ``floor(spendable * safety_fraction)``, evaluated with exact integer math.

    Args:
        balance: Current balance in base units (>= 0)
        reserve: Base units permanently withheld for fees and rent (>= 0)
        safety_fraction: Share of the spendable amount to commit, in (0, 1]

    Returns:
        SpendDecision whose ``reason`` is set when the amount is zero
    """
    if balance < 0:
        raise ValueError("balance must be non-negative")
    if reserve < 0:
        raise ValueError("reserve must be non-negative")

    fraction = _as_decimal(safety_fraction)
    if not fraction.is_finite() or fraction <= 0 or fraction > 1:
        raise ValueError("safety_fraction must be in (0, 1]")

    spendable = max(0, int(balance) - int(reserve))
    if spendable == 0:
        return SpendDecision(amount=0, spendable=0, reason=INSUFFICIENT_AFTER_RESERVE)

    numerator, denominator = fraction.as_integer_ratio()
    amount = (spendable * numerator) // denominator
    if amount == 0:
        return SpendDecision(amount=0, spendable=spendable, reason=INSUFFICIENT_AFTER_SAFETY_MARGIN)

    return SpendDecision(amount=amount, spendable=spendable)
