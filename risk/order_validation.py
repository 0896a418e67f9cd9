"""
Lightweight trade intent validation executed when an intent is constructed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, List, Sequence

if TYPE_CHECKING:  # pragma: no cover
    from risk.schemas import TradeIntent

_SYMBOL_PATTERN = re.compile(r"^[A-Z0-9][A-Z0-9_/\-]*$")


class InvalidIntentError(ValueError):
    """Raised when a trade intent fails preliminary validation."""

    def __init__(self, violations: Sequence[str]) -> None:
        super().__init__("; ".join(violations))
        self.violations = list(violations)


def check_symbol(raw: object) -> str:
    """Return the normalized symbol text or raise InvalidIntentError."""
    if not isinstance(raw, str):
        raise InvalidIntentError([f"Symbol must be a string, got {type(raw).__name__}."])
    normalized = raw.strip().upper()
    if not normalized:
        raise InvalidIntentError(["Symbol must not be empty."])
    if not _SYMBOL_PATTERN.match(normalized):
        raise InvalidIntentError([f"Symbol '{raw}' contains unsupported characters."])
    return normalized


def to_decimal(value: object, field_name: str) -> Decimal:
    """Coerce ints, floats and numeric strings into a finite Decimal."""
    if isinstance(value, bool):
        raise InvalidIntentError([f"{field_name} must be numeric, got a boolean."])
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            # str() keeps floats like 0.1 from dragging binary noise along.
            result = Decimal(str(value).strip())
        except ArithmeticError as exc:
            raise InvalidIntentError([f"{field_name} '{value}' is not a number."]) from exc
    else:
        raise InvalidIntentError([f"{field_name} must be numeric, got {type(value).__name__}."])
    if not result.is_finite():
        raise InvalidIntentError([f"{field_name} must be finite."])
    return result


def round_to_step(value: Decimal, step: Decimal, rounding: str = ROUND_HALF_UP) -> Decimal:
    """Snap value onto a multiple of step (price tick or size lot)."""
    if step <= 0:
        raise ValueError(f"step must be positive, got {step}")
    return (value / step).to_integral_value(rounding=rounding) * step


def is_multiple_of(value: Decimal, step: Decimal) -> bool:
    return round_to_step(value, step, ROUND_DOWN) == value


@dataclass(slots=True)
class BasicIntentValidator:
    """
    Perform syntactic validation on trade intents before they reach the risk
    policy. Checks include positive size and price, integral leverage and a
    slippage fraction within (0, 1].
    """

    max_slippage_ceiling: Decimal = Decimal("1")

    def validate(self, intent: "TradeIntent") -> None:
        violations: List[str] = []

        if intent.size <= 0:
            violations.append(f"Order size must be greater than zero, got {intent.size}.")

        if intent.limit_price is not None and intent.limit_price <= 0:
            violations.append(f"Limit price must be greater than zero, got {intent.limit_price}.")

        if intent.leverage is not None:
            if isinstance(intent.leverage, bool) or not isinstance(intent.leverage, int):
                violations.append(f"Leverage must be a whole number, got {intent.leverage!r}.")
            elif intent.leverage <= 0:
                violations.append(f"Leverage must be at least 1x, got {intent.leverage}x.")

        if intent.max_slippage is not None:
            if not (0 < intent.max_slippage <= self.max_slippage_ceiling):
                violations.append(
                    f"Max slippage must be within (0, {self.max_slippage_ceiling}], got {intent.max_slippage}."
                )

        if violations:
            raise InvalidIntentError(violations)


_DEFAULT_VALIDATOR = BasicIntentValidator()


def ensure_valid_intent(intent: "TradeIntent", validator: BasicIntentValidator | None = None) -> None:
    """
    Run the provided validator (or the default BasicIntentValidator) against
    the intent. Raises InvalidIntentError on failure.
    """
    (validator or _DEFAULT_VALIDATOR).validate(intent)
