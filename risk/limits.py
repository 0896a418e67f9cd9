"""
Leverage and notional guardrails evaluated before an order is built.

The policy is a frozen value built once at startup and shared by reference;
evaluation is a pure function of policy, intent and snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from risk.schemas import (
    Approved,
    LeverageExceeded,
    MarketSnapshot,
    OrderNotionalExceeded,
    Rejected,
    RiskDecision,
    RiskViolation,
    Symbol,
    SymbolDisabled,
    SymbolNotionalExceeded,
    TradeIntent,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SymbolLimits:
    """Per-symbol leverage and notional ceiling."""

    max_leverage: int
    max_notional: Decimal
    enabled: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.max_leverage, bool) or not isinstance(self.max_leverage, int) or self.max_leverage <= 0:
            raise ValueError(f"max_leverage must be a positive integer, got {self.max_leverage!r}")
        notional = Decimal(str(self.max_notional))
        if not notional.is_finite() or notional <= 0:
            raise ValueError(f"max_notional must be positive, got {self.max_notional!r}")
        object.__setattr__(self, "max_notional", notional)


@dataclass(frozen=True, slots=True)
class GlobalLimits:
    """Account-wide notional ceilings applied to every symbol."""

    max_notional_per_order: Decimal
    max_notional_per_symbol: Decimal

    def __post_init__(self) -> None:
        for name in ("max_notional_per_order", "max_notional_per_symbol"):
            value = Decimal(str(getattr(self, name)))
            if not value.is_finite() or value <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)!r}")
            object.__setattr__(self, name, value)


def _resolve_reference_price(intent: TradeIntent, snapshot: MarketSnapshot) -> Decimal:
    """Judge the order on its stated price when it has one, else on the mark."""
    if intent.limit_price is not None:
        return intent.limit_price
    return snapshot.mark_price


@dataclass(frozen=True, slots=True)
class RiskPolicy:
    """
    Immutable configuration of global and per-symbol limits.

    Checks run in a fixed order (disabled, leverage, per-order notional,
    per-symbol notional) and stop at the first violation, so a rejection
    names exactly one reason.
    """

    global_limits: GlobalLimits
    symbol_limits: Mapping[Symbol, SymbolLimits] = field(default_factory=dict)

    def __post_init__(self) -> None:
        frozen = {Symbol.parse(symbol): limits for symbol, limits in dict(self.symbol_limits).items()}
        object.__setattr__(self, "symbol_limits", MappingProxyType(frozen))

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def limits_for(self, symbol: Symbol | str) -> Optional[SymbolLimits]:
        return self.symbol_limits.get(Symbol.parse(symbol))

    def is_tradable(self, symbol: Symbol | str) -> bool:
        limits = self.limits_for(symbol)
        return bool(limits and limits.enabled)

    def symbols(self) -> Tuple[Symbol, ...]:
        return tuple(sorted(self.symbol_limits, key=str))

    def max_leverage(self, symbol: Symbol | str) -> Optional[int]:
        limits = self.limits_for(symbol)
        return limits.max_leverage if limits else None

    def max_notional(self, symbol: Symbol | str) -> Optional[Decimal]:
        """Effective per-symbol ceiling: the tighter of the symbol and global limits."""
        limits = self.limits_for(symbol)
        if limits is None:
            return None
        return min(limits.max_notional, self.global_limits.max_notional_per_symbol)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------
    def screen_symbol(self, symbol: Symbol | str) -> Optional[Rejected]:
        """Fail closed on unknown or disabled symbols; needs no market data."""
        symbol = Symbol.parse(symbol)
        if not self.is_tradable(symbol):
            return self._reject(SymbolDisabled(symbol=symbol))
        return None

    def evaluate(self, intent: TradeIntent, snapshot: MarketSnapshot) -> RiskDecision:
        if snapshot.symbol != intent.symbol:
            raise ValueError(
                f"Snapshot for {snapshot.symbol} cannot be used to evaluate an intent for {intent.symbol}"
            )

        screened = self.screen_symbol(intent.symbol)
        if screened is not None:
            return screened

        limits = self.symbol_limits[intent.symbol]
        notional = intent.size * _resolve_reference_price(intent, snapshot)
        checks: Iterable[Callable[[], Optional[RiskViolation]]] = (
            lambda: self._check_leverage(intent, limits),
            lambda: self._check_order_notional(intent, notional),
            lambda: self._check_symbol_notional(intent, limits, notional),
        )
        for check in checks:
            violation = check()
            if violation is not None:
                return self._reject(violation)

        logger.debug(
            "Order validation: %s %s @ %s = %s notional (per-order limit: %s, symbol limit: %s)",
            intent.size,
            intent.symbol,
            _resolve_reference_price(intent, snapshot),
            notional,
            self.global_limits.max_notional_per_order,
            self.max_notional(intent.symbol),
        )
        return Approved(intent=intent, snapshot=snapshot, notional=notional)

    @staticmethod
    def _check_leverage(intent: TradeIntent, limits: SymbolLimits) -> Optional[RiskViolation]:
        # Closing exposure never opens new leveraged risk.
        if intent.reduce_only or intent.leverage is None:
            return None
        if intent.leverage > limits.max_leverage:
            return LeverageExceeded(symbol=intent.symbol, requested=intent.leverage, max=limits.max_leverage)
        return None

    def _check_order_notional(self, intent: TradeIntent, notional: Decimal) -> Optional[RiskViolation]:
        ceiling = self.global_limits.max_notional_per_order
        if notional > ceiling:
            return OrderNotionalExceeded(symbol=intent.symbol, notional=notional, max=ceiling)
        return None

    def _check_symbol_notional(
        self, intent: TradeIntent, limits: SymbolLimits, notional: Decimal
    ) -> Optional[RiskViolation]:
        ceiling = min(limits.max_notional, self.global_limits.max_notional_per_symbol)
        if notional > ceiling:
            return SymbolNotionalExceeded(symbol=intent.symbol, notional=notional, max=ceiling)
        return None

    @staticmethod
    def _reject(violation: RiskViolation) -> Rejected:
        logger.info("Risk check rejected order: %s %s", violation.code, violation.message)
        return Rejected(violation=violation)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "global": {
                "max_notional_per_order": str(self.global_limits.max_notional_per_order),
                "max_notional_per_symbol": str(self.global_limits.max_notional_per_symbol),
            },
            "symbols": {
                str(symbol): {
                    "max_leverage": limits.max_leverage,
                    "max_notional": str(limits.max_notional),
                    "enabled": limits.enabled,
                }
                for symbol, limits in sorted(self.symbol_limits.items(), key=lambda item: str(item[0]))
            },
        }
