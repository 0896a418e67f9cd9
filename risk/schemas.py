"""
Dataclasses and helper structures used by the risk policy and order builder.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Union

from risk.order_validation import InvalidIntentError, check_symbol, ensure_valid_intent, to_decimal


@dataclass(frozen=True, slots=True)
class Symbol:
    """Validated, case-normalized instrument identifier (e.g. BTC)."""

    value: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", check_symbol(self.value))

    @classmethod
    def parse(cls, raw: Union[str, "Symbol"]) -> "Symbol":
        if isinstance(raw, Symbol):
            return raw
        return cls(raw)

    def __str__(self) -> str:
        return self.value


class Side(str, Enum):
    BUY = "Buy"
    SELL = "Sell"

    @classmethod
    def parse(cls, raw: Union[str, "Side"]) -> "Side":
        if isinstance(raw, Side):
            return raw
        normalized = str(raw).strip().lower()
        for member in cls:
            if member.value.lower() == normalized:
                return member
        raise InvalidIntentError([f"Unsupported side '{raw}'. Allowed: Buy, Sell."])


class TimeInForce(str, Enum):
    GOOD_TILL_CANCELLED = "GoodTillCancelled"
    IMMEDIATE_OR_CANCEL = "ImmediateOrCancel"
    ADD_LIQUIDITY_ONLY = "AddLiquidityOnly"

    @classmethod
    def parse(cls, raw: Union[str, "TimeInForce"]) -> "TimeInForce":
        if isinstance(raw, TimeInForce):
            return raw
        normalized = str(raw).strip().lower()
        for member in cls:
            if normalized in (member.value.lower(), _TIF_ALIASES[member]):
                return member
        raise InvalidIntentError(
            [f"Unsupported time in force '{raw}'. Allowed: Gtc, Ioc, Alo or their long names."]
        )


_TIF_ALIASES = {
    TimeInForce.GOOD_TILL_CANCELLED: "gtc",
    TimeInForce.IMMEDIATE_OR_CANCEL: "ioc",
    TimeInForce.ADD_LIQUIDITY_ONLY: "alo",
}


class OrderType(str, Enum):
    MARKET = "Market"
    LIMIT = "Limit"


@dataclass(frozen=True, slots=True)
class TradeIntent:
    """Operator request to trade, validated on construction and never mutated."""

    symbol: Symbol
    side: Side
    size: Decimal
    limit_price: Optional[Decimal] = None
    leverage: Optional[int] = None
    reduce_only: bool = False
    time_in_force: TimeInForce = TimeInForce.GOOD_TILL_CANCELLED
    max_slippage: Optional[Decimal] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "symbol", Symbol.parse(self.symbol))
        object.__setattr__(self, "side", Side.parse(self.side))
        object.__setattr__(self, "time_in_force", TimeInForce.parse(self.time_in_force))
        object.__setattr__(self, "size", to_decimal(self.size, "size"))
        if self.limit_price is not None:
            object.__setattr__(self, "limit_price", to_decimal(self.limit_price, "limit_price"))
        if self.max_slippage is not None:
            object.__setattr__(self, "max_slippage", to_decimal(self.max_slippage, "max_slippage"))
        object.__setattr__(self, "reduce_only", bool(self.reduce_only))
        ensure_valid_intent(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": str(self.symbol),
            "side": self.side.value,
            "size": str(self.size),
            "limit_price": _fmt(self.limit_price),
            "leverage": self.leverage,
            "reduce_only": self.reduce_only,
            "time_in_force": self.time_in_force.value,
            "max_slippage": _fmt(self.max_slippage),
        }


@dataclass(frozen=True, slots=True)
class MarketSnapshot:
    """Current mark price for a symbol, supplied by the market-data collaborator."""

    symbol: Symbol
    mark_price: Decimal
    is_spot: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "symbol", Symbol.parse(self.symbol))
        mark_price = to_decimal(self.mark_price, "mark_price")
        if mark_price <= 0:
            raise ValueError(f"mark_price must be positive, got {mark_price} for {self.symbol}")
        object.__setattr__(self, "mark_price", mark_price)


@dataclass(frozen=True, slots=True)
class OrderRequest:
    """Canonical order handed to the exchange client and discarded after submission."""

    symbol: Symbol
    side: Side
    size: Decimal
    order_type: OrderType
    limit_price: Optional[Decimal]
    reduce_only: bool
    time_in_force: TimeInForce
    leverage: int = 1
    protective_price: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": str(self.symbol),
            "side": self.side.value,
            "size": str(self.size),
            "order_type": self.order_type.value,
            "limit_price": _fmt(self.limit_price),
            "protective_price": _fmt(self.protective_price),
            "reduce_only": self.reduce_only,
            "time_in_force": self.time_in_force.value,
            "leverage": self.leverage,
        }


@dataclass(frozen=True, slots=True)
class OrderAck:
    """Exchange acknowledgement for an accepted order."""

    symbol: Symbol
    side: Side
    size: Decimal
    exchange_order_id: str
    status: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": str(self.symbol),
            "side": self.side.value,
            "size": str(self.size),
            "exchange_order_id": self.exchange_order_id,
            "status": self.status,
        }


# ---------------------------------------------------------------------------
# Risk violations
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RiskViolation:
    """Represents the single broken risk rule behind a rejection."""

    code: ClassVar[str] = "RISK_VIOLATION"

    @property
    def message(self) -> str:
        return f"Risk rule {self.code} rejected the order"

    def details(self) -> Dict[str, Any]:
        return {}


@dataclass(frozen=True, slots=True)
class SymbolDisabled(RiskViolation):
    code: ClassVar[str] = "SYMBOL_DISABLED"

    symbol: Symbol

    @property
    def message(self) -> str:
        return f"Trading disabled for symbol: {self.symbol}"

    def details(self) -> Dict[str, Any]:
        return {"symbol": str(self.symbol)}


@dataclass(frozen=True, slots=True)
class LeverageExceeded(RiskViolation):
    code: ClassVar[str] = "LEVERAGE_EXCEEDED"

    symbol: Symbol
    requested: int
    max: int

    @property
    def message(self) -> str:
        return (
            f"Requested leverage {self.requested}x exceeds configured maximum "
            f"{self.max}x for {self.symbol}"
        )

    def details(self) -> Dict[str, Any]:
        return {"symbol": str(self.symbol), "requested": self.requested, "max": self.max}


@dataclass(frozen=True, slots=True)
class OrderNotionalExceeded(RiskViolation):
    code: ClassVar[str] = "ORDER_NOTIONAL_EXCEEDED"

    symbol: Symbol
    notional: Decimal
    max: Decimal

    @property
    def message(self) -> str:
        return f"Order notional ${self.notional:.2f} exceeds per-order limit ${self.max:.2f}"

    def details(self) -> Dict[str, Any]:
        return {"symbol": str(self.symbol), "notional": str(self.notional), "max": str(self.max)}


@dataclass(frozen=True, slots=True)
class SymbolNotionalExceeded(RiskViolation):
    code: ClassVar[str] = "SYMBOL_NOTIONAL_EXCEEDED"

    symbol: Symbol
    notional: Decimal
    max: Decimal

    @property
    def message(self) -> str:
        return (
            f"Order notional ${self.notional:.2f} exceeds symbol limit "
            f"${self.max:.2f} for {self.symbol}"
        )

    def details(self) -> Dict[str, Any]:
        return {"symbol": str(self.symbol), "notional": str(self.notional), "max": str(self.max)}


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Approved:
    """The intent passed every check against this snapshot."""

    intent: TradeIntent
    snapshot: MarketSnapshot
    notional: Decimal

    approved: ClassVar[bool] = True


@dataclass(frozen=True, slots=True)
class Rejected:
    """The intent broke exactly one rule; later checks were not run."""

    violation: RiskViolation

    approved: ClassVar[bool] = False


RiskDecision = Union[Approved, Rejected]


def decision_to_dict(decision: RiskDecision) -> Dict[str, Any]:
    if isinstance(decision, Approved):
        return {
            "approved": True,
            "notional": str(decision.notional),
            "mark_price": str(decision.snapshot.mark_price),
        }
    if isinstance(decision, Rejected):
        violation = decision.violation
        return {
            "approved": False,
            "code": violation.code,
            "message": violation.message,
            "details": violation.details(),
        }
    raise TypeError(f"Unknown risk decision {decision!r}")


def _fmt(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)
