"""
Utilities for converting approved trade intents into canonical order requests.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_UP, Decimal
from typing import Optional

from risk.order_validation import round_to_step
from risk.schemas import (
    Approved,
    MarketSnapshot,
    OrderRequest,
    OrderType,
    RiskDecision,
    Side,
    TradeIntent,
)

DEFAULT_LEVERAGE = 1


def protective_price(
    side: Side, mark_price: Decimal, max_slippage: Decimal, tick_size: Optional[Decimal] = None
) -> Decimal:
    """
    Worst acceptable fill for a market order bounded by max_slippage.

    With a tick size the price is snapped towards the mark, so the bound only
    ever gets tighter.
    """
    if side is Side.BUY:
        price = mark_price * (1 + max_slippage)
        return round_to_step(price, tick_size, ROUND_DOWN) if tick_size else price
    price = mark_price * (1 - max_slippage)
    return round_to_step(price, tick_size, ROUND_UP) if tick_size else price


@dataclass(frozen=True, slots=True)
class OrderBuilder:
    """
    Translate an approved intent plus its snapshot into an OrderRequest.

    The builder performs no I/O and never touches the risk policy. Handing it
    anything other than the Approved decision for the very same intent and
    snapshot is a programming error.
    """

    default_leverage: int = DEFAULT_LEVERAGE
    tick_size: Optional[Decimal] = None

    def __post_init__(self) -> None:
        if self.tick_size is not None and self.tick_size <= 0:
            raise ValueError(f"tick_size must be positive, got {self.tick_size}")

    def build(self, intent: TradeIntent, snapshot: MarketSnapshot, decision: RiskDecision) -> OrderRequest:
        assert isinstance(decision, Approved), f"OrderBuilder invoked with non-approved decision {decision!r}"
        assert decision.intent == intent and decision.snapshot == snapshot, (
            "OrderBuilder invoked with a decision made for a different intent or snapshot"
        )

        if intent.limit_price is not None:
            order_type = OrderType.LIMIT
            guard: Optional[Decimal] = None
        else:
            order_type = OrderType.MARKET
            guard = None
            if intent.max_slippage is not None:
                guard = protective_price(intent.side, snapshot.mark_price, intent.max_slippage, self.tick_size)

        return OrderRequest(
            symbol=intent.symbol,
            side=intent.side,
            size=intent.size,
            order_type=order_type,
            limit_price=intent.limit_price,
            reduce_only=intent.reduce_only,
            time_in_force=intent.time_in_force,
            leverage=intent.leverage if intent.leverage is not None else self.default_leverage,
            protective_price=guard,
        )
