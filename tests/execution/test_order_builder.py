from decimal import Decimal

import pytest

from execution.order_builder import OrderBuilder, protective_price
from risk.schemas import (
    Approved,
    OrderType,
    Rejected,
    Side,
    Symbol,
    SymbolDisabled,
    TimeInForce,
    TradeIntent,
)


def _approve(intent, snapshot):
    return Approved(intent=intent, snapshot=snapshot, notional=intent.size * snapshot.mark_price)


@pytest.mark.parametrize("side, expected", [("Buy", Decimal("2040")), ("Sell", Decimal("1960"))])
def test_market_order_carries_protective_price(snapshot_for, side, expected):
    intent = TradeIntent(symbol="ETH", side=side, size=1, max_slippage="0.02")
    snapshot = snapshot_for("ETH", 2_000)

    order = OrderBuilder().build(intent, snapshot, _approve(intent, snapshot))

    assert order.order_type is OrderType.MARKET
    assert order.limit_price is None
    assert order.protective_price == expected


def test_market_order_without_slippage_has_no_guard(snapshot_for):
    intent = TradeIntent(symbol="ETH", side="Buy", size=1)
    snapshot = snapshot_for("ETH", 2_000)

    order = OrderBuilder().build(intent, snapshot, _approve(intent, snapshot))

    assert order.protective_price is None


def test_limit_order_keeps_price_and_fields(snapshot_for):
    intent = TradeIntent(
        symbol="BTC",
        side="Sell",
        size="0.25",
        limit_price=61_000,
        leverage=3,
        reduce_only=True,
        time_in_force="Alo",
        max_slippage="0.05",
    )
    snapshot = snapshot_for("BTC", 60_000)

    order = OrderBuilder().build(intent, snapshot, _approve(intent, snapshot))

    assert order.symbol == Symbol("BTC")
    assert order.side is Side.SELL
    assert order.size == Decimal("0.25")
    assert order.order_type is OrderType.LIMIT
    assert order.limit_price == Decimal("61000")
    assert order.protective_price is None
    assert order.reduce_only is True
    assert order.time_in_force is TimeInForce.ADD_LIQUIDITY_ONLY
    assert order.leverage == 3


def test_missing_leverage_defaults(snapshot_for):
    intent = TradeIntent(symbol="BTC", side="Buy", size="0.1")
    snapshot = snapshot_for("BTC", 60_000)

    assert OrderBuilder().build(intent, snapshot, _approve(intent, snapshot)).leverage == 1
    assert OrderBuilder(default_leverage=2).build(intent, snapshot, _approve(intent, snapshot)).leverage == 2


def test_build_is_deterministic(snapshot_for):
    intent = TradeIntent(symbol="SOL", side="Buy", size=3, max_slippage="0.01")
    snapshot = snapshot_for("SOL", 150)
    decision = _approve(intent, snapshot)

    assert OrderBuilder().build(intent, snapshot, decision) == OrderBuilder().build(intent, snapshot, decision)


def test_rejected_decision_is_a_programming_error(snapshot_for):
    intent = TradeIntent(symbol="DOGE", side="Buy", size=1)

    with pytest.raises(AssertionError):
        OrderBuilder().build(intent, snapshot_for("DOGE", 1), Rejected(SymbolDisabled(symbol=Symbol("DOGE"))))


def test_decision_for_other_intent_is_a_programming_error(snapshot_for):
    intent = TradeIntent(symbol="SOL", side="Buy", size=3)
    other = TradeIntent(symbol="SOL", side="Buy", size=300)
    snapshot = snapshot_for("SOL", 150)

    with pytest.raises(AssertionError):
        OrderBuilder().build(intent, snapshot, _approve(other, snapshot))


def test_protective_price_helper():
    assert protective_price(Side.BUY, Decimal("100"), Decimal("0.5")) == Decimal("150")
    assert protective_price(Side.SELL, Decimal("100"), Decimal("1")) == Decimal("0")


@pytest.mark.parametrize(
    "side, expected",
    [("Buy", Decimal("2046.5")), ("Sell", Decimal("1953.5"))],
)
def test_tick_size_snaps_protective_price_towards_mark(snapshot_for, side, expected):
    intent = TradeIntent(symbol="ETH", side=side, size=1, max_slippage="0.0234")
    snapshot = snapshot_for("ETH", 2_000)

    order = OrderBuilder(tick_size=Decimal("0.5")).build(intent, snapshot, _approve(intent, snapshot))

    assert order.protective_price == expected


def test_tick_size_leaves_limit_price_alone(snapshot_for):
    intent = TradeIntent(symbol="ETH", side="Buy", size=1, limit_price="1999.99")
    snapshot = snapshot_for("ETH", 2_000)

    order = OrderBuilder(tick_size=Decimal("0.5")).build(intent, snapshot, _approve(intent, snapshot))

    assert order.limit_price == Decimal("1999.99")


@pytest.mark.parametrize("tick_size", [Decimal("0"), Decimal("-0.01")])
def test_tick_size_must_be_positive(tick_size):
    with pytest.raises(ValueError, match="tick_size must be positive"):
        OrderBuilder(tick_size=tick_size)
