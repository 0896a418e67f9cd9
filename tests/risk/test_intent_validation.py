from decimal import Decimal

import pytest

from risk.order_validation import BasicIntentValidator, InvalidIntentError, check_symbol, to_decimal
from risk.schemas import MarketSnapshot, RiskViolation, Side, Symbol, TimeInForce, TradeIntent


def test_intent_normalizes_inputs():
    intent = TradeIntent(symbol=" btc ", side="buy", size="0.01", limit_price=60000, time_in_force="ioc")

    assert intent.symbol == Symbol("BTC")
    assert intent.side is Side.BUY
    assert intent.size == Decimal("0.01")
    assert intent.limit_price == Decimal("60000")
    assert intent.time_in_force is TimeInForce.IMMEDIATE_OR_CANCEL
    assert intent.reduce_only is False


def test_float_inputs_do_not_carry_binary_noise():
    intent = TradeIntent(symbol="ETH", side="Sell", size=0.1, max_slippage=0.05)

    assert intent.size == Decimal("0.1")
    assert intent.max_slippage == Decimal("0.05")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Gtc", TimeInForce.GOOD_TILL_CANCELLED),
        ("GoodTillCancelled", TimeInForce.GOOD_TILL_CANCELLED),
        ("IOC", TimeInForce.IMMEDIATE_OR_CANCEL),
        ("Alo", TimeInForce.ADD_LIQUIDITY_ONLY),
        ("addliquidityonly", TimeInForce.ADD_LIQUIDITY_ONLY),
    ],
)
def test_time_in_force_aliases(raw, expected):
    assert TimeInForce.parse(raw) is expected


@pytest.mark.parametrize(
    "kwargs, fragment",
    [
        ({"size": 0}, "Order size must be greater than zero"),
        ({"size": "-1"}, "Order size must be greater than zero"),
        ({"limit_price": 0}, "Limit price must be greater than zero"),
        ({"leverage": 0}, "Leverage must be at least 1x"),
        ({"leverage": 2.5}, "Leverage must be a whole number"),
        ({"max_slippage": "1.5"}, "Max slippage must be within"),
        ({"max_slippage": 0}, "Max slippage must be within"),
        ({"size": "abc"}, "is not a number"),
        ({"size": "NaN"}, "must be finite"),
        ({"size": True}, "got a boolean"),
        ({"side": "hold"}, "Unsupported side"),
        ({"time_in_force": "fok"}, "Unsupported time in force"),
    ],
)
def test_invalid_intents_are_refused(kwargs, fragment):
    fields = {"symbol": "BTC", "side": "Buy", "size": 1, **kwargs}

    with pytest.raises(InvalidIntentError) as excinfo:
        TradeIntent(**fields)

    assert fragment in str(excinfo.value)


def test_validator_collects_every_problem():
    with pytest.raises(InvalidIntentError) as excinfo:
        TradeIntent(symbol="BTC", side="Buy", size=0, limit_price=-5, leverage=0)

    assert len(excinfo.value.violations) == 3


def test_custom_slippage_ceiling():
    intent = TradeIntent(symbol="BTC", side="Buy", size=1, max_slippage="0.2")

    with pytest.raises(InvalidIntentError):
        BasicIntentValidator(max_slippage_ceiling=Decimal("0.1")).validate(intent)


@pytest.mark.parametrize("raw", ["", "   ", "BTC USD", "$BTC", 42])
def test_bad_symbols(raw):
    with pytest.raises(InvalidIntentError):
        check_symbol(raw)


def test_symbols_compare_case_insensitively():
    assert Symbol("eth") == Symbol("ETH")
    assert Symbol.parse(Symbol("sol")) == Symbol("SOL")
    assert str(Symbol("arb")) == "ARB"


def test_to_decimal_rejects_unsupported_types():
    with pytest.raises(InvalidIntentError):
        to_decimal([1], "size")
    assert to_decimal(Decimal("1.50"), "size") == Decimal("1.5")


def test_intent_is_frozen():
    intent = TradeIntent(symbol="BTC", side="Buy", size=1)

    with pytest.raises(AttributeError):
        intent.size = Decimal("2")


@pytest.mark.parametrize("mark_price", [0, "-30000", "0.000"])
def test_snapshot_requires_positive_mark_price(mark_price):
    with pytest.raises(ValueError, match="mark_price must be positive"):
        MarketSnapshot(symbol="BTC", mark_price=mark_price)


def test_snapshot_rejects_non_finite_mark_price():
    with pytest.raises(InvalidIntentError, match="mark_price must be finite"):
        MarketSnapshot(symbol="BTC", mark_price="Infinity")


def test_base_violation_has_generic_message():
    violation = RiskViolation()

    assert violation.message == "Risk rule RISK_VIOLATION rejected the order"
    assert violation.details() == {}
