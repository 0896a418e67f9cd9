from decimal import Decimal

import pytest

from exchanges.base_client import ExchangeConnectionError
from exchanges.okx.models import AccountSummary, MarketStatus, PositionInfo, SpotPair
from risk.config_loader import build_risk_policy
from risk.schemas import MarketSnapshot, OrderAck, Symbol


class RecordingExchange:
    """In-memory exchange double that records every call it receives."""

    name = "recording"

    def __init__(self, mark_prices=None):
        self.mark_prices = {key: Decimal(str(value)) for key, value in (mark_prices or {}).items()}
        self.calls = []
        self.snapshot_error = None
        self.place_error = None
        self.cancel_error = None
        self.overview_error = None

    def get_snapshot(self, symbol):
        self.calls.append(("get_snapshot", str(symbol)))
        if self.snapshot_error is not None:
            raise self.snapshot_error
        if str(symbol) not in self.mark_prices:
            raise ExchangeConnectionError(f"no price for {symbol}")
        return MarketSnapshot(symbol=symbol, mark_price=self.mark_prices[str(symbol)])

    def place_order(self, order):
        self.calls.append(("place_order", order))
        if self.place_error is not None:
            raise self.place_error
        return OrderAck(
            symbol=order.symbol,
            side=order.side,
            size=order.size,
            exchange_order_id=f"oid-{len(self.calls)}",
            status="submitted",
        )

    def cancel_order(self, symbol, order_id):
        self.calls.append(("cancel_order", str(symbol), order_id))
        if self.cancel_error is not None:
            raise self.cancel_error

    def instrument_id(self, symbol):
        return f"{symbol}-USDT-SWAP"

    def fetch_status(self):
        self._overview("fetch_status")
        return [
            MarketStatus(
                symbol=symbol,
                instrument_id=self.instrument_id(symbol),
                mark_price=price,
                last_price=price,
                volume_24h=Decimal("1000"),
                max_leverage=50,
            )
            for symbol, price in sorted(self.mark_prices.items())
        ]

    def fetch_account(self):
        self._overview("fetch_account")
        position = PositionInfo(
            symbol="BTC",
            instrument_id="BTC-USDT-SWAP",
            size=Decimal("0.5"),
            entry_price=Decimal("29000"),
            leverage=Decimal("5"),
            unrealized_pnl=Decimal("500"),
            notional_usd=Decimal("15000"),
        )
        return AccountSummary(
            account_value=Decimal("25000"),
            available=Decimal("18000"),
            margin_used=Decimal("3000"),
            quote_currency="USDT",
            positions=[position],
        )

    def fetch_spot_markets(self):
        self._overview("fetch_spot_markets")
        return [
            SpotPair(
                instrument_id="ETH-USDT",
                base_currency="ETH",
                quote_currency="USDT",
                last_price=Decimal("2000.5"),
                mid_price=Decimal("2000.25"),
                volume_24h=Decimal("9000"),
                lot_size=Decimal("0.000001"),
                tick_size=Decimal("0.01"),
            )
        ]

    def _overview(self, name):
        self.calls.append((name,))
        if self.overview_error is not None:
            raise self.overview_error

    def close(self):
        self.calls.append(("close",))

    def calls_named(self, name):
        return [call for call in self.calls if call[0] == name]


RISK_SETTINGS = {
    "global": {"max_notional_per_order": 10_000, "max_notional_per_symbol": 25_000},
    "symbols": {
        "BTC": {"max_leverage": 10, "max_notional": 50_000, "enabled": True},
        "ETH": {"max_leverage": 10, "max_notional": 1_500, "enabled": True},
        "SOL": {"max_leverage": 20, "max_notional": 20_000, "enabled": True},
        "DOGE": {"max_leverage": 5, "max_notional": 5_000, "enabled": False},
    },
}


@pytest.fixture
def policy():
    return build_risk_policy(RISK_SETTINGS)


@pytest.fixture
def market_data():
    return RecordingExchange(mark_prices={"BTC": 30_000, "ETH": 2_000, "SOL": 150, "DOGE": "0.1"})


@pytest.fixture
def exchange():
    return RecordingExchange(mark_prices={"BTC": 30_000, "ETH": 2_000, "SOL": 150, "DOGE": "0.1"})


@pytest.fixture
def snapshot_for():
    def _factory(symbol, mark_price):
        return MarketSnapshot(symbol=Symbol(symbol), mark_price=Decimal(str(mark_price)))

    return _factory
