import pytest
from fastapi.testclient import TestClient

from exchanges.base_client import ExchangeConnectionError, ExchangeOrderNotFoundError, ExchangeRejectedError
from exchanges.okx.client import OkxClientError
from execution.trading_service import TradingService
from services.webapp import dependencies
from services.webapp.main import app


@pytest.fixture
def api(policy, exchange, market_data):
    service = TradingService(policy, exchange, market_data=market_data)
    app.dependency_overrides[dependencies.get_trading_service] = lambda: service
    app.dependency_overrides[dependencies.get_risk_policy] = lambda: policy
    app.dependency_overrides[dependencies.get_exchange_client] = lambda: exchange
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(api):
    response = api.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["version"] == "0.1.0"
    assert isinstance(body["timestamp"], int)


def test_limits(api):
    body = api.get("/limits").json()

    assert body["global"] == {"max_notional_per_order": "10000", "max_notional_per_symbol": "25000"}
    assert body["symbols"]["DOGE"]["enabled"] is False


def test_submit_order(api, exchange):
    response = api.post("/orders", json={"symbol": "btc", "side": "buy", "size": "0.1", "limit_price": 30000})

    assert response.status_code == 200
    assert response.json() == {
        "symbol": "BTC",
        "side": "Buy",
        "size": "0.1",
        "exchange_order_id": "oid-1",
        "status": "submitted",
    }
    assert len(exchange.calls_named("place_order")) == 1


def test_risk_rejection_is_422_with_code(api, exchange):
    response = api.post("/orders", json={"symbol": "SOL", "side": "Buy", "size": 1, "leverage": 25})

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["code"] == "LEVERAGE_EXCEEDED"
    assert detail["retryable"] is False
    assert detail["details"] == {"symbol": "SOL", "requested": 25, "max": 20}
    assert exchange.calls == []


@pytest.mark.parametrize(
    "failure, status_code, code",
    [
        (ExchangeConnectionError("timeout"), 503, "CONNECTION_FAILED"),
        (ExchangeRejectedError("OKX error 51008: Insufficient balance", code="51008"), 502, "EXCHANGE_REJECTED"),
    ],
)
def test_exchange_failures(api, exchange, failure, status_code, code):
    exchange.place_error = failure

    response = api.post("/orders", json={"symbol": "BTC", "side": "Sell", "size": "0.1"})

    assert response.status_code == status_code
    assert response.json()["detail"]["code"] == code


def test_market_data_outage_is_503(api, market_data):
    market_data.snapshot_error = ExchangeConnectionError("down")

    response = api.post("/orders/check", json={"symbol": "BTC", "side": "Buy", "size": 1})

    assert response.status_code == 503
    assert response.json()["detail"]["retryable"] is True


def test_check_reports_decision_without_placing(api, exchange):
    response = api.post("/orders/check", json={"symbol": "ETH", "side": "Buy", "size": 1})

    assert response.status_code == 200
    body = response.json()
    assert body["approved"] is False
    assert body["code"] == "SYMBOL_NOTIONAL_EXCEEDED"
    assert body["intent"]["symbol"] == "ETH"
    assert exchange.calls_named("place_order") == []


def test_check_approved(api):
    body = api.post("/orders/check", json={"symbol": "BTC", "side": "Buy", "size": "0.1"}).json()

    assert body["approved"] is True
    assert body["notional"] == "3000.0"
    assert body["mark_price"] == "30000"


@pytest.mark.parametrize(
    "payload",
    [
        {"symbol": "BTC", "side": "Buy", "size": 0},
        {"symbol": "BTC", "side": "Buy", "size": 1, "max_slippage": 2},
        {"symbol": "BTC", "side": "Buy"},
    ],
)
def test_schema_validation(api, payload):
    assert api.post("/orders", json=payload).status_code == 422


def test_invalid_intent_detail(api):
    response = api.post("/orders", json={"symbol": "BTC", "side": "hold", "size": 1})

    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "INVALID_INTENT"


def test_cancel(api, exchange):
    response = api.delete("/orders/btc/42")

    assert response.status_code == 200
    assert response.json() == {"status": "cancelled", "symbol": "BTC", "order_id": "42"}
    assert exchange.calls == [("cancel_order", "BTC", "42")]


def test_cancel_not_found(api, exchange):
    exchange.cancel_error = ExchangeOrderNotFoundError("OKX error 51400: order does not exist", code="51400")

    response = api.delete("/orders/BTC/42")

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "ORDER_NOT_FOUND"


def test_status_lists_markets(api, exchange):
    response = api.get("/status")

    assert response.status_code == 200
    body = response.json()
    assert body["total_markets"] == 4
    assert body["markets"][0] == {
        "symbol": "BTC",
        "instrument_id": "BTC-USDT-SWAP",
        "mark_price": "30000",
        "last_price": "30000",
        "volume_24h": "1000",
        "max_leverage": 50,
    }
    assert exchange.calls == [("fetch_status",)]


def test_balances(api):
    body = api.get("/balances").json()

    assert body["account_value"] == "25000"
    assert body["margin_used"] == "3000"
    assert body["quote_currency"] == "USDT"
    assert body["positions"][0]["size"] == "0.5"


def test_spot(api):
    body = api.get("/spot").json()

    assert body["tokens"] == ["ETH"]
    assert body["pairs"][0]["instrument_id"] == "ETH-USDT"


@pytest.mark.parametrize(
    "path, error, status_code, code",
    [
        ("/status", ExchangeConnectionError("OKX request GET /api/v5/public/instruments failed"), 503, "CONNECTION_FAILED"),
        ("/balances", OkxClientError("OKX credentials are not configured; cannot sign private request"), 502, "EXCHANGE_REJECTED"),
        ("/spot", OkxClientError("OKX error 50011: Too Many Requests", code="50011"), 502, "EXCHANGE_REJECTED"),
    ],
)
def test_overview_exchange_failures(api, exchange, path, error, status_code, code):
    exchange.overview_error = error

    response = api.get(path)

    assert response.status_code == status_code
    assert response.json()["detail"]["code"] == code
