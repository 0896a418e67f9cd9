"""
OKX trading client with REST mark-price, order and cancel support.

By default this adapter targets the OKX Demo environment: a
``x-simulated-trading: 1`` header is included so real funds are never
touched. Symbols such as ``BTC`` are mapped to USDT-margined perpetual swaps
(``BTC-USDT-SWAP``) unless configured as spot (``BTC-USDT``).

Order sizes arrive in base currency. Swaps trade in contracts of ``ctVal``
base units each, so sizes are converted using the instrument metadata from
``/api/v5/public/instruments``, which is cached per instrument.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from decimal import ROUND_DOWN, ROUND_UP, Decimal, InvalidOperation
from typing import Dict, Iterable, List, Literal, Optional

import httpx

from exchanges.base_client import (
    ExchangeClient,
    ExchangeConnectionError,
    ExchangeCredentials,
    ExchangeError,
    ExchangeOrderNotFoundError,
    ExchangeRejectedError,
)
from exchanges.okx.models import (
    CONTRACT_INSTRUMENT_TYPES,
    AccountSummary,
    InstrumentSpec,
    MarketStatus,
    PositionInfo,
    SpotPair,
    base_symbol,
    parse_decimal,
)
from risk.order_validation import is_multiple_of, round_to_step
from risk.schemas import (
    MarketSnapshot,
    OrderAck,
    OrderRequest,
    OrderType,
    Side,
    Symbol,
    TimeInForce,
)

logger = logging.getLogger(__name__)

INSTRUMENTS_PATH = "/api/v5/public/instruments"
MARK_PRICE_PATH = "/api/v5/public/mark-price"
TICKER_PATH = "/api/v5/market/ticker"
TICKERS_PATH = "/api/v5/market/tickers"
BALANCE_PATH = "/api/v5/account/balance"
POSITIONS_PATH = "/api/v5/account/positions"

# sCode values OKX uses when the order id does not reference an open order.
ORDER_NOT_FOUND_CODES = frozenset({"51400", "51401", "51402", "51603"})

_LIMIT_ORDER_TYPES = {
    TimeInForce.GOOD_TILL_CANCELLED: "limit",
    TimeInForce.IMMEDIATE_OR_CANCEL: "ioc",
    TimeInForce.ADD_LIQUIDITY_ONLY: "post_only",
}


class OkxClientError(ExchangeRejectedError):
    """Raised when OKX returns a non-success response."""


class OkxClient(ExchangeClient):
    """Trading client for the OKX v5 REST API."""

    name = "okx"

    def __init__(
        self,
        base_url: str | None = None,
        simulate: bool = True,
        timeout: float = 10.0,
        *,
        quote_currency: str = "USDT",
        instrument_suffix: str = "SWAP",
        margin_mode: Literal["cross", "isolated"] = "cross",
        spot_symbols: Iterable[str] = (),
    ) -> None:
        self._base_url = base_url or "https://www.okx.com"
        self._simulate = simulate
        self._client = httpx.Client(base_url=self._base_url, timeout=timeout)
        self._credentials: ExchangeCredentials | None = None
        self._quote_currency = quote_currency.upper()
        self._instrument_suffix = instrument_suffix.upper()
        self._margin_mode = margin_mode
        self._spot_symbols = {Symbol.parse(symbol) for symbol in spot_symbols}
        self._instruments: Dict[str, InstrumentSpec] = {}

    # ---------------------------------------------------------------------
    # ExchangeClient API
    # ---------------------------------------------------------------------
    def authenticate(self, credentials: ExchangeCredentials) -> None:
        self._credentials = credentials

    def is_spot(self, symbol: Symbol) -> bool:
        return symbol in self._spot_symbols

    def instrument_id(self, symbol: Symbol) -> str:
        """Map a bare symbol onto the OKX instrument identifier."""
        base = f"{symbol}-{self._quote_currency}"
        if self.is_spot(symbol):
            return base
        return f"{base}-{self._instrument_suffix}"

    def instrument_spec(self, symbol: Symbol | str) -> InstrumentSpec:
        """Contract value, lot, minimum size and tick of the instrument traded for `symbol`."""
        symbol = Symbol.parse(symbol)
        inst_type = "SPOT" if self.is_spot(symbol) else self._instrument_suffix
        return self._instrument_spec_by_id(inst_type, self.instrument_id(symbol))

    def get_snapshot(self, symbol: Symbol) -> MarketSnapshot:
        symbol = Symbol.parse(symbol)
        inst_id = self.instrument_id(symbol)
        if self.is_spot(symbol):
            response = self._request("GET", TICKER_PATH, params={"instId": inst_id}, signed=False)
            raw_price = _single_item(response).get("last")
        else:
            response = self._request(
                "GET",
                MARK_PRICE_PATH,
                params={"instType": self._instrument_suffix, "instId": inst_id},
                signed=False,
            )
            raw_price = _single_item(response).get("markPx")
        try:
            mark_price = Decimal(str(raw_price))
        except InvalidOperation as exc:
            raise ExchangeError(f"OKX returned unusable price {raw_price!r} for {inst_id}", payload=response) from exc
        if not mark_price.is_finite() or mark_price <= 0:
            raise ExchangeError(f"OKX returned unusable price {raw_price!r} for {inst_id}", payload=response)
        return MarketSnapshot(symbol=symbol, mark_price=mark_price, is_spot=self.is_spot(symbol))

    def set_leverage(self, symbol: Symbol, leverage: int) -> None:
        body = {
            "instId": self.instrument_id(symbol),
            "lever": str(leverage),
            "mgnMode": self._margin_mode,
        }
        self._request("POST", "/api/v5/account/set-leverage", json_body=body)
        logger.info("Leverage set to %sx for %s", leverage, symbol)

    def place_order(self, order: OrderRequest) -> OrderAck:
        spot = self.is_spot(order.symbol)
        spec = self.instrument_spec(order.symbol)
        # Everything is checked against the instrument before leverage is touched.
        exchange_size = self._exchange_size(order, spec)
        type_fields = self._order_type_fields(order, spec)

        if not spot and not order.reduce_only:
            self.set_leverage(order.symbol, order.leverage)

        body = {
            "instId": spec.instrument_id,
            "tdMode": "cash" if spot else self._margin_mode,
            "side": "buy" if order.side is Side.BUY else "sell",
            "sz": _fmt_decimal(exchange_size),
        }
        body.update(type_fields)
        if order.reduce_only and not spot:
            body["reduceOnly"] = True

        response = self._request("POST", "/api/v5/trade/order", json_body=body)
        data = _single_item(response)
        return OrderAck(
            symbol=order.symbol,
            side=order.side,
            size=order.size,
            exchange_order_id=str(data.get("ordId") or ""),
            status="submitted",
        )

    def cancel_order(self, symbol: Symbol, order_id: str) -> None:
        body = {
            "instId": self.instrument_id(Symbol.parse(symbol)),
            "ordId": str(order_id),
        }
        self._request("POST", "/api/v5/trade/cancel-order", json_body=body)

    def close(self) -> None:
        self._client.close()
        self._credentials = None

    # ---------------------------------------------------------------------
    # Market and account overviews
    # ---------------------------------------------------------------------
    def fetch_status(self) -> List[MarketStatus]:
        """Live perpetual markets quoted in the configured currency, with mark price and volume."""
        inst_type = self._instrument_suffix
        specs = self._load_instruments(inst_type)
        marks = {
            row.get("instId"): row.get("markPx")
            for row in _rows(self._request("GET", MARK_PRICE_PATH, params={"instType": inst_type}, signed=False))
        }
        tickers = {
            row.get("instId"): row
            for row in _rows(self._request("GET", TICKERS_PATH, params={"instType": inst_type}, signed=False))
        }
        suffix = f"-{self._quote_currency}-{inst_type}"
        markets: List[MarketStatus] = []
        try:
            for spec in specs:
                if spec.state != "live" or not spec.instrument_id.endswith(suffix):
                    continue
                ticker = tickers.get(spec.instrument_id, {})
                markets.append(
                    MarketStatus(
                        symbol=base_symbol(spec.instrument_id),
                        instrument_id=spec.instrument_id,
                        mark_price=parse_decimal(marks.get(spec.instrument_id)),
                        last_price=parse_decimal(ticker.get("last")),
                        # Derivative tickers report volCcy24h in base currency.
                        volume_24h=parse_decimal(ticker.get("volCcy24h")),
                        max_leverage=spec.max_leverage,
                    )
                )
        except (ArithmeticError, ValueError) as exc:
            raise OkxClientError(f"OKX returned malformed {inst_type} market data: {exc}") from exc
        markets.sort(key=lambda market: market.symbol)
        return markets

    def fetch_account(self) -> AccountSummary:
        """Account equity, free quote balance, margin in use and open positions sized in base currency."""
        response = self._request("GET", BALANCE_PATH)
        balance = _single_item(response)
        position_rows = _rows(self._request("GET", POSITIONS_PATH))
        try:
            available = Decimal("0")
            for detail in balance.get("details") or []:
                if isinstance(detail, dict) and str(detail.get("ccy") or "").upper() == self._quote_currency:
                    available = parse_decimal(detail.get("availBal"), Decimal("0"))
            positions: List[PositionInfo] = []
            for row in position_rows:
                contracts = parse_decimal(row.get("pos"), Decimal("0"))
                if contracts == 0:
                    continue
                inst_id = str(row.get("instId") or "")
                inst_type = str(row.get("instType") or "").upper()
                size = contracts
                if inst_type in CONTRACT_INSTRUMENT_TYPES:
                    size = self._instrument_spec_by_id(inst_type, inst_id).to_base(contracts)
                positions.append(
                    PositionInfo(
                        symbol=base_symbol(inst_id),
                        instrument_id=inst_id,
                        size=size,
                        entry_price=parse_decimal(row.get("avgPx")),
                        leverage=parse_decimal(row.get("lever")),
                        unrealized_pnl=parse_decimal(row.get("upl")),
                        notional_usd=parse_decimal(row.get("notionalUsd")),
                    )
                )
            summary = AccountSummary(
                account_value=parse_decimal(balance.get("totalEq"), Decimal("0")),
                available=available,
                margin_used=parse_decimal(balance.get("imr"), Decimal("0")),
                quote_currency=self._quote_currency,
                positions=positions,
            )
        except (ArithmeticError, ValueError) as exc:
            raise OkxClientError(f"OKX returned a malformed account payload: {exc}", payload=response) from exc
        logger.debug("Fetched account summary with %d open positions", len(positions))
        return summary

    def fetch_spot_markets(self) -> List[SpotPair]:
        """Live spot pairs quoted in the configured currency, with last and mid prices."""
        specs = self._load_instruments("SPOT")
        tickers = {
            row.get("instId"): row
            for row in _rows(self._request("GET", TICKERS_PATH, params={"instType": "SPOT"}, signed=False))
        }
        pairs: List[SpotPair] = []
        try:
            for spec in specs:
                if spec.state != "live" or spec.quote_currency != self._quote_currency:
                    continue
                ticker = tickers.get(spec.instrument_id, {})
                bid = parse_decimal(ticker.get("bidPx"))
                ask = parse_decimal(ticker.get("askPx"))
                pairs.append(
                    SpotPair(
                        instrument_id=spec.instrument_id,
                        base_currency=spec.base_currency,
                        quote_currency=spec.quote_currency,
                        last_price=parse_decimal(ticker.get("last")),
                        mid_price=(bid + ask) / 2 if bid is not None and ask is not None else None,
                        volume_24h=parse_decimal(ticker.get("vol24h")),
                        lot_size=spec.lot_size,
                        tick_size=spec.tick_size,
                    )
                )
        except (ArithmeticError, ValueError) as exc:
            raise OkxClientError(f"OKX returned malformed spot market data: {exc}") from exc
        pairs.sort(key=lambda pair: pair.instrument_id)
        return pairs

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _instrument_spec_by_id(self, inst_type: str, inst_id: str) -> InstrumentSpec:
        spec = self._instruments.get(inst_id)
        if spec is None:
            response = self._request(
                "GET", INSTRUMENTS_PATH, params={"instType": inst_type, "instId": inst_id}, signed=False
            )
            try:
                spec = InstrumentSpec.from_payload(_single_item(response))
            except (ArithmeticError, KeyError, ValueError) as exc:
                raise OkxClientError(f"OKX returned unusable metadata for {inst_id}: {exc}", payload=response) from exc
            self._instruments[inst_id] = spec
            logger.debug(
                "Loaded %s metadata: ctVal=%s lotSz=%s minSz=%s tickSz=%s",
                inst_id,
                spec.contract_value,
                spec.lot_size,
                spec.min_size,
                spec.tick_size,
            )
        return spec

    def _load_instruments(self, inst_type: str) -> List[InstrumentSpec]:
        response = self._request("GET", INSTRUMENTS_PATH, params={"instType": inst_type}, signed=False)
        specs: List[InstrumentSpec] = []
        for entry in _rows(response):
            try:
                spec = InstrumentSpec.from_payload(entry)
            except (ArithmeticError, KeyError, ValueError) as exc:
                # Pre-open listings come back with blank trading rules.
                logger.debug("Skipping %s instrument %s: %s", inst_type, entry.get("instId"), exc)
                continue
            self._instruments[spec.instrument_id] = spec
            specs.append(spec)
        return specs

    @staticmethod
    def _exchange_size(order: OrderRequest, spec: InstrumentSpec) -> Decimal:
        """Base-currency size expressed in the unit OKX expects for the instrument."""
        units = order.size / spec.contract_value
        if not is_multiple_of(units, spec.lot_size):
            raise OkxClientError(
                f"Order size {order.size} {order.symbol} is not a multiple of the "
                f"{spec.instrument_id} lot of {spec.base_lot} {order.symbol}"
            )
        if units < spec.min_size:
            raise OkxClientError(
                f"Order size {order.size} {order.symbol} is below the {spec.instrument_id} "
                f"minimum of {spec.min_size * spec.contract_value} {order.symbol}"
            )
        return units

    @staticmethod
    def _order_type_fields(order: OrderRequest, spec: InstrumentSpec) -> dict:
        if order.order_type is OrderType.LIMIT:
            if not is_multiple_of(order.limit_price, spec.tick_size):
                raise OkxClientError(
                    f"Limit price {order.limit_price} is not a multiple of the "
                    f"{spec.instrument_id} tick of {spec.tick_size}"
                )
            return {
                "ordType": _LIMIT_ORDER_TYPES[order.time_in_force],
                "px": _fmt_decimal(order.limit_price),
            }
        if order.protective_price is not None:
            # Marketable IOC at the protective price: fills now or not at all.
            rounding = ROUND_DOWN if order.side is Side.BUY else ROUND_UP
            price = round_to_step(order.protective_price, spec.tick_size, rounding)
            return {"ordType": "ioc", "px": _fmt_decimal(price)}
        if not spec.uses_contracts:
            # Spot market orders size in quote currency unless told otherwise.
            return {"ordType": "market", "tgtCcy": "base_ccy"}
        return {"ordType": "market"}

    def _request(
        self,
        method: Literal["GET", "POST"],
        path: str,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
        *,
        signed: bool = True,
    ) -> dict:
        body_text = json.dumps(json_body, separators=(",", ":")) if json_body else ""
        headers = {"Content-Type": "application/json"}
        if signed:
            headers.update(self._auth_headers(method, path, params, body_text))
        if self._simulate:
            headers["x-simulated-trading"] = "1"

        try:
            response = self._client.request(
                method,
                path,
                params=params,
                content=body_text if body_text else None,
                headers=headers,
            )
        except httpx.TransportError as exc:
            logger.warning("OKX %s %s failed: %s", method, path, exc)
            raise ExchangeConnectionError(f"OKX request {method} {path} failed: {exc}") from exc

        if response.status_code >= 500:
            raise ExchangeConnectionError(
                f"OKX {method} {path} returned HTTP {response.status_code}",
                payload={"status_code": response.status_code},
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise OkxClientError(
                f"OKX {method} {path} returned HTTP {response.status_code} with a non-JSON body",
                payload={"status_code": response.status_code},
            ) from exc
        if not isinstance(payload, dict):
            raise OkxClientError(f"OKX {method} {path} returned an unexpected JSON body")

        if str(payload.get("code")) != "0" or response.status_code >= 400:
            raise _error_from_payload(payload)
        return payload

    def _auth_headers(self, method: str, path: str, params: Optional[dict], body_text: str) -> dict:
        if self._credentials is None:
            raise OkxClientError("OKX credentials are not configured; cannot sign private request")

        timestamp = datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        path_with_params = f"{path}?{httpx.QueryParams(params)}" if params else path
        message = f"{timestamp}{method}{path_with_params}{body_text}"
        return {
            "OK-ACCESS-KEY": self._credentials.api_key,
            "OK-ACCESS-SIGN": self._sign(message, self._credentials.api_secret),
            "OK-ACCESS-TIMESTAMP": timestamp,
            "OK-ACCESS-PASSPHRASE": self._credentials.passphrase or "",
        }

    @staticmethod
    def _sign(message: str, secret_key: str) -> str:
        mac = hmac.new(
            secret_key.encode("utf-8"),
            message.encode("utf-8"),
            hashlib.sha256,
        )
        return base64.b64encode(mac.digest()).decode("utf-8")


def _error_from_payload(payload: dict) -> OkxClientError:
    """Build the most specific error, preferring per-order sCode/sMsg details."""
    code = str(payload.get("code"))
    message = payload.get("msg") or ""
    for entry in payload.get("data") or []:
        if isinstance(entry, dict) and entry.get("sCode") not in (None, "", "0"):
            code = str(entry.get("sCode"))
            message = entry.get("sMsg") or message
            break
    reason = f"OKX error {code}: {message}" if message else f"OKX error {code}"
    if code in ORDER_NOT_FOUND_CODES:
        return OkxOrderNotFoundError(reason, payload=payload, code=code)
    return OkxClientError(reason, payload=payload, code=code)


class OkxOrderNotFoundError(OkxClientError, ExchangeOrderNotFoundError):
    """OKX reported that the order does not exist or is already closed."""


def _fmt_decimal(value: Decimal | None) -> str:
    if value is None:
        raise ValueError("price is required for this order type")
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def _rows(response: dict) -> List[dict]:
    data = response.get("data") or []
    if not isinstance(data, list) or not all(isinstance(entry, dict) for entry in data):
        raise OkxClientError("OKX returned a data payload that is not a list of objects", payload=response)
    return data


def _single_item(response: dict) -> dict:
    data = response.get("data") or []
    if not data:
        raise OkxClientError("OKX returned empty data payload", payload=response)
    if not isinstance(data, list) or not isinstance(data[0], dict):
        raise OkxClientError("OKX returned a data payload that is not a list of objects", payload=response)
    return data[0]


def build_okx_client(credentials: ExchangeCredentials | None = None) -> OkxClient:
    """Create a client from config.py settings, signing with `credentials` when given."""
    try:
        import config as settings
    except ImportError:  # pragma: no cover - fallback for test envs
        settings = None
    client = OkxClient(
        base_url=getattr(settings, "OKX_BASE_URL", None),
        simulate=bool(getattr(settings, "OKX_SIMULATE", True)),
        timeout=float(getattr(settings, "HTTP_TIMEOUT", 10.0)),
        quote_currency=getattr(settings, "OKX_QUOTE_CURRENCY", "USDT"),
        instrument_suffix=getattr(settings, "OKX_INSTRUMENT_SUFFIX", "SWAP"),
        margin_mode=getattr(settings, "OKX_MARGIN_MODE", "cross"),
        spot_symbols=getattr(settings, "SPOT_SYMBOLS", ()),
    )
    if credentials is not None:
        client.authenticate(credentials)
    return client
