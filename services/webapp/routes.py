"""
HTTP route handlers for the FastAPI web application.
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from exchanges.base_client import ExchangeError
from exchanges.okx.client import OkxClient
from exchanges.okx.models import spot_markets_to_dict, status_to_dict
from execution.errors import (
    ConnectionFailed,
    ExchangeRejected,
    MarketDataUnavailable,
    OrderNotFound,
    RiskViolationError,
    TradingError,
    exchange_failure,
)
from execution.trading_service import TradingService
from risk.limits import RiskPolicy
from risk.order_validation import InvalidIntentError
from risk.schemas import TradeIntent, decision_to_dict
from services.webapp.dependencies import get_exchange_client, get_risk_policy, get_trading_service

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"

router = APIRouter()

_ERROR_STATUS = {
    RiskViolationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    MarketDataUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
    ConnectionFailed: status.HTTP_503_SERVICE_UNAVAILABLE,
    ExchangeRejected: status.HTTP_502_BAD_GATEWAY,
    OrderNotFound: status.HTTP_404_NOT_FOUND,
}


class TradeIntentPayload(BaseModel):
    """Request payload describing an order the operator wants to place."""

    symbol: str = Field(..., min_length=1, description="Instrument symbol, e.g. BTC.")
    side: str = Field(..., description="Order direction: buy or sell.")
    size: Decimal = Field(..., gt=0, description="Order size in base units.")
    limit_price: Optional[Decimal] = Field(
        default=None, gt=0, description="Limit price; omit for a market order."
    )
    leverage: Optional[int] = Field(default=None, ge=1, description="Leverage multiplier.")
    reduce_only: bool = Field(default=False, description="Only reduce an existing position.")
    time_in_force: str = Field(default="Gtc", description="Gtc, Ioc or Alo.")
    max_slippage: Optional[Decimal] = Field(
        default=None,
        gt=0,
        le=1,
        description="Market orders only: worst acceptable deviation from mark, as a fraction.",
    )

    @field_validator("symbol")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        return value.strip().upper()

    def to_intent(self) -> TradeIntent:
        return TradeIntent(
            symbol=self.symbol,
            side=self.side,
            size=self.size,
            limit_price=self.limit_price,
            leverage=self.leverage,
            reduce_only=self.reduce_only,
            time_in_force=self.time_in_force,
            max_slippage=self.max_slippage,
        )


def _intent_or_422(payload: TradeIntentPayload) -> TradeIntent:
    try:
        return payload.to_intent()
    except InvalidIntentError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"code": "INVALID_INTENT", "message": str(exc), "violations": exc.violations},
        ) from exc


def _http_error(exc: TradingError) -> HTTPException:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, mapped in _ERROR_STATUS.items():
        if isinstance(exc, error_type):
            status_code = mapped
            break
    return HTTPException(status_code=status_code, detail=exc.to_dict())


@router.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "healthy", "timestamp": int(time.time()), "version": API_VERSION}


@router.get("/limits")
def get_limits(policy: RiskPolicy = Depends(get_risk_policy)) -> Dict[str, Any]:
    return policy.as_dict()


def _from_exchange(fetch: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    try:
        return fetch()
    except ExchangeError as exc:
        raise _http_error(exchange_failure(exc)) from exc


@router.get("/status")
def get_status(client: OkxClient = Depends(get_exchange_client)) -> Dict[str, Any]:
    """Live perpetual markets with mark price, last price, volume and max leverage."""
    return _from_exchange(lambda: status_to_dict(client.fetch_status()))


@router.get("/balances")
def get_balances(client: OkxClient = Depends(get_exchange_client)) -> Dict[str, Any]:
    return _from_exchange(lambda: client.fetch_account().to_dict())


@router.get("/spot")
def get_spot(client: OkxClient = Depends(get_exchange_client)) -> Dict[str, Any]:
    return _from_exchange(lambda: spot_markets_to_dict(client.fetch_spot_markets()))


@router.post("/orders/check")
def check_order(
    payload: TradeIntentPayload,
    service: TradingService = Depends(get_trading_service),
) -> Dict[str, Any]:
    """Dry-run the risk policy without placing anything."""
    intent = _intent_or_422(payload)
    try:
        decision = service.evaluate_only(intent)
    except TradingError as exc:
        raise _http_error(exc) from exc
    return {"intent": intent.to_dict(), **decision_to_dict(decision)}


@router.post("/orders")
def submit_order(
    payload: TradeIntentPayload,
    service: TradingService = Depends(get_trading_service),
) -> Dict[str, Any]:
    intent = _intent_or_422(payload)
    try:
        ack = service.submit(intent)
    except TradingError as exc:
        raise _http_error(exc) from exc
    return ack.to_dict()


@router.delete("/orders/{symbol}/{order_id}")
def cancel_order(
    symbol: str,
    order_id: str,
    service: TradingService = Depends(get_trading_service),
) -> Dict[str, Any]:
    try:
        service.cancel(symbol, order_id)
    except InvalidIntentError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except TradingError as exc:
        raise _http_error(exc) from exc
    return {"status": "cancelled", "symbol": symbol.strip().upper(), "order_id": order_id}
