"""
Error taxonomy surfaced by the trading service.

Every error carries whether a caller may retry it (with backoff) and the
terminal submission state it ended in, when it ended a submission.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from exchanges.base_client import ExchangeConnectionError, ExchangeError, ExchangeRejectedError
from risk.schemas import RiskViolation


class SubmissionState(str, Enum):
    RECEIVED = "Received"
    VALIDATING = "Validating"
    REJECTED = "Rejected"
    BUILDING = "Building"
    SUBMITTING = "Submitting"
    ACKED = "Acked"
    EXCHANGE_REJECTED = "ExchangeRejected"
    CONNECTION_FAILED = "ConnectionFailed"


class TradingError(Exception):
    """Base class for every failure returned by the trading service."""

    code = "TRADING_ERROR"
    retryable = False

    def __init__(self, message: str, *, terminal_state: Optional[SubmissionState] = None) -> None:
        super().__init__(message)
        self.message = message
        self.terminal_state = terminal_state

    def details(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details(),
        }


class RiskViolationError(TradingError):
    """The local risk policy refused the order; the exchange was never contacted."""

    def __init__(self, violation: RiskViolation) -> None:
        super().__init__(violation.message, terminal_state=SubmissionState.REJECTED)
        self.violation = violation
        self.code = violation.code

    def details(self) -> Dict[str, Any]:
        return self.violation.details()


class MarketDataUnavailable(TradingError):
    code = "MARKET_DATA_UNAVAILABLE"
    retryable = True

    def __init__(self, symbol: str, reason: str) -> None:
        super().__init__(f"Market data unavailable for {symbol}: {reason}")
        self.symbol = symbol
        self.reason = reason

    def details(self) -> Dict[str, Any]:
        return {"symbol": self.symbol, "reason": self.reason}


class ExchangeRejected(TradingError):
    """Exchange-side business rejection, surfaced verbatim."""

    code = "EXCHANGE_REJECTED"

    def __init__(self, reason: str, *, exchange_code: str | None = None) -> None:
        super().__init__(reason, terminal_state=SubmissionState.EXCHANGE_REJECTED)
        self.reason = reason
        self.exchange_code = exchange_code

    def details(self) -> Dict[str, Any]:
        return {"reason": self.reason, "exchange_code": self.exchange_code}


class ConnectionFailed(TradingError):
    code = "CONNECTION_FAILED"
    retryable = True

    def __init__(self, reason: str) -> None:
        super().__init__(f"Exchange connection failed: {reason}", terminal_state=SubmissionState.CONNECTION_FAILED)
        self.reason = reason


class OrderNotFound(TradingError):
    code = "ORDER_NOT_FOUND"

    def __init__(self, symbol: str, order_id: str, reason: str = "") -> None:
        message = f"No open order {order_id} for {symbol}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.symbol = symbol
        self.order_id = order_id

    def details(self) -> Dict[str, Any]:
        return {"symbol": self.symbol, "order_id": self.order_id}


def exchange_failure(exc: ExchangeError) -> TradingError:
    """Translate an exchange client failure into the caller-facing taxonomy."""
    if isinstance(exc, ExchangeConnectionError):
        return ConnectionFailed(str(exc))
    if isinstance(exc, ExchangeRejectedError):
        return ExchangeRejected(exc.reason, exchange_code=exc.code)
    return ExchangeRejected(str(exc))
