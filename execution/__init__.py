"""
Execution utilities for turning approved trade intents into exchange orders.
"""

from .errors import (
    ConnectionFailed,
    ExchangeRejected,
    MarketDataUnavailable,
    OrderNotFound,
    RiskViolationError,
    SubmissionState,
    TradingError,
    exchange_failure,
)
from .order_builder import OrderBuilder, protective_price
from .trading_service import TradingService

__all__ = [
    "ConnectionFailed",
    "ExchangeRejected",
    "MarketDataUnavailable",
    "OrderBuilder",
    "OrderNotFound",
    "RiskViolationError",
    "SubmissionState",
    "TradingError",
    "TradingService",
    "exchange_failure",
    "protective_price",
]
