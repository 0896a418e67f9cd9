"""
Abstract client definitions for centralized exchange integrations.

Concrete adapters (e.g. OKX) should implement `ExchangeClient` and translate
their transport and business failures into the `ExchangeError` hierarchy
below so the trading service can map them without knowing the venue.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol, runtime_checkable

from risk.schemas import MarketSnapshot, OrderAck, OrderRequest, Symbol


@dataclass(slots=True)
class ExchangeCredentials:
    """Typed container for exchange authentication data."""

    api_key: str
    api_secret: str
    passphrase: str | None = None


class ExchangeError(RuntimeError):
    """Base class for failures reported by an exchange client."""

    def __init__(self, message: str, payload: Optional[dict] = None) -> None:
        super().__init__(message)
        self.payload = payload or {}


class ExchangeConnectionError(ExchangeError):
    """The request never produced a usable response (network, timeout, 5xx)."""


class ExchangeRejectedError(ExchangeError):
    """The exchange answered and refused the request for a business reason."""

    def __init__(self, reason: str, payload: Optional[dict] = None, code: str | None = None) -> None:
        super().__init__(reason, payload=payload)
        self.reason = reason
        self.code = code


class ExchangeOrderNotFoundError(ExchangeRejectedError):
    """The referenced order does not exist or is no longer open."""


@runtime_checkable
class MarketDataProvider(Protocol):
    """Anything able to report the current mark price for a symbol."""

    def get_snapshot(self, symbol: Symbol) -> MarketSnapshot:
        """Return the latest snapshot or raise ExchangeError."""


@runtime_checkable
class ExchangeClient(MarketDataProvider, Protocol):
    """Protocol describing the surface area for exchange integrations."""

    name: str

    def place_order(self, order: OrderRequest) -> OrderAck:
        """Submit an order to the exchange and return its acknowledgement."""

    def cancel_order(self, symbol: Symbol, order_id: str) -> None:
        """Cancel an open order by identifier."""

    def close(self) -> None:
        """Release network resources (HTTP sessions, etc.)."""


def credentials_from_env(prefix: str, environ: Optional[Mapping[str, str]] = None) -> ExchangeCredentials | None:
    """
    Read {prefix}_API_KEY, {prefix}_API_SECRET and {prefix}_API_PASSPHRASE.

    Returns None when key or secret is missing so callers can decide whether
    public-only access is acceptable.
    """
    env = os.environ if environ is None else environ
    api_key = env.get(f"{prefix}_API_KEY")
    api_secret = env.get(f"{prefix}_API_SECRET")
    if not api_key or not api_secret:
        return None
    return ExchangeCredentials(
        api_key=api_key,
        api_secret=api_secret,
        passphrase=env.get(f"{prefix}_API_PASSPHRASE"),
    )
