"""
Application-wide dependency providers for the web service.

The functions declared here are meant to be used with FastAPI's dependency
injection framework while keeping instantiation logic in one place. Each
provider is cached so the whole process shares one immutable risk policy and
one exchange client.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from exchanges.base_client import credentials_from_env
from exchanges.okx.client import OkxClient, build_okx_client
from execution.trading_service import TradingService
from risk.config_loader import load_risk_policy
from risk.limits import RiskPolicy

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_risk_policy() -> RiskPolicy:
    """Return the process-wide risk policy, loaded once at first use."""
    return load_risk_policy()


@lru_cache(maxsize=1)
def get_exchange_client() -> OkxClient:
    """
    Provide the shared OKX client.

    Without OKX_API_KEY/OKX_API_SECRET the client can still read mark prices,
    so dry-run checks work; order placement fails with an exchange rejection.
    """
    credentials = credentials_from_env("OKX")
    if credentials is None:
        logger.warning("OKX credentials not set; order placement and cancellation will be rejected.")
    return build_okx_client(credentials)


@lru_cache(maxsize=1)
def get_trading_service() -> TradingService:
    return TradingService(get_risk_policy(), get_exchange_client())


def reset_providers() -> None:
    """Drop cached instances so the next request rebuilds them."""
    for provider in (get_trading_service, get_exchange_client, get_risk_policy):
        provider.cache_clear()
