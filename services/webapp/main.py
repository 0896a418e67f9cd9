"""
Entrypoint for the risk-gated order HTTP service.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from services.webapp import routes
from services.webapp.dependencies import get_exchange_client, get_risk_policy

app = FastAPI(
    title="riskgate",
    description="Risk-gated order entry for OKX perpetuals and spot",
    version=routes.API_VERSION,
)

logger = logging.getLogger(__name__)

app.include_router(routes.router)


@app.on_event("startup")
def _startup() -> None:
    # Fail fast on a broken risk configuration rather than on the first order.
    policy = get_risk_policy()
    logger.info("Trading enabled for %s", ", ".join(str(symbol) for symbol in policy.symbols()))


@app.on_event("shutdown")
def _shutdown() -> None:
    if not get_exchange_client.cache_info().currsize:
        return
    try:
        get_exchange_client().close()
    except Exception as exc:
        logger.warning("Failed to close exchange client cleanly: %s", exc)
