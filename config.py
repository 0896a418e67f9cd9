"""
Local configuration for exchange endpoints and risk limits.

Credentials are never stored here; they are read from OKX_API_KEY,
OKX_API_SECRET and OKX_API_PASSPHRASE at startup. Update the values below as
needed for your environment, or point RISK_LIMITS_FILE at a JSON override.
"""

import os

OKX_BASE_URL = "https://www.okx.com"
OKX_PUBLIC_WS = "wss://ws.okx.com:8443/ws/v5/public"

# Demo trading adds the x-simulated-trading header so real funds are never touched.
OKX_SIMULATE = os.environ.get("OKX_SIMULATE", "1") != "0"

# Symbols are traded as USDT-margined perpetuals unless listed in SPOT_SYMBOLS.
OKX_QUOTE_CURRENCY = "USDT"
OKX_INSTRUMENT_SUFFIX = "SWAP"
OKX_MARGIN_MODE = "cross"
SPOT_SYMBOLS: list[str] = []

# Seconds before an exchange HTTP request is abandoned.
HTTP_TIMEOUT = 10.0

# Default risk configuration (override via RISK_LIMITS_FILE).
RISK_LIMITS = {
    "global": {
        "max_notional_per_order": 10_000,
        "max_notional_per_symbol": 25_000,
    },
    "symbols": {
        "BTC": {"max_leverage": 10, "max_notional": 50_000, "enabled": True},
        "ETH": {"max_leverage": 15, "max_notional": 30_000, "enabled": True},
        "SOL": {"max_leverage": 20, "max_notional": 20_000, "enabled": True},
        "ARB": {"max_leverage": 25, "max_notional": 15_000, "enabled": True},
        "AVAX": {"max_leverage": 20, "max_notional": 15_000, "enabled": True},
    },
}
