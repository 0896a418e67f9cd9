"""
Risk management package supplying intent validation and leverage/notional limits.
"""

from .order_validation import InvalidIntentError  # noqa: F401
from .schemas import (  # noqa: F401
    Approved,
    LeverageExceeded,
    MarketSnapshot,
    OrderAck,
    OrderNotionalExceeded,
    OrderRequest,
    OrderType,
    Rejected,
    RiskDecision,
    RiskViolation,
    Side,
    Symbol,
    SymbolDisabled,
    SymbolNotionalExceeded,
    TimeInForce,
    TradeIntent,
)
from .limits import GlobalLimits, RiskPolicy, SymbolLimits  # noqa: F401
from .config_loader import ConfigError, build_risk_policy, load_risk_policy  # noqa: F401
