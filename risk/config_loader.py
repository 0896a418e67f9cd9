"""
Build the immutable RiskPolicy from config.py defaults and an optional JSON overlay.
"""

from __future__ import annotations

import json
import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from risk.limits import GlobalLimits, RiskPolicy, SymbolLimits
from risk.order_validation import InvalidIntentError
from risk.schemas import Symbol

logger = logging.getLogger(__name__)

RISK_LIMITS_ENV = "RISK_LIMITS_FILE"

try:
    from config import RISK_LIMITS as _RISK_DEFAULTS
except ImportError:  # pragma: no cover - fallback for test envs
    _RISK_DEFAULTS = {"global": {"max_notional_per_order": 10_000, "max_notional_per_symbol": 25_000}, "symbols": {}}


class ConfigError(ValueError):
    """Raised when the risk configuration cannot be turned into a policy."""


def _read_overrides(path: Path) -> Dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to read risk limits file {path}: {exc}") from exc
    try:
        payload = json.loads(raw) if raw.strip() else {}
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Risk limits file {path} is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError(f"Risk limits file {path} must contain a JSON object.")
    return payload


def _merge(defaults: Mapping[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """Override entries replace defaults key by key; symbols are replaced whole."""
    merged_global = dict(defaults.get("global") or {})
    merged_global.update(overrides.get("global") or {})
    merged_symbols = {str(k).strip().upper(): dict(v) for k, v in (defaults.get("symbols") or {}).items()}
    for name, entry in (overrides.get("symbols") or {}).items():
        if not isinstance(entry, dict):
            raise ConfigError(f"Limits for symbol {name!r} must be an object.")
        merged_symbols[str(name).strip().upper()] = dict(entry)
    return {"global": merged_global, "symbols": merged_symbols}


def build_risk_policy(settings: Mapping[str, Any]) -> RiskPolicy:
    """Turn a plain mapping shaped like config.RISK_LIMITS into a RiskPolicy."""
    global_section = settings.get("global") or {}
    try:
        global_limits = GlobalLimits(
            max_notional_per_order=Decimal(str(global_section["max_notional_per_order"])),
            max_notional_per_symbol=Decimal(str(global_section["max_notional_per_symbol"])),
        )
    except KeyError as exc:
        raise ConfigError(f"Missing global risk limit: {exc}") from exc
    except (ArithmeticError, ValueError) as exc:
        raise ConfigError(f"Invalid global risk limits: {exc}") from exc

    symbol_limits: Dict[Symbol, SymbolLimits] = {}
    for name, entry in (settings.get("symbols") or {}).items():
        try:
            symbol = Symbol.parse(name)
            symbol_limits[symbol] = SymbolLimits(
                max_leverage=entry["max_leverage"],
                max_notional=Decimal(str(entry["max_notional"])),
                enabled=bool(entry.get("enabled", True)),
            )
        except KeyError as exc:
            raise ConfigError(f"Missing risk limit {exc} for symbol {name!r}") from exc
        except (ArithmeticError, ValueError, InvalidIntentError) as exc:
            raise ConfigError(f"Invalid risk limits for symbol {name!r}: {exc}") from exc

    return RiskPolicy(global_limits=global_limits, symbol_limits=symbol_limits)


def load_risk_policy(path: Optional[str | Path] = None) -> RiskPolicy:
    """
    Return the process-wide risk policy.

    Args:
        path: Optional JSON override file. When omitted the RISK_LIMITS_FILE
            environment variable is consulted; without either the config.py
            defaults are used as-is.
    """
    source = path or os.environ.get(RISK_LIMITS_ENV)
    settings: Dict[str, Any] = _merge(_RISK_DEFAULTS, {})
    if source:
        settings = _merge(_RISK_DEFAULTS, _read_overrides(Path(source)))
        logger.info("Loaded risk limit overrides from %s", source)
    policy = build_risk_policy(settings)
    logger.info(
        "Risk policy ready: %d symbols, per-order limit %s, per-symbol limit %s",
        len(policy.symbol_limits),
        policy.global_limits.max_notional_per_order,
        policy.global_limits.max_notional_per_symbol,
    )
    return policy
