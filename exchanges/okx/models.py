"""
Typed views over OKX public and account payloads.

OKX reports every number as a string; these helpers turn them into Decimal
and keep the raw instrument identifiers alongside the bare symbols used by
the risk layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

CONTRACT_INSTRUMENT_TYPES = frozenset({"SWAP", "FUTURES"})


def parse_decimal(value: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """Parse an OKX numeric string; blank values fall back to default."""
    if value is None or value == "":
        return default
    return Decimal(str(value))


def base_symbol(instrument_id: str) -> str:
    return instrument_id.split("-", 1)[0]


def _fmt(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


@dataclass(frozen=True, slots=True)
class InstrumentSpec:
    """Trading rules of one instrument from /api/v5/public/instruments."""

    instrument_id: str
    inst_type: str
    base_currency: str
    quote_currency: str
    contract_value: Decimal
    lot_size: Decimal
    min_size: Decimal
    tick_size: Decimal
    max_leverage: Optional[int]
    state: str

    @classmethod
    def from_payload(cls, entry: Dict[str, Any]) -> "InstrumentSpec":
        instrument_id = str(entry["instId"])
        inst_type = str(entry.get("instType") or "").upper()
        lot_size = parse_decimal(entry.get("lotSz"))
        tick_size = parse_decimal(entry.get("tickSz"))
        if lot_size is None or lot_size <= 0 or tick_size is None or tick_size <= 0:
            raise ValueError(f"instrument {instrument_id} has no usable lotSz/tickSz")
        contract_value = Decimal("1")
        if inst_type in CONTRACT_INSTRUMENT_TYPES:
            contract_value = parse_decimal(entry.get("ctVal"))
            if contract_value is None or contract_value <= 0:
                raise ValueError(f"instrument {instrument_id} has no usable ctVal")
        lever = entry.get("lever")
        return cls(
            instrument_id=instrument_id,
            inst_type=inst_type,
            base_currency=str(entry.get("baseCcy") or entry.get("ctValCcy") or base_symbol(instrument_id)),
            quote_currency=str(entry.get("quoteCcy") or entry.get("settleCcy") or ""),
            contract_value=contract_value,
            lot_size=lot_size,
            min_size=parse_decimal(entry.get("minSz"), lot_size),
            tick_size=tick_size,
            max_leverage=int(Decimal(str(lever))) if lever not in (None, "") else None,
            state=str(entry.get("state") or ""),
        )

    @property
    def uses_contracts(self) -> bool:
        """Swaps and futures size orders in contracts; spot sizes in base currency."""
        return self.inst_type in CONTRACT_INSTRUMENT_TYPES

    @property
    def base_lot(self) -> Decimal:
        """Smallest order increment expressed in base currency."""
        return self.lot_size * self.contract_value

    def to_base(self, exchange_size: Decimal) -> Decimal:
        return exchange_size * self.contract_value if self.uses_contracts else exchange_size


@dataclass(frozen=True, slots=True)
class MarketStatus:
    symbol: str
    instrument_id: str
    mark_price: Optional[Decimal]
    last_price: Optional[Decimal]
    volume_24h: Optional[Decimal]
    max_leverage: Optional[int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "instrument_id": self.instrument_id,
            "mark_price": _fmt(self.mark_price),
            "last_price": _fmt(self.last_price),
            "volume_24h": _fmt(self.volume_24h),
            "max_leverage": self.max_leverage,
        }


@dataclass(frozen=True, slots=True)
class PositionInfo:
    symbol: str
    instrument_id: str
    size: Decimal
    entry_price: Optional[Decimal]
    leverage: Optional[Decimal]
    unrealized_pnl: Optional[Decimal]
    notional_usd: Optional[Decimal]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "instrument_id": self.instrument_id,
            "size": str(self.size),
            "entry_price": _fmt(self.entry_price),
            "leverage": _fmt(self.leverage),
            "unrealized_pnl": _fmt(self.unrealized_pnl),
            "notional_usd": _fmt(self.notional_usd),
        }


@dataclass(frozen=True, slots=True)
class AccountSummary:
    """Equity, free quote balance and open positions of the trading account."""

    account_value: Decimal
    available: Decimal
    margin_used: Decimal
    quote_currency: str
    positions: List[PositionInfo] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account_value": str(self.account_value),
            "available": str(self.available),
            "margin_used": str(self.margin_used),
            "quote_currency": self.quote_currency,
            "positions": [position.to_dict() for position in self.positions],
        }


@dataclass(frozen=True, slots=True)
class SpotPair:
    instrument_id: str
    base_currency: str
    quote_currency: str
    last_price: Optional[Decimal]
    mid_price: Optional[Decimal]
    volume_24h: Optional[Decimal]
    lot_size: Decimal
    tick_size: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instrument_id": self.instrument_id,
            "base_currency": self.base_currency,
            "quote_currency": self.quote_currency,
            "last_price": _fmt(self.last_price),
            "mid_price": _fmt(self.mid_price),
            "volume_24h": _fmt(self.volume_24h),
            "lot_size": str(self.lot_size),
            "tick_size": str(self.tick_size),
        }


def status_to_dict(markets: Sequence[MarketStatus]) -> Dict[str, Any]:
    return {"total_markets": len(markets), "markets": [market.to_dict() for market in markets]}


def spot_markets_to_dict(pairs: Sequence[SpotPair]) -> Dict[str, Any]:
    return {
        "tokens": sorted({pair.base_currency for pair in pairs}),
        "pairs": [pair.to_dict() for pair in pairs],
    }
