"""
Duration-limited consumer for the OKX public trades channel.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

logger = logging.getLogger(__name__)


class StreamError(RuntimeError):
    """Raised when the trade stream cannot connect or loses its transport."""


@dataclass(slots=True)
class TradePrint:
    """Single public trade reported by the exchange."""

    instrument_id: str
    trade_id: str
    price: Decimal
    size: Decimal
    side: str
    timestamp_ms: int

    @classmethod
    def from_payload(cls, entry: dict) -> "TradePrint":
        return cls(
            instrument_id=str(entry.get("instId") or ""),
            trade_id=str(entry.get("tradeId") or ""),
            price=Decimal(str(entry.get("px") or "0")),
            size=Decimal(str(entry.get("sz") or "0")),
            side=str(entry.get("side") or ""),
            timestamp_ms=int(entry.get("ts") or 0),
        )


@dataclass(slots=True)
class StreamSummary:
    messages: int = 0
    trades: int = 0


class TradeStream:
    """
    Subscribe to trade prints for one instrument and hand each print to a
    callback until the duration elapses or the server closes the socket.

    The instrument id is the exchange identifier (``BTC-USDT-SWAP``); callers
    derive it from the same settings the REST client uses.
    """

    def __init__(
        self,
        instrument_id: str,
        duration: float,
        *,
        url: str,
        quiet_warning_seconds: float = 10.0,
    ) -> None:
        if duration <= 0:
            raise ValueError("duration must be positive")
        if not url:
            raise ValueError("a websocket url is required")
        self.instrument_id = instrument_id.strip().upper()
        self.duration = duration
        self.url = url
        self._quiet_warning_seconds = quiet_warning_seconds

    def _subscription(self, op: str) -> str:
        return json.dumps({"op": op, "args": [{"channel": "trades", "instId": self.instrument_id}]})

    async def run(self, on_trade: Callable[[TradePrint], None]) -> StreamSummary:
        try:
            async with websockets.connect(self.url, close_timeout=10) as ws:
                return await self._consume(ws, on_trade)
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            logger.warning("Trade stream for %s failed: %s", self.instrument_id, exc)
            raise StreamError(f"Trade stream for {self.instrument_id} at {self.url} failed: {exc}") from exc

    async def _consume(self, ws: Any, on_trade: Callable[[TradePrint], None]) -> StreamSummary:
        summary = StreamSummary()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.duration

        await ws.send(self._subscription("subscribe"))
        last_trade_at = loop.time()
        warned_quiet = False
        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    logger.info("Stream duration of %ss reached", self.duration)
                    break
                try:
                    message = await asyncio.wait_for(ws.recv(), timeout=min(remaining, 1.0))
                except asyncio.TimeoutError:
                    if not warned_quiet and loop.time() - last_trade_at >= self._quiet_warning_seconds:
                        logger.warning(
                            "No trades received for %.0fs on %s; market may be quiet or the connection stalled",
                            self._quiet_warning_seconds,
                            self.instrument_id,
                        )
                        warned_quiet = True
                    continue
                except ConnectionClosed:
                    logger.info("WebSocket connection closed by server")
                    return summary

                summary.messages += 1
                for trade in self._parse(message):
                    summary.trades += 1
                    last_trade_at = loop.time()
                    warned_quiet = False
                    on_trade(trade)
        finally:
            try:
                await ws.send(self._subscription("unsubscribe"))
            except ConnectionClosed:
                pass
        return summary

    def _parse(self, message: Any) -> list[TradePrint]:
        try:
            payload = json.loads(message)
        except (TypeError, json.JSONDecodeError) as exc:
            logger.warning("Failed to decode trade message: %s", exc)
            return []
        if not isinstance(payload, dict):
            return []
        event = payload.get("event")
        if event == "subscribe":
            logger.info("Subscription confirmed for %s", self.instrument_id)
            return []
        if event == "error":
            logger.error("Trade stream error event: %s", payload)
            return []
        if (payload.get("arg") or {}).get("channel") != "trades":
            return []
        return [TradePrint.from_payload(entry) for entry in payload.get("data") or [] if isinstance(entry, dict)]


def stream_trades(stream: TradeStream, on_trade: Callable[[TradePrint], None]) -> StreamSummary:
    """Synchronous helper for simple contexts such as the CLI."""
    return asyncio.run(stream.run(on_trade))
