"""
Orchestrates risk evaluation, order construction and exchange submission.
"""

from __future__ import annotations

import logging
from typing import Optional

from exchanges.base_client import ExchangeClient, ExchangeError, ExchangeOrderNotFoundError, MarketDataProvider
from execution.errors import (
    MarketDataUnavailable,
    OrderNotFound,
    RiskViolationError,
    SubmissionState,
    exchange_failure,
)
from execution.order_builder import OrderBuilder
from risk.limits import RiskPolicy
from risk.schemas import Approved, MarketSnapshot, OrderAck, Rejected, RiskDecision, Symbol, TradeIntent

logger = logging.getLogger(__name__)


class TradingService:
    """
    Single entry point used by the CLI and HTTP layers.

    Each call is an independent unit of work. The policy is immutable and
    shared without locks, and no lock is held across the market-data fetch
    and the exchange call. Nothing is retried here: a retried order can be a
    duplicated order, so retry policy belongs to the caller.
    """

    def __init__(
        self,
        policy: RiskPolicy,
        exchange: ExchangeClient,
        *,
        market_data: MarketDataProvider | None = None,
        builder: OrderBuilder | None = None,
    ) -> None:
        self.policy = policy
        self.exchange = exchange
        self.market_data = market_data or exchange
        self.builder = builder or OrderBuilder()

    def submit(self, intent: TradeIntent) -> OrderAck:
        """Validate, build and place an order; raises TradingError on failure."""
        self._transition(intent, SubmissionState.RECEIVED)

        screened = self.policy.screen_symbol(intent.symbol)
        if screened is not None:
            self._transition(intent, SubmissionState.REJECTED)
            raise RiskViolationError(screened.violation)

        snapshot = self._fetch_snapshot(intent.symbol)

        self._transition(intent, SubmissionState.VALIDATING)
        decision = self.policy.evaluate(intent, snapshot)
        if isinstance(decision, Rejected):
            self._transition(intent, SubmissionState.REJECTED)
            raise RiskViolationError(decision.violation)

        self._transition(intent, SubmissionState.BUILDING)
        order = self.builder.build(intent, snapshot, decision)

        self._transition(intent, SubmissionState.SUBMITTING)
        try:
            ack = self.exchange.place_order(order)
        except ExchangeError as exc:
            failure = exchange_failure(exc)
            self._transition(intent, failure.terminal_state or SubmissionState.EXCHANGE_REJECTED)
            logger.warning(
                "Order for %s %s %s failed: %s %s",
                intent.side.value,
                intent.size,
                intent.symbol,
                failure.code,
                failure.message,
            )
            raise failure from exc

        self._transition(intent, SubmissionState.ACKED)
        logger.info(
            "Order acknowledged: %s %s %s id=%s status=%s",
            ack.side.value,
            ack.size,
            ack.symbol,
            ack.exchange_order_id,
            ack.status,
        )
        return ack

    def cancel(self, symbol: Symbol | str, order_id: str) -> None:
        """Cancel an open order. Cancelling only reduces exposure, so no risk check runs."""
        symbol = Symbol.parse(symbol)
        try:
            self.exchange.cancel_order(symbol, order_id)
        except ExchangeOrderNotFoundError as exc:
            raise OrderNotFound(str(symbol), order_id, exc.reason) from exc
        except ExchangeError as exc:
            failure = exchange_failure(exc)
            logger.warning("Cancel of %s %s failed: %s %s", symbol, order_id, failure.code, failure.message)
            raise failure from exc
        logger.info("Order %s cancelled for %s", order_id, symbol)

    def evaluate_only(self, intent: TradeIntent, snapshot: Optional[MarketSnapshot] = None) -> RiskDecision:
        """
        Dry run of the risk policy. The order path of the exchange is never
        touched; a snapshot is read from the market-data collaborator only
        when the caller did not supply one.
        """
        screened = self.policy.screen_symbol(intent.symbol)
        if screened is not None:
            return screened
        if snapshot is None:
            snapshot = self._fetch_snapshot(intent.symbol)
        decision = self.policy.evaluate(intent, snapshot)
        if isinstance(decision, Approved):
            logger.info(
                "Dry run approved %s %s %s (notional %s)",
                intent.side.value,
                intent.size,
                intent.symbol,
                decision.notional,
            )
        return decision

    def _fetch_snapshot(self, symbol: Symbol) -> MarketSnapshot:
        try:
            snapshot = self.market_data.get_snapshot(symbol)
        except ExchangeError as exc:
            logger.warning("Market data for %s unavailable: %s", symbol, exc)
            raise MarketDataUnavailable(str(symbol), str(exc)) from exc
        if snapshot is None:
            raise MarketDataUnavailable(str(symbol), "no snapshot returned")
        if snapshot.symbol != symbol:
            raise MarketDataUnavailable(str(symbol), f"snapshot returned for {snapshot.symbol}")
        return snapshot

    @staticmethod
    def _transition(intent: TradeIntent, state: SubmissionState) -> None:
        logger.debug("Submission %s %s %s -> %s", intent.side.value, intent.size, intent.symbol, state.value)
