"""
Command-line helper for placing, checking and cancelling risk-gated OKX orders.

Usage examples:
    python -m scripts.trade buy BTC 0.01 --limit 60000 --leverage 5
    python -m scripts.trade buy ARB 100 --limit 0.81234 --tick-size 0.0001
    python -m scripts.trade sell ETH 1 --slippage 0.01 --dry-run
    python -m scripts.trade check SOL 100 --side buy --leverage 25
    python -m scripts.trade cancel BTC 123456789012345678
    python -m scripts.trade limits
    python -m scripts.trade status
    python -m scripts.trade balances
    python -m scripts.trade spot
    python -m scripts.trade stream BTC --duration 30

Environment variables:
    OKX_API_KEY
    OKX_API_SECRET
    OKX_API_PASSPHRASE
    RISK_LIMITS_FILE (optional JSON override for config.RISK_LIMITS)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from decimal import Decimal
from typing import List, Optional

import config
from exchanges.base_client import ExchangeError, credentials_from_env
from exchanges.okx.client import build_okx_client
from exchanges.okx.models import spot_markets_to_dict, status_to_dict
from execution.errors import TradingError, exchange_failure
from execution.order_builder import OrderBuilder
from execution.trading_service import TradingService
from risk.config_loader import ConfigError, load_risk_policy
from risk.order_validation import InvalidIntentError, round_to_step, to_decimal
from risk.schemas import Side, Symbol, TradeIntent, decision_to_dict
from websocket.trades import StreamError, TradePrint, TradeStream, stream_trades

logger = logging.getLogger(__name__)

EXIT_TRADING_ERROR = 1
EXIT_USAGE_ERROR = 2

_CREDENTIALS_REQUIRED = "Environment variables OKX_API_KEY and OKX_API_SECRET are required"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Risk-gated OKX order helper")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--limits-file", help="JSON file overriding the configured risk limits")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for side in ("buy", "sell"):
        order_parser = subparsers.add_parser(side, help=f"Submit a {side} order")
        _add_order_arguments(order_parser)
        order_parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only evaluate the risk policy; do not place the order",
        )

    check_parser = subparsers.add_parser("check", help="Evaluate an order against the risk policy")
    _add_order_arguments(check_parser)
    check_parser.add_argument("--side", required=True, choices=["buy", "sell"], help="Order side")

    cancel_parser = subparsers.add_parser("cancel", help="Cancel an open order")
    cancel_parser.add_argument("symbol", help="Symbol, e.g. BTC")
    cancel_parser.add_argument("order_id", help="Exchange order id")

    subparsers.add_parser("limits", help="Show the configured risk limits")
    subparsers.add_parser("status", help="List live perpetual markets with mark price and volume")
    subparsers.add_parser("balances", help="Show account value, free balance and open positions")
    subparsers.add_parser("spot", help="List spot tokens and pairs")

    stream_parser = subparsers.add_parser("stream", help="Print public trades for a symbol")
    stream_parser.add_argument("symbol", help="Symbol, e.g. BTC")
    stream_parser.add_argument("-d", "--duration", type=float, default=30.0, help="Duration in seconds")
    return parser


def _add_order_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("symbol", help="Symbol, e.g. BTC")
    parser.add_argument("size", help="Order size in base units")
    parser.add_argument("--limit", help="Limit price (if not specified, places market order)")
    parser.add_argument("--leverage", type=int, help="Leverage multiplier")
    parser.add_argument("--reduce-only", action="store_true", help="Reduce only order")
    parser.add_argument("--tif", default="Gtc", help="Time in force (Gtc, Ioc, Alo)")
    parser.add_argument(
        "--slippage",
        help="Slippage tolerance for market orders (e.g., 0.01 = 1%%)",
    )
    parser.add_argument("--tick-size", help="Price tick used to round limit and protective prices")


def _tick_size(args: argparse.Namespace) -> Optional[Decimal]:
    if args.tick_size is None:
        return None
    tick = to_decimal(args.tick_size, "tick size")
    if tick <= 0:
        raise _UsageError(f"Tick size must be greater than zero, got {args.tick_size}")
    print(f"Using custom tick size: {tick}")
    return tick


def _intent_from_args(args: argparse.Namespace, side: str, tick_size: Optional[Decimal] = None) -> TradeIntent:
    limit_price = args.limit
    if limit_price is not None and tick_size is not None:
        requested = to_decimal(limit_price, "limit_price")
        limit_price = round_to_step(requested, tick_size)
        if limit_price != requested:
            print(f"Rounded limit price {requested} to {limit_price}")
    return TradeIntent(
        symbol=args.symbol,
        side=Side.parse(side),
        size=args.size,
        limit_price=limit_price,
        leverage=args.leverage,
        reduce_only=args.reduce_only,
        time_in_force=args.tif,
        max_slippage=args.slippage,
    )


def build_service(
    args: argparse.Namespace, *, require_credentials: bool, tick_size: Optional[Decimal] = None
) -> TradingService:
    credentials = credentials_from_env("OKX")
    if require_credentials and credentials is None:
        raise _UsageError(_CREDENTIALS_REQUIRED)
    policy = load_risk_policy(args.limits_file)
    return TradingService(policy, build_okx_client(credentials), builder=OrderBuilder(tick_size=tick_size))


class _UsageError(Exception):
    pass


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2))


def _print_trade(trade: TradePrint) -> None:
    print(f"{trade.instrument_id} {trade.side.upper():<4} {trade.size} @ {trade.price} (id {trade.trade_id})")


def _overview(command: str) -> dict:
    credentials = credentials_from_env("OKX")
    if command == "balances" and credentials is None:
        raise _UsageError(_CREDENTIALS_REQUIRED)
    client = build_okx_client(credentials)
    try:
        if command == "status":
            return status_to_dict(client.fetch_status())
        if command == "spot":
            return spot_markets_to_dict(client.fetch_spot_markets())
        return client.fetch_account().to_dict()
    except ExchangeError as exc:
        raise exchange_failure(exc) from exc
    finally:
        client.close()


def _stream(args: argparse.Namespace) -> int:
    symbol = Symbol.parse(args.symbol)
    client = build_okx_client()
    try:
        instrument_id = client.instrument_id(symbol)
    finally:
        client.close()
    stream = TradeStream(instrument_id, args.duration, url=config.OKX_PUBLIC_WS)
    print(f"Starting trade stream for {stream.instrument_id} ({args.duration:g}s)")
    summary = stream_trades(stream, _print_trade)
    _print_json({"messages": summary.messages, "trades": summary.trades})
    return 0


def run(args: argparse.Namespace) -> int:
    if args.command == "limits":
        _print_json(load_risk_policy(args.limits_file).as_dict())
        return 0

    if args.command in ("status", "balances", "spot"):
        _print_json(_overview(args.command))
        return 0

    if args.command == "stream":
        return _stream(args)

    if args.command == "cancel":
        service = build_service(args, require_credentials=True)
        try:
            service.cancel(args.symbol, args.order_id)
        finally:
            service.exchange.close()
        _print_json({"status": "cancelled", "symbol": args.symbol.upper(), "order_id": args.order_id})
        return 0

    dry_run = args.command == "check" or args.dry_run
    side = args.side if args.command == "check" else args.command
    tick_size = _tick_size(args)
    intent = _intent_from_args(args, side, tick_size)
    service = build_service(args, require_credentials=not dry_run, tick_size=tick_size)
    try:
        if dry_run:
            decision = service.evaluate_only(intent)
            _print_json({"intent": intent.to_dict(), **decision_to_dict(decision)})
            return 0 if decision.approved else EXIT_TRADING_ERROR
        kind = "LIMIT" if intent.limit_price is not None else "MARKET"
        print(f"Placing {kind} {intent.side.value.upper()} order for {intent.size} {intent.symbol}")
        ack = service.submit(intent)
    finally:
        service.exchange.close()
    _print_json(ack.to_dict())
    return 0


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(levelname)s %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    try:
        return run(args)
    except (_UsageError, InvalidIntentError, ConfigError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_USAGE_ERROR
    except ExchangeError as exc:
        return _report_trading_error(exchange_failure(exc))
    except TradingError as exc:
        return _report_trading_error(exc)
    except StreamError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_TRADING_ERROR


def _report_trading_error(exc: TradingError) -> int:
    print(f"Error: {exc}", file=sys.stderr)
    _print_json(exc.to_dict())
    return EXIT_TRADING_ERROR


if __name__ == "__main__":
    sys.exit(main())
