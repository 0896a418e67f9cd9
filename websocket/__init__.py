"""
Public OKX websocket feeds used by the command line trade printer.
"""

from .trades import StreamSummary, TradePrint, TradeStream  # noqa: F401
