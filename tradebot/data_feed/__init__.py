"""Exchange market-data access for the ticker RPC and event pricing."""

from .bybit_client import BybitApiError, BybitClient
from .ticker import Ticker, parse_ticker_response

__all__ = ["BybitApiError", "BybitClient", "Ticker", "parse_ticker_response"]
