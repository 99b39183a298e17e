"""Request handlers exposed over RPC."""

from .actions import Actions, RPC_METHODS, TickerSource

__all__ = ["Actions", "RPC_METHODS", "TickerSource"]
