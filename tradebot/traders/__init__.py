"""Trader stats engine fed by consumed events."""

from .models import OpenPosition, TraderStats
from .registry import TraderRegistry
from .trader import Trader

__all__ = ["OpenPosition", "Trader", "TraderRegistry", "TraderStats"]
