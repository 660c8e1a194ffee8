"""Database models."""

from tradelog.models.user import User
from tradelog.models.trade import Trade, TradeDirection, TradeSource, TradeStatus

__all__ = [
    "User",
    "Trade",
    "TradeDirection",
    "TradeSource",
    "TradeStatus",
]
