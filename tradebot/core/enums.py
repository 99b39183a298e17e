"""Enumerations shared across tradebot subsystems."""
from __future__ import annotations

from enum import Enum


class UserType(str, Enum):
    """Kind of account stored in the users table."""

    USER = "user"
    PROVIDER = "provider"


class TokenType(str, Enum):
    """Audience of an issued token."""

    USER = "user"
    PROVIDER = "provider"


class TokenIssuer(str, Enum):
    """Who requested the token: the service itself or a logged-in user."""

    TRADEBOT = "tradebot"
    USER = "user"


class Side(str, Enum):
    """Direction of a trader position."""

    LONG = "long"
    SHORT = "short"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"
