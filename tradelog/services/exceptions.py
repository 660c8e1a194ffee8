"""Error types raised by the journal services.

The API layer maps them to HTTP responses; the CLI prints them.
"""

from typing import Any


class TradeLogError(Exception):
    """Base class for all journal errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class TradeValidationError(TradeLogError):
    """A trade or signal breaks the open/closed field rules.

    ``errors`` uses the same shape as pydantic's ``ValidationError.errors()``
    so the API can return both kinds identically.
    """

    def __init__(self, errors: list[dict[str, Any]]):
        self.errors = errors
        summary = "; ".join(
            f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in errors
        )
        super().__init__(f"Invalid trade: {summary}")

    @classmethod
    def single(cls, field: str, msg: str) -> "TradeValidationError":
        return cls([{"loc": (field,), "msg": msg, "type": "value_error"}])


class TradeNotFoundError(TradeLogError):
    """Trade or open position does not exist for this owner.

    Foreign trades raise this too, so callers cannot probe other users' ids.
    """


class StorageError(TradeLogError):
    """The database could not be reached or rejected the statement."""
