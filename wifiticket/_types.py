"""
Core types for wifiticket.

Re-exports from kungfu + shared helpers.
"""

from __future__ import annotations

from datetime import UTC, datetime

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult


def utcnow() -> datetime:
    return datetime.now(UTC)


__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    "utcnow",
)
