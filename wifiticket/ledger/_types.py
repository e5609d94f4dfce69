"""
Ledger types — dedup keys and their resolution.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto


def derive_key(gateway: str, event: str, gateway_ref: str) -> str:
    """
    Deterministic dedup key for one external notification.

    Distinct events for the same payment get distinct keys; redeliveries of
    the same event collapse onto one key.

        derive_key("moneroo", "payment.success", "py_123")
        # "moneroo_payment.success_py_123"
    """
    return f"{gateway}_{event}_{gateway_ref}"


# ═══════════════════════════════════════════════════════════════════════════════
# Check Result
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Fresh:
    """Key never recorded."""

    key: str


@dataclass(frozen=True, slots=True)
class Seen:
    """Key already recorded; resolved_payment_id is what it resolved to."""

    key: str
    resolved_payment_id: str


type LedgerCheck = Fresh | Seen


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    key: str
    payment_id: str
    created_at: datetime


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class LedgerErrorKind(Enum):
    ALREADY_RECORDED = auto()  # Unique constraint hit: someone recorded first
    STORE = auto()  # Storage backend error


@dataclass(frozen=True, slots=True)
class LedgerError:
    kind: LedgerErrorKind
    message: str
    cause: Exception | None = None


__all__ = (
    "derive_key",
    "Fresh",
    "Seen",
    "LedgerCheck",
    "LedgerEntry",
    "LedgerErrorKind",
    "LedgerError",
)
