"""
Payment types — purchase attempt and its monotone lifecycle.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from math import ceil


# ═══════════════════════════════════════════════════════════════════════════════
# Payment Status: Lifecycle
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentStatus(Enum):
    """
    State of a payment.

    Lifecycle:
        PENDING → COMPLETED (terminal)
                → FAILED (terminal)
    """

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        match self:
            case PaymentStatus.PENDING:
                return False
            case PaymentStatus.COMPLETED | PaymentStatus.FAILED:
                return True


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    """Only PENDING moves, and only to a terminal state."""
    match current, target:
        case PaymentStatus.PENDING, PaymentStatus.COMPLETED | PaymentStatus.FAILED:
            return True
        case PaymentStatus.PENDING, PaymentStatus.PENDING:
            return False
        case PaymentStatus.COMPLETED | PaymentStatus.FAILED, _:
            return False


# ═══════════════════════════════════════════════════════════════════════════════
# Payment
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Payment:
    id: str
    zone_id: str
    amount: int
    currency: str
    status: PaymentStatus
    phone: str
    created_at: datetime
    gateway_ref: str | None = None
    pricing_id: str | None = None
    email: str | None = None
    transaction_id: str | None = None
    checkout_url: str | None = None
    reconciliation_required: bool = False
    completed_at: datetime | None = None
    failed_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class NewPayment:
    """Data for creating a PENDING payment."""

    zone_id: str
    amount: int
    currency: str
    phone: str
    pricing_id: str | None = None
    email: str | None = None


@dataclass(frozen=True, slots=True)
class PaymentPage:
    items: list[Payment]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return ceil(self.total / self.limit) if self.limit else 0


__all__ = (
    "PaymentStatus",
    "can_transition",
    "Payment",
    "NewPayment",
    "PaymentPage",
)
