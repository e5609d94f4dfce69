"""
Ticket types — credentials, lifecycle states, assignment errors.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto


# ═══════════════════════════════════════════════════════════════════════════════
# Ticket Status
# ═══════════════════════════════════════════════════════════════════════════════


class TicketStatus(Enum):
    """
    State of a ticket.

    Lifecycle:
        FREE → SOLD (atomic claim, exactly once)
        FREE → RESERVED → SOLD (not produced by the confirmation flow)
        any → EXPIRED (expiry sweep)
    """

    FREE = "free"
    RESERVED = "reserved"
    SOLD = "sold"
    EXPIRED = "expired"


# ═══════════════════════════════════════════════════════════════════════════════
# Ticket
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Credentials:
    """One imported username/password pair."""

    username: str
    password: str
    profile: str | None = None


@dataclass(frozen=True, slots=True)
class Ticket:
    id: str
    zone_id: str
    username: str
    password: str
    status: TicketStatus
    profile: str | None = None
    payment_id: str | None = None
    sold_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class TicketStats:
    total: int
    free: int
    sold: int
    reserved: int
    expired: int

    @classmethod
    def from_counts(cls, counts: Mapping[TicketStatus, int]) -> TicketStats:
        free = sold = reserved = expired = 0
        for status, n in counts.items():
            match status:
                case TicketStatus.FREE:
                    free += n
                case TicketStatus.SOLD:
                    sold += n
                case TicketStatus.RESERVED:
                    reserved += n
                case TicketStatus.EXPIRED:
                    expired += n
        return cls(
            total=free + sold + reserved + expired,
            free=free,
            sold=sold,
            reserved=reserved,
            expired=expired,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Assignment Errors
# ═══════════════════════════════════════════════════════════════════════════════


class AssignErrorKind(Enum):
    """Kinds of assignment errors."""

    NO_TICKET_AVAILABLE = auto()  # Zone has zero free tickets, terminal
    STORAGE = auto()  # Storage backend error, retryable once


@dataclass(frozen=True, slots=True)
class AssignError:
    kind: AssignErrorKind
    message: str
    cause: object | None = None

    @property
    def is_exhausted(self) -> bool:
        return self.kind == AssignErrorKind.NO_TICKET_AVAILABLE


__all__ = (
    "TicketStatus",
    "Credentials",
    "Ticket",
    "TicketStats",
    "AssignErrorKind",
    "AssignError",
)
