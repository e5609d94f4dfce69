"""
Tickets — per-zone inventory and the atomic assigner.

    from wifiticket import tickets as T

    pool = T.MemoryTicketPool()
    await pool.add(zone_id, [T.Credentials("user01", "pass01")])

    assigner = T.TicketAssigner(pool)
    result = await assigner.assign(zone_id, payment_id)
"""

from wifiticket.tickets._types import (
    TicketStatus,
    Credentials,
    Ticket,
    TicketStats,
    AssignErrorKind,
    AssignError,
)
from wifiticket.tickets._store import TicketPool, MemoryTicketPool
from wifiticket.tickets._sqlalchemy import SQLAlchemyTicketPool
from wifiticket.tickets._assigner import TicketAssigner

__all__ = (
    # Types
    "TicketStatus",
    "Credentials",
    "Ticket",
    "TicketStats",
    "AssignErrorKind",
    "AssignError",
    # Pool
    "TicketPool",
    "MemoryTicketPool",
    "SQLAlchemyTicketPool",
    # Assigner
    "TicketAssigner",
)
