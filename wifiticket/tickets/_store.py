"""
Ticket pool — typed storage protocol.

The only mutation the confirmation flow may perform is claim(): pick any
free ticket of a zone and flip it to SOLD in one indivisible step.
"""

from __future__ import annotations

import asyncio
import uuid
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol

from kungfu import Result, Ok, Error

from wifiticket.errors import StoreError
from wifiticket.tickets._types import (
    Credentials,
    Ticket,
    TicketStats,
    TicketStatus,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Pool Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class TicketPool(Protocol):
    """
    Per-zone ticket inventory.

    Note: claim() MUST be a single atomic operation at the storage layer.
    A select followed by a separate update lets two callers read the same
    free ticket before either writes.
    """

    async def add(
        self, zone_id: str, credentials: Sequence[Credentials]
    ) -> Result[list[Ticket], StoreError]:
        """Bulk-load FREE tickets (inventory import)."""
        ...

    async def claim(
        self, zone_id: str, payment_id: str, sold_at: datetime
    ) -> Result[Ticket | None, StoreError]:
        """
        Atomically flip one FREE ticket of the zone to SOLD.

        Returns Ok(None) if the zone has no free ticket left.
        """
        ...

    async def for_payment(self, payment_id: str) -> Result[list[Ticket], StoreError]:
        """Tickets bound to a payment (zero or one)."""
        ...

    async def stats(self, zone_id: str) -> Result[TicketStats, StoreError]:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Pool: For Testing
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class _Slot:
    ticket: Ticket
    order: int


class MemoryTicketPool:
    """
    In-memory pool.

    Note: claim() runs entirely under one asyncio.Lock, so the pick and the
    flip cannot interleave with another coroutine.
    """

    def __init__(self) -> None:
        self._tickets: dict[str, _Slot] = {}
        self._lock = asyncio.Lock()
        self._seq = 0

    async def add(
        self, zone_id: str, credentials: Sequence[Credentials]
    ) -> Result[list[Ticket], StoreError]:
        async with self._lock:
            added: list[Ticket] = []
            for cred in credentials:
                ticket = Ticket(
                    id=str(uuid.uuid4()),
                    zone_id=zone_id,
                    username=cred.username,
                    password=cred.password,
                    profile=cred.profile,
                    status=TicketStatus.FREE,
                )
                self._seq += 1
                self._tickets[ticket.id] = _Slot(ticket, self._seq)
                added.append(ticket)
            return Ok(added)

    async def claim(
        self, zone_id: str, payment_id: str, sold_at: datetime
    ) -> Result[Ticket | None, StoreError]:
        async with self._lock:
            if any(s.ticket.payment_id == payment_id for s in self._tickets.values()):
                return Error(StoreError(f"Payment {payment_id} already bound to a ticket"))

            free = [
                s
                for s in self._tickets.values()
                if s.ticket.zone_id == zone_id and s.ticket.status == TicketStatus.FREE
            ]
            if not free:
                return Ok(None)

            slot = min(free, key=lambda s: s.order)
            slot.ticket = replace(
                slot.ticket,
                status=TicketStatus.SOLD,
                payment_id=payment_id,
                sold_at=sold_at,
            )
            return Ok(slot.ticket)

    async def for_payment(self, payment_id: str) -> Result[list[Ticket], StoreError]:
        async with self._lock:
            return Ok(
                [s.ticket for s in self._tickets.values() if s.ticket.payment_id == payment_id]
            )

    async def stats(self, zone_id: str) -> Result[TicketStats, StoreError]:
        async with self._lock:
            counts = Counter(
                s.ticket.status
                for s in self._tickets.values()
                if s.ticket.zone_id == zone_id
            )
            return Ok(TicketStats.from_counts(counts))


__all__ = ("TicketPool", "MemoryTicketPool")
