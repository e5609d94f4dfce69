"""
SQLAlchemy ticket pool — atomic claim as a single conditional UPDATE.

The claim compiles to:

    UPDATE tickets
       SET status = 'sold', payment_id = :payment_id, sold_at = :sold_at
     WHERE id = (SELECT id FROM tickets
                  WHERE zone_id = :zone_id AND status = 'free'
                  LIMIT 1
                  FOR UPDATE SKIP LOCKED)
       AND status = 'free'
    RETURNING ...

Postgres locks the picked row and lets concurrent claimers skip it.
SQLite drops the FOR UPDATE clause; its single-writer lock already
serializes the statement. Either way there is no read-then-write window.
"""

import uuid
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from wifiticket._types import utcnow
from wifiticket.db import TicketTable
from wifiticket.errors import StoreError
from wifiticket.tickets._types import (
    Credentials,
    Ticket,
    TicketStats,
    TicketStatus,
)


_COLUMNS = (
    TicketTable.id,
    TicketTable.zone_id,
    TicketTable.username,
    TicketTable.password,
    TicketTable.profile,
    TicketTable.status,
    TicketTable.payment_id,
    TicketTable.sold_at,
)


def _ticket(row: Any) -> Ticket:
    return Ticket(
        id=row.id,
        zone_id=row.zone_id,
        username=row.username,
        password=row.password,
        profile=row.profile,
        status=TicketStatus(row.status),
        payment_id=row.payment_id,
        sold_at=row.sold_at,
    )


class SQLAlchemyTicketPool:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add(
        self, zone_id: str, credentials: Sequence[Credentials]
    ) -> Result[list[Ticket], StoreError]:
        try:
            now = utcnow()
            rows = [
                TicketTable(
                    id=str(uuid.uuid4()),
                    zone_id=zone_id,
                    username=cred.username,
                    password=cred.password,
                    profile=cred.profile,
                    status=TicketStatus.FREE.value,
                    created_at=now,
                )
                for cred in credentials
            ]
            async with self._session_factory() as session:
                session.add_all(rows)
                await session.commit()
            return Ok([_ticket(r) for r in rows])
        except Exception as e:
            return Error(StoreError(f"Failed to import tickets: {e}", e))

    async def claim(
        self, zone_id: str, payment_id: str, sold_at: datetime
    ) -> Result[Ticket | None, StoreError]:
        candidate = (
            select(TicketTable.id)
            .where(
                TicketTable.zone_id == zone_id,
                TicketTable.status == TicketStatus.FREE.value,
            )
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(TicketTable)
            .where(
                TicketTable.id == candidate,
                TicketTable.status == TicketStatus.FREE.value,
            )
            .values(
                status=TicketStatus.SOLD.value,
                payment_id=payment_id,
                sold_at=sold_at,
            )
            .returning(*_COLUMNS)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    row = (await session.execute(stmt)).one_or_none()
            return Ok(_ticket(row) if row is not None else None)
        except Exception as e:
            return Error(StoreError(f"Failed to claim ticket: {e}", e))

    async def for_payment(self, payment_id: str) -> Result[list[Ticket], StoreError]:
        try:
            async with self._session_factory() as session:
                rows = (
                    await session.execute(
                        select(*_COLUMNS).where(TicketTable.payment_id == payment_id)
                    )
                ).all()
                return Ok([_ticket(r) for r in rows])
        except Exception as e:
            return Error(StoreError(f"Failed to load tickets: {e}", e))

    async def stats(self, zone_id: str) -> Result[TicketStats, StoreError]:
        try:
            async with self._session_factory() as session:
                rows = (
                    await session.execute(
                        select(TicketTable.status, func.count())
                        .where(TicketTable.zone_id == zone_id)
                        .group_by(TicketTable.status)
                    )
                ).all()
                counts = {TicketStatus(status): n for status, n in rows}
                return Ok(TicketStats.from_counts(counts))
        except Exception as e:
            return Error(StoreError(f"Failed to count tickets: {e}", e))


__all__ = ("SQLAlchemyTicketPool",)
