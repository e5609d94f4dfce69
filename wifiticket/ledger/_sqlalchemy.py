"""
SQLAlchemy ledger — INSERT ... ON CONFLICT DO NOTHING on the unique key.

rowcount == 0 means another handler recorded the key first.
"""

from typing import Any, cast

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from wifiticket._types import utcnow
from wifiticket.db import LedgerTable
from wifiticket.errors import StoreError
from wifiticket.ledger._types import (
    Fresh,
    Seen,
    LedgerCheck,
    LedgerEntry,
    LedgerError,
    LedgerErrorKind,
)


def _insert_for(dialect: str) -> Any:
    match dialect:
        case "postgresql":
            return pg_insert
        case "sqlite":
            return sqlite_insert
        case _:
            raise ValueError(f"Unsupported dialect for ledger: {dialect}")


class SQLAlchemyLedger:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def check(self, key: str) -> Result[LedgerCheck, StoreError]:
        try:
            async with self._session_factory() as session:
                payment_id = (
                    await session.execute(
                        select(LedgerTable.payment_id).where(
                            LedgerTable.idempotency_key == key
                        )
                    )
                ).scalar_one_or_none()
                if payment_id is None:
                    return Ok(Fresh(key))
                return Ok(Seen(key, payment_id))
        except Exception as e:
            return Error(StoreError(f"Failed to check ledger: {e}", e))

    async def record(self, key: str, payment_id: str) -> Result[LedgerEntry, LedgerError]:
        entry = LedgerEntry(key=key, payment_id=payment_id, created_at=utcnow())
        try:
            async with self._session_factory() as session:
                insert = _insert_for(session.get_bind().dialect.name)
                stmt = (
                    insert(LedgerTable)
                    .values(
                        idempotency_key=entry.key,
                        payment_id=entry.payment_id,
                        created_at=entry.created_at,
                    )
                    .on_conflict_do_nothing(index_elements=["idempotency_key"])
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
        except Exception as e:
            return Error(
                LedgerError(LedgerErrorKind.STORE, f"Failed to record: {e}", e)
            )

        if cursor.rowcount == 0:
            return Error(
                LedgerError(LedgerErrorKind.ALREADY_RECORDED, f"Key exists: {key}")
            )
        return Ok(entry)


__all__ = ("SQLAlchemyLedger",)
