"""
Idempotency ledger — append-only key → payment map.

check() is advisory: two deliveries can both see Fresh. The uniqueness of
the key in storage is what makes the second record() fail with
ALREADY_RECORDED.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from kungfu import Result, Ok, Error

from wifiticket._types import utcnow
from wifiticket.errors import StoreError
from wifiticket.ledger._types import (
    Fresh,
    Seen,
    LedgerCheck,
    LedgerEntry,
    LedgerError,
    LedgerErrorKind,
)


class Ledger(Protocol):
    async def check(self, key: str) -> Result[LedgerCheck, StoreError]:
        """Fresh if unknown, Seen(resolved_payment_id) otherwise."""
        ...

    async def record(self, key: str, payment_id: str) -> Result[LedgerEntry, LedgerError]:
        """
        Insert key → payment_id.

        Returns Error(ALREADY_RECORDED) if the key exists. Never overwrites.
        """
        ...


class MemoryLedger:
    """
    In-memory ledger.

    Note: Only for single-process use and tests.
    """

    def __init__(self) -> None:
        self._entries: dict[str, LedgerEntry] = {}
        self._lock = asyncio.Lock()

    async def check(self, key: str) -> Result[LedgerCheck, StoreError]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return Ok(Fresh(key))
            return Ok(Seen(key, entry.payment_id))

    async def record(self, key: str, payment_id: str) -> Result[LedgerEntry, LedgerError]:
        async with self._lock:
            if key in self._entries:
                return Error(
                    LedgerError(LedgerErrorKind.ALREADY_RECORDED, f"Key exists: {key}")
                )
            entry = LedgerEntry(key=key, payment_id=payment_id, created_at=utcnow())
            self._entries[key] = entry
            return Ok(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


__all__ = ("Ledger", "MemoryLedger")
