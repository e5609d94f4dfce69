"""
Ledger — at-most-once processing of external notifications.

    from wifiticket import ledger as L

    key = L.derive_key("moneroo", "payment.success", "py_123")

    match await ledger.check(key):
        case Ok(L.Seen(resolved_payment_id=pid)): ...   # already processed
        case Ok(L.Fresh()): ...                         # go ahead
        case Error(err): ...

    match await ledger.record(key, payment.id):
        case Error(L.LedgerError(kind=L.LedgerErrorKind.ALREADY_RECORDED)):
            ...  # lost the race: read the resolved payment instead
"""

from wifiticket.ledger._types import (
    derive_key,
    Fresh,
    Seen,
    LedgerCheck,
    LedgerEntry,
    LedgerErrorKind,
    LedgerError,
)
from wifiticket.ledger._store import Ledger, MemoryLedger
from wifiticket.ledger._sqlalchemy import SQLAlchemyLedger

__all__ = (
    "derive_key",
    "Fresh",
    "Seen",
    "LedgerCheck",
    "LedgerEntry",
    "LedgerErrorKind",
    "LedgerError",
    "Ledger",
    "MemoryLedger",
    "SQLAlchemyLedger",
)
