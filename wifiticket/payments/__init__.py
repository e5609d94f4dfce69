"""
Payments — purchase attempts and their monotone lifecycle.

    from wifiticket import payments as P

    repo = P.MemoryPaymentRepository()
    payment = (await repo.create(P.NewPayment(zone_id, 500, "XOF", "22990000000"))).unwrap()

    # PENDING → COMPLETED, exactly once
    match await repo.complete(payment.id, "tx_1", utcnow()):
        case Ok(None): ...     # someone else already settled it
        case Ok(updated): ...  # we won the transition
        case Error(err): ...
"""

from wifiticket.payments._types import (
    PaymentStatus,
    can_transition,
    Payment,
    NewPayment,
    PaymentPage,
)
from wifiticket.payments._store import PaymentRepository, MemoryPaymentRepository
from wifiticket.payments._sqlalchemy import SQLAlchemyPaymentRepository

__all__ = (
    "PaymentStatus",
    "can_transition",
    "Payment",
    "NewPayment",
    "PaymentPage",
    "PaymentRepository",
    "MemoryPaymentRepository",
    "SQLAlchemyPaymentRepository",
)
