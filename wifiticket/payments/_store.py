"""
Payment repository — typed storage protocol.

Status changes are compare-and-swap: complete() and fail() only act on a
PENDING payment and return Ok(None) when the payment was not PENDING
anymore, so a second concurrent transition is a no-op.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Protocol

from kungfu import Result, Ok, Error

from wifiticket._types import utcnow
from wifiticket.errors import StoreError
from wifiticket.payments._types import (
    Payment,
    NewPayment,
    PaymentPage,
    PaymentStatus,
    can_transition,
)


class PaymentRepository(Protocol):
    async def create(self, new: NewPayment) -> Result[Payment, StoreError]: ...

    async def get(self, payment_id: str) -> Result[Payment | None, StoreError]: ...

    async def find_by_ref(self, gateway_ref: str) -> Result[Payment | None, StoreError]: ...

    async def attach_checkout(
        self, payment_id: str, gateway_ref: str, checkout_url: str
    ) -> Result[Payment | None, StoreError]:
        """Bind the gateway reference. Ok(None) if the payment is gone or settled."""
        ...

    async def complete(
        self, payment_id: str, transaction_id: str | None, at: datetime
    ) -> Result[Payment | None, StoreError]:
        """PENDING → COMPLETED. Ok(None) if not PENDING."""
        ...

    async def fail(self, payment_id: str, at: datetime) -> Result[Payment | None, StoreError]:
        """PENDING → FAILED. Ok(None) if not PENDING."""
        ...

    async def flag_reconciliation(
        self, payment_id: str, required: bool = True
    ) -> Result[None, StoreError]:
        """Mark a completed payment that got no ticket, or clear the mark once it has one."""
        ...

    async def list_by_zone(
        self,
        zone_id: str,
        status: PaymentStatus | None,
        page: int,
        limit: int,
    ) -> Result[PaymentPage, StoreError]:
        """Newest first."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Repository: For Testing
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryPaymentRepository:
    def __init__(self) -> None:
        self._payments: dict[str, Payment] = {}
        self._lock = asyncio.Lock()

    async def create(self, new: NewPayment) -> Result[Payment, StoreError]:
        async with self._lock:
            payment = Payment(
                id=str(uuid.uuid4()),
                zone_id=new.zone_id,
                amount=new.amount,
                currency=new.currency,
                status=PaymentStatus.PENDING,
                phone=new.phone,
                pricing_id=new.pricing_id,
                email=new.email,
                created_at=utcnow(),
            )
            self._payments[payment.id] = payment
            return Ok(payment)

    async def get(self, payment_id: str) -> Result[Payment | None, StoreError]:
        async with self._lock:
            return Ok(self._payments.get(payment_id))

    async def find_by_ref(self, gateway_ref: str) -> Result[Payment | None, StoreError]:
        async with self._lock:
            for payment in self._payments.values():
                if payment.gateway_ref == gateway_ref:
                    return Ok(payment)
            return Ok(None)

    async def attach_checkout(
        self, payment_id: str, gateway_ref: str, checkout_url: str
    ) -> Result[Payment | None, StoreError]:
        async with self._lock:
            if any(
                p.gateway_ref == gateway_ref and p.id != payment_id
                for p in self._payments.values()
            ):
                return Error(StoreError(f"Duplicate gateway reference: {gateway_ref}"))
            current = self._payments.get(payment_id)
            if current is None or current.status != PaymentStatus.PENDING:
                return Ok(None)
            updated = replace(current, gateway_ref=gateway_ref, checkout_url=checkout_url)
            self._payments[payment_id] = updated
            return Ok(updated)

    async def complete(
        self, payment_id: str, transaction_id: str | None, at: datetime
    ) -> Result[Payment | None, StoreError]:
        async with self._lock:
            current = self._payments.get(payment_id)
            if current is None or not can_transition(current.status, PaymentStatus.COMPLETED):
                return Ok(None)
            updated = replace(
                current,
                status=PaymentStatus.COMPLETED,
                completed_at=at,
                transaction_id=transaction_id,
            )
            self._payments[payment_id] = updated
            return Ok(updated)

    async def fail(self, payment_id: str, at: datetime) -> Result[Payment | None, StoreError]:
        async with self._lock:
            current = self._payments.get(payment_id)
            if current is None or not can_transition(current.status, PaymentStatus.FAILED):
                return Ok(None)
            updated = replace(current, status=PaymentStatus.FAILED, failed_at=at)
            self._payments[payment_id] = updated
            return Ok(updated)

    async def flag_reconciliation(
        self, payment_id: str, required: bool = True
    ) -> Result[None, StoreError]:
        async with self._lock:
            current = self._payments.get(payment_id)
            if current is None:
                return Error(StoreError(f"Payment not found: {payment_id}"))
            self._payments[payment_id] = replace(current, reconciliation_required=required)
            return Ok(None)

    async def list_by_zone(
        self,
        zone_id: str,
        status: PaymentStatus | None,
        page: int,
        limit: int,
    ) -> Result[PaymentPage, StoreError]:
        async with self._lock:
            matching = sorted(
                (
                    p
                    for p in self._payments.values()
                    if p.zone_id == zone_id and (status is None or p.status == status)
                ),
                key=lambda p: p.created_at,
                reverse=True,
            )
            start = (page - 1) * limit
            return Ok(
                PaymentPage(
                    items=matching[start : start + limit],
                    page=page,
                    limit=limit,
                    total=len(matching),
                )
            )


__all__ = ("PaymentRepository", "MemoryPaymentRepository")
