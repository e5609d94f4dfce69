"""
SQLAlchemy payment repository.

Transitions are a single conditional UPDATE:

    UPDATE payments SET status = 'completed', ...
     WHERE id = :id AND status = 'pending'
    RETURNING ...

No row back means another handler already moved the payment.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from wifiticket._types import utcnow
from wifiticket.db import PaymentTable
from wifiticket.errors import StoreError
from wifiticket.payments._types import (
    Payment,
    NewPayment,
    PaymentPage,
    PaymentStatus,
)


_COLUMNS = (
    PaymentTable.id,
    PaymentTable.gateway_ref,
    PaymentTable.zone_id,
    PaymentTable.pricing_id,
    PaymentTable.amount,
    PaymentTable.currency,
    PaymentTable.status,
    PaymentTable.phone,
    PaymentTable.email,
    PaymentTable.transaction_id,
    PaymentTable.checkout_url,
    PaymentTable.reconciliation_required,
    PaymentTable.created_at,
    PaymentTable.completed_at,
    PaymentTable.failed_at,
)


def _payment(row: Any) -> Payment:
    return Payment(
        id=row.id,
        gateway_ref=row.gateway_ref,
        zone_id=row.zone_id,
        pricing_id=row.pricing_id,
        amount=row.amount,
        currency=row.currency,
        status=PaymentStatus(row.status),
        phone=row.phone,
        email=row.email,
        transaction_id=row.transaction_id,
        checkout_url=row.checkout_url,
        reconciliation_required=row.reconciliation_required,
        created_at=row.created_at,
        completed_at=row.completed_at,
        failed_at=row.failed_at,
    )


class SQLAlchemyPaymentRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, new: NewPayment) -> Result[Payment, StoreError]:
        row = PaymentTable(
            id=str(uuid.uuid4()),
            zone_id=new.zone_id,
            pricing_id=new.pricing_id,
            amount=new.amount,
            currency=new.currency,
            status=PaymentStatus.PENDING.value,
            phone=new.phone,
            email=new.email,
            reconciliation_required=False,
            created_at=utcnow(),
        )
        try:
            async with self._session_factory() as session:
                session.add(row)
                await session.commit()
            return Ok(_payment(row))
        except Exception as e:
            return Error(StoreError(f"Failed to create payment: {e}", e))

    async def get(self, payment_id: str) -> Result[Payment | None, StoreError]:
        return await self._one(PaymentTable.id == payment_id)

    async def find_by_ref(self, gateway_ref: str) -> Result[Payment | None, StoreError]:
        return await self._one(PaymentTable.gateway_ref == gateway_ref)

    async def attach_checkout(
        self, payment_id: str, gateway_ref: str, checkout_url: str
    ) -> Result[Payment | None, StoreError]:
        return await self._update_pending(
            payment_id, gateway_ref=gateway_ref, checkout_url=checkout_url
        )

    async def complete(
        self, payment_id: str, transaction_id: str | None, at: datetime
    ) -> Result[Payment | None, StoreError]:
        return await self._update_pending(
            payment_id,
            status=PaymentStatus.COMPLETED.value,
            completed_at=at,
            transaction_id=transaction_id,
        )

    async def fail(self, payment_id: str, at: datetime) -> Result[Payment | None, StoreError]:
        return await self._update_pending(
            payment_id,
            status=PaymentStatus.FAILED.value,
            failed_at=at,
        )

    async def flag_reconciliation(
        self, payment_id: str, required: bool = True
    ) -> Result[None, StoreError]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(
                        update(PaymentTable)
                        .where(PaymentTable.id == payment_id)
                        .values(reconciliation_required=required)
                        .execution_options(synchronize_session=False)
                    )
            return Ok(None)
        except Exception as e:
            return Error(StoreError(f"Failed to flag payment: {e}", e))

    async def list_by_zone(
        self,
        zone_id: str,
        status: PaymentStatus | None,
        page: int,
        limit: int,
    ) -> Result[PaymentPage, StoreError]:
        criteria = [PaymentTable.zone_id == zone_id]
        if status is not None:
            criteria.append(PaymentTable.status == status.value)

        try:
            async with self._session_factory() as session:
                total = (
                    await session.execute(
                        select(func.count()).select_from(PaymentTable).where(*criteria)
                    )
                ).scalar_one()
                rows = (
                    await session.execute(
                        select(*_COLUMNS)
                        .where(*criteria)
                        .order_by(PaymentTable.created_at.desc())
                        .offset((page - 1) * limit)
                        .limit(limit)
                    )
                ).all()
            return Ok(
                PaymentPage(
                    items=[_payment(r) for r in rows],
                    page=page,
                    limit=limit,
                    total=total,
                )
            )
        except Exception as e:
            return Error(StoreError(f"Failed to list payments: {e}", e))

    async def _one(self, criterion: Any) -> Result[Payment | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = (
                    await session.execute(select(*_COLUMNS).where(criterion))
                ).one_or_none()
                return Ok(_payment(row) if row is not None else None)
        except Exception as e:
            return Error(StoreError(f"Failed to load payment: {e}", e))

    async def _update_pending(
        self, payment_id: str, **values: Any
    ) -> Result[Payment | None, StoreError]:
        stmt = (
            update(PaymentTable)
            .where(
                PaymentTable.id == payment_id,
                PaymentTable.status == PaymentStatus.PENDING.value,
            )
            .values(**values)
            .returning(*_COLUMNS)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    row = (await session.execute(stmt)).one_or_none()
            return Ok(_payment(row) if row is not None else None)
        except Exception as e:
            return Error(StoreError(f"Failed to update payment: {e}", e))


__all__ = ("SQLAlchemyPaymentRepository",)
