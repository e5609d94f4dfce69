"""Payment lifecycle and repository tests.

Run with: pytest tests/test_payments.py -v
"""

import asyncio

import pytest

from wifiticket import catalog as C
from wifiticket import payments as P
from wifiticket._types import utcnow

from support import ok, err


def new_payment(zone_id: str, amount: int = 200) -> P.NewPayment:
    return P.NewPayment(zone_id=zone_id, amount=amount, currency="XOF", phone="22990000001")


class TestPaymentStatus:
    @pytest.mark.parametrize(
        ("current", "target", "allowed"),
        [
            (P.PaymentStatus.PENDING, P.PaymentStatus.COMPLETED, True),
            (P.PaymentStatus.PENDING, P.PaymentStatus.FAILED, True),
            (P.PaymentStatus.COMPLETED, P.PaymentStatus.FAILED, False),
            (P.PaymentStatus.FAILED, P.PaymentStatus.COMPLETED, False),
            (P.PaymentStatus.COMPLETED, P.PaymentStatus.PENDING, False),
        ],
    )
    def test_transitions_are_monotone(self, current, target, allowed):
        """Only PENDING moves, and only to a terminal state."""
        assert P.can_transition(current, target) is allowed

    def test_terminal_states(self):
        """COMPLETED and FAILED are terminal."""
        assert not P.PaymentStatus.PENDING.is_terminal
        assert P.PaymentStatus.COMPLETED.is_terminal
        assert P.PaymentStatus.FAILED.is_terminal


class TestMemoryPaymentRepository:
    """Tests for MemoryPaymentRepository."""

    async def test_create_is_pending(self, payments, zone):
        """New payments start PENDING without a gateway reference."""
        payment = ok(await payments.create(new_payment(zone.id)))

        assert payment.status == P.PaymentStatus.PENDING
        assert payment.gateway_ref is None
        assert ok(await payments.get(payment.id)) == payment

    async def test_complete_only_once(self, payments, zone):
        """A second complete() is a no-op reported as Ok(None)."""
        payment = ok(await payments.create(new_payment(zone.id)))

        first = ok(await payments.complete(payment.id, "tx_1", utcnow()))
        second = ok(await payments.complete(payment.id, "tx_2", utcnow()))

        assert first is not None
        assert first.status == P.PaymentStatus.COMPLETED
        assert first.transaction_id == "tx_1"
        assert second is None

    async def test_fail_after_complete_is_noop(self, payments, zone):
        """A completed payment never moves to FAILED."""
        payment = ok(await payments.create(new_payment(zone.id)))
        ok(await payments.complete(payment.id, None, utcnow()))

        assert ok(await payments.fail(payment.id, utcnow())) is None
        stored = ok(await payments.get(payment.id))
        assert stored is not None and stored.status == P.PaymentStatus.COMPLETED

    async def test_concurrent_transitions_have_one_winner(self, payments, zone):
        """Racing complete() and fail() leave exactly one of them applied."""
        payment = ok(await payments.create(new_payment(zone.id)))

        results = await asyncio.gather(
            payments.complete(payment.id, "tx_1", utcnow()),
            payments.fail(payment.id, utcnow()),
            payments.complete(payment.id, "tx_2", utcnow()),
        )

        assert sum(ok(r) is not None for r in results) == 1

    async def test_attach_checkout_rejects_duplicate_reference(self, payments, zone):
        """Two payments can never share a gateway reference."""
        a = ok(await payments.create(new_payment(zone.id)))
        b = ok(await payments.create(new_payment(zone.id)))
        ok(await payments.attach_checkout(a.id, "py_1", "https://checkout.test/py_1"))

        error = err(await payments.attach_checkout(b.id, "py_1", "https://checkout.test/py_1"))

        assert "py_1" in error.message
        found = ok(await payments.find_by_ref("py_1"))
        assert found is not None and found.id == a.id

    async def test_list_by_zone_filters_and_pages(self, payments, zone):
        """Listing is per zone, filterable by status and paged newest first."""
        created = [ok(await payments.create(new_payment(zone.id, amount=100 + i))) for i in range(5)]
        ok(await payments.complete(created[0].id, None, utcnow()))
        ok(await payments.create(new_payment("another-zone")))

        page = ok(await payments.list_by_zone(zone.id, None, page=1, limit=2))
        completed = ok(
            await payments.list_by_zone(zone.id, P.PaymentStatus.COMPLETED, page=1, limit=10)
        )

        assert (page.total, page.pages, len(page.items)) == (5, 3, 2)
        assert page.items[0].created_at >= page.items[1].created_at
        assert [p.id for p in completed.items] == [created[0].id]


class TestSQLAlchemyPaymentRepository:
    """Tests for SQLAlchemyPaymentRepository on file-backed SQLite."""

    @pytest.fixture
    def repo(self, session_factory):
        return P.SQLAlchemyPaymentRepository(session_factory)

    async def test_lifecycle(self, repo, sql_zone: C.Zone):
        """create → attach_checkout → complete, then further transitions are no-ops."""
        payment = ok(await repo.create(new_payment(sql_zone.id)))
        attached = ok(await repo.attach_checkout(payment.id, "py_9", "https://checkout.test/py_9"))

        completed = ok(await repo.complete(payment.id, "tx_9", utcnow()))

        assert attached is not None and attached.gateway_ref == "py_9"
        assert completed is not None
        assert completed.status == P.PaymentStatus.COMPLETED
        assert completed.transaction_id == "tx_9"
        assert ok(await repo.fail(payment.id, utcnow())) is None
        found = ok(await repo.find_by_ref("py_9"))
        assert found is not None and found.status == P.PaymentStatus.COMPLETED

    async def test_flag_reconciliation(self, repo, sql_zone: C.Zone):
        """flag_reconciliation marks the payment for an operator and clears the mark."""
        payment = ok(await repo.create(new_payment(sql_zone.id)))

        ok(await repo.flag_reconciliation(payment.id))

        stored = ok(await repo.get(payment.id))
        assert stored is not None and stored.reconciliation_required

        ok(await repo.flag_reconciliation(payment.id, required=False))

        cleared = ok(await repo.get(payment.id))
        assert cleared is not None and not cleared.reconciliation_required

    async def test_list_by_zone(self, repo, sql_zone: C.Zone):
        """Counting and paging run in SQL."""
        for i in range(3):
            ok(await repo.create(new_payment(sql_zone.id, amount=100 + i)))

        page = ok(await repo.list_by_zone(sql_zone.id, P.PaymentStatus.PENDING, page=2, limit=2))

        assert (page.total, page.pages, len(page.items)) == (3, 2, 1)
