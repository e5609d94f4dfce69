"""Confirmation tests: webhook push, status pull, and the races between them.

Every test runs against the memory stores and against SQLite.

Run with: pytest tests/test_confirmation.py -v
"""

import asyncio
from datetime import datetime
from collections.abc import Sequence

import pytest
from kungfu import Result, Error

from wifiticket import confirmation as CF
from wifiticket import gateway as GW
from wifiticket import ledger as L
from wifiticket import payments as P
from wifiticket import tickets as T
from wifiticket.errors import ErrorKind, StoreError
from wifiticket.service import PaymentService

from support import WEBHOOK_SECRET, ok, err, signed


pytestmark = pytest.mark.parametrize("stores", ["memory", "sqlite"], indirect=True)


class OutagePool:
    """Delegates to a real pool; claims fail while `down` is set."""

    def __init__(self, inner: T.TicketPool) -> None:
        self.inner = inner
        self.down = True

    async def add(
        self, zone_id: str, credentials: Sequence[T.Credentials]
    ) -> Result[list[T.Ticket], StoreError]:
        return await self.inner.add(zone_id, credentials)

    async def claim(
        self, zone_id: str, payment_id: str, sold_at: datetime
    ) -> Result[T.Ticket | None, StoreError]:
        if self.down:
            return Error(StoreError("disk I/O error"))
        return await self.inner.claim(zone_id, payment_id, sold_at)

    async def for_payment(self, payment_id: str) -> Result[list[T.Ticket], StoreError]:
        return await self.inner.for_payment(payment_id)

    async def stats(self, zone_id: str) -> Result[T.TicketStats, StoreError]:
        return await self.inner.stats(zone_id)


async def deliver(service: PaymentService, event: str, ref: str, **kw):
    raw, signature = signed(event, ref, **kw)
    return await service.handle_completion_signal(raw, signature)


def ticket_ids(outcome: CF.Outcome) -> list[str]:
    match outcome:
        case CF.TicketIssued(ticket=ticket):
            return [ticket.id]
        case CF.Duplicate(tickets=tickets) | CF.AlreadySettled(tickets=tickets):
            return [t.id for t in tickets]
        case _:
            return []


class TestCompletionSignal:
    """Tests for handle_completion_signal."""

    async def test_success_issues_ticket(self, service, open_payment, stock, pool, ledger):
        """Signed payment.success completes the payment and binds one ticket."""
        await stock(3)
        payment = await open_payment()

        outcome = ok(
            await deliver(service, "payment.success", payment.gateway_ref,
                          status="success", transaction_id="tx_42")
        )

        assert isinstance(outcome, CF.TicketIssued)
        assert outcome.payment.status == P.PaymentStatus.COMPLETED
        assert outcome.payment.transaction_id == "tx_42"
        assert outcome.ticket.payment_id == payment.id
        assert ok(await pool.stats(payment.zone_id)).sold == 1
        key = L.derive_key("moneroo", "payment.success", payment.gateway_ref)
        assert ok(await ledger.check(key)) == L.Seen(key, payment.id)

    async def test_redelivery_is_duplicate(self, service, open_payment, stock, pool):
        """The same notification twice sells one ticket and returns it both times."""
        await stock(3)
        payment = await open_payment()

        first = ok(await deliver(service, "payment.success", payment.gateway_ref, status="success"))
        second = ok(await deliver(service, "payment.success", payment.gateway_ref, status="success"))

        assert isinstance(first, CF.TicketIssued)
        assert isinstance(second, CF.Duplicate)
        assert second.payment.id == payment.id
        assert [t.id for t in second.tickets] == [first.ticket.id]
        assert ok(await pool.stats(payment.zone_id)).sold == 1

    async def test_concurrent_redeliveries_sell_one_ticket(
        self, service, open_payment, stock, pool, ledger
    ):
        """N concurrent copies of one notification: one ticket, and every copy reports it."""
        await stock(5)
        payment = await open_payment()

        results = await asyncio.gather(
            *(
                deliver(service, "payment.success", payment.gateway_ref, status="success")
                for _ in range(8)
            )
        )
        outcomes = [ok(r) for r in results]

        issued = [o for o in outcomes if isinstance(o, CF.TicketIssued)]
        assert len(issued) == 1
        assert all(isinstance(o, CF.Duplicate) for o in outcomes if o is not issued[0])
        assert {o.payment.id for o in outcomes} == {payment.id}
        assert all(ticket_ids(o) == [issued[0].ticket.id] for o in outcomes)
        assert ok(await pool.stats(payment.zone_id)).sold == 1
        key = L.derive_key("moneroo", "payment.success", payment.gateway_ref)
        assert ok(await ledger.check(key)) == L.Seen(key, payment.id)

    async def test_two_payments_race_for_last_ticket(self, service, open_payment, stock, payments):
        """With one ticket left exactly one payment gets it, the other needs reconciliation."""
        await stock(1)
        a = await open_payment()
        b = await open_payment()

        results = await asyncio.gather(
            deliver(service, "payment.success", a.gateway_ref, status="success"),
            deliver(service, "payment.success", b.gateway_ref, status="success"),
        )
        outcomes = [ok(r) for r in results]

        issued = [o for o in outcomes if isinstance(o, CF.TicketIssued)]
        exhausted = [o for o in outcomes if isinstance(o, CF.InventoryExhausted)]
        assert len(issued) == 1 and len(exhausted) == 1
        loser = ok(await payments.get(exhausted[0].payment.id))
        assert loser is not None
        assert loser.status == P.PaymentStatus.COMPLETED
        assert loser.reconciliation_required

    async def test_exhausted_zone(self, service, open_payment, payments, pool):
        """No free ticket: payment stays COMPLETED and is flagged."""
        payment = await open_payment()

        outcome = ok(await deliver(service, "payment.success", payment.gateway_ref, status="success"))

        assert isinstance(outcome, CF.InventoryExhausted)
        assert outcome.payment.reconciliation_required
        stored = ok(await payments.get(payment.id))
        assert stored is not None and stored.status == P.PaymentStatus.COMPLETED
        assert stored.reconciliation_required
        assert ok(await pool.for_payment(payment.id)) == []

    async def test_bad_signature_touches_nothing(self, service, open_payment, stock, ledger, payments):
        """Wrong signature is AUTHENTICATION and nothing is read or written."""
        await stock(1)
        payment = await open_payment()
        raw, _ = signed("payment.success", payment.gateway_ref, status="success")

        error = err(await service.handle_completion_signal(raw, GW.sign("wrong", raw)))

        assert error.kind == ErrorKind.AUTHENTICATION
        key = L.derive_key("moneroo", "payment.success", payment.gateway_ref)
        assert ok(await ledger.check(key)) == L.Fresh(key)
        stored = ok(await payments.get(payment.id))
        assert stored is not None and stored.status == P.PaymentStatus.PENDING

    async def test_missing_signature(self, service, open_payment):
        payment = await open_payment()
        raw, _ = signed("payment.success", payment.gateway_ref, status="success")

        error = err(await service.handle_completion_signal(raw, None))

        assert error.kind == ErrorKind.AUTHENTICATION

    async def test_malformed_body(self, service):
        """A correctly signed body that is not a webhook is MALFORMED."""
        raw = b'{"event": "payment.success"}'

        error = err(await service.handle_completion_signal(raw, GW.sign(WEBHOOK_SECRET, raw)))

        assert error.kind == ErrorKind.MALFORMED

    async def test_unknown_reference(self, service, seeded, ledger):
        """A reference we never issued is NOT_FOUND and not recorded."""
        error = err(await deliver(service, "payment.success", "py_unknown", status="success"))

        assert error.kind == ErrorKind.NOT_FOUND
        key = L.derive_key("moneroo", "payment.success", "py_unknown")
        assert ok(await ledger.check(key)) == L.Fresh(key)

    async def test_failure_event_declines(self, service, open_payment, stock, pool):
        await stock(1)
        payment = await open_payment()

        outcome = ok(await deliver(service, "payment.failed", payment.gateway_ref, status="failed"))

        assert isinstance(outcome, CF.PaymentDeclined)
        assert outcome.payment.status == P.PaymentStatus.FAILED
        assert ok(await pool.stats(payment.zone_id)).sold == 0

    async def test_cancelled_event_declines(self, service, open_payment):
        payment = await open_payment()

        outcome = ok(await deliver(service, "payment.cancelled", payment.gateway_ref))

        assert isinstance(outcome, CF.PaymentDeclined)

    async def test_informational_event_is_acknowledged(self, service, open_payment, payments):
        """payment.initiated is recorded but leaves the payment PENDING."""
        payment = await open_payment()

        outcome = ok(await deliver(service, "payment.initiated", payment.gateway_ref))

        assert outcome == CF.Acknowledged(payment, "payment.initiated")
        stored = ok(await payments.get(payment.id))
        assert stored is not None and stored.status == P.PaymentStatus.PENDING

    async def test_success_event_with_other_status_is_acknowledged(self, service, open_payment, stock, pool):
        """payment.success only confirms when its status is "success"."""
        await stock(1)
        payment = await open_payment()

        outcome = ok(await deliver(service, "payment.success", payment.gateway_ref, status="pending"))

        assert isinstance(outcome, CF.Acknowledged)
        assert ok(await pool.stats(payment.zone_id)).sold == 0

    async def test_new_event_on_settled_payment(self, service, open_payment, stock):
        """A failure after success does not undo the sale."""
        await stock(1)
        payment = await open_payment()
        issued = ok(await deliver(service, "payment.success", payment.gateway_ref, status="success"))

        outcome = ok(await deliver(service, "payment.failed", payment.gateway_ref, status="failed"))

        assert isinstance(outcome, CF.AlreadySettled)
        assert outcome.payment.status == P.PaymentStatus.COMPLETED
        assert [t.id for t in outcome.tickets] == [issued.ticket.id]


class TestAssignmentFailure:
    """Storage failures after the payment was completed."""

    @pytest.fixture
    def outage(self, pool) -> OutagePool:
        return OutagePool(pool)

    @pytest.fixture
    def service(self, settings, catalog, payments, ledger, outage, gateway) -> PaymentService:
        return PaymentService(
            settings=settings,
            catalog=catalog,
            payments=payments,
            ledger=ledger,
            pool=outage,
            gateway=gateway,
        )

    async def test_storage_failure_flags_payment(self, service, open_payment, stock, payments, ledger):
        """STORAGE now, payment COMPLETED and flagged, key left for the retry."""
        await stock(1)
        payment = await open_payment()

        error = err(await deliver(service, "payment.success", payment.gateway_ref, status="success"))

        assert error.kind == ErrorKind.STORAGE
        stored = ok(await payments.get(payment.id))
        assert stored is not None
        assert stored.status == P.PaymentStatus.COMPLETED
        assert stored.reconciliation_required
        key = L.derive_key("moneroo", "payment.success", payment.gateway_ref)
        assert ok(await ledger.check(key)) == L.Fresh(key)

    async def test_redelivery_after_recovery_issues_ticket(
        self, service, open_payment, stock, payments, pool, outage
    ):
        """Once the pool is back, the gateway's redelivery binds the ticket and clears the flag."""
        await stock(1)
        payment = await open_payment()
        err(await deliver(service, "payment.success", payment.gateway_ref, status="success"))
        outage.down = False

        outcome = ok(await deliver(service, "payment.success", payment.gateway_ref, status="success"))

        assert isinstance(outcome, CF.TicketIssued)
        assert outcome.ticket.payment_id == payment.id
        assert not outcome.payment.reconciliation_required
        stored = ok(await payments.get(payment.id))
        assert stored is not None and not stored.reconciliation_required
        assert ok(await pool.stats(payment.zone_id)).sold == 1

        again = ok(await deliver(service, "payment.success", payment.gateway_ref, status="success"))

        assert isinstance(again, CF.Duplicate)
        assert ticket_ids(again) == [outcome.ticket.id]

    async def test_redelivery_during_outage_fails_again(self, service, open_payment, stock, payments):
        """Still down: STORAGE again, never a settled answer without a ticket."""
        await stock(1)
        payment = await open_payment()
        err(await deliver(service, "payment.success", payment.gateway_ref, status="success"))

        error = err(await deliver(service, "payment.success", payment.gateway_ref, status="success"))

        assert error.kind == ErrorKind.STORAGE
        stored = ok(await payments.get(payment.id))
        assert stored is not None and stored.reconciliation_required


class TestPollStatus:
    """Tests for poll_status and get_payment_status."""

    async def test_poll_settles_paid_payment(self, service, open_payment, stock, gateway):
        """The gateway reports success: the poll issues the ticket."""
        await stock(2)
        payment = await open_payment()
        gateway.set_status(payment.gateway_ref, "success", "tx_7")

        view = ok(await service.confirmation.poll_status(payment.id))

        assert view.payment.status == P.PaymentStatus.COMPLETED
        assert view.payment.transaction_id == "tx_7"
        assert len(view.tickets) == 1

    async def test_poll_of_settled_payment_skips_gateway(self, service, open_payment, stock, gateway):
        """Terminal payments are read back without asking the gateway."""
        await stock(2)
        payment = await open_payment()
        gateway.set_status(payment.gateway_ref, "success")
        first = ok(await service.confirmation.poll_status(payment.id))
        calls = gateway.verify_calls

        second = ok(await service.confirmation.poll_status(payment.gateway_ref))

        assert gateway.verify_calls == calls
        assert second.tickets == first.tickets

    async def test_poll_still_pending(self, service, open_payment, stock):
        await stock(1)
        payment = await open_payment()

        view = ok(await service.confirmation.poll_status(payment.id))

        assert view.payment.status == P.PaymentStatus.PENDING
        assert view.tickets == []

    async def test_webhook_after_poll_is_duplicate(self, service, open_payment, stock, pool, gateway):
        """Poll and webhook reporting the same event are one notification."""
        await stock(2)
        payment = await open_payment()
        gateway.set_status(payment.gateway_ref, "success")
        ok(await service.confirmation.poll_status(payment.id))

        outcome = ok(await deliver(service, "payment.success", payment.gateway_ref, status="success"))

        assert isinstance(outcome, CF.Duplicate)
        assert ok(await pool.stats(payment.zone_id)).sold == 1

    async def test_poll_gateway_timeout_is_transient(self, service, open_payment, gateway):
        payment = await open_payment()
        gateway.fail_with = GW.GatewayError(GW.GatewayErrorKind.TRANSIENT, "timed out")

        error = err(await service.confirmation.poll_status(payment.id))

        assert error.kind == ErrorKind.TRANSIENT

    async def test_status_falls_back_to_stored_payment(self, service, open_payment, gateway, zone, pricing):
        """get_payment_status returns the stored payment when the gateway is down."""
        payment = await open_payment()
        gateway.fail_with = GW.GatewayError(GW.GatewayErrorKind.TRANSIENT, "timed out")

        view = ok(await service.get_payment_status(payment.id))

        assert view.payment.status == P.PaymentStatus.PENDING
        assert view.zone == zone
        assert view.pricing == pricing

    async def test_status_of_unknown_payment(self, service, seeded):
        error = err(await service.get_payment_status("py_missing"))

        assert error.kind == ErrorKind.NOT_FOUND
