"""Payment intent and operator view tests.

Run with: pytest tests/test_intents.py -v
"""

import uuid
from dataclasses import replace

import pytest

from wifiticket import catalog as C
from wifiticket import gateway as GW
from wifiticket import payments as P
from wifiticket.errors import ErrorKind
from wifiticket.service import IntentRequest

from support import ok, err


def request(zone: C.Zone, **kw) -> IntentRequest:
    kw.setdefault("phone", "22990000001")
    return IntentRequest(zone_id=zone.id, **kw)


class TestCreatePaymentIntent:
    """Tests for PaymentService.create_payment_intent."""

    async def test_pricing_amount_wins(self, service, seeded, pricing, payments):
        """With a pricing the client amount is ignored."""
        intent = ok(
            await service.create_payment_intent(
                request(seeded, pricing_id=pricing.id, amount=1)
            )
        )

        assert intent.amount == pricing.amount
        assert intent.currency == "XOF"
        assert intent.status == P.PaymentStatus.PENDING
        assert intent.checkout_url.startswith("https://checkout.test/")
        stored = ok(await payments.get(intent.payment_id))
        assert stored is not None
        assert stored.gateway_ref is not None
        assert stored.pricing_id == pricing.id

    async def test_free_amount(self, service, seeded):
        intent = ok(await service.create_payment_intent(request(seeded, amount=500)))

        assert intent.amount == 500

    async def test_checkout_request(self, service, seeded, pricing, payments, gateway):
        """The gateway gets metadata, description and the portal return URL."""
        intent = ok(
            await service.create_payment_intent(
                request(seeded, pricing_id=pricing.id, email="ama@example.com", first_name="Ama")
            )
        )
        stored = ok(await payments.get(intent.payment_id))
        assert stored is not None

        sent = gateway.request_for(stored.gateway_ref)

        assert sent.metadata == {
            "payment_id": stored.id,
            "wifi_zone_id": seeded.id,
            "pricing_id": pricing.id,
        }
        assert sent.description == "Achat ticket Wi-Fi - Cafe Central"
        assert sent.return_url == "https://portal.test/payment/return"
        assert sent.customer == GW.Customer(
            phone="22990000001", email="ama@example.com", first_name="Ama", last_name="WiFi"
        )

    async def test_phone_is_stripped(self, service, seeded, payments):
        intent = ok(
            await service.create_payment_intent(request(seeded, phone="  22990000001 ", amount=100))
        )

        stored = ok(await payments.get(intent.payment_id))
        assert stored is not None and stored.phone == "22990000001"

    @pytest.mark.parametrize("phone", ["1234567", "1" * 21, "       "])
    async def test_invalid_phone(self, service, seeded, phone):
        error = err(await service.create_payment_intent(request(seeded, phone=phone, amount=100)))

        assert error.kind == ErrorKind.VALIDATION

    async def test_pricing_or_amount_required(self, service, seeded):
        error = err(await service.create_payment_intent(request(seeded)))

        assert error.kind == ErrorKind.VALIDATION

    @pytest.mark.parametrize("amount", [0, -5])
    async def test_non_positive_amount(self, service, seeded, amount):
        error = err(await service.create_payment_intent(request(seeded, amount=amount)))

        assert error.kind == ErrorKind.VALIDATION

    async def test_unknown_zone(self, service, seeded):
        missing = C.Zone(id=str(uuid.uuid4()), name="Nowhere")

        error = err(await service.create_payment_intent(request(missing, amount=100)))

        assert error.kind == ErrorKind.NOT_FOUND

    async def test_pricing_of_another_zone(self, service, seeded, catalog):
        """A pricing only applies to its own zone."""
        other = C.Zone(id=str(uuid.uuid4()), name="Other")
        await catalog.add_zone(other)
        foreign = C.Pricing(id=str(uuid.uuid4()), zone_id=other.id, name="1 day", amount=1000)
        await catalog.add_pricing(foreign)

        error = err(
            await service.create_payment_intent(request(seeded, pricing_id=foreign.id))
        )

        assert error.kind == ErrorKind.VALIDATION
        assert error.message == "Invalid pricing for this zone"

    async def test_inactive_pricing(self, service, seeded, catalog, pricing):
        retired = replace(pricing, id=str(uuid.uuid4()), is_active=False)
        await catalog.add_pricing(retired)

        error = err(
            await service.create_payment_intent(request(seeded, pricing_id=retired.id))
        )

        assert error.kind == ErrorKind.VALIDATION

    @pytest.mark.parametrize(
        ("gateway_kind", "kind"),
        [
            (GW.GatewayErrorKind.TRANSIENT, ErrorKind.TRANSIENT),
            (GW.GatewayErrorKind.REJECTED, ErrorKind.GATEWAY),
            (GW.GatewayErrorKind.MALFORMED, ErrorKind.GATEWAY),
        ],
    )
    async def test_gateway_failure_abandons_payment(
        self, service, seeded, gateway, payments, gateway_kind, kind
    ):
        """A checkout that cannot be opened leaves the payment FAILED."""
        gateway.fail_with = GW.GatewayError(gateway_kind, "nope")

        error = err(await service.create_payment_intent(request(seeded, amount=100)))

        assert error.kind == kind
        page = ok(await payments.list_by_zone(seeded.id, None, 1, 10))
        assert [p.status for p in page.items] == [P.PaymentStatus.FAILED]


class TestOperatorViews:
    """Tests for list_zone_payments and ticket_stats."""

    async def test_list_zone_payments(self, service, open_payment, seeded):
        for _ in range(3):
            await open_payment()

        page = ok(await service.list_zone_payments(seeded.id, P.PaymentStatus.PENDING, 1, 2))

        assert (page.total, page.pages, len(page.items)) == (3, 2, 2)

    async def test_list_unknown_zone(self, service, seeded):
        error = err(await service.list_zone_payments(str(uuid.uuid4())))

        assert error.kind == ErrorKind.NOT_FOUND

    @pytest.mark.parametrize(("page", "limit"), [(0, 10), (1, 0), (1, 101)])
    async def test_invalid_pagination(self, service, seeded, page, limit):
        error = err(await service.list_zone_payments(seeded.id, None, page, limit))

        assert error.kind == ErrorKind.VALIDATION

    async def test_ticket_stats(self, service, zone, stock):
        await stock(4)

        stats = ok(await service.ticket_stats(zone.id))

        assert (stats.total, stats.free, stats.sold) == (4, 4, 0)
