"""
Payment Service — what the HTTP layer talks to.

Wraps the confirmation orchestrator and adds the customer-facing
operations around it: starting a purchase, reading it back, and the
operator listings.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from wifiticket.catalog import Catalog, SQLAlchemyCatalog, Pricing, Zone
from wifiticket.config import Settings
from wifiticket.confirmation import ConfirmationOrchestrator, Outcome, PaymentView
from wifiticket.errors import ErrorKind, Errors, ServiceError
from wifiticket.gateway import (
    CheckoutRequest,
    Customer,
    GatewayErrorKind,
    PaymentGateway,
)
from wifiticket.ledger import Ledger, SQLAlchemyLedger
from wifiticket.log import get_logger
from wifiticket.payments import (
    NewPayment,
    Payment,
    PaymentPage,
    PaymentRepository,
    PaymentStatus,
    SQLAlchemyPaymentRepository,
)
from wifiticket.tickets import (
    SQLAlchemyTicketPool,
    TicketPool,
    TicketStats,
)
from wifiticket._types import utcnow


logger = get_logger("service")

PHONE_MIN = 8
PHONE_MAX = 20
MAX_PAGE_SIZE = 100


# ═══════════════════════════════════════════════════════════════════════════════
# Request / Response
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class IntentRequest:
    """
    A customer's purchase attempt.

    Note: Either pricing_id or amount must be given. With a pricing, the
    amount always comes from the pricing.
    """

    zone_id: str
    phone: str
    pricing_id: str | None = None
    amount: int | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None


@dataclass(frozen=True, slots=True)
class PaymentIntent:
    payment_id: str
    amount: int
    currency: str
    status: PaymentStatus
    checkout_url: str


# ═══════════════════════════════════════════════════════════════════════════════
# Payment Service
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentService:
    def __init__(
        self,
        *,
        settings: Settings,
        catalog: Catalog,
        payments: PaymentRepository,
        ledger: Ledger,
        pool: TicketPool,
        gateway: PaymentGateway,
    ) -> None:
        self._settings = settings
        self._catalog = catalog
        self._payments = payments
        self._pool = pool
        self._gateway = gateway
        self.confirmation = ConfirmationOrchestrator(
            webhook_secret=settings.webhook_secret,
            gateway=gateway,
            ledger=ledger,
            payments=payments,
            pool=pool,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Intents
    # ─────────────────────────────────────────────────────────────────────────

    async def create_payment_intent(
        self, req: IntentRequest
    ) -> Result[PaymentIntent, ServiceError]:
        """
        Persist a PENDING payment, then open a checkout for it.

        The row exists before the gateway is contacted, so a webhook can
        never arrive for a reference we have not stored. When the checkout
        cannot be opened the payment is marked FAILED.
        """
        phone = req.phone.strip()
        if not PHONE_MIN <= len(phone) <= PHONE_MAX:
            return Error(
                Errors.validation(
                    f"Phone number must be {PHONE_MIN} to {PHONE_MAX} characters"
                )
            )
        if req.pricing_id is None and req.amount is None:
            return Error(Errors.validation("Either pricing_id or amount is required"))

        match await self._catalog.get_zone(req.zone_id):
            case Error(err):
                return Error(Errors.storage(err))
            case Ok(None):
                return Error(Errors.not_found("Zone", req.zone_id))
            case Ok(zone):
                pass

        match await self._resolve_amount(req):
            case Error(err):
                return Error(err)
            case Ok(amount):
                pass

        new = NewPayment(
            zone_id=zone.id,
            amount=amount,
            currency=self._settings.currency,
            phone=phone,
            pricing_id=req.pricing_id,
            email=req.email,
        )
        match await self._payments.create(new):
            case Error(err):
                return Error(Errors.storage(err))
            case Ok(payment):
                logger.info(
                    "payment_created",
                    payment_id=payment.id,
                    zone_id=zone.id,
                    amount=amount,
                )

        return await self._open_checkout(payment, zone, req)

    async def _resolve_amount(self, req: IntentRequest) -> Result[int, ServiceError]:
        if req.pricing_id is None:
            if req.amount is None or req.amount <= 0:
                return Error(Errors.validation("Amount must be a positive integer"))
            return Ok(req.amount)

        match await self._catalog.get_pricing(req.pricing_id):
            case Error(err):
                return Error(Errors.storage(err))
            case Ok(None):
                return Error(Errors.validation("Invalid pricing for this zone"))
            case Ok(pricing):
                if pricing.zone_id != req.zone_id or not pricing.is_active:
                    return Error(Errors.validation("Invalid pricing for this zone"))
                return Ok(pricing.amount)

    async def _open_checkout(
        self, payment: Payment, zone: Zone, req: IntentRequest
    ) -> Result[PaymentIntent, ServiceError]:
        metadata = {"payment_id": payment.id, "wifi_zone_id": zone.id}
        if req.pricing_id:
            metadata["pricing_id"] = req.pricing_id

        customer = Customer(phone=payment.phone)
        if req.email:
            customer = Customer(
                phone=payment.phone,
                email=req.email,
                first_name=req.first_name or customer.first_name,
                last_name=req.last_name or customer.last_name,
            )

        checkout_request = CheckoutRequest(
            amount=payment.amount,
            currency=payment.currency,
            description=f"Achat ticket Wi-Fi - {zone.name}",
            return_url=self._settings.return_url,
            customer=customer,
            metadata=metadata,
            methods=self._settings.gateway_methods,
        )

        match await self._gateway.create_checkout(checkout_request):
            case Error(err):
                await self._abandon(payment)
                if err.kind == GatewayErrorKind.TRANSIENT:
                    return Error(Errors.transient("Payment gateway unavailable", err))
                return Error(Errors.gateway("Payment gateway rejected the checkout", err))
            case Ok(checkout):
                pass

        match await self._payments.attach_checkout(
            payment.id, checkout.gateway_ref, checkout.checkout_url
        ):
            case Ok(Payment() as attached):
                return Ok(
                    PaymentIntent(
                        payment_id=attached.id,
                        amount=attached.amount,
                        currency=attached.currency,
                        status=attached.status,
                        checkout_url=checkout.checkout_url,
                    )
                )
            case Ok(None):
                logger.error(
                    "checkout_attach_lost",
                    payment_id=payment.id,
                    gateway_ref=checkout.gateway_ref,
                )
                return Error(
                    ServiceError(ErrorKind.STORAGE, f"Payment {payment.id} left PENDING")
                )
            case Error(err):
                # The gateway has a checkout we cannot map back to a payment.
                logger.error(
                    "checkout_attach_failed",
                    payment_id=payment.id,
                    gateway_ref=checkout.gateway_ref,
                    reason=err.message,
                )
                return Error(Errors.storage(err))

    async def _abandon(self, payment: Payment) -> None:
        match await self._payments.fail(payment.id, utcnow()):
            case Ok(_):
                logger.info("payment_abandoned", payment_id=payment.id)
            case Error(err):
                logger.error(
                    "payment_abandon_failed", payment_id=payment.id, reason=err.message
                )

    # ─────────────────────────────────────────────────────────────────────────
    # Confirmation
    # ─────────────────────────────────────────────────────────────────────────

    async def handle_completion_signal(
        self, raw_body: bytes, signature: str | None
    ) -> Result[Outcome, ServiceError]:
        return await self.confirmation.handle_completion_signal(raw_body, signature)

    async def get_payment_status(
        self, payment_id_or_ref: str
    ) -> Result[PaymentView, ServiceError]:
        """
        Poll, then read back with zone and pricing attached.

        A gateway that is down or refuses to answer is not the customer's
        problem: the payment is returned as currently stored.
        """
        match await self.confirmation.poll_status(payment_id_or_ref):
            case Ok(view):
                pass
            case Error(err) if err.kind in (ErrorKind.TRANSIENT, ErrorKind.GATEWAY):
                logger.warning(
                    "status_poll_degraded",
                    reference=payment_id_or_ref,
                    kind=err.kind.name,
                    reason=err.message,
                )
                match await self.confirmation.locate(payment_id_or_ref):
                    case Error(located_err):
                        return Error(located_err)
                    case Ok(payment):
                        match await self.confirmation.view(payment.id):
                            case Error(view_err):
                                return Error(view_err)
                            case Ok(view):
                                pass
            case Error(err):
                return Error(err)

        return await self._enrich(view)

    async def _enrich(self, view: PaymentView) -> Result[PaymentView, ServiceError]:
        zone: Zone | None = None
        pricing: Pricing | None = None

        match await self._catalog.get_zone(view.payment.zone_id):
            case Ok(found):
                zone = found
            case Error(err):
                return Error(Errors.storage(err))

        if view.payment.pricing_id:
            match await self._catalog.get_pricing(view.payment.pricing_id):
                case Ok(found_pricing):
                    pricing = found_pricing
                case Error(err):
                    return Error(Errors.storage(err))

        return Ok(PaymentView(view.payment, view.tickets, zone, pricing))

    # ─────────────────────────────────────────────────────────────────────────
    # Operator views
    # ─────────────────────────────────────────────────────────────────────────

    async def list_zone_payments(
        self,
        zone_id: str,
        status: PaymentStatus | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> Result[PaymentPage, ServiceError]:
        if page < 1 or not 1 <= limit <= MAX_PAGE_SIZE:
            return Error(Errors.validation("Invalid pagination"))
        match await self._catalog.get_zone(zone_id):
            case Error(err):
                return Error(Errors.storage(err))
            case Ok(None):
                return Error(Errors.not_found("Zone", zone_id))
            case Ok(_):
                pass
        match await self._payments.list_by_zone(zone_id, status, page, limit):
            case Ok(found):
                return Ok(found)
            case Error(err):
                return Error(Errors.storage(err))

    async def ticket_stats(self, zone_id: str) -> Result[TicketStats, ServiceError]:
        match await self._pool.stats(zone_id):
            case Ok(stats):
                return Ok(stats)
            case Error(err):
                return Error(Errors.storage(err))


# ═══════════════════════════════════════════════════════════════════════════════
# Factories
# ═══════════════════════════════════════════════════════════════════════════════


def sqlalchemy_service(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    gateway: PaymentGateway,
) -> PaymentService:
    return PaymentService(
        settings=settings,
        catalog=SQLAlchemyCatalog(session_factory),
        payments=SQLAlchemyPaymentRepository(session_factory),
        ledger=SQLAlchemyLedger(session_factory),
        pool=SQLAlchemyTicketPool(session_factory),
        gateway=gateway,
    )


__all__ = (
    "IntentRequest",
    "PaymentIntent",
    "PaymentService",
    "sqlalchemy_service",
)
