"""
HTTP models — request bodies go to_domain(), responses come from_domain().
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from wifiticket.catalog import Pricing, Zone
from wifiticket.confirmation import (
    Acknowledged,
    AlreadySettled,
    Duplicate,
    InventoryExhausted,
    Outcome,
    PaymentDeclined,
    PaymentView,
    TicketIssued,
)
from wifiticket.payments import Payment, PaymentPage
from wifiticket.service import IntentRequest, PaymentIntent
from wifiticket.tickets import Ticket, TicketStats


# ═══════════════════════════════════════════════════════════════════════════════
# Requests
# ═══════════════════════════════════════════════════════════════════════════════


class CustomerBody(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    phone: str = Field(min_length=8, max_length=20)
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None


class IntentBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    wifi_zone_id: UUID
    pricing_id: UUID | None = None
    amount: int | None = Field(default=None, gt=0)
    customer: CustomerBody

    def to_domain(self) -> IntentRequest:
        return IntentRequest(
            zone_id=str(self.wifi_zone_id),
            phone=self.customer.phone,
            pricing_id=str(self.pricing_id) if self.pricing_id else None,
            amount=self.amount,
            email=self.customer.email,
            first_name=self.customer.first_name,
            last_name=self.customer.last_name,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Responses
# ═══════════════════════════════════════════════════════════════════════════════


class IntentOut(BaseModel):
    id: str
    amount: int
    currency: str
    status: str
    checkout_url: str


class IntentResponse(BaseModel):
    message: str = "Payment intent created"
    payment: IntentOut

    @classmethod
    def from_domain(cls, intent: PaymentIntent) -> IntentResponse:
        return cls(
            payment=IntentOut(
                id=intent.payment_id,
                amount=intent.amount,
                currency=intent.currency,
                status=intent.status.value,
                checkout_url=intent.checkout_url,
            )
        )


class WebhookResponse(BaseModel):
    message: str

    @classmethod
    def from_domain(cls, outcome: Outcome) -> WebhookResponse:
        match outcome:
            case Duplicate():
                return cls(message="Webhook already processed")
            case AlreadySettled(payment=payment):
                return cls(message=f"Payment already {payment.status.value}")
            case TicketIssued() | InventoryExhausted():
                return cls(message="Payment processed successfully")
            case PaymentDeclined():
                return cls(message="Payment failed")
            case Acknowledged():
                return cls(message="Webhook received")


class TicketOut(BaseModel):
    username: str
    password: str

    @classmethod
    def from_domain(cls, ticket: Ticket) -> TicketOut:
        return cls(username=ticket.username, password=ticket.password)


class ZoneOut(BaseModel):
    name: str
    router_ip: str | None

    @classmethod
    def from_domain(cls, zone: Zone) -> ZoneOut:
        return cls(name=zone.name, router_ip=zone.router_ip)


class PricingOut(BaseModel):
    name: str
    duration_hours: int | None

    @classmethod
    def from_domain(cls, pricing: Pricing) -> PricingOut:
        return cls(name=pricing.name, duration_hours=pricing.duration_hours)


class PaymentOut(BaseModel):
    id: str
    amount: int
    currency: str
    status: str
    phone: str
    gateway_ref: str | None
    transaction_id: str | None
    created_at: datetime
    completed_at: datetime | None
    failed_at: datetime | None

    @classmethod
    def from_domain(cls, payment: Payment) -> PaymentOut:
        return cls(
            id=payment.id,
            amount=payment.amount,
            currency=payment.currency,
            status=payment.status.value,
            phone=payment.phone,
            gateway_ref=payment.gateway_ref,
            transaction_id=payment.transaction_id,
            created_at=payment.created_at,
            completed_at=payment.completed_at,
            failed_at=payment.failed_at,
        )


class PaymentDetailOut(PaymentOut):
    fulfilment: str
    reconciliation_required: bool = False
    zone: ZoneOut | None = None
    pricing: PricingOut | None = None
    tickets: list[TicketOut] = Field(default_factory=list)


class PaymentStatusResponse(BaseModel):
    payment: PaymentDetailOut

    @classmethod
    def from_domain(cls, view: PaymentView) -> PaymentStatusResponse:
        base = PaymentOut.from_domain(view.payment)
        return cls(
            payment=PaymentDetailOut(
                **base.model_dump(),
                fulfilment=view.fulfilment.value,
                reconciliation_required=view.payment.reconciliation_required,
                zone=ZoneOut.from_domain(view.zone) if view.zone else None,
                pricing=PricingOut.from_domain(view.pricing) if view.pricing else None,
                tickets=[TicketOut.from_domain(t) for t in view.tickets],
            )
        )


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ZonePaymentsResponse(BaseModel):
    payments: list[PaymentOut]
    pagination: Pagination

    @classmethod
    def from_domain(cls, page: PaymentPage) -> ZonePaymentsResponse:
        return cls(
            payments=[PaymentOut.from_domain(p) for p in page.items],
            pagination=Pagination(
                page=page.page,
                limit=page.limit,
                total=page.total,
                pages=page.pages,
            ),
        )


class TicketStatsResponse(BaseModel):
    total: int
    free: int
    sold: int
    reserved: int
    expired: int

    @classmethod
    def from_domain(cls, stats: TicketStats) -> TicketStatsResponse:
        return cls(
            total=stats.total,
            free=stats.free,
            sold=stats.sold,
            reserved=stats.reserved,
            expired=stats.expired,
        )


class ErrorResponse(BaseModel):
    error: str


__all__ = (
    "CustomerBody",
    "IntentBody",
    "IntentResponse",
    "WebhookResponse",
    "PaymentStatusResponse",
    "ZonePaymentsResponse",
    "TicketStatsResponse",
    "ErrorResponse",
)
