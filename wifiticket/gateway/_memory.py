"""
In-memory gateway — for tests and local runs without an aggregator.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from kungfu import Result, Ok, Error

from wifiticket.gateway._types import (
    Checkout,
    CheckoutRequest,
    GatewayError,
    GatewayErrorKind,
    Verification,
)


@dataclass(slots=True)
class _Remote:
    request: CheckoutRequest
    status: str = "pending"
    transaction_id: str | None = None


@dataclass
class MemoryGateway:
    """
    Fake aggregator.

    Note: set_status() plays the customer paying on the hosted page.
    fail_with makes every next call return that error.
    """

    name: str = "moneroo"
    fail_with: GatewayError | None = None
    verify_calls: int = 0
    _remote: dict[str, _Remote] = field(default_factory=dict[str, _Remote])

    async def create_checkout(
        self, request: CheckoutRequest
    ) -> Result[Checkout, GatewayError]:
        if self.fail_with is not None:
            return Error(self.fail_with)
        ref = f"py_{uuid.uuid4().hex[:12]}"
        self._remote[ref] = _Remote(request)
        return Ok(Checkout(gateway_ref=ref, checkout_url=f"https://checkout.test/{ref}"))

    async def verify_payment(
        self, gateway_ref: str
    ) -> Result[Verification, GatewayError]:
        self.verify_calls += 1
        if self.fail_with is not None:
            return Error(self.fail_with)
        remote = self._remote.get(gateway_ref)
        if remote is None:
            return Error(
                GatewayError(GatewayErrorKind.REJECTED, "Payment not found", 404)
            )
        return Ok(
            Verification(
                gateway_ref=gateway_ref,
                status=remote.status,
                amount=remote.request.amount,
                currency=remote.request.currency,
                transaction_id=remote.transaction_id,
            )
        )

    def set_status(
        self, gateway_ref: str, status: str, transaction_id: str | None = None
    ) -> None:
        remote = self._remote[gateway_ref]
        remote.status = status
        remote.transaction_id = transaction_id

    def request_for(self, gateway_ref: str) -> CheckoutRequest:
        return self._remote[gateway_ref].request


__all__ = ("MemoryGateway",)
