"""
HTTP gateway — the aggregator's REST API over httpx.

    POST /payments/initialize      → 201 {"message", "data": {"id", "checkout_url"}}
    GET  /payments/{id}/verify     → 200 {"message", "data": {"status", ...}}

Failures come back as GatewayError, never as exceptions:
timeouts and 5xx are TRANSIENT, other non-2xx are REJECTED, bodies of the
wrong shape are MALFORMED.
"""

from __future__ import annotations

from typing import Any

import httpx
from combinators import flow, lift as L
from kungfu import Result, Ok, Error

from wifiticket.config import Settings
from wifiticket.log import get_logger
from wifiticket.gateway._types import (
    Checkout,
    CheckoutRequest,
    GatewayError,
    GatewayErrorKind,
    Verification,
)


logger = get_logger("gateway.http")


# ═══════════════════════════════════════════════════════════════════════════════
# Response decoding
# ═══════════════════════════════════════════════════════════════════════════════


def _transport_error(exc: Exception) -> GatewayError:
    if isinstance(exc, httpx.TimeoutException):
        return GatewayError(GatewayErrorKind.TRANSIENT, "Gateway timed out", cause=exc)
    if isinstance(exc, httpx.TransportError):
        return GatewayError(GatewayErrorKind.TRANSIENT, f"Gateway unreachable: {exc}", cause=exc)
    return GatewayError(GatewayErrorKind.MALFORMED, f"Gateway call failed: {exc}", cause=exc)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        if msg := body.get("message"):
            return str(msg)
        errors = body.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return str(errors[0].get("message", ""))
    return f"HTTP {response.status_code}"


def _data(response: httpx.Response, expected: tuple[int, ...]) -> Result[dict[str, Any], GatewayError]:
    status = response.status_code
    if status >= 500:
        return Error(
            GatewayError(GatewayErrorKind.TRANSIENT, _error_message(response), status)
        )
    if status not in expected:
        return Error(
            GatewayError(GatewayErrorKind.REJECTED, _error_message(response), status)
        )
    try:
        data = response.json()["data"]
    except (ValueError, KeyError, TypeError) as e:
        return Error(
            GatewayError(GatewayErrorKind.MALFORMED, "Unexpected response format", status, e)
        )
    if not isinstance(data, dict):
        return Error(
            GatewayError(GatewayErrorKind.MALFORMED, "Unexpected response format", status)
        )
    return Ok(data)


def _checkout(response: httpx.Response) -> Result[Checkout, GatewayError]:
    match _data(response, (200, 201)):
        case Ok(data):
            ref, url = data.get("id"), data.get("checkout_url")
            if not ref or not url:
                return Error(
                    GatewayError(
                        GatewayErrorKind.MALFORMED,
                        "Checkout response lacks id or checkout_url",
                        response.status_code,
                    )
                )
            return Ok(Checkout(gateway_ref=str(ref), checkout_url=str(url)))
        case Error(err):
            return Error(err)


def _verification(gateway_ref: str, response: httpx.Response) -> Result[Verification, GatewayError]:
    match _data(response, (200,)):
        case Ok(data):
            status = data.get("status")
            if not status:
                return Error(
                    GatewayError(
                        GatewayErrorKind.MALFORMED,
                        "Verification response lacks status",
                        response.status_code,
                    )
                )
            capture = data.get("capture")
            gateway = capture.get("gateway") if isinstance(capture, dict) else None
            amount = data.get("amount")
            return Ok(
                Verification(
                    gateway_ref=gateway_ref,
                    status=str(status),
                    amount=int(amount) if isinstance(amount, (int, float)) else None,
                    currency=data.get("currency"),
                    transaction_id=(
                        gateway.get("transaction_id") if isinstance(gateway, dict) else None
                    ),
                )
            )
        case Error(err):
            return Error(err)


def _checkout_body(request: CheckoutRequest) -> dict[str, Any]:
    customer: dict[str, str] = {
        "email": request.customer.email,
        "first_name": request.customer.first_name,
        "last_name": request.customer.last_name,
    }
    if request.customer.phone:
        customer["phone"] = request.customer.phone

    body: dict[str, Any] = {
        "amount": int(request.amount),
        "currency": request.currency,
        "description": request.description,
        "return_url": request.return_url,
        "customer": customer,
        "metadata": request.metadata,
    }
    if request.methods:
        body["methods"] = list(request.methods)
    return body


# ═══════════════════════════════════════════════════════════════════════════════
# HttpGateway
# ═══════════════════════════════════════════════════════════════════════════════


class HttpGateway:
    """
    Aggregator client.

    Example:
        gateway = HttpGateway.from_settings(settings)
        match await gateway.verify_payment("py_123"):
            case Ok(v): print(v.status)
            case Error(e): print(e.kind, e.message)
        await gateway.aclose()
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.name = name
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> HttpGateway:
        if not settings.gateway_api_key:
            logger.warning("gateway_api_key_missing", gateway=settings.gateway_name)
        return cls(
            name=settings.gateway_name,
            base_url=settings.gateway_base_url,
            api_key=settings.gateway_api_key,
            timeout=settings.gateway_timeout,
            transport=transport,
        )

    async def create_checkout(
        self, request: CheckoutRequest
    ) -> Result[Checkout, GatewayError]:
        return await (
            flow(
                L.catching_async(
                    lambda: self._client.post(
                        "/payments/initialize", json=_checkout_body(request)
                    ),
                    on_error=_transport_error,
                )
            )
            .then(lambda response: L.from_result(_checkout(response)))
            .tap(lambda c: logger.info("checkout_created", gateway_ref=c.gateway_ref))
            .tap_err(
                lambda e: logger.error(
                    "checkout_failed",
                    kind=e.kind.name,
                    status_code=e.status_code,
                    reason=e.message,
                )
            )
            .compile()
        )

    async def verify_payment(
        self, gateway_ref: str
    ) -> Result[Verification, GatewayError]:
        return await (
            flow(
                L.catching_async(
                    lambda: self._client.get(f"/payments/{gateway_ref}/verify"),
                    on_error=_transport_error,
                )
            )
            .then(lambda response: L.from_result(_verification(gateway_ref, response)))
            .tap_err(
                lambda e: logger.warning(
                    "verification_failed",
                    gateway_ref=gateway_ref,
                    kind=e.kind.name,
                    status_code=e.status_code,
                    reason=e.message,
                )
            )
            .compile()
        )

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ("HttpGateway",)
