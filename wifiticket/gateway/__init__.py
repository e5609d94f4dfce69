"""
Gateway — the payment aggregator, push (webhook) and pull (verify).

    from wifiticket import gateway as GW

    gateway = GW.HttpGateway.from_settings(settings)
    checkout = await gateway.create_checkout(GW.CheckoutRequest(...))

    if not GW.verify_signature(secret, raw_body, request.headers.get("X-Gateway-Signature")):
        ...
    signal = GW.parse_signal(raw_body)
"""

from wifiticket.gateway._types import (
    Customer,
    CheckoutRequest,
    Checkout,
    Verification,
    EventKind,
    SUCCESS_EVENT,
    FAILURE_EVENTS,
    classify,
    CompletionSignal,
    signal_from_verification,
    GatewayErrorKind,
    GatewayError,
    PaymentGateway,
)
from wifiticket.gateway._signature import sign, verify_signature
from wifiticket.gateway._webhook import WebhookPayload, WebhookData, parse_signal
from wifiticket.gateway._http import HttpGateway
from wifiticket.gateway._memory import MemoryGateway

SIGNATURE_HEADER = "X-Gateway-Signature"

__all__ = (
    # Types
    "Customer",
    "CheckoutRequest",
    "Checkout",
    "Verification",
    "EventKind",
    "SUCCESS_EVENT",
    "FAILURE_EVENTS",
    "classify",
    "CompletionSignal",
    "signal_from_verification",
    "GatewayErrorKind",
    "GatewayError",
    "PaymentGateway",
    # Webhook
    "SIGNATURE_HEADER",
    "sign",
    "verify_signature",
    "WebhookPayload",
    "WebhookData",
    "parse_signal",
    # Implementations
    "HttpGateway",
    "MemoryGateway",
)
