"""
HTTP surface.

    from wifiticket.api import create_app

    app = create_app(service)
"""

from wifiticket.api._app import create_app, error_response
from wifiticket.api._models import (
    CustomerBody,
    IntentBody,
    IntentResponse,
    WebhookResponse,
    PaymentStatusResponse,
    ZonePaymentsResponse,
    TicketStatsResponse,
    ErrorResponse,
)

__all__ = (
    "create_app",
    "error_response",
    "CustomerBody",
    "IntentBody",
    "IntentResponse",
    "WebhookResponse",
    "PaymentStatusResponse",
    "ZonePaymentsResponse",
    "TicketStatsResponse",
    "ErrorResponse",
)
