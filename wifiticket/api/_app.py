"""
FastAPI application.

    POST /api/payments/intent               customer starts a purchase
    POST /api/payments/webhook              gateway completion signal
    GET  /api/payments/{id_or_ref}          customer polls for the ticket
    GET  /api/payments/zone/{zone_id}       operator listing
    GET  /api/tickets/zone/{zone_id}/stats  operator inventory counts

Errors leave as {"error": message}. Messages are fixed per kind except for
validation, so nothing internal crosses the boundary.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from kungfu import Ok, Error

from wifiticket.errors import ErrorKind, ServiceError
from wifiticket.gateway import SIGNATURE_HEADER
from wifiticket.log import bind_context, clear_context, get_logger
from wifiticket.payments import PaymentStatus
from wifiticket.service import PaymentService
from wifiticket.api._models import (
    ErrorResponse,
    IntentBody,
    IntentResponse,
    PaymentStatusResponse,
    TicketStatsResponse,
    WebhookResponse,
    ZonePaymentsResponse,
)


logger = get_logger("api")


# ═══════════════════════════════════════════════════════════════════════════════
# Responses
# ═══════════════════════════════════════════════════════════════════════════════


def _public_error(err: ServiceError) -> tuple[int, str]:
    match err.kind:
        case ErrorKind.AUTHENTICATION:
            return 403, "Invalid signature"
        case ErrorKind.MALFORMED:
            return 400, "Invalid payload"
        case ErrorKind.VALIDATION:
            return 400, err.message
        case ErrorKind.NOT_FOUND:
            return 404, "Not found"
        case ErrorKind.TRANSIENT:
            return 503, "Service temporarily unavailable"
        case ErrorKind.GATEWAY:
            return 502, "Payment gateway error"
        case ErrorKind.STORAGE:
            return 500, "Internal server error"


def error_response(err: ServiceError) -> JSONResponse:
    status_code, message = _public_error(err)
    log = logger.error if status_code >= 500 else logger.warning
    log("request_failed", kind=err.kind.name, status_code=status_code, reason=err.message)
    return JSONResponse(
        ErrorResponse(error=message).model_dump(), status_code=status_code
    )


def _json(model: BaseModel, status_code: int = 200) -> JSONResponse:
    return JSONResponse(model.model_dump(mode="json"), status_code=status_code)


# ═══════════════════════════════════════════════════════════════════════════════
# Application
# ═══════════════════════════════════════════════════════════════════════════════


def create_app(service: PaymentService) -> FastAPI:
    """
    Build the app around a ready service.

    Example:
        app = create_app(sqlalchemy_service(settings, session_factory, gateway))
    """
    app = FastAPI(title="wifiticket")
    payments = APIRouter(prefix="/api/payments", tags=["payments"])
    tickets = APIRouter(prefix="/api/tickets", tags=["tickets"])

    @app.middleware("http")
    async def request_context(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        clear_context()
        bind_context(method=request.method, path=request.url.path)
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "request_handled",
            status_code=response.status_code,
            elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("request_invalid", errors=len(exc.errors()))
        return JSONResponse(
            ErrorResponse(error="Invalid request").model_dump(), status_code=400
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Payments
    # ─────────────────────────────────────────────────────────────────────────

    @payments.post("/intent", status_code=201, response_model=IntentResponse)
    async def create_intent(body: IntentBody) -> Response:
        match await service.create_payment_intent(body.to_domain()):
            case Ok(intent):
                return _json(IntentResponse.from_domain(intent), status_code=201)
            case Error(err):
                return error_response(err)

    @payments.post("/webhook", response_model=WebhookResponse)
    async def webhook(request: Request) -> Response:
        raw_body = await request.body()
        signature = request.headers.get(SIGNATURE_HEADER)
        match await service.handle_completion_signal(raw_body, signature):
            case Ok(outcome):
                return _json(WebhookResponse.from_domain(outcome))
            case Error(err):
                return error_response(err)

    @payments.get("/zone/{zone_id}", response_model=ZonePaymentsResponse)
    async def zone_payments(
        zone_id: str,
        status: PaymentStatus | None = None,
        page: int = Query(1, ge=1),
        limit: int = Query(50, ge=1, le=100),
    ) -> Response:
        match await service.list_zone_payments(zone_id, status, page, limit):
            case Ok(found):
                return _json(ZonePaymentsResponse.from_domain(found))
            case Error(err):
                return error_response(err)

    @payments.get("/{reference}", response_model=PaymentStatusResponse)
    async def payment_status(reference: str) -> Response:
        bind_context(reference=reference)
        match await service.get_payment_status(reference):
            case Ok(view):
                return _json(PaymentStatusResponse.from_domain(view))
            case Error(err):
                return error_response(err)

    # ─────────────────────────────────────────────────────────────────────────
    # Tickets
    # ─────────────────────────────────────────────────────────────────────────

    @tickets.get("/zone/{zone_id}/stats", response_model=TicketStatsResponse)
    async def ticket_stats(zone_id: str) -> Response:
        match await service.ticket_stats(zone_id):
            case Ok(stats):
                return _json(TicketStatsResponse.from_domain(stats))
            case Error(err):
                return error_response(err)

    app.include_router(payments)
    app.include_router(tickets)
    return app


__all__ = ("create_app", "error_response")
