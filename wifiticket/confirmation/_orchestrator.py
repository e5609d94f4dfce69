"""
Confirmation orchestrator — the two ways a payment gets settled.

Push: the gateway POSTs a signed notification to the webhook.
Pull: the customer's page polls and we ask the gateway ourselves.

Both end in the same compiled graph, keyed the same way, so a webhook and
a poll that report the same event for the same payment are one
notification as far as the ledger is concerned.
"""

from __future__ import annotations

import uuid

from kungfu import Result, Ok, Error
from structlog.contextvars import bound_contextvars

from wifiticket import graph as G
from wifiticket.errors import Errors, ServiceError
from wifiticket.gateway import (
    CompletionSignal,
    GatewayErrorKind,
    PaymentGateway,
    parse_signal,
    signal_from_verification,
    verify_signature,
)
from wifiticket.ledger import Ledger, derive_key
from wifiticket.log import get_logger
from wifiticket.payments import Payment, PaymentRepository, PaymentStatus
from wifiticket.tickets import TicketAssigner, TicketPool
from wifiticket.confirmation._graph import ConfirmationRequest, ConfirmationResultNode
from wifiticket.confirmation._types import Collaborators, Outcome, PaymentView


logger = get_logger("confirmation.orchestrator")


def _is_payment_id(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def _describe(outcome: Outcome) -> str:
    return type(outcome).__name__


class ConfirmationOrchestrator:
    """
    Settles payments from webhook deliveries and status polls.

    Example:
        orchestrator = ConfirmationOrchestrator(
            webhook_secret=settings.webhook_secret,
            gateway=gateway,
            ledger=ledger,
            payments=payments,
            pool=pool,
        )
        match await orchestrator.handle_completion_signal(body, signature):
            case Ok(outcome): ...        # 200
            case Error(err): ...         # err.kind decides the status code
    """

    def __init__(
        self,
        *,
        webhook_secret: str,
        gateway: PaymentGateway,
        ledger: Ledger,
        payments: PaymentRepository,
        pool: TicketPool,
        assigner: TicketAssigner | None = None,
        settle_timeout: float = 2.0,
    ) -> None:
        self._secret = webhook_secret
        self._gateway = gateway
        self._payments = payments
        self._pool = pool
        self._deps = Collaborators(
            gateway_name=gateway.name,
            ledger=ledger,
            payments=payments,
            pool=pool,
            assigner=assigner or TicketAssigner(pool),
            settle_timeout=settle_timeout,
        )
        self._pipeline = G.graph(ConfirmationResultNode)

    # ─────────────────────────────────────────────────────────────────────────
    # Push
    # ─────────────────────────────────────────────────────────────────────────

    async def handle_completion_signal(
        self, raw_body: bytes, signature: str | None
    ) -> Result[Outcome, ServiceError]:
        """
        Verify, parse and settle one webhook delivery.

        The signature is checked over the exact bytes received, before any
        parsing, and nothing is read or written when it does not match.
        """
        if not verify_signature(self._secret, raw_body, signature):
            logger.warning(
                "webhook_signature_invalid",
                signature_present=bool(signature),
                body_bytes=len(raw_body),
            )
            return Error(Errors.authentication())

        match parse_signal(raw_body):
            case Error(reason):
                logger.warning("webhook_malformed", reason=reason)
                return Error(Errors.malformed(reason))
            case Ok(signal):
                return await self.settle(signal, source="webhook")

    async def settle(
        self, signal: CompletionSignal, source: str = "webhook"
    ) -> Result[Outcome, ServiceError]:
        """Run a trusted signal through the confirmation graph."""
        key = derive_key(self._deps.gateway_name, signal.event, signal.gateway_ref)
        with bound_contextvars(
            source=source, event=signal.event, gateway_ref=signal.gateway_ref
        ):
            node = await self._pipeline(ConfirmationRequest(signal, key, self._deps))
            result = node.to_result()
            match result:
                case Ok(outcome):
                    logger.info(
                        "signal_settled",
                        outcome=_describe(outcome),
                        payment_id=outcome.payment.id,
                    )
                case Error(err):
                    logger.warning(
                        "signal_rejected", kind=err.kind.name, reason=err.message
                    )
            return result

    # ─────────────────────────────────────────────────────────────────────────
    # Pull
    # ─────────────────────────────────────────────────────────────────────────

    async def locate(self, payment_id_or_ref: str) -> Result[Payment, ServiceError]:
        """Find by internal id if it looks like a UUID, by gateway reference otherwise."""
        lookup = (
            self._payments.get(payment_id_or_ref)
            if _is_payment_id(payment_id_or_ref)
            else self._payments.find_by_ref(payment_id_or_ref)
        )
        match await lookup:
            case Error(err):
                return Error(Errors.storage(err))
            case Ok(None):
                return Error(Errors.not_found("Payment", payment_id_or_ref))
            case Ok(payment):
                return Ok(payment)

    async def view(self, payment_id: str) -> Result[PaymentView, ServiceError]:
        match await self._payments.get(payment_id):
            case Error(err):
                return Error(Errors.storage(err))
            case Ok(None):
                return Error(Errors.not_found("Payment", payment_id))
            case Ok(payment):
                match await self._pool.for_payment(payment.id):
                    case Ok(tickets):
                        return Ok(PaymentView(payment, tickets))
                    case Error(err):
                        return Error(Errors.storage(err))

    async def poll_status(self, payment_id_or_ref: str) -> Result[PaymentView, ServiceError]:
        """
        Settle a PENDING payment by asking the gateway, then return it.

        Terminal payments are returned as stored, the gateway is not
        contacted. A gateway timeout comes back as TRANSIENT and leaves the
        payment untouched.
        """
        match await self.locate(payment_id_or_ref):
            case Error(err):
                return Error(err)
            case Ok(payment):
                pass

        if payment.status != PaymentStatus.PENDING or payment.gateway_ref is None:
            return await self.view(payment.id)

        match await self._gateway.verify_payment(payment.gateway_ref):
            case Error(err) if err.kind == GatewayErrorKind.TRANSIENT:
                return Error(Errors.transient(err.message, err))
            case Error(err):
                return Error(Errors.gateway(err.message, err))
            case Ok(verification):
                signal = signal_from_verification(verification)

        if signal is None:
            logger.debug(
                "poll_still_pending",
                payment_id=payment.id,
                gateway_status=verification.status,
            )
            return await self.view(payment.id)

        match await self.settle(signal, source="poll"):
            case Error(err):
                return Error(err)
            case Ok(_):
                return await self.view(payment.id)


__all__ = ("ConfirmationOrchestrator",)
