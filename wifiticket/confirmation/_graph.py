"""
Confirmation graph — one completion signal in, one Outcome out.

Architecture:
    ConfirmationRequest (injected)
         │
         ▼
    RequestNode
         │
         ├──────────────────────────────┐
         ▼                              ▼
    LedgerCheckNode              PaymentLookupNode
         │                              │
         ├── StorageFailureNode ────────┤
         ├── SeenSignalNode             │
         │                              │
         └──────── FreshSignalNode ─────┤
                        │               └── UnknownPaymentNode
                        ├── SettledPaymentNode
                        └── PendingPaymentNode
                                 ├── ConfirmedSignalNode
                                 ├── DeclinedSignalNode
                                 └── InformationalSignalNode
                                              │
                              ConfirmationOutcome (@polymorphic)
                                              │
                                              ▼
                                   ConfirmationResultNode

Validator nodes raise NodeError when their state does not hold, so exactly
one case of ConfirmationOutcome gets to run side effects.

The status compare-and-swap in PaymentRepository is what guards the ticket:
two handlers can both pass the ledger check, only one wins complete().
The winner owns the ledger key. Losers wait for the winner's ticket (or
its reconciliation flag) and answer Duplicate without recording.

A COMPLETED payment left without a ticket by a storage failure is retried
on the next confirming signal, so gateway redelivery finishes it.

Note: no 'from __future__ import annotations' here, nodnod reads the
type hints at runtime for dependency resolution.
"""

import asyncio
import time
from dataclasses import dataclass, replace

from nodnod import NodeError, polymorphic, case

from kungfu import Result, Ok, Error

from wifiticket import graph as G
from wifiticket.errors import ErrorKind, Errors, ServiceError, StoreError
from wifiticket.gateway import CompletionSignal, EventKind
from wifiticket.ledger import LedgerCheck, Fresh, Seen, LedgerError, LedgerErrorKind
from wifiticket.log import get_logger
from wifiticket.payments import Payment, PaymentStatus
from wifiticket.tickets import Ticket, AssignError, AssignErrorKind
from wifiticket._types import utcnow
from wifiticket.confirmation._types import (
    Collaborators,
    Outcome,
    TicketIssued,
    InventoryExhausted,
    Duplicate,
    AlreadySettled,
    PaymentDeclined,
    Acknowledged,
)


logger = get_logger("confirmation")

type Resolution = Result[Outcome, ServiceError]

_SETTLE_POLL_SECONDS = 0.02


# ═══════════════════════════════════════════════════════════════════════════════
# Input: Request (injected)
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ConfirmationRequest:
    """A verified, parsed signal plus everything needed to act on it."""

    signal: CompletionSignal
    key: str
    deps: Collaborators


@G.node
class RequestNode:
    def __init__(self, request: ConfirmationRequest) -> None:
        self.request = request

    @classmethod
    def __compose__(cls, request: ConfirmationRequest) -> "RequestNode":
        return cls(request)


# ═══════════════════════════════════════════════════════════════════════════════
# Reads: both run concurrently, both keep their Result
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class LedgerCheckNode:
    def __init__(self, result: Result[LedgerCheck, StoreError]) -> None:
        self.result = result

    @classmethod
    async def __compose__(cls, node: RequestNode) -> "LedgerCheckNode":
        request = node.request
        return cls(await request.deps.ledger.check(request.key))


@G.node
class PaymentLookupNode:
    def __init__(self, result: Result[Payment | None, StoreError]) -> None:
        self.result = result

    @classmethod
    async def __compose__(cls, node: RequestNode) -> "PaymentLookupNode":
        request = node.request
        return cls(await request.deps.payments.find_by_ref(request.signal.gateway_ref))


# ═══════════════════════════════════════════════════════════════════════════════
# State Nodes: Each validates one situation
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class StorageFailureNode:
    """Validates: one of the reads failed."""

    def __init__(self, error: StoreError, request: ConfirmationRequest) -> None:
        self.error = error
        self.request = request

    @classmethod
    def __compose__(
        cls, node: RequestNode, ledger: LedgerCheckNode, lookup: PaymentLookupNode
    ) -> "StorageFailureNode":
        match ledger.result:
            case Error(err):
                return cls(err, node.request)
            case Ok(_):
                pass
        match lookup.result:
            case Error(err):
                return cls(err, node.request)
            case Ok(_):
                raise NodeError("Reads succeeded")


@G.node
class SeenSignalNode:
    """Validates: this exact notification was processed before."""

    def __init__(self, resolved_payment_id: str, request: ConfirmationRequest) -> None:
        self.resolved_payment_id = resolved_payment_id
        self.request = request

    @classmethod
    def __compose__(cls, node: RequestNode, ledger: LedgerCheckNode) -> "SeenSignalNode":
        match ledger.result:
            case Ok(Seen(resolved_payment_id=payment_id)):
                return cls(payment_id, node.request)
            case _:
                raise NodeError("Not seen")


@G.node
class UnknownPaymentNode:
    """Validates: fresh notification for a reference we never issued."""

    def __init__(self, request: ConfirmationRequest) -> None:
        self.request = request

    @classmethod
    def __compose__(
        cls, node: RequestNode, ledger: LedgerCheckNode, lookup: PaymentLookupNode
    ) -> "UnknownPaymentNode":
        match ledger.result, lookup.result:
            case Ok(Fresh()), Ok(None):
                return cls(node.request)
            case _:
                raise NodeError("Payment known or not fresh")


@G.node
class FreshSignalNode:
    """Validates: fresh notification for a known payment."""

    def __init__(self, payment: Payment, request: ConfirmationRequest) -> None:
        self.payment = payment
        self.request = request

    @classmethod
    def __compose__(
        cls, node: RequestNode, ledger: LedgerCheckNode, lookup: PaymentLookupNode
    ) -> "FreshSignalNode":
        match ledger.result, lookup.result:
            case Ok(Fresh()), Ok(Payment() as payment):
                return cls(payment, node.request)
            case _:
                raise NodeError("No fresh signal for a known payment")


@G.node
class SettledPaymentNode:
    """Validates: payment already COMPLETED or FAILED."""

    def __init__(self, fresh: FreshSignalNode) -> None:
        self.payment = fresh.payment
        self.request = fresh.request

    @classmethod
    def __compose__(cls, fresh: FreshSignalNode) -> "SettledPaymentNode":
        if not fresh.payment.status.is_terminal:
            raise NodeError("Not settled")
        return cls(fresh)


@G.node
class PendingPaymentNode:
    """Validates: payment still PENDING."""

    def __init__(self, fresh: FreshSignalNode) -> None:
        self.payment = fresh.payment
        self.request = fresh.request

    @classmethod
    def __compose__(cls, fresh: FreshSignalNode) -> "PendingPaymentNode":
        if fresh.payment.status != PaymentStatus.PENDING:
            raise NodeError("Not pending")
        return cls(fresh)


@G.node
class ConfirmedSignalNode:
    """Validates: success event with status "success"."""

    def __init__(self, pending: PendingPaymentNode) -> None:
        self.payment = pending.payment
        self.request = pending.request

    @classmethod
    def __compose__(cls, pending: PendingPaymentNode) -> "ConfirmedSignalNode":
        if not pending.request.signal.confirms_success:
            raise NodeError("Not a confirmed success")
        return cls(pending)


@G.node
class DeclinedSignalNode:
    """Validates: failed or cancelled event."""

    def __init__(self, pending: PendingPaymentNode) -> None:
        self.payment = pending.payment
        self.request = pending.request

    @classmethod
    def __compose__(cls, pending: PendingPaymentNode) -> "DeclinedSignalNode":
        if pending.request.signal.kind != EventKind.FAILURE:
            raise NodeError("Not a failure")
        return cls(pending)


@G.node
class InformationalSignalNode:
    """
    Validates: anything else on a PENDING payment.

    Note: Includes payment.success whose status is not "success".
    """

    def __init__(self, pending: PendingPaymentNode) -> None:
        self.payment = pending.payment
        self.request = pending.request

    @classmethod
    def __compose__(cls, pending: PendingPaymentNode) -> "InformationalSignalNode":
        signal = pending.request.signal
        if signal.confirms_success or signal.kind == EventKind.FAILURE:
            raise NodeError("Actionable signal")
        return cls(pending)


# ═══════════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════════


async def _snapshot(
    deps: Collaborators, payment_id: str
) -> Result[tuple[Payment, list[Ticket]], ServiceError]:
    match await deps.payments.get(payment_id):
        case Error(err):
            return Error(Errors.storage(err))
        case Ok(None):
            return Error(Errors.not_found("Payment", payment_id))
        case Ok(payment):
            match await deps.pool.for_payment(payment.id):
                case Ok(tickets):
                    return Ok((payment, tickets))
                case Error(err):
                    return Error(Errors.storage(err))


async def _record(
    request: ConfirmationRequest, payment_id: str
) -> Result[bool, ServiceError]:
    """Ok(True) if we wrote the key, Ok(False) if someone else did first."""
    match await request.deps.ledger.record(request.key, payment_id):
        case Ok(_):
            return Ok(True)
        case Error(LedgerError(kind=LedgerErrorKind.ALREADY_RECORDED)):
            return Ok(False)
        case Error(err):
            return Error(Errors.storage(StoreError(err.message, err.cause)))


async def _remember(request: ConfirmationRequest, payment_id: str) -> None:
    """Record after a won transition. The transition stands either way."""
    match await _record(request, payment_id):
        case Ok(True):
            pass
        case Ok(False):
            logger.info("ledger_already_recorded", key=request.key, payment_id=payment_id)
        case Error(err):
            logger.error(
                "ledger_record_failed",
                key=request.key,
                payment_id=payment_id,
                reason=err.message,
            )


async def _flag_reconciliation(
    deps: Collaborators, payment_id: str, required: bool = True
) -> None:
    match await deps.payments.flag_reconciliation(payment_id, required):
        case Ok(_):
            pass
        case Error(err):
            logger.error(
                "reconciliation_flag_failed",
                payment_id=payment_id,
                required=required,
                reason=err.message,
            )


def _in_flight(payment: Payment, tickets: list[Ticket]) -> bool:
    """COMPLETED by another handler that has neither bound a ticket nor flagged it yet."""
    return (
        payment.status == PaymentStatus.COMPLETED
        and not tickets
        and not payment.reconciliation_required
    )


async def _await_winner(
    deps: Collaborators, payment_id: str
) -> Result[tuple[Payment, list[Ticket]], ServiceError]:
    """Re-read until the payment leaves the in-flight state or settle_timeout runs out."""
    deadline = time.monotonic() + deps.settle_timeout
    while True:
        snapshot = await _snapshot(deps, payment_id)
        match snapshot:
            case Ok((payment, tickets)) if (
                _in_flight(payment, tickets) and time.monotonic() < deadline
            ):
                await asyncio.sleep(_SETTLE_POLL_SECONDS)
            case _:
                return snapshot


async def _yield_to_winner(request: ConfirmationRequest, payment_id: str) -> Resolution:
    """Lost the status transition: report what the winner settled, leave the key to it."""
    match await _await_winner(request.deps, payment_id):
        case Ok((payment, tickets)):
            return Ok(Duplicate(payment, tickets))
        case Error(err):
            return Error(err)


async def _fulfil(request: ConfirmationRequest, completed: Payment) -> Resolution:
    """Bind one ticket to a COMPLETED payment, then record the key."""
    deps = request.deps

    match await deps.assigner.assign(completed.zone_id, completed.id):
        case Ok(ticket):
            if completed.reconciliation_required:
                await _flag_reconciliation(deps, completed.id, required=False)
                completed = replace(completed, reconciliation_required=False)
            outcome: Outcome = TicketIssued(completed, ticket)
        case Error(AssignError(kind=AssignErrorKind.NO_TICKET_AVAILABLE)):
            await _flag_reconciliation(deps, completed.id)
            logger.error(
                "inventory_exhausted",
                payment_id=completed.id,
                zone_id=completed.zone_id,
                reconciliation_required=True,
            )
            outcome = InventoryExhausted(replace(completed, reconciliation_required=True))
        case Error(err):
            # A concurrent retry may have bound the ticket first.
            match await _snapshot(deps, completed.id):
                case Ok((payment, tickets)) if tickets:
                    return Ok(Duplicate(payment, tickets))
                case _:
                    pass
            # Completed without a ticket: the next redelivery assigns again.
            await _flag_reconciliation(deps, completed.id)
            logger.error(
                "ticket_assignment_failed",
                payment_id=completed.id,
                zone_id=completed.zone_id,
                reason=err.message,
                reconciliation_required=True,
            )
            return Error(ServiceError(ErrorKind.STORAGE, err.message, err))

    await _remember(request, completed.id)
    return Ok(outcome)


async def _settle(request: ConfirmationRequest, payment_id: str) -> Resolution:
    """
    Fresh key for a payment that is already terminal.

    Note: A COMPLETED payment without a ticket gets another assignment
    attempt when the signal confirms success. Anything else is recorded
    and reported as it is: Duplicate for a repeated success, AlreadySettled
    for a new event.
    """
    match await _snapshot(request.deps, payment_id):
        case Error(err):
            return Error(err)
        case Ok((payment, tickets)) if _in_flight(payment, tickets):
            match await _await_winner(request.deps, payment_id):
                case Error(err):
                    return Error(err)
                case Ok((payment, tickets)) if not _in_flight(payment, tickets):
                    return Ok(Duplicate(payment, tickets))
                case Ok((payment, tickets)):
                    logger.warning("settle_wait_expired", payment_id=payment.id)
        case Ok((payment, tickets)):
            pass

    if (
        payment.status == PaymentStatus.COMPLETED
        and not tickets
        and request.signal.confirms_success
    ):
        logger.info(
            "assignment_retry",
            payment_id=payment.id,
            reconciliation_required=payment.reconciliation_required,
        )
        return await _fulfil(request, payment)

    # Success for a payment it already completed is the same notification again
    repeat = payment.status == PaymentStatus.COMPLETED and request.signal.confirms_success

    match await _record(request, payment.id):
        case Error(err):
            return Error(err)
        case Ok(True) if not repeat:
            return Ok(AlreadySettled(payment, tickets))
        case Ok(_):
            return Ok(Duplicate(payment, tickets))


# ═══════════════════════════════════════════════════════════════════════════════
# Polymorphic Outcome: Each case uses one validated state node
# ═══════════════════════════════════════════════════════════════════════════════


@polymorphic[Resolution]
class ConfirmationOutcome:
    """
    Polymorphic router — the first case whose dependency resolves runs.

    Note: Only the winning case performs writes.
    """

    @case
    def storage_failure(cls, node: StorageFailureNode) -> Resolution:
        logger.error(
            "confirmation_storage_failure",
            gateway_ref=node.request.signal.gateway_ref,
            reason=node.error.message,
        )
        return Error(Errors.storage(node.error))

    @case
    async def duplicate(cls, node: SeenSignalNode) -> Resolution:
        """Redelivery: report the prior resolution, run nothing."""
        logger.info(
            "signal_duplicate",
            key=node.request.key,
            payment_id=node.resolved_payment_id,
        )
        match await _snapshot(node.request.deps, node.resolved_payment_id):
            case Ok((payment, tickets)):
                return Ok(Duplicate(payment, tickets))
            case Error(err):
                return Error(err)

    @case
    def unknown_payment(cls, node: UnknownPaymentNode) -> Resolution:
        gateway_ref = node.request.signal.gateway_ref
        logger.warning("signal_unknown_payment", gateway_ref=gateway_ref)
        return Error(Errors.not_found("Payment", gateway_ref))

    @case
    async def already_settled(cls, node: SettledPaymentNode) -> Resolution:
        logger.info(
            "signal_for_settled_payment",
            payment_id=node.payment.id,
            status=node.payment.status.value,
        )
        return await _settle(node.request, node.payment.id)

    @case
    async def confirm(cls, node: ConfirmedSignalNode) -> Resolution:
        """PENDING → COMPLETED, then exactly one ticket."""
        request = node.request
        deps = request.deps

        match await deps.payments.complete(
            node.payment.id, request.signal.transaction_id, utcnow()
        ):
            case Error(err):
                return Error(Errors.storage(err))
            case Ok(None):
                logger.info("transition_lost", payment_id=node.payment.id)
                return await _yield_to_winner(request, node.payment.id)
            case Ok(completed):
                pass

        logger.info(
            "payment_completed",
            payment_id=completed.id,
            transaction_id=completed.transaction_id,
        )

        return await _fulfil(request, completed)

    @case
    async def decline(cls, node: DeclinedSignalNode) -> Resolution:
        """PENDING → FAILED."""
        request = node.request

        match await request.deps.payments.fail(node.payment.id, utcnow()):
            case Error(err):
                return Error(Errors.storage(err))
            case Ok(None):
                logger.info("transition_lost", payment_id=node.payment.id)
                return await _settle(request, node.payment.id)
            case Ok(failed):
                logger.info(
                    "payment_failed",
                    payment_id=failed.id,
                    event=request.signal.event,
                )
                await _remember(request, failed.id)
                return Ok(PaymentDeclined(failed))

    @case
    async def acknowledge(cls, node: InformationalSignalNode) -> Resolution:
        """Record only."""
        request = node.request
        logger.info(
            "signal_acknowledged",
            payment_id=node.payment.id,
            event=request.signal.event,
            status=request.signal.status,
        )
        match await _record(request, node.payment.id):
            case Error(err):
                return Error(err)
            case Ok(True):
                return Ok(Acknowledged(node.payment, request.signal.event))
            case Ok(False):
                match await _snapshot(request.deps, node.payment.id):
                    case Ok((payment, tickets)):
                        return Ok(Duplicate(payment, tickets))
                    case Error(err):
                        return Error(err)


# ═══════════════════════════════════════════════════════════════════════════════
# Final Node
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class ConfirmationResultNode:
    def __init__(self, resolution: Resolution) -> None:
        self.resolution = resolution

    @classmethod
    def __compose__(cls, outcome: ConfirmationOutcome) -> "ConfirmationResultNode":
        return cls(outcome.value)

    def to_result(self) -> Resolution:
        return self.resolution


__all__ = (
    "ConfirmationRequest",
    "ConfirmationOutcome",
    "ConfirmationResultNode",
    "Resolution",
)
