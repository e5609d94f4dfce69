"""
Confirmation — settle payments exactly once, issue exactly one ticket.

    from wifiticket import confirmation as CF

    orchestrator = CF.ConfirmationOrchestrator(
        webhook_secret=secret,
        gateway=gateway,
        ledger=ledger,
        payments=payments,
        pool=pool,
    )

    match await orchestrator.handle_completion_signal(raw_body, signature):
        case Ok(CF.TicketIssued(payment, ticket)): ...
        case Ok(CF.Duplicate(payment, tickets)): ...
        case Ok(outcome): ...
        case Error(err): ...

    view = await orchestrator.poll_status(payment_id_or_ref)
"""

from wifiticket.confirmation._types import (
    TicketIssued,
    InventoryExhausted,
    Duplicate,
    AlreadySettled,
    PaymentDeclined,
    Acknowledged,
    Outcome,
    Fulfilment,
    PaymentView,
    Collaborators,
)
from wifiticket.confirmation._graph import (
    ConfirmationRequest,
    ConfirmationOutcome,
    ConfirmationResultNode,
)
from wifiticket.confirmation._orchestrator import ConfirmationOrchestrator

__all__ = (
    # Outcomes
    "TicketIssued",
    "InventoryExhausted",
    "Duplicate",
    "AlreadySettled",
    "PaymentDeclined",
    "Acknowledged",
    "Outcome",
    "Fulfilment",
    "PaymentView",
    "Collaborators",
    # Graph
    "ConfirmationRequest",
    "ConfirmationOutcome",
    "ConfirmationResultNode",
    # Orchestrator
    "ConfirmationOrchestrator",
)
