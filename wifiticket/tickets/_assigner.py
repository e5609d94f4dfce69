"""
Atomic ticket assigner.

    assigner = TicketAssigner(pool)
    match await assigner.assign(zone_id, payment_id):
        case Ok(ticket): ...
        case Error(AssignError(kind=AssignErrorKind.NO_TICKET_AVAILABLE)): ...
        case Error(err): ...

A STORAGE error is retried once (two attempts total). NO_TICKET_AVAILABLE
is terminal and never retried.
"""

from __future__ import annotations

from kungfu import Result, Ok, Error, LazyCoroResult
from combinators import flow

from wifiticket._types import utcnow
from wifiticket.log import get_logger
from wifiticket.tickets._types import Ticket, AssignError, AssignErrorKind
from wifiticket.tickets._store import TicketPool


logger = get_logger("tickets.assigner")


def _is_transient(err: AssignError) -> bool:
    return err.kind == AssignErrorKind.STORAGE


class TicketAssigner:
    def __init__(self, pool: TicketPool, attempts: int = 2) -> None:
        self._pool = pool
        self._attempts = attempts

    async def assign(self, zone_id: str, payment_id: str) -> Result[Ticket, AssignError]:
        return await (
            flow(LazyCoroResult(lambda: self._claim(zone_id, payment_id)))
            .retry(times=self._attempts, retry_on=_is_transient)
            .tap(
                lambda t: logger.info(
                    "ticket_assigned",
                    zone_id=zone_id,
                    payment_id=payment_id,
                    ticket_id=t.id,
                )
            )
            .tap_err(
                lambda e: logger.warning(
                    "ticket_assignment_failed",
                    zone_id=zone_id,
                    payment_id=payment_id,
                    kind=e.kind.name,
                    reason=e.message,
                )
            )
            .compile()
        )

    async def _claim(self, zone_id: str, payment_id: str) -> Result[Ticket, AssignError]:
        match await self._pool.claim(zone_id, payment_id, utcnow()):
            case Ok(None):
                return Error(
                    AssignError(
                        AssignErrorKind.NO_TICKET_AVAILABLE,
                        f"No free ticket in zone {zone_id}",
                    )
                )
            case Ok(ticket):
                return Ok(ticket)
            case Error(err):
                logger.debug("ticket_claim_error", zone_id=zone_id, error=err.message)
                return Error(AssignError(AssignErrorKind.STORAGE, err.message, err))


__all__ = ("TicketAssigner",)
