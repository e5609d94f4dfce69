"""
Error taxonomy.

Stores report StoreError. Services report ServiceError, whose kind decides
how the HTTP layer answers. Messages on ServiceError are internal: the API
never forwards them verbatim.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


# ═══════════════════════════════════════════════════════════════════════════════
# Store Error
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class StoreError:
    """Storage operation error."""

    message: str
    cause: Exception | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Service Error
# ═══════════════════════════════════════════════════════════════════════════════


class ErrorKind(Enum):
    """Kinds of service errors."""

    AUTHENTICATION = auto()  # Bad or missing webhook signature
    MALFORMED = auto()  # Payload could not be parsed
    VALIDATION = auto()  # Request rejected by business rules
    NOT_FOUND = auto()  # Unknown zone / payment / reference
    TRANSIENT = auto()  # Gateway timeout, network failure
    GATEWAY = auto()  # Gateway refused or answered garbage
    STORAGE = auto()  # Database failure


@dataclass(frozen=True, slots=True)
class ServiceError:
    """
    Service operation error.

    Note: cause keeps the lower-level error (StoreError, GatewayError, ...)
    for logging only.
    """

    kind: ErrorKind
    message: str
    cause: object | None = None


class Errors:
    @staticmethod
    def authentication(msg: str = "Invalid signature") -> ServiceError:
        return ServiceError(ErrorKind.AUTHENTICATION, msg)

    @staticmethod
    def malformed(msg: str) -> ServiceError:
        return ServiceError(ErrorKind.MALFORMED, msg)

    @staticmethod
    def validation(msg: str) -> ServiceError:
        return ServiceError(ErrorKind.VALIDATION, msg)

    @staticmethod
    def not_found(entity: str, ident: str) -> ServiceError:
        return ServiceError(ErrorKind.NOT_FOUND, f"{entity} {ident} not found")

    @staticmethod
    def transient(msg: str, cause: object | None = None) -> ServiceError:
        return ServiceError(ErrorKind.TRANSIENT, msg, cause)

    @staticmethod
    def gateway(msg: str, cause: object | None = None) -> ServiceError:
        return ServiceError(ErrorKind.GATEWAY, msg, cause)

    @staticmethod
    def storage(err: StoreError) -> ServiceError:
        return ServiceError(ErrorKind.STORAGE, err.message, err)


__all__ = (
    "StoreError",
    "ErrorKind",
    "ServiceError",
    "Errors",
)
