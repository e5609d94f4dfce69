"""Test helpers shared across modules."""

import json
from typing import Any

from kungfu import Result, Ok, Error

from wifiticket import gateway as GW


WEBHOOK_SECRET = "whsec_test_secret"


def ok[T](result: Result[T, Any]) -> T:
    match result:
        case Ok(value):
            return value
        case Error(err):
            raise AssertionError(f"Expected Ok, got Error({err!r})")


def err[E](result: Result[Any, E]) -> E:
    match result:
        case Ok(value):
            raise AssertionError(f"Expected Error, got Ok({value!r})")
        case Error(e):
            return e


def webhook_body(
    event: str,
    gateway_ref: str,
    status: str | None = None,
    transaction_id: str | None = None,
) -> dict[str, Any]:
    data: dict[str, Any] = {"id": gateway_ref, "amount": 200, "currency": "XOF"}
    if status is not None:
        data["status"] = status
    if transaction_id is not None:
        data["capture"] = {"gateway": {"transaction_id": transaction_id}}
    return {"event": event, "data": data}


def signed(
    event: str,
    gateway_ref: str,
    status: str | None = None,
    transaction_id: str | None = None,
) -> tuple[bytes, str]:
    """Serialize a webhook body and sign it with the test secret."""
    raw = json.dumps(webhook_body(event, gateway_ref, status, transaction_id)).encode()
    return raw, GW.sign(WEBHOOK_SECRET, raw)
