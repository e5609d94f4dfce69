"""
Webhook payload parsing.

    {"event": "payment.success",
     "data": {"id": "py_123", "status": "success", "amount": 500,
              "currency": "XOF",
              "capture": {"gateway": {"transaction_id": "tx_9"}}}}
"""

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from kungfu import Result, Ok, Error

from wifiticket.gateway._types import CompletionSignal


class _CaptureGateway(BaseModel):
    model_config = ConfigDict(extra="ignore")

    transaction_id: str | None = None


class _Capture(BaseModel):
    model_config = ConfigDict(extra="ignore")

    gateway: _CaptureGateway | None = None


class WebhookData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    status: str | None = None
    amount: int | float | None = None
    currency: str | None = None
    capture: _Capture | None = None


class WebhookPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event: str = Field(min_length=1)
    data: WebhookData

    def to_signal(self) -> CompletionSignal:
        capture = self.data.capture
        transaction_id = (
            capture.gateway.transaction_id
            if capture is not None and capture.gateway is not None
            else None
        )
        return CompletionSignal(
            event=self.event,
            gateway_ref=self.data.id,
            status=self.data.status,
            amount=int(self.data.amount) if self.data.amount is not None else None,
            currency=self.data.currency,
            transaction_id=transaction_id,
        )


def parse_signal(raw: bytes) -> Result[CompletionSignal, str]:
    try:
        payload = WebhookPayload.model_validate_json(raw)
    except ValidationError as e:
        return Error(f"Invalid webhook payload: {e.error_count()} error(s)")
    return Ok(payload.to_signal())


__all__ = ("WebhookPayload", "WebhookData", "parse_signal")
