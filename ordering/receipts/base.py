from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class ReceiptMessage:
    tenant_id: int
    to_email: str
    subject: str
    text: str
    template: str
    reply_to: str | None = None
    context: dict[str, Any] = field(default_factory=dict)


@dataclass
class ReceiptSendResult:
    status: str
    provider_message_id: str | None = None
    error: str | None = None
    response_payload: dict[str, Any] | None = None

    @property
    def ok(self) -> bool:
        return self.status == "sent"


class ReceiptProvider(Protocol):
    name: str

    def send(self, message: ReceiptMessage) -> ReceiptSendResult:
        ...


SENSITIVE_KEYS = {"api_key", "authorization", "token", "x-api-key"}


def _mask_value(value: Any) -> Any:
    if value is None:
        return None
    text = str(value)
    if len(text) <= 4:
        return "****"
    return f"****{text[-4:]}"


def sanitize_payload(payload: dict[str, Any]) -> dict[str, Any]:
    def _sanitize(value: Any) -> Any:
        if isinstance(value, dict):
            return {
                key: _mask_value(inner) if str(key).lower() in SENSITIVE_KEYS else _sanitize(inner)
                for key, inner in value.items()
            }
        if isinstance(value, list):
            return [_sanitize(item) for item in value]
        return value

    return _sanitize(payload)


def safe_json(payload: dict[str, Any]) -> str:
    try:
        return json.dumps(payload, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return "{}"
