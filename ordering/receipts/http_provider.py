from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable

import httpx

from ordering.core.config import (
    RECEIPT_API_KEY,
    RECEIPT_API_URL,
    RECEIPT_FROM_EMAIL,
    RECEIPT_TIMEOUT_SECONDS,
)
from ordering.receipts.base import ReceiptMessage, ReceiptSendResult, safe_json, sanitize_payload
from ordering.services.tenant_backoff import InMemoryTenantBackoffService

logger = logging.getLogger(__name__)
_backoff_service = InMemoryTenantBackoffService()


class HttpReceiptProvider:
    """Posts the rendered receipt as JSON to an outbound mail API."""

    name = "http"
    MAX_RETRIES = 3
    INTEGRATION_NAME = "receipt_http"

    def __init__(
        self,
        *,
        api_url: str = RECEIPT_API_URL,
        api_key: str = RECEIPT_API_KEY,
        from_email: str = RECEIPT_FROM_EMAIL,
        timeout_seconds: float = RECEIPT_TIMEOUT_SECONDS,
        backoff: InMemoryTenantBackoffService | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.from_email = from_email
        self.timeout_seconds = timeout_seconds
        self.backoff = backoff or _backoff_service
        self._transport = transport
        self._sleep = sleep

    @property
    def is_configured(self) -> bool:
        return bool(self.api_url)

    def _build_payload(self, message: ReceiptMessage) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "to": message.to_email,
            "from": self.from_email or None,
            "subject": message.subject,
            "text": message.text,
            "tags": {"tenant_id": message.tenant_id, "template": message.template},
        }
        if message.reply_to:
            payload["reply_to"] = message.reply_to
        return payload

    def _register_failure(self, tenant_id: int) -> None:
        failures = self.backoff.register_failure(tenant_id=tenant_id, integration=self.INTEGRATION_NAME)
        if failures == self.backoff.threshold:
            logger.warning(
                "[RECEIPTS] tenant integration failure threshold reached tenant_id=%s failures=%s",
                tenant_id,
                failures,
                extra={"integration": self.INTEGRATION_NAME},
            )

    def send(self, message: ReceiptMessage) -> ReceiptSendResult:
        if not self.is_configured:
            return ReceiptSendResult(status="failed", error="RECEIPT_API_URL is not configured")

        payload = self._build_payload(message)
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        last_error: str | None = None
        for attempt in range(1, self.MAX_RETRIES + 1):
            decision = self.backoff.before_request(tenant_id=message.tenant_id, integration=self.INTEGRATION_NAME)
            if decision.delay_seconds > 0:
                logger.warning(
                    "[RECEIPTS] backoff tenant_id=%s delay=%.1fs failures=%s",
                    message.tenant_id,
                    decision.delay_seconds,
                    decision.consecutive_failures,
                    extra={"integration": self.INTEGRATION_NAME},
                )
                self._sleep(decision.delay_seconds)

            try:
                with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
                    response = client.post(self.api_url, headers=headers, json=payload)
            except httpx.HTTPError as exc:
                last_error = str(exc) or exc.__class__.__name__
                self._register_failure(message.tenant_id)
            else:
                if 200 <= response.status_code < 300:
                    self.backoff.register_success(tenant_id=message.tenant_id, integration=self.INTEGRATION_NAME)
                    try:
                        data = response.json()
                    except json.JSONDecodeError:
                        data = {"raw": response.text}
                    provider_id = data.get("id") if isinstance(data, dict) else None
                    return ReceiptSendResult(
                        status="sent",
                        provider_message_id=provider_id,
                        response_payload=sanitize_payload(data) if isinstance(data, dict) else None,
                    )
                last_error = f"Receipt API {response.status_code}: {response.text[:200]}"
                self._register_failure(message.tenant_id)

            logger.info(
                "[RECEIPTS] attempt %s/%s failed tenant_id=%s error=%s",
                attempt,
                self.MAX_RETRIES,
                message.tenant_id,
                last_error,
            )

        logger.error(
            "[RECEIPTS] giving up tenant_id=%s payload=%s",
            message.tenant_id,
            safe_json(sanitize_payload(payload)),
            extra={"integration": self.INTEGRATION_NAME},
        )
        return ReceiptSendResult(status="failed", error=last_error)
