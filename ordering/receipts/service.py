from __future__ import annotations

import logging
from typing import Any, Mapping

from ordering.core.config import IS_DEV, RECEIPT_PROVIDER, RECEIPTS_ENABLED
from ordering.receipts.base import ReceiptMessage, ReceiptProvider, ReceiptSendResult
from ordering.receipts.http_provider import HttpReceiptProvider
from ordering.receipts.mock_provider import MockReceiptProvider
from ordering.receipts.templates import render_template

logger = logging.getLogger(__name__)

STATUS_TEMPLATES = {
    "ready": "order_ready",
    "cancelled": "order_cancelled",
}


class ReceiptService:
    def __init__(
        self,
        *,
        provider_name: str = RECEIPT_PROVIDER,
        enabled: bool = RECEIPTS_ENABLED,
        mock_provider: MockReceiptProvider | None = None,
        http_provider: HttpReceiptProvider | None = None,
    ) -> None:
        self.provider_name = provider_name
        self.enabled = enabled
        self._mock_provider = mock_provider or MockReceiptProvider()
        self._http_provider = http_provider or HttpReceiptProvider()

    def _select_provider(self) -> ReceiptProvider:
        if self.provider_name == "http" and self._http_provider.is_configured:
            return self._http_provider
        if self.provider_name == "http":
            logger.warning("[RECEIPTS] http provider selected without RECEIPT_API_URL, using mock")
        return self._mock_provider

    def _should_fallback(self) -> bool:
        return IS_DEV

    def _deliver(self, message: ReceiptMessage) -> ReceiptSendResult:
        provider = self._select_provider()
        result = provider.send(message)
        if not result.ok and provider is self._http_provider and self._should_fallback():
            logger.warning("[RECEIPTS] http provider failed, using mock tenant_id=%s", message.tenant_id)
            return self._mock_provider.send(message)
        return result

    def send(
        self,
        template: str,
        order: dict[str, Any],
        tenant: dict[str, Any] | None,
        item_names: Mapping[int, str] | None = None,
    ) -> ReceiptSendResult | None:
        if not self.enabled:
            logger.debug("[RECEIPTS] disabled, skipping order_id=%s", order.get("id"))
            return None

        to_email = (order.get("customer") or {}).get("email")
        if not to_email:
            logger.info("[RECEIPTS] order without customer email order_id=%s", order.get("id"))
            return None

        subject, text = render_template(template, order, tenant, item_names)
        message = ReceiptMessage(
            tenant_id=int(order["tenant_id"]),
            to_email=to_email,
            subject=subject,
            text=text,
            template=template,
            reply_to=(tenant or {}).get("contact_email"),
            context={"order_id": order.get("id"), "order_number": order.get("order_number")},
        )
        result = self._deliver(message)
        if result.ok:
            logger.info(
                "[RECEIPTS] sent template=%s order_number=%s",
                template,
                order.get("order_number"),
                extra={"order_id": order.get("id"), "order_number": order.get("order_number")},
            )
        else:
            logger.warning(
                "[RECEIPTS] failed template=%s order_number=%s error=%s",
                template,
                order.get("order_number"),
                result.error,
                extra={"order_id": order.get("id"), "order_number": order.get("order_number")},
            )
        return result

    def send_order_receipt(
        self,
        order: dict[str, Any],
        tenant: dict[str, Any] | None,
        item_names: Mapping[int, str] | None = None,
    ) -> ReceiptSendResult | None:
        return self.send("order_receipt", order, tenant, item_names)

    def send_status_update(
        self,
        order: dict[str, Any],
        tenant: dict[str, Any] | None,
    ) -> ReceiptSendResult | None:
        template = STATUS_TEMPLATES.get(order.get("status") or "")
        if not template:
            return None
        return self.send(template, order, tenant)


receipt_service = ReceiptService()
