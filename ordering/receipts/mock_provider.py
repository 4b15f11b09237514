from __future__ import annotations

import logging
import uuid

from ordering.receipts.base import ReceiptMessage, ReceiptSendResult

logger = logging.getLogger(__name__)


class MockReceiptProvider:
    name = "mock"

    def __init__(self) -> None:
        self.sent: list[ReceiptMessage] = []

    def send(self, message: ReceiptMessage) -> ReceiptSendResult:
        self.sent.append(message)
        provider_message_id = f"mock-{uuid.uuid4().hex[:10]}"
        logger.info(
            "[RECEIPTS] mock send tenant_id=%s template=%s to=%s subject=%s",
            message.tenant_id,
            message.template,
            message.to_email,
            message.subject,
            extra={"integration": self.name},
        )
        return ReceiptSendResult(status="sent", provider_message_id=provider_message_id)
