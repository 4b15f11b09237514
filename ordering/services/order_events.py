from __future__ import annotations

from typing import Any

from fastapi import BackgroundTasks

from ordering.models.order import Order
from ordering.services.event_bus import ORDER_CREATED, ORDER_STATUS_CHANGED, event_bus
from ordering.services.order_store import order_to_dict
from ordering.services.tenant_resolver import TenantRecord


def _tenant_metadata(tenant: TenantRecord | None) -> dict[str, Any] | None:
    if tenant is None:
        return None
    return {
        "id": tenant.id,
        "name": tenant.name,
        "slug": tenant.slug,
        "contact_email": tenant.contact_email,
        "contact_phone": tenant.contact_phone,
        "brand_color": tenant.brand_color,
    }


def build_order_payload(
    order: Order,
    tenant: TenantRecord | None = None,
    previous_status: str | None = None,
) -> dict[str, Any]:
    return {
        "order_id": order.id,
        "tenant_id": order.tenant_id,
        "order_number": order.order_number,
        "status": order.status,
        "previous_status": previous_status,
        "order": order_to_dict(order),
        "tenant": _tenant_metadata(tenant),
    }


def _publish(event_name: str, payload: dict[str, Any], background_tasks: BackgroundTasks | None) -> None:
    # a background task roda depois do fechamento da sessão
    if background_tasks is not None:
        background_tasks.add_task(event_bus.emit, event_name, payload)
        return
    event_bus.emit(event_name, payload)


def emit_order_created(
    order: Order,
    tenant: TenantRecord | None = None,
    background_tasks: BackgroundTasks | None = None,
) -> None:
    _publish(ORDER_CREATED, build_order_payload(order, tenant), background_tasks)


def emit_order_status_changed(
    order: Order,
    previous_status: str | None,
    tenant: TenantRecord | None = None,
    background_tasks: BackgroundTasks | None = None,
) -> None:
    if previous_status and previous_status == order.status:
        return
    payload = build_order_payload(order, tenant, previous_status=previous_status)
    _publish(ORDER_STATUS_CHANGED, payload, background_tasks)
