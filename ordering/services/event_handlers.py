from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from ordering.core.database import SessionLocal
from ordering.models.menu_item import MenuItem
from ordering.models.tenant import Tenant
from ordering.receipts.service import receipt_service
from ordering.services.event_bus import ORDER_CREATED, ORDER_STATUS_CHANGED, event_bus


def _with_session(handler):
    def wrapper(payload: dict) -> None:
        db: Session = SessionLocal()
        try:
            handler(db, payload)
        finally:
            db.close()

    wrapper.__name__ = handler.__name__
    return wrapper


def _combo_item_ids(order: dict[str, Any]) -> set[int]:
    ids: set[int] = set()
    for item in order.get("items") or []:
        if item.get("type") != "combo":
            continue
        ids.update(item.get("selected_entree_ids") or [])
        ids.update(item.get("additional_entree_ids") or [])
        if item.get("base_choice_id") is not None:
            ids.add(item["base_choice_id"])
    return ids


def _item_names(db: Session, tenant_id: int, item_ids: set[int]) -> dict[int, str]:
    if not item_ids:
        return {}
    rows = (
        db.query(MenuItem.id, MenuItem.name)
        .filter(MenuItem.tenant_id == tenant_id, MenuItem.id.in_(sorted(item_ids)))
        .all()
    )
    return {row.id: row.name for row in rows}


def _tenant_metadata(db: Session, payload: dict) -> dict[str, Any] | None:
    if payload.get("tenant"):
        return payload["tenant"]
    tenant = db.query(Tenant).filter(Tenant.id == payload["tenant_id"]).first()
    if not tenant:
        return None
    return {
        "id": tenant.id,
        "name": tenant.name,
        "slug": tenant.slug,
        "contact_email": tenant.contact_email,
        "contact_phone": tenant.contact_phone,
        "brand_color": tenant.brand_color,
    }


@_with_session
def handle_order_created(db: Session, payload: dict) -> None:
    order = payload["order"]
    names = _item_names(db, payload["tenant_id"], _combo_item_ids(order))
    receipt_service.send_order_receipt(order, _tenant_metadata(db, payload), names)


@_with_session
def handle_order_status_changed(db: Session, payload: dict) -> None:
    receipt_service.send_status_update(payload["order"], _tenant_metadata(db, payload))


def register_event_handlers() -> None:
    event_bus.subscribe(ORDER_CREATED, handle_order_created)
    event_bus.subscribe(ORDER_STATUS_CHANGED, handle_order_status_changed)
