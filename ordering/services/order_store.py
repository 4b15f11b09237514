from __future__ import annotations

import logging
import math
import random
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ordering.core.config import ORDER_NUMBER_MAX_ATTEMPTS, ORDER_NUMBER_PREFIX
from ordering.core.errors import (
    InvalidTransition,
    NotCancelable,
    OrderNotFound,
    OrderNumberCollision,
    ValidationFailed,
)
from ordering.models.order import Order
from ordering.models.order_item import OrderItem
from ordering.services.order_codec import DisplayPayloadError, decode_display_payload
from ordering.services.order_composer import OrderGraph, TenantLike, compose
from ordering.services.order_status import (
    CANCELABLE_STATUSES,
    CANCELLED,
    ensure_transition,
    normalize_status,
)


logger = logging.getLogger(__name__)
ORDERS_PREFIX = "[ORDERS]"

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def generate_order_number(
    prefix: str = ORDER_NUMBER_PREFIX,
    *,
    now_ms: int | None = None,
    rng: random.Random | None = None,
) -> str:
    millis = int(time.time() * 1000) if now_ms is None else int(now_ms)
    suffix = (rng or random).randint(0, 999)
    return f"{prefix}{str(millis)[-6:]}{suffix:03d}"


def _is_order_number_violation(exc: IntegrityError) -> bool:
    return "order_number" in str(getattr(exc, "orig", exc)).lower()


def create_order(db: Session, graph: OrderGraph, *, order_number: str | None = None) -> Order:
    """Write the order and all of its items in one transaction."""
    order = Order(
        tenant_id=graph.tenant_id,
        order_number=order_number or generate_order_number(),
        customer_email=graph.customer_email,
        customer_first_name=graph.customer_first_name,
        customer_last_name=graph.customer_last_name,
        customer_phone=graph.customer_phone,
        customer_address=graph.customer_address,
        order_type=graph.order_type,
        payment_method=graph.payment_method,
        payment_status="pending",
        payment_reference=graph.payment_reference,
        subtotal_cents=graph.subtotal_cents,
        tax_cents=graph.tax_cents,
        delivery_fee_cents=graph.delivery_fee_cents,
        total_cents=graph.total_cents,
        status="pending",
        notes=graph.notes,
    )
    try:
        db.add(order)
        db.flush()
        for draft in graph.items:
            db.add(
                OrderItem(
                    tenant_id=graph.tenant_id,
                    order_id=order.id,
                    menu_item_id=draft.menu_item_id,
                    quantity=draft.quantity,
                    unit_price_cents=draft.unit_price_cents,
                    line_total_cents=draft.line_total_cents,
                    display_payload=draft.display_payload,
                )
            )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if _is_order_number_violation(exc):
            raise OrderNumberCollision(order_number=order.order_number) from exc
        raise
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(order)
    logger.info(
        "%s created tenant_id=%s order_number=%s items=%s total_cents=%s",
        ORDERS_PREFIX,
        order.tenant_id,
        order.order_number,
        len(graph.items),
        order.total_cents,
        extra={"order_id": order.id, "order_number": order.order_number},
    )
    return order


def place_order(
    db: Session,
    tenant: TenantLike,
    submission,
    *,
    max_attempts: int = ORDER_NUMBER_MAX_ATTEMPTS,
) -> Order:
    graph = compose(db, tenant, submission)
    attempts = max(int(max_attempts), 1)
    for attempt in range(1, attempts + 1):
        try:
            return create_order(db, graph)
        except OrderNumberCollision as exc:
            logger.warning(
                "%s order number collision tenant_id=%s attempt=%s/%s order_number=%s",
                ORDERS_PREFIX,
                graph.tenant_id,
                attempt,
                attempts,
                exc.details.get("order_number"),
            )
            if attempt == attempts:
                raise
    raise OrderNumberCollision()


def get_order(db: Session, tenant_id: int, order_id: int) -> Order:
    order = (
        db.query(Order)
        .filter(Order.id == order_id, Order.tenant_id == tenant_id)
        .first()
    )
    if not order:
        raise OrderNotFound()
    return order


def _compare_and_set_status(db: Session, order: Order, expected: str, new_status: str) -> bool:
    updated = (
        db.query(Order)
        .filter(
            Order.id == order.id,
            Order.tenant_id == order.tenant_id,
            Order.status == expected,
        )
        .update({Order.status: new_status}, synchronize_session=False)
    )
    if updated != 1:
        db.rollback()
        return False
    db.commit()
    db.refresh(order)
    return True


def transition_order(db: Session, tenant_id: int, order_id: int, new_status: str) -> Order:
    target = normalize_status(new_status)
    order = get_order(db, tenant_id, order_id)
    previous = order.status
    ensure_transition(previous, target)

    if not _compare_and_set_status(db, order, previous, target):
        # outro request mudou o status no meio do caminho
        db.refresh(order)
        raise InvalidTransition(
            f"Order status changed to {order.status} before the update",
            current_status=order.status,
            requested_status=target,
        )

    logger.info(
        "%s status changed tenant_id=%s order_id=%s %s->%s",
        ORDERS_PREFIX,
        tenant_id,
        order.id,
        previous,
        target,
        extra={"order_id": order.id, "order_number": order.order_number},
    )
    return order


def cancel_order(db: Session, tenant_id: int, order_id: int) -> Order:
    order = get_order(db, tenant_id, order_id)
    current = order.status
    if current not in CANCELABLE_STATUSES or not _compare_and_set_status(db, order, current, CANCELLED):
        db.refresh(order)
        raise NotCancelable(current_status=order.status)

    logger.info(
        "%s cancelled tenant_id=%s order_id=%s",
        ORDERS_PREFIX,
        tenant_id,
        order.id,
        extra={"order_id": order.id, "order_number": order.order_number},
    )
    return order


@dataclass
class OrderFilters:
    status: str | None = None
    order_type: str | None = None
    payment_method: str | None = None
    payment_status: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None


@dataclass
class OrderPage:
    orders: list[Order]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> dict[str, int]:
        return {"page": self.page, "limit": self.limit, "total": self.total, "pages": self.pages}


def list_orders(
    db: Session,
    tenant_id: int,
    filters: OrderFilters | None = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> OrderPage:
    filters = filters or OrderFilters()
    page = max(int(page), 1)
    limit = min(max(int(limit), 1), MAX_PAGE_SIZE)

    query = db.query(Order).filter(Order.tenant_id == tenant_id)
    if filters.status:
        query = query.filter(Order.status == normalize_status(filters.status))
    if filters.order_type:
        query = query.filter(Order.order_type == filters.order_type.strip().lower())
    if filters.payment_method:
        query = query.filter(Order.payment_method == filters.payment_method.strip().lower())
    if filters.payment_status:
        query = query.filter(Order.payment_status == filters.payment_status.strip().lower())
    if filters.created_from and filters.created_to and filters.created_from > filters.created_to:
        raise ValidationFailed("created_from must not be after created_to")
    if filters.created_from:
        query = query.filter(Order.created_at >= filters.created_from)
    if filters.created_to:
        query = query.filter(Order.created_at <= filters.created_to)

    total = query.count()
    orders = (
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return OrderPage(orders=orders, total=total, page=page, limit=limit)


def order_item_to_dict(item: OrderItem) -> dict[str, Any]:
    try:
        payload = decode_display_payload(item.display_payload).to_dict()
    except DisplayPayloadError:
        logger.warning(
            "%s undecodable display payload order_id=%s item_id=%s",
            ORDERS_PREFIX,
            item.order_id,
            item.id,
            exc_info=True,
        )
        payload = {"type": "unknown", "raw": item.display_payload}
    return {
        "id": item.id,
        "menu_item_id": item.menu_item_id,
        "quantity": item.quantity,
        "unit_price_cents": item.unit_price_cents,
        "line_total_cents": item.line_total_cents,
        **payload,
    }


def order_to_dict(order: Order) -> dict[str, Any]:
    return {
        "id": order.id,
        "tenant_id": order.tenant_id,
        "order_number": order.order_number,
        "status": order.status,
        "order_type": order.order_type,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "customer": {
            "email": order.customer_email,
            "first_name": order.customer_first_name,
            "last_name": order.customer_last_name,
            "phone": order.customer_phone,
            "address": order.customer_address,
        },
        "subtotal_cents": order.subtotal_cents,
        "tax_cents": order.tax_cents,
        "delivery_fee_cents": order.delivery_fee_cents,
        "total_cents": order.total_cents,
        "notes": order.notes,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "updated_at": order.updated_at.isoformat() if order.updated_at else None,
        "items": [order_item_to_dict(item) for item in order.items],
    }
