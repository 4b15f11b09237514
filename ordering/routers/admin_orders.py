from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ordering.core.database import get_db
from ordering.deps import require_staff_tenant_access, require_tenant
from ordering.services.order_events import emit_order_status_changed
from ordering.services.order_store import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    OrderFilters,
    cancel_order,
    get_order,
    list_orders,
    order_to_dict,
    transition_order,
)
from ordering.services.tenant_resolver import TenantRecord

router = APIRouter(prefix="/api/admin", tags=["admin-orders"])


class OrderStatusUpdate(BaseModel):
    status: str = Field(..., min_length=1)


@router.get("/orders")
def list_admin_orders(
    status: Optional[str] = Query(None),
    order_type: Optional[str] = Query(None),
    payment_method: Optional[str] = Query(None),
    payment_status: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    tenant: TenantRecord = Depends(require_tenant),
    _staff: Any = Depends(require_staff_tenant_access),
    db: Session = Depends(get_db),
):
    filters = OrderFilters(
        status=status,
        order_type=order_type,
        payment_method=payment_method,
        payment_status=payment_status,
        created_from=date_from,
        created_to=date_to,
    )
    result = list_orders(db, tenant.id, filters, page=page, limit=limit)
    return {
        "orders": [order_to_dict(order) for order in result.orders],
        "pagination": result.pagination(),
    }


@router.get("/orders/{order_id}")
def get_admin_order(
    order_id: int,
    tenant: TenantRecord = Depends(require_tenant),
    _staff: Any = Depends(require_staff_tenant_access),
    db: Session = Depends(get_db),
):
    return {"order": order_to_dict(get_order(db, tenant.id, order_id))}


@router.patch("/orders/{order_id}/status")
def update_admin_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    tenant: TenantRecord = Depends(require_tenant),
    _staff: Any = Depends(require_staff_tenant_access),
    db: Session = Depends(get_db),
):
    previous_status = get_order(db, tenant.id, order_id).status
    order = transition_order(db, tenant.id, order_id, payload.status)
    emit_order_status_changed(order, previous_status, tenant, background_tasks=background_tasks)
    return {"order": order_to_dict(order)}


@router.post("/orders/{order_id}/cancel")
def cancel_admin_order(
    order_id: int,
    background_tasks: BackgroundTasks,
    tenant: TenantRecord = Depends(require_tenant),
    _staff: Any = Depends(require_staff_tenant_access),
    db: Session = Depends(get_db),
):
    previous_status = get_order(db, tenant.id, order_id).status
    order = cancel_order(db, tenant.id, order_id)
    emit_order_status_changed(order, previous_status, tenant, background_tasks=background_tasks)
    return {"order": order_to_dict(order)}
