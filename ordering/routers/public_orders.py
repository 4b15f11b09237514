from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from ordering.core.database import get_db
from ordering.deps import require_tenant
from ordering.schemas.cart import CustomerOrderSubmission
from ordering.services.order_events import emit_order_created
from ordering.services.order_store import order_to_dict, place_order
from ordering.services.tenant_resolver import TenantRecord

router = APIRouter(prefix="/api", tags=["orders"])


@router.post("/orders", status_code=status.HTTP_201_CREATED)
def create_customer_order(
    payload: CustomerOrderSubmission,
    background_tasks: BackgroundTasks,
    tenant: TenantRecord = Depends(require_tenant),
    db: Session = Depends(get_db),
):
    order = place_order(db, tenant, payload)
    emit_order_created(order, tenant, background_tasks=background_tasks)
    return {"order": order_to_dict(order)}
