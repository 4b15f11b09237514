from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ordering.core.database import get_db
from ordering.deps import require_tenant
from ordering.models.combo_type import ComboType
from ordering.services import catalog
from ordering.services.tenant_resolver import TenantRecord

router = APIRouter(prefix="/api", tags=["combos"])


class ComboTypeOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    base_price_cents: int
    base_item_count: int
    additional_item_price_cents: Optional[int] = None
    included_side_count: int
    is_global: bool


class SelectableItemOut(BaseModel):
    id: int
    name: str
    price_cents: int
    category_id: Optional[int] = None
    role: str
    display_order: int


class ComboDetailOut(ComboTypeOut):
    selectable_items: List[SelectableItemOut]


def _combo_to_dict(combo: ComboType) -> dict:
    return {
        "id": combo.id,
        "name": combo.name,
        "description": combo.description,
        "base_price_cents": combo.base_price_cents,
        "base_item_count": combo.base_item_count,
        "additional_item_price_cents": combo.additional_item_price_cents,
        "included_side_count": combo.included_side_count or 0,
        "is_global": combo.tenant_id is None,
    }


@router.get("/combos", response_model=List[ComboTypeOut])
def list_combos(
    tenant: TenantRecord = Depends(require_tenant),
    db: Session = Depends(get_db),
):
    return [_combo_to_dict(combo) for combo in catalog.list_combo_types(db, tenant.id)]


@router.get("/combos/{combo_type_id}", response_model=ComboDetailOut)
def get_combo(
    combo_type_id: int,
    tenant: TenantRecord = Depends(require_tenant),
    db: Session = Depends(get_db),
):
    combo = catalog.get_combo_type(db, tenant.id, combo_type_id)
    if not combo:
        raise HTTPException(status_code=404, detail="Combo not found")
    return {
        **_combo_to_dict(combo),
        "selectable_items": catalog.list_selectable_items(db, tenant.id, combo.id),
    }
