from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ordering.core.errors import ValidationFailed
from ordering.models.combo_availability import ComboAvailability
from ordering.models.combo_type import ComboType
from ordering.models.menu_category import MenuCategory
from ordering.models.menu_item import MenuItem
from ordering.services.combo_rules import effective_availability_id


logger = logging.getLogger(__name__)


def add_menu_item(
    db: Session,
    *,
    tenant_id: int,
    category_id: int,
    name: str,
    price_cents: int,
    is_available: bool = True,
) -> MenuItem:
    category = (
        db.query(MenuCategory)
        .filter(MenuCategory.id == category_id, MenuCategory.tenant_id == tenant_id)
        .first()
    )
    if not category:
        raise ValidationFailed("Category does not belong to this restaurant")
    if price_cents < 0:
        raise ValidationFailed("Price must not be negative")

    item = MenuItem(
        tenant_id=tenant_id,
        category_id=category.id,
        name=name.strip(),
        price_cents=int(price_cents),
        is_available=is_available,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def fetch_available_items(db: Session, tenant_id: int, item_ids: Iterable[int]) -> list[MenuItem]:
    ids = sorted({int(item_id) for item_id in item_ids})
    if not ids:
        return []
    return (
        db.query(MenuItem)
        .filter(
            MenuItem.id.in_(ids),
            MenuItem.tenant_id == tenant_id,
            MenuItem.is_available.is_(True),
        )
        .all()
    )


def _combo_scope_filter(tenant_id: int):
    return or_(ComboType.tenant_id == tenant_id, ComboType.tenant_id.is_(None))


def get_combo_type(db: Session, tenant_id: int, combo_type_id: int) -> ComboType | None:
    return (
        db.query(ComboType)
        .filter(ComboType.id == combo_type_id, _combo_scope_filter(tenant_id))
        .first()
    )


def list_combo_types(db: Session, tenant_id: int) -> list[ComboType]:
    return (
        db.query(ComboType)
        .filter(_combo_scope_filter(tenant_id))
        .order_by(ComboType.base_price_cents.asc(), ComboType.id.asc())
        .all()
    )


def fetch_available_combo_items(
    db: Session,
    tenant_id: int,
    availability_id: int,
    item_ids: Iterable[int],
) -> list[MenuItem]:
    """Available items of the tenant listed for ``availability_id`` in any role."""
    ids = sorted({int(item_id) for item_id in item_ids})
    if not ids:
        return []
    return (
        db.query(MenuItem)
        .join(ComboAvailability, ComboAvailability.menu_item_id == MenuItem.id)
        .filter(
            ComboAvailability.combo_type_id == availability_id,
            MenuItem.id.in_(ids),
            MenuItem.tenant_id == tenant_id,
            MenuItem.is_available.is_(True),
        )
        .distinct()
        .all()
    )


def list_selectable_items(db: Session, tenant_id: int, combo_type_id: int) -> list[dict]:
    availability_id = effective_availability_id(combo_type_id)
    rows = (
        db.query(MenuItem, ComboAvailability)
        .join(ComboAvailability, ComboAvailability.menu_item_id == MenuItem.id)
        .filter(
            ComboAvailability.combo_type_id == availability_id,
            MenuItem.tenant_id == tenant_id,
            MenuItem.is_available.is_(True),
        )
        .order_by(ComboAvailability.role.asc(), ComboAvailability.display_order.asc(), MenuItem.name.asc())
        .all()
    )
    return [
        {
            "id": item.id,
            "name": item.name,
            "price_cents": item.price_cents,
            "category_id": item.category_id,
            "role": availability.role,
            "display_order": availability.display_order,
        }
        for item, availability in rows
    ]
