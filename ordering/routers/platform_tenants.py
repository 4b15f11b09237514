from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from ordering.core.database import get_db
from ordering.deps import get_tenant_resolver, require_platform_admin
from ordering.services.tenant_directory import (
    create_tenant,
    deactivate_tenant,
    tenant_to_dict,
    update_tenant,
)
from ordering.services.tenant_resolver import TenantResolver

router = APIRouter(
    prefix="/api/platform",
    tags=["platform"],
    dependencies=[Depends(require_platform_admin)],
)


class TenantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=80)
    custom_domain: Optional[str] = Field(None, max_length=255)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(None, max_length=30)
    brand_color: Optional[str] = Field(None, max_length=20)


class TenantUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=80)
    custom_domain: Optional[str] = Field(None, max_length=255)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(None, max_length=30)
    brand_color: Optional[str] = Field(None, max_length=20)
    is_active: Optional[bool] = None


@router.post("/tenants", status_code=status.HTTP_201_CREATED)
def create_platform_tenant(
    payload: TenantCreate,
    db: Session = Depends(get_db),
    resolver: TenantResolver = Depends(get_tenant_resolver),
):
    tenant = create_tenant(
        db,
        name=payload.name,
        slug=payload.slug or payload.name,
        custom_domain=payload.custom_domain,
        contact_email=str(payload.contact_email) if payload.contact_email else None,
        contact_phone=payload.contact_phone,
        brand_color=payload.brand_color,
        resolver=resolver,
    )
    return tenant_to_dict(tenant)


@router.patch("/tenants/{tenant_id}")
def update_platform_tenant(
    tenant_id: int,
    payload: TenantUpdate,
    db: Session = Depends(get_db),
    resolver: TenantResolver = Depends(get_tenant_resolver),
):
    changes = payload.model_dump(exclude_unset=True)
    if "contact_email" in changes and changes["contact_email"] is not None:
        changes["contact_email"] = str(changes["contact_email"])
    tenant = update_tenant(db, tenant_id, changes, resolver=resolver)
    return tenant_to_dict(tenant)


@router.post("/tenants/{tenant_id}/deactivate")
def deactivate_platform_tenant(
    tenant_id: int,
    db: Session = Depends(get_db),
    resolver: TenantResolver = Depends(get_tenant_resolver),
):
    return tenant_to_dict(deactivate_tenant(db, tenant_id, resolver=resolver))


@router.get("/tenant-cache")
def get_tenant_cache_health(resolver: TenantResolver = Depends(get_tenant_resolver)):
    return resolver.health()
