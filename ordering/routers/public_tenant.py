from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ordering.deps import require_tenant
from ordering.services.tenant_resolver import TenantRecord

router = APIRouter(prefix="/public", tags=["public-tenant"])


class PublicTenantResponse(BaseModel):
    id: int
    name: str
    slug: str
    custom_domain: Optional[str]
    brand_color: Optional[str]
    contact_email: Optional[str]
    contact_phone: Optional[str]


@router.get("/tenant", response_model=PublicTenantResponse)
def get_public_tenant(tenant: TenantRecord = Depends(require_tenant)):
    return PublicTenantResponse(
        id=tenant.id,
        name=tenant.name,
        slug=tenant.slug,
        custom_domain=tenant.custom_domain,
        brand_color=tenant.brand_color,
        contact_email=tenant.contact_email,
        contact_phone=tenant.contact_phone,
    )
