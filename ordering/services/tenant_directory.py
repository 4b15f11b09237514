from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ordering.core.config import RESERVED_SUBDOMAINS
from ordering.core.errors import TenantConflict, TenantNotFound, ValidationFailed
from ordering.models.tenant import Tenant
from ordering.services.tenant_resolver import TenantResolver, tenant_resolver
from ordering.utils.slug import is_valid_domain, is_valid_slug, normalize_domain, normalize_slug

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "slug", "custom_domain", "contact_email", "contact_phone", "brand_color", "is_active")


def _clean_slug(value: str) -> str:
    slug = normalize_slug(value)
    if not is_valid_slug(slug):
        raise ValidationFailed("Invalid slug")
    if slug in RESERVED_SUBDOMAINS:
        raise ValidationFailed(f"Slug '{slug}' is reserved")
    return slug


def _clean_domain(value: str | None) -> str | None:
    domain = normalize_domain(value)
    if domain is None:
        return None
    if not is_valid_domain(domain):
        raise ValidationFailed("Invalid custom domain")
    return domain


def _ensure_unique(db: Session, *, slug: str | None, custom_domain: str | None, exclude_id: int | None = None) -> None:
    clauses = []
    if slug:
        # slug e domínio compartilham o mesmo espaço de chaves no cache
        clauses.extend([Tenant.slug == slug, Tenant.custom_domain == slug])
    if custom_domain:
        clauses.extend([Tenant.slug == custom_domain, Tenant.custom_domain == custom_domain])
    if not clauses:
        return
    query = db.query(Tenant.id).filter(or_(*clauses))
    if exclude_id is not None:
        query = query.filter(Tenant.id != exclude_id)
    if query.first():
        raise TenantConflict()


def _commit(db: Session, tenant: Tenant) -> Tenant:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise TenantConflict() from exc
    db.refresh(tenant)
    return tenant


def get_tenant(db: Session, tenant_id: int) -> Tenant:
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
    if not tenant:
        raise TenantNotFound()
    return tenant


def create_tenant(
    db: Session,
    *,
    name: str,
    slug: str,
    custom_domain: str | None = None,
    contact_email: str | None = None,
    contact_phone: str | None = None,
    brand_color: str | None = None,
    resolver: TenantResolver | None = None,
) -> Tenant:
    name = (name or "").strip()
    if not name:
        raise ValidationFailed("Restaurant name is required")
    slug = _clean_slug(slug or name)
    custom_domain = _clean_domain(custom_domain)
    _ensure_unique(db, slug=slug, custom_domain=custom_domain)

    tenant = Tenant(
        name=name,
        slug=slug,
        custom_domain=custom_domain,
        is_active=True,
        contact_email=contact_email,
        contact_phone=contact_phone,
        brand_color=brand_color,
    )
    db.add(tenant)
    tenant = _commit(db, tenant)
    (resolver or tenant_resolver).invalidate()
    logger.info("Tenant created id=%s slug=%s domain=%s", tenant.id, tenant.slug, tenant.custom_domain)
    return tenant


def update_tenant(
    db: Session,
    tenant_id: int,
    changes: dict[str, Any],
    *,
    resolver: TenantResolver | None = None,
) -> Tenant:
    tenant = get_tenant(db, tenant_id)
    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationFailed(f"Unknown tenant fields: {', '.join(sorted(unknown))}")

    changes = dict(changes)
    if "name" in changes:
        changes["name"] = (changes["name"] or "").strip()
        if not changes["name"]:
            raise ValidationFailed("Restaurant name is required")
    if "slug" in changes:
        changes["slug"] = _clean_slug(changes["slug"] or "")
    if "custom_domain" in changes:
        changes["custom_domain"] = _clean_domain(changes["custom_domain"])

    _ensure_unique(
        db,
        slug=changes.get("slug"),
        custom_domain=changes.get("custom_domain"),
        exclude_id=tenant.id,
    )
    for field, value in changes.items():
        setattr(tenant, field, value)

    tenant = _commit(db, tenant)
    (resolver or tenant_resolver).invalidate()
    logger.info("Tenant updated id=%s fields=%s", tenant.id, ",".join(sorted(changes)))
    return tenant


def deactivate_tenant(db: Session, tenant_id: int, *, resolver: TenantResolver | None = None) -> Tenant:
    tenant = get_tenant(db, tenant_id)
    tenant.is_active = False
    tenant = _commit(db, tenant)
    (resolver or tenant_resolver).invalidate()
    logger.info("Tenant deactivated id=%s slug=%s", tenant.id, tenant.slug)
    return tenant


def tenant_to_dict(tenant: Tenant) -> dict[str, Any]:
    return {
        "id": tenant.id,
        "name": tenant.name,
        "slug": tenant.slug,
        "custom_domain": tenant.custom_domain,
        "is_active": tenant.is_active,
        "contact_email": tenant.contact_email,
        "contact_phone": tenant.contact_phone,
        "brand_color": tenant.brand_color,
        "created_at": tenant.created_at.isoformat() if tenant.created_at else None,
    }
