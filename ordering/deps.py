# ordering/deps.py
from __future__ import annotations

import hmac
import logging
from typing import Any

from fastapi import Depends, Header, HTTPException, Request, status

from ordering.core import config
from ordering.core.errors import TenantContextRequired, TenantNotFound
from ordering.middleware.tenant_context import get_request_resolver
from ordering.services.tenant_resolver import TenantRecord, TenantResolver

logger = logging.getLogger(__name__)


def get_tenant_resolver(request: Request) -> TenantResolver:
    return get_request_resolver(request)


def get_current_tenant(request: Request) -> TenantRecord | None:
    error = getattr(request.state, "tenant_error", None)
    if error is not None:
        raise error
    return getattr(request.state, "tenant", None)


def require_tenant(request: Request) -> TenantRecord:
    """Tenant resolvido pelo host; erro se o host não identifica um restaurante."""
    tenant = get_current_tenant(request)
    if tenant is not None:
        return tenant
    if getattr(request.state, "tenant_identifier", None):
        raise TenantNotFound()
    raise TenantContextRequired()


def require_staff_user(request: Request) -> Any:
    staff_user = getattr(request.state, "staff_user", None)
    if staff_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return staff_user


def require_staff_tenant_access(
    request: Request,
    tenant: TenantRecord = Depends(require_tenant),
    staff_user: Any = Depends(require_staff_user),
) -> Any:
    staff_tenant_id = getattr(staff_user, "tenant_id", None)
    if staff_tenant_id is None or int(staff_tenant_id) != int(tenant.id):
        logger.warning(
            "Access denied (tenant_mismatch): user_id=%s user_tenant=%s tenant_id=%s endpoint=%s %s",
            getattr(staff_user, "id", None),
            staff_tenant_id,
            tenant.id,
            request.method,
            request.url.path,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No access to this restaurant",
        )
    return staff_user


def require_platform_admin(x_platform_token: str | None = Header(None)) -> None:
    expected = config.PLATFORM_ADMIN_TOKEN
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Platform administration is not configured",
        )
    if not x_platform_token or not hmac.compare_digest(x_platform_token, expected):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid platform token",
        )
