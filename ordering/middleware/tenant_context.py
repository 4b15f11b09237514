from __future__ import annotations

import logging

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from ordering.core.errors import OrderingError
from ordering.core.request_context import set_request_context
from ordering.services.tenant_resolver import TenantResolver, tenant_resolver

logger = logging.getLogger(__name__)


def request_host(request) -> str:
    return request.headers.get("x-forwarded-host") or request.headers.get("host") or ""


def get_request_resolver(request) -> TenantResolver:
    return getattr(request.app.state, "tenant_resolver", None) or tenant_resolver


class TenantContextMiddleware(BaseHTTPMiddleware):
    """Resolves the tenant for every request from its host.

    Sets ``request.state.tenant`` (a ``TenantRecord`` or None),
    ``request.state.tenant_identifier`` and, when the directory could not be
    consulted, ``request.state.tenant_error``. Raising is left to the route
    dependencies so the error goes through the app's exception handlers.
    """

    async def dispatch(self, request, call_next):
        request.state.tenant = None
        request.state.tenant_error = None

        resolver = get_request_resolver(request)
        host = request_host(request)
        identifier = resolver.extract_identifier(host)
        request.state.tenant_identifier = identifier

        if identifier:
            try:
                request.state.tenant = await run_in_threadpool(resolver.get, identifier)
            except OrderingError as exc:
                logger.warning("Tenant resolution failed host=%s code=%s", host, exc.code)
                request.state.tenant_error = exc

        set_request_context(
            tenant_identifier=identifier,
            tenant_id=str(request.state.tenant.id) if request.state.tenant is not None else None,
        )

        return await call_next(request)
