from __future__ import annotations

from contextvars import ContextVar

# Valores de correlação dos logs dentro de uma requisição
_request_id: ContextVar[str | None] = ContextVar("ordering_request_id", default=None)
_tenant_id: ContextVar[str | None] = ContextVar("ordering_tenant_id", default=None)
_tenant_identifier: ContextVar[str | None] = ContextVar("ordering_tenant_identifier", default=None)

_FIELDS = {
    "request_id": _request_id,
    "tenant_id": _tenant_id,
    "tenant_identifier": _tenant_identifier,
}


def set_request_context(**values: str | None) -> None:
    for name, value in values.items():
        if value is None:
            continue
        _FIELDS[name].set(value)


def get_request_id() -> str | None:
    return _request_id.get()


def get_tenant_id() -> str | None:
    return _tenant_id.get()


def get_tenant_identifier() -> str | None:
    return _tenant_identifier.get()


def clear_request_context() -> None:
    for var in _FIELDS.values():
        var.set(None)
