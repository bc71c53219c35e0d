"""
Request-scoped context objects for core services.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import contextvars

import core.config as config
from core.errors import ValidationIssue


@dataclass(frozen=True)
class TenantContext:
    tenant_id: Optional[str] = None
    source: Optional[str] = None

    @staticmethod
    def from_values(tenant_id: Optional[str], source: Optional[str] = None) -> "TenantContext":
        return TenantContext(tenant_id=tenant_id, source=source)


@dataclass(frozen=True)
class AuthContext:
    tenant_id: Optional[str] = None
    actor: Optional[str] = None


@dataclass(frozen=True)
class RequestContext:
    auth: AuthContext
    tenant: Optional[TenantContext] = None
    request_id: Optional[str] = None


_CURRENT_REQUEST_CONTEXT: contextvars.ContextVar[Optional["RequestContext"]] = contextvars.ContextVar(
    "homestash_request_context",
    default=None,
)


def get_current_request_context() -> Optional["RequestContext"]:
    return _CURRENT_REQUEST_CONTEXT.get()


def set_current_request_context(context: Optional["RequestContext"]) -> contextvars.Token:
    return _CURRENT_REQUEST_CONTEXT.set(context)


def reset_current_request_context(token: contextvars.Token) -> None:
    _CURRENT_REQUEST_CONTEXT.reset(token)


def resolve_tenant_context(context: Optional["RequestContext"]) -> Optional[TenantContext]:
    if context is None:
        context = get_current_request_context()
    if context is None:
        return None
    if context.tenant is not None:
        return context.tenant
    auth = context.auth
    if auth and auth.tenant_id:
        return TenantContext(tenant_id=auth.tenant_id, source="auth")
    return None


def resolve_tenant_id(context: Optional["RequestContext"]) -> str:
    """Return the caller's tenant id; every core operation requires one."""
    tenant_ctx = resolve_tenant_context(context)
    tenant_id = tenant_ctx.tenant_id if tenant_ctx else None
    return require_tenant_id_value(tenant_id)


def require_tenant_id_value(tenant_id: Optional[str]) -> str:
    if not isinstance(tenant_id, str) or not tenant_id.strip():
        raise ValidationIssue(
            "tenant_id is required for this operation",
            field="tenant_id",
            error_type="required",
        )
    if len(tenant_id) > config.MAX_TENANT_ID_LENGTH:
        raise ValidationIssue(
            f"tenant_id exceeds max length {config.MAX_TENANT_ID_LENGTH}",
            field="tenant_id",
            error_type="max_length",
        )
    return tenant_id


__all__ = [
    "TenantContext",
    "AuthContext",
    "RequestContext",
    "get_current_request_context",
    "set_current_request_context",
    "reset_current_request_context",
    "resolve_tenant_context",
    "resolve_tenant_id",
    "require_tenant_id_value",
]
