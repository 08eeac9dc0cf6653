# accounts/authz.py
"""
Authorization utilities.

Provides:
- ActorContext: immutable description of who is acting and from where
- resolve_actor: build the context for an authenticated request
- anonymous_actor: context for unauthenticated requests (registration)
- require_administrator / require_self_or_administrator: raise if not allowed

Commands receive an ActorContext, check it, and stamp it onto the audit
entries they write. Role ordering inside a company (member < admin < owner)
is not interpreted here.
"""

from dataclasses import dataclass
from typing import Optional

from django.core.exceptions import PermissionDenied
from rest_framework.exceptions import NotAuthenticated

# Column width of audit_logs.user_agent
USER_AGENT_MAX_LENGTH = 255


@dataclass(frozen=True)
class ActorContext:
    """
    Attributes:
        user: The acting user, or None for system/anonymous actions
        ip_address: Client address the request came from
        user_agent: Client User-Agent header, truncated to the column width
    """
    user: object = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(getattr(self.user, "is_authenticated", False))

    @property
    def is_administrator(self) -> bool:
        return self.is_authenticated and self.user.is_active and self.user.is_administrator


def client_ip(request) -> Optional[str]:
    """First hop of X-Forwarded-For, falling back to REMOTE_ADDR."""
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR") or None


def request_metadata(request) -> dict:
    user_agent = request.META.get("HTTP_USER_AGENT") or None
    if user_agent:
        user_agent = user_agent[:USER_AGENT_MAX_LENGTH]
    return {
        "ip_address": client_ip(request),
        "user_agent": user_agent,
    }


def anonymous_actor(request) -> ActorContext:
    return ActorContext(user=None, **request_metadata(request))


def resolve_actor(request) -> ActorContext:
    """
    Extract ActorContext from the current request.

    Raises:
        NotAuthenticated: If user is not authenticated
    """
    user = getattr(request, "user", None)

    if not user or not user.is_authenticated:
        raise NotAuthenticated("Authentication required.")

    return ActorContext(user=user, **request_metadata(request))


def require_administrator(actor: ActorContext) -> None:
    """Raise PermissionDenied unless the actor is an active administrator."""
    if not actor.is_administrator:
        raise PermissionDenied("Permission denied: administrator role required.")


def require_self_or_administrator(actor: ActorContext, user) -> None:
    """Raise PermissionDenied unless the actor is ``user`` or an administrator."""
    if actor.is_authenticated and actor.user.pk == user.pk:
        return
    require_administrator(actor)
