# Overview: Capability checks applied once at the orchestrator boundary.

"""
Permission Checking

Every orchestrated operation is decorated with @guarded(permission). Callers
pass actor=Actor(...) to have the check enforced; actor=None is reserved for
trusted internal callers (CLI commands, maintenance jobs, tests).

DESIGN PRINCIPLES:
- Fail closed: unknown roles have no permissions
- One check per operation, before any database work
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import wraps

from ..errors import PermissionDenied
from ..permissions import DEFAULT_ROLE_PERMISSIONS, PERMISSIONS


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation, as resolved by the auth layer."""
    user_id: int | None
    role: str
    extra_permissions: frozenset[str] = field(default_factory=frozenset)


def get_permissions(actor: Actor) -> set[str]:
    perms = set(DEFAULT_ROLE_PERMISSIONS.get(actor.role, set()))
    perms.update(p for p in actor.extra_permissions if p in PERMISSIONS)
    return perms


def can(actor: Actor | None, permission: str) -> bool:
    if actor is None:
        return True
    return permission in get_permissions(actor)


def require_permission(actor: Actor | None, permission: str) -> None:
    if not can(actor, permission):
        raise PermissionDenied(
            f"Role '{actor.role}' lacks permission {permission}",
            details={"required_permission": permission, "role": actor.role},
        )


def actor_user_id(actor: Actor | None) -> int | None:
    return actor.user_id if actor else None


def guarded(permission: str):
    """Require `permission` of the `actor` keyword argument, if one is given."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            require_permission(kwargs.get("actor"), permission)
            return f(*args, **kwargs)
        decorated_function.required_permission = permission
        return decorated_function
    return decorator
