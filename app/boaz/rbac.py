from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g

from app.boaz.api import ApiError
from app.boaz.models import User

SUPERUSER = "*"


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    api_key = getattr(g, "api_key", None)
    if api_key is not None:
        # Keys are capped by their own scopes on top of the owner's roles.
        scopes = api_key.scopes or []
        if SUPERUSER not in scopes and permission_key not in scopes:
            return False
    for role in user.roles:
        for perm in role.permissions:
            if perm.key == permission_key or perm.key == SUPERUSER:
                return True
    return False


def user_has_role(user: User | None, *role_keys: str) -> bool:
    if not user or not user.is_active:
        return False
    return bool(user.role_keys.intersection(role_keys))


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            if not user or not user.is_active:
                raise ApiError("unauthorized", 401)
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                raise ApiError("forbidden", 403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user: User | None = getattr(g, "current_user", None)
        if not user or not user.is_active:
            raise ApiError("unauthorized", 401)
        return fn(*args, **kwargs)

    return wrapped
