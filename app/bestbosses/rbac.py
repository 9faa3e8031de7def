from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, current_app, g, redirect, request, url_for

from app.bestbosses.models import User
from app.bestbosses.viewer import Viewer


def admin_email() -> str:
    return (current_app.config.get("ADMIN_EMAIL") or "").strip().lower()


def is_admin(who: User | Viewer | None, configured_email: str | None = None) -> bool:
    """The single super-admin override: the account whose email matches ADMIN_EMAIL."""
    if who is None:
        return False
    if isinstance(who, User) and not who.is_active:
        return False
    if isinstance(who, Viewer) and not who.is_authenticated:
        return False
    target = (configured_email if configured_email is not None else admin_email()).strip().lower()
    return bool(target) and (who.email or "").strip().lower() == target


def _login_redirect():
    nxt = request.full_path or request.path
    # Avoid trailing '?' from full_path when there is no query string.
    if nxt.endswith("?"):
        nxt = nxt[:-1]
    return redirect(url_for("auth.login_get", next=nxt))


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user: User | None = getattr(g, "current_user", None)
        if not user or not user.is_active:
            return _login_redirect()
        return fn(*args, **kwargs)

    return wrapped


def require_admin(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user: User | None = getattr(g, "current_user", None)
        # Unauthenticated → redirect to login (UX + reduces confusion).
        if not user or not user.is_active:
            return _login_redirect()
        # Authenticated but not the admin → 403
        if not is_admin(user):
            g.missing_permission = "admin"
            abort(403)
        return fn(*args, **kwargs)

    return wrapped
