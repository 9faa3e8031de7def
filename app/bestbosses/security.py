import secrets

from flask import Request, session

_UNSAFE_METHODS = ("POST", "PUT", "PATCH", "DELETE")


def ensure_csrf_token() -> str:
    """Ensure a CSRF token exists in the session and return it."""
    token = session.get("csrf_token")
    if not token:
        token = secrets.token_urlsafe(32)
        session["csrf_token"] = token
    return token


def validate_csrf(req: Request) -> bool:
    """Validate CSRF token from form field or X-CSRF-Token header."""
    token = req.headers.get("X-CSRF-Token") or req.form.get("csrf_token")
    expected = session.get("csrf_token")
    return bool(token and expected and secrets.compare_digest(str(token), str(expected)))


def needs_csrf_check(req: Request) -> bool:
    if req.method not in _UNSAFE_METHODS:
        return False
    # Login/register/logout run before a session exists.
    return not (req.endpoint or "").startswith("auth.")


def safe_next_path(nxt: str | None) -> str | None:
    """Only allow local paths for post-login redirects (avoid open redirects)."""
    nxt = (nxt or "").strip()
    if nxt.startswith("/") and not nxt.startswith("//"):
        return nxt
    return None
