from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from app.bestbosses.audit import record_event
from app.bestbosses.db import db_session
from app.bestbosses.models import User
from app.bestbosses.modules.notifications import messages
from app.bestbosses.modules.notifications.service import deliver_pending, enqueue_notification
from app.bestbosses.modules.profiles.models import Profile
from app.bestbosses.modules.profiles.service import create_profile
from app.bestbosses.security import safe_next_path
from app.bestbosses.utils import column_max_lengths, is_valid_email, length_errors, public_base_url

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds
_CONFIRM_SALT = "email-confirm"
_CONFIRM_MAX_AGE = 7 * 24 * 3600  # seconds
_MIN_PASSWORD_LENGTH = 8
_REGISTER_FIELDS = {
    "email": "Email",
    "first_name": "First name",
    "last_name": "Last name",
    "linkedin_profile": "LinkedIn profile",
}
_REGISTER_MAX_LENGTHS = column_max_lengths(Profile.__table__)
_DUPLICATE_EMAIL = "An account with that email already exists."


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def _confirm_serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=_CONFIRM_SALT)


def confirmation_token(user: User) -> str:
    return _confirm_serializer().dumps({"user_id": user.id, "email": user.email})


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if request.path.startswith(("/static/", "/health", "/healthz")):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    s = db_session()
    user = s.get(User, int(user_id))
    if not user or not user.is_active:
        session.pop("user_id", None)
        g.current_user = None
        return
    g.current_user = user


@bp.get("/login")
def login_get():
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/login.html", next=nxt)


@bp.post("/login")
def login_post():
    email = (request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        flash("Too many login attempts. Please wait 5 minutes.", "danger")
        return redirect(url_for("auth.login_get"))

    _record_attempt(ip)

    s = db_session()
    user = s.query(User).filter(User.email == email).one_or_none()
    if not user or not user.is_active or not check_password_hash(user.password_hash, password):
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=email,
            reason="Invalid credentials",
            metadata={"email": email},
        )
        s.commit()
        flash("Invalid credentials.", "danger")
        return redirect(url_for("auth.login_get", next=nxt or None))

    session.clear()
    session["user_id"] = user.id
    _login_attempts[ip].clear()
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    return redirect(safe_next_path(nxt) or url_for("routes.directory"))


def _render_register(form: dict, status: int = 200):
    return render_template("auth/register.html", form=form, max_lengths=_REGISTER_MAX_LENGTHS), status


def _email_taken(s, email: str) -> bool:
    return s.query(User.id).filter(User.email == email).first() is not None


@bp.get("/register")
def register_get():
    return _render_register({})


@bp.post("/register")
def register_post():
    form = {
        "email": (request.form.get("email") or "").strip().lower(),
        "first_name": (request.form.get("first_name") or "").strip(),
        "last_name": (request.form.get("last_name") or "").strip(),
        "linkedin_profile": (request.form.get("linkedin_profile") or "").strip(),
    }
    password = request.form.get("password") or ""

    errors: list[str] = []
    if not is_valid_email(form["email"]):
        errors.append("A valid email address is required.")
    if not form["first_name"] or not form["last_name"]:
        errors.append("First and last name are required.")
    if len(password) < _MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {_MIN_PASSWORD_LENGTH} characters.")
    errors.extend(length_errors(form, _REGISTER_FIELDS, _REGISTER_MAX_LENGTHS))

    s = db_session()
    if not errors and _email_taken(s, form["email"]):
        errors.append(_DUPLICATE_EMAIL)
    if errors:
        for e in errors:
            flash(e, "danger")
        return _render_register(form, 400)

    user = User(email=form["email"], password_hash=generate_password_hash(password), is_active=True)
    s.add(user)
    try:
        s.flush()
    except IntegrityError:
        # Lost a race with another registration for the same address.
        s.rollback()
        flash(_DUPLICATE_EMAIL, "danger")
        return _render_register(form, 400)
    create_profile(
        s,
        user,
        first_name=form["first_name"],
        last_name=form["last_name"],
        linkedin_profile=form["linkedin_profile"],
    )
    link = public_base_url() + url_for("auth.confirm_email", token=confirmation_token(user))
    msg = enqueue_notification(s, messages.CONFIRMATION, user.email, {"confirmation_link": link})
    record_event(s, actor=user, action="auth.register", entity_type="User", entity_id=str(user.id))
    s.commit()

    report = deliver_pending(s, ids=[msg.id])
    for w in report.warnings:
        flash(w, "warning")

    session.clear()
    session["user_id"] = user.id
    flash("Welcome to Best Bosses! Nominate a great manager to unlock the directory.", "success")
    return redirect(url_for("nominations.nominate_get"))


@bp.get("/confirm/<token>")
def confirm_email(token: str):
    try:
        data = _confirm_serializer().loads(token, max_age=_CONFIRM_MAX_AGE)
    except SignatureExpired:
        flash("That confirmation link has expired.", "danger")
        return redirect(url_for("routes.index"))
    except BadSignature:
        flash("That confirmation link is invalid.", "danger")
        return redirect(url_for("routes.index"))

    s = db_session()
    user = s.get(User, int(data.get("user_id") or 0))
    if not user or user.email != data.get("email"):
        flash("That confirmation link is invalid.", "danger")
        return redirect(url_for("routes.index"))
    if user.email_confirmed_at is None:
        user.email_confirmed_at = datetime.utcnow()
        record_event(s, actor=user, action="auth.confirm_email", entity_type="User", entity_id=str(user.id))
        s.commit()
    flash("Email confirmed. Thanks!", "success")
    return redirect(url_for("routes.index"))


@bp.get("/logout")
def logout():
    s = db_session()
    user = getattr(g, "current_user", None)
    if user:
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session.pop("user_id", None)
    return redirect(url_for("routes.index"))
