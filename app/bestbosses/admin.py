from datetime import date, datetime, time, timedelta

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from sqlalchemy import func, text

from app.bestbosses.audit import record_event
from app.bestbosses.db import db_session
from app.bestbosses.models import AuditEvent
from app.bestbosses.modules.nominations.service import count_by_status
from app.bestbosses.modules.notifications.models import OUTBOX_STATUSES, NotificationOutbox
from app.bestbosses.modules.notifications.service import deliver_pending, requeue_failed
from app.bestbosses.rbac import require_admin
from app.bestbosses.viewer import current_viewer

bp = Blueprint("admin", __name__)


def _parse_date(s: str) -> date | None:
    s = (s or "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


@bp.get("/")
@require_admin
def index():
    s = db_session()
    status = {
        "env": (current_app.config.get("ENV") or "development").strip().lower(),
        "db_connected": False,
        "db_error": None,
        "notification_backend": current_app.config.get("NOTIFICATION_BACKEND"),
    }

    # DB connectivity (lightweight)
    try:
        s.execute(text("SELECT 1"))
        status["db_connected"] = True
    except Exception as e:
        current_app.logger.exception("Admin dashboard DB check failed")
        status["db_error"] = str(e)
        return render_template("admin/index.html", system_status=status, counts={}, outbox={})

    outbox = {st: 0 for st in OUTBOX_STATUSES}
    for st, n in s.query(NotificationOutbox.status, func.count(NotificationOutbox.id)).group_by(NotificationOutbox.status).all():
        outbox[st] = int(n)

    return render_template("admin/index.html", system_status=status, counts=count_by_status(s), outbox=outbox)


@bp.get("/notifications")
@require_admin
def notifications_list():
    """Last 200 outbox messages, optionally filtered by status."""
    s = db_session()
    status_filter = (request.args.get("status") or "").strip()
    q = s.query(NotificationOutbox)
    if status_filter in OUTBOX_STATUSES:
        q = q.filter(NotificationOutbox.status == status_filter)
    messages = q.order_by(NotificationOutbox.id.desc()).limit(200).all()
    return render_template(
        "admin/notifications/list.html",
        messages=messages,
        status_filter=status_filter,
        statuses=OUTBOX_STATUSES,
    )


@bp.post("/notifications/retry")
@require_admin
def notifications_retry():
    s = db_session()
    requeued = 0
    if (request.form.get("include_failed") or "") == "1":
        requeued = requeue_failed(s)
    record_event(
        s,
        actor=current_viewer(),
        action="notifications.retry",
        entity_type="NotificationOutbox",
        metadata={"requeued_failed": requeued},
    )
    s.commit()

    report = deliver_pending(s)
    for w in report.warnings:
        flash(w, "warning")
    flash(f"Delivered {report.sent} message(s); {report.failed} failed.", "success" if not report.failed else "warning")
    return redirect(url_for("admin.notifications_list"))


@bp.get("/audit")
@require_admin
def audit_list():
    """Last 200 audit events. Filters: action, actor email, entity, date range (inclusive)."""
    s = db_session()
    args = {k: (request.args.get(k) or "").strip() for k in ("action", "actor_email", "entity", "date_from", "date_to")}

    q = s.query(AuditEvent)
    if args["action"]:
        q = q.filter(AuditEvent.action.like(f"%{args['action']}%"))
    if args["actor_email"]:
        q = q.filter(AuditEvent.actor_user_email.like(f"%{args['actor_email'].lower()}%"))
    if args["entity"]:
        # "Nomination" or "Nomination:12"
        entity_type, _, entity_id = args["entity"].partition(":")
        q = q.filter(AuditEvent.entity_type == entity_type.strip())
        if entity_id.strip():
            q = q.filter(AuditEvent.entity_id == entity_id.strip())

    for key in ("date_from", "date_to"):
        if not args[key]:
            continue
        day = _parse_date(args[key])
        if day is None:
            flash(f"{key} must be YYYY-MM-DD", "danger")
        elif key == "date_from":
            q = q.filter(AuditEvent.created_at >= datetime.combine(day, time.min))
        else:
            q = q.filter(AuditEvent.created_at < datetime.combine(day + timedelta(days=1), time.min))

    events = q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(200).all()
    return render_template("admin/audit/list.html", events=events, filters=args)
