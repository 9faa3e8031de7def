from __future__ import annotations

from flask import Blueprint, flash, redirect, render_template, request, url_for

from app.bestbosses.db import db_session
from app.bestbosses.errors import InvalidStateError, NotFoundError
from app.bestbosses.modules.nominations.service import (
    VALID_STATUSES,
    approve_nomination,
    list_nominations,
    nomination_slug,
    reject_nomination,
    resend_boss_notification,
)
from app.bestbosses.modules.notifications.service import deliver_pending, notify_after_commit
from app.bestbosses.rbac import require_admin
from app.bestbosses.utils import public_base_url
from app.bestbosses.viewer import current_viewer

bp = Blueprint("nominations_admin", __name__)


def _back_to_queue():
    status = (request.form.get("return_status") or request.args.get("status") or "").strip()
    return redirect(url_for("nominations_admin.nominations_list", status=status or None))


# ---------- Queue ----------
@bp.get("/nominations")
@require_admin
def nominations_list():
    s = db_session()
    status_filter = (request.args.get("status") or "").strip()
    if status_filter and status_filter not in VALID_STATUSES:
        flash(f"Unknown status filter: {status_filter}", "danger")
        status_filter = ""
    rows = list_nominations(s, status_filter or None)
    return render_template(
        "admin/nominations/list.html",
        rows=rows,
        status_filter=status_filter,
        statuses=VALID_STATUSES,
        slug_for=nomination_slug,
    )


# ---------- Transitions ----------
@bp.post("/nominations/<int:nomination_id>/approve")
@require_admin
def nomination_approve(nomination_id: int):
    s = db_session()
    try:
        nomination = approve_nomination(s, nomination_id, actor=current_viewer(), base_url=public_base_url())
    except NotFoundError:
        s.rollback()
        flash("Nomination not found.", "danger")
        return _back_to_queue()
    except InvalidStateError as e:
        s.rollback()
        flash(str(e), "danger")
        return _back_to_queue()
    s.commit()

    report = notify_after_commit(s, nomination.id)
    for w in report.warnings:
        flash(w, "warning")
    flash(f"Nomination of {nomination.boss_name} approved.", "success")
    return _back_to_queue()


@bp.post("/nominations/<int:nomination_id>/reject")
@require_admin
def nomination_reject(nomination_id: int):
    s = db_session()
    reason = (request.form.get("reason") or "").strip()
    try:
        nomination = reject_nomination(s, nomination_id, actor=current_viewer(), reason=reason or None)
    except NotFoundError:
        s.rollback()
        flash("Nomination not found.", "danger")
        return _back_to_queue()
    except InvalidStateError as e:
        s.rollback()
        flash(str(e), "danger")
        return _back_to_queue()
    s.commit()
    flash(f"Nomination of {nomination.boss_name} rejected.", "success")
    return _back_to_queue()


@bp.post("/nominations/<int:nomination_id>/resend-boss-email")
@require_admin
def nomination_resend_boss_email(nomination_id: int):
    s = db_session()
    try:
        msg = resend_boss_notification(s, nomination_id, actor=current_viewer(), base_url=public_base_url())
    except NotFoundError:
        s.rollback()
        flash("Nomination not found.", "danger")
        return _back_to_queue()
    except InvalidStateError as e:
        s.rollback()
        flash(str(e), "danger")
        return _back_to_queue()
    s.commit()

    report = deliver_pending(s, ids=[msg.id])
    for w in report.warnings:
        flash(w, "warning")
    if report.sent:
        flash(f"Boss email resent to {msg.recipient}.", "success")
    return _back_to_queue()
