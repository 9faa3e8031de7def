from __future__ import annotations

from flask import Blueprint, flash, redirect, render_template, url_for

from app.bestbosses.db import db_session
from app.bestbosses.errors import ValidationError
from app.bestbosses.modules.nominations.service import (
    FUNCTIONS,
    INDUSTRIES,
    NOMINATION_FIELDS,
    NOMINATION_MAX_LENGTHS,
    REVIEW_MIN_LENGTH,
    nominations_for_nominator,
    nomination_slug,
    submit_nomination,
)
from app.bestbosses.modules.notifications.service import notify_after_commit
from app.bestbosses.rbac import require_login
from app.bestbosses.utils import form_payload
from app.bestbosses.viewer import current_viewer

bp = Blueprint("nominations", __name__)


def _render_form(form: dict, status: int = 200):
    return (
        render_template(
            "nominations/new.html",
            form=form,
            industries=INDUSTRIES,
            functions=FUNCTIONS,
            review_min_length=REVIEW_MIN_LENGTH,
            max_lengths=NOMINATION_MAX_LENGTHS,
        ),
        status,
    )


@bp.get("/nominate")
@require_login
def nominate_get():
    return _render_form({})


@bp.post("/nominate")
@require_login
def nominate_post():
    s = db_session()
    payload = form_payload(tuple(NOMINATION_FIELDS))

    try:
        nomination = submit_nomination(s, current_viewer(), payload)
    except ValidationError as e:
        s.rollback()
        for msg in e.errors:
            flash(msg, "danger")
        return _render_form(payload, 400)
    s.commit()

    report = notify_after_commit(s, nomination.id)
    for w in report.warnings:
        flash(w, "warning")
    flash("Thank you for your nomination. We'll review it and notify you once it's approved.", "success")
    return redirect(url_for("nominations.my_nominations"))


@bp.get("/nominations/mine")
@require_login
def my_nominations():
    s = db_session()
    viewer = current_viewer()
    nominations = nominations_for_nominator(s, viewer.id)  # type: ignore[arg-type]
    return render_template(
        "nominations/mine.html",
        nominations=nominations,
        slug_for=nomination_slug,
    )
