from flask import Blueprint, redirect, render_template, request, url_for

from app.bestbosses.db import db_session
from app.bestbosses.modules.directory.service import (
    SAMPLE_PREVIEWS,
    can_view_directory,
    list_directory,
    require_boss_view,
    require_directory_access,
)
from app.bestbosses.viewer import current_viewer

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return render_template("public/index.html")


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for load balancers. No DB access, minimal overhead.
    """
    return "ok", 200


@bp.get("/directory")
def directory():
    s = db_session()
    viewer = current_viewer()
    search = (request.args.get("q") or "").strip()
    if not can_view_directory(s, viewer):
        return (
            render_template("public/directory_locked.html", samples=SAMPLE_PREVIEWS, viewer=viewer),
            403,
        )
    bosses = list_directory(s, search)
    return render_template("public/directory.html", bosses=bosses, search=search)


@bp.get("/boss/<path:slug>")
def boss_profile(slug: str):
    s = db_session()
    viewer = current_viewer()
    # AuthorizationError / NotFoundError are rendered by the app-wide handlers.
    require_directory_access(s, viewer)
    boss = require_boss_view(s, slug)
    if boss.slug != slug:
        return redirect(url_for("routes.boss_profile", slug=boss.slug), 301)
    return render_template("public/boss.html", boss=boss)
