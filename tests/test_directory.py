"""Tests for the directory access gate, slug resolution and the public pages."""
import pytest
from werkzeug.security import generate_password_hash

from app.bestbosses import create_app
from app.bestbosses.db import session_scope
from app.bestbosses.errors import AuthorizationError, NotFoundError
from app.bestbosses.models import Base, User
from app.bestbosses.modules.directory.service import (
    can_view_directory,
    list_directory,
    require_boss_view,
    require_directory_access,
    resolve_slug,
)
from app.bestbosses.modules.nominations.service import (
    approve_nomination,
    boss_slug,
    reject_nomination,
    submit_nomination,
)
from app.bestbosses.modules.profiles.service import create_profile
from app.bestbosses.viewer import Viewer

BASE_URL = "https://bestbosses.example"
REVIEW = (
    "She gave everyone on the team room to grow, took the blame when things went wrong "
    "and handed out the credit when things went right."
)


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("ADMIN_EMAIL", "admin@example.com")
    monkeypatch.setenv("NOTIFICATION_BACKEND", "log")
    monkeypatch.setenv("PUBLIC_BASE_URL", BASE_URL)
    for k in ("SMTP_SERVER", "MATERIALIZE_BOSS_ON_APPROVE"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        for email, first, last in (
            ("admin@example.com", "Ada", "Admin"),
            ("alice@example.com", "Alice", "Able"),
            ("bob@example.com", "Bob", "Baker"),
        ):
            u = User(email=email, password_hash=generate_password_hash("pw"), is_active=True)
            s.add(u)
            s.flush()
            create_profile(s, u, first_name=first, last_name=last, linkedin_profile=f"https://linkedin.com/in/{first.lower()}")
    return app


@pytest.fixture()
def s(app):
    with app.app_context():
        session = app.extensions["sqlalchemy_sessionmaker"]()
        try:
            yield session
        finally:
            session.close()


def _viewer(s, email):
    return Viewer.from_user(s.query(User).filter(User.email == email).one())


def _nominate(s, email="alice@example.com", **overrides):
    payload = {
        "boss_first_name": "Jane",
        "boss_last_name": "Doe",
        "company": "Acme Corp",
        "location": "Austin, TX",
        "industry": "Technology",
        "function": "Engineering",
        "email": "jane.doe@acme.example",
        "linkedin_profile": "https://linkedin.com/in/janedoe",
        "review": REVIEW,
    }
    payload.update(overrides)
    n = submit_nomination(s, _viewer(s, email), payload)
    s.commit()
    return n


def _approve(s, n, **kwargs):
    approve_nomination(s, n.id, actor=_viewer(s, "admin@example.com"), base_url=BASE_URL, **kwargs)
    s.commit()


# ---------- Access gate ----------

def test_anonymous_viewer_is_locked_out(s):
    assert can_view_directory(s, Viewer.anonymous()) is False
    with pytest.raises(AuthorizationError):
        require_directory_access(s, Viewer.anonymous())


def test_logged_in_without_approved_nomination_is_locked_out(s):
    _nominate(s)
    assert can_view_directory(s, _viewer(s, "alice@example.com")) is False


def test_approval_unlocks_the_nominator_only(s):
    n = _nominate(s)
    alice = _viewer(s, "alice@example.com")
    _approve(s, n)
    # Same Viewer object: access is read fresh, not cached on the viewer.
    assert can_view_directory(s, alice) is True
    assert can_view_directory(s, _viewer(s, "bob@example.com")) is False


def test_rejection_does_not_unlock(s):
    n = _nominate(s)
    reject_nomination(s, n.id, actor=_viewer(s, "admin@example.com"))
    s.commit()
    assert can_view_directory(s, _viewer(s, "alice@example.com")) is False


def test_admin_override(s):
    admin = _viewer(s, "admin@example.com")
    assert can_view_directory(s, admin) is True
    assert can_view_directory(s, Viewer(id=admin.id, email="ADMIN@Example.com")) is True
    # Explicit configuration wins over app config.
    assert can_view_directory(s, _viewer(s, "bob@example.com"), admin_email="bob@example.com") is True
    assert can_view_directory(s, admin, admin_email="") is False


# ---------- Slug resolution ----------

def test_resolves_materialized_boss(s):
    n = _nominate(s)
    _approve(s, n)
    view = resolve_slug(s, f"jane-doe-{n.id}")
    assert view is not None
    assert view.materialized is True
    assert view.nomination_id == n.id
    assert view.company == "Acme Corp"
    assert view.nominator.full_name == "Alice Able"
    assert view.nominator.linkedin_profile == "https://linkedin.com/in/alice"


def test_resolves_approved_nomination_without_boss_row(s):
    n = _nominate(s)
    _approve(s, n, materialize=False)
    view = resolve_slug(s, f"jane-doe-{n.id}")
    assert view is not None
    assert view.materialized is False
    assert view.slug == f"jane-doe-{n.id}"
    assert view.first_name == "Jane"


def test_pending_and_rejected_do_not_resolve(s):
    pending = _nominate(s)
    rejected = _nominate(s, boss_first_name="John")
    reject_nomination(s, rejected.id, actor=_viewer(s, "admin@example.com"))
    s.commit()
    assert resolve_slug(s, f"jane-doe-{pending.id}") is None
    assert resolve_slug(s, f"john-doe-{rejected.id}") is None


@pytest.mark.parametrize("slug", ["", "jane", "jane-doe", "jane-doe-abc", "jane-doe-", "jane-doe-12x", "---"])
def test_malformed_slugs_do_not_resolve(s, slug):
    n = _nominate(s)
    _approve(s, n, materialize=False)
    assert resolve_slug(s, slug) is None


def test_unknown_id_raises_not_found(s):
    with pytest.raises(NotFoundError):
        require_boss_view(s, "jane-doe-424242")


def test_round_trip_with_hyphenated_names(s):
    n = _nominate(s, boss_first_name="Mary-Jane", boss_last_name="Smith-Jones")
    _approve(s, n, materialize=False)
    slug = boss_slug("Mary-Jane", "Smith-Jones", n.id)
    assert slug == f"mary-jane-smith-jones-{n.id}"
    view = resolve_slug(s, slug)
    assert view is not None
    assert view.nomination_id == n.id
    assert view.last_name == "Smith-Jones"


def test_name_part_of_slug_is_not_authoritative(s):
    n = _nominate(s)
    _approve(s, n)
    view = resolve_slug(s, f"someone-else-{n.id}")
    assert view is not None
    assert view.slug == f"jane-doe-{n.id}"
    assert view.materialized is True


# ---------- Listing ----------

def test_list_directory_merges_and_searches(s):
    a = _nominate(s)
    b = _nominate(s, email="bob@example.com", boss_first_name="Sam", boss_last_name="Lee", company="Globex")
    c = _nominate(s, boss_first_name="Pat", company="Initech")
    _approve(s, a)
    _approve(s, b, materialize=False)

    names = {v.full_name for v in list_directory(s)}
    assert names == {"Jane Doe", "Sam Lee"}
    assert c.status == "pending"

    assert [v.full_name for v in list_directory(s, "globex")] == ["Sam Lee"]
    assert [v.full_name for v in list_directory(s, "acme")] == ["Jane Doe"]
    assert list_directory(s, "initech") == []


# ---------- HTTP ----------

def _login(client, email):
    client.post("/auth/login", data={"email": email, "password": "pw"}, follow_redirects=True)
    client.get("/")
    with client.session_transaction() as sess:
        return sess.setdefault("csrf_token", "test-csrf-token")


def test_directory_locked_for_anonymous(app):
    r = app.test_client().get("/directory")
    assert r.status_code == 403
    assert b"Access required" in r.data
    assert b"Sarah" in r.data  # blurred sample preview


def test_boss_page_checks_access_before_lookup(app):
    r = app.test_client().get("/boss/nobody-here-999")
    assert r.status_code == 403
    assert b"Access required" in r.data


def test_jane_doe_end_to_end(app):
    with app.app_context(), session_scope(app) as s:
        n = submit_nomination(
            s,
            _viewer(s, "alice@example.com"),
            {
                "boss_first_name": "Jane",
                "boss_last_name": "Doe",
                "company": "Acme Corp",
                "location": "Austin, TX",
                "industry": "Technology",
                "function": "Engineering",
                "email": "jane.doe@acme.example",
                "linkedin_profile": "https://linkedin.com/in/janedoe",
                "review": REVIEW,
            },
        )
        s.flush()
        nomination_id = n.id
    slug = f"jane-doe-{nomination_id}"

    alice = app.test_client()
    _login(alice, "alice@example.com")
    assert alice.get("/directory").status_code == 403
    assert alice.get(f"/boss/{slug}").status_code == 403

    with app.app_context(), session_scope(app) as s:
        approve_nomination(s, nomination_id, actor=_viewer(s, "admin@example.com"), base_url=BASE_URL)

    r = alice.get("/directory")
    assert r.status_code == 200
    assert b"Jane Doe" in r.data
    assert b"Acme Corp" in r.data

    r = alice.get(f"/boss/{slug}")
    assert r.status_code == 200
    assert b"Jane Doe" in r.data
    assert b"Alice Able" in r.data

    r = alice.get(f"/boss/JANE-DOE-{nomination_id}")
    assert r.status_code == 301
    assert r.headers["Location"].endswith(f"/boss/{slug}")

    assert alice.get("/boss/jane-doe-999999").status_code == 404
    assert alice.get("/boss/jane-doe").status_code == 404

    bob = app.test_client()
    _login(bob, "bob@example.com")
    assert bob.get(f"/boss/{slug}").status_code == 403

    assert app.test_client().get(f"/boss/{slug}").status_code == 403


def test_admin_sees_directory_without_nominating(app):
    client = app.test_client()
    _login(client, "admin@example.com")
    r = client.get("/directory")
    assert r.status_code == 200
    assert b"Best Bosses Directory" in r.data
