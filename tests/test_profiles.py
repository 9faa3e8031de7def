"""Tests for profile row mapping and the directory access flag."""
import pytest
from werkzeug.security import generate_password_hash

from app.bestbosses import create_app
from app.bestbosses.errors import PersistenceError
from app.bestbosses.models import Base, User
from app.bestbosses.modules.profiles.service import (
    create_profile,
    get_profile,
    get_profiles,
    mark_has_approved_nomination,
    profile_from_row,
)

ROW = {
    "id": 7,
    "user_id": 3,
    "first_name": "Alice",
    "last_name": "Able",
    "email": "alice@example.com",
    "linkedin_profile": "",
    "has_approved_nomination": False,
}


@pytest.fixture()
def s(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("NOTIFICATION_BACKEND", "log")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    with app.app_context():
        session = app.extensions["sqlalchemy_sessionmaker"]()
        try:
            yield session
        finally:
            session.close()


def _user(s, email):
    u = User(email=email, password_hash=generate_password_hash("pw"), is_active=True)
    s.add(u)
    s.flush()
    return u


class TestProfileFromRow:
    def test_maps_a_complete_row(self):
        rec = profile_from_row(ROW)
        assert rec.user_id == 3
        assert rec.full_name == "Alice Able"
        assert rec.has_approved_nomination is False

    def test_accepts_integer_flags(self):
        assert profile_from_row({**ROW, "has_approved_nomination": 1}).has_approved_nomination is True
        assert profile_from_row({**ROW, "has_approved_nomination": 0}).has_approved_nomination is False

    @pytest.mark.parametrize(
        "broken",
        [
            {"has_approved_nomination": None},
            {"has_approved_nomination": "yes"},
            {"has_approved_nomination": 2},
            {"first_name": None},
            {"email": 42},
            {"user_id": "3"},
            {"user_id": True},
        ],
    )
    def test_rejects_malformed_rows(self, broken):
        with pytest.raises(PersistenceError):
            profile_from_row({**ROW, **broken})

    def test_rejects_missing_columns(self):
        row = dict(ROW)
        del row["last_name"]
        with pytest.raises(PersistenceError, match="last_name"):
            profile_from_row(row)


def test_get_profile_reads_store(s):
    u = _user(s, "alice@example.com")
    assert get_profile(s, u.id) is None

    create_profile(s, u, first_name=" Alice ", last_name="Able", linkedin_profile="https://linkedin.com/in/alice")
    s.commit()
    rec = get_profile(s, u.id)
    assert rec.first_name == "Alice"
    assert rec.email == "alice@example.com"
    assert rec.has_approved_nomination is False
    assert set(get_profiles(s, [u.id, u.id, 999])) == {u.id}
    assert get_profiles(s, []) == {}


def test_mark_has_approved_nomination(s):
    u = _user(s, "alice@example.com")
    create_profile(s, u, first_name="Alice", last_name="Able")
    mark_has_approved_nomination(s, u)
    s.commit()
    assert get_profile(s, u.id).has_approved_nomination is True


def test_mark_creates_missing_profile(s):
    u = _user(s, "ghost@example.com")
    mark_has_approved_nomination(s, u)
    s.commit()
    rec = get_profile(s, u.id)
    assert rec is not None
    assert rec.email == "ghost@example.com"
    assert rec.has_approved_nomination is True
