import os
import sys
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.bestbosses.db import build_engine
from app.bestbosses.models import User
from app.bestbosses.modules.profiles.models import Profile


@contextmanager
def _seed_session(db_url: str):
    # Direct engine/session so release can run without importing app.wsgi.
    engine = build_engine(db_url)
    s = Session(bind=engine, autoflush=False, expire_on_commit=False)
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed the administrator account named by ADMIN_EMAIL (idempotent).
    Does NOT overwrite an existing user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "").strip().lower()
    if not admin_email:
        print("ADMIN_EMAIL not set; skipping admin seed.")
        return
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///bestbosses.db").strip()

    with _seed_session(db_url) as s:
        user = s.query(User).filter(User.email == admin_email).one_or_none()
        created = user is None
        if created:
            user = User(email=admin_email, password_hash=generate_password_hash(admin_password), is_active=True)
            s.add(user)
            s.flush()
        if not s.query(Profile).filter(Profile.user_id == user.id).one_or_none():
            s.add(Profile(user_id=user.id, first_name="Best Bosses", last_name="Admin", email=admin_email, linkedin_profile=""))

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email} ({'created' if created else 'already present'})")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
