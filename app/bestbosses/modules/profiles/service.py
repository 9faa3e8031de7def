from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select, update

from app.bestbosses.db import store_call
from app.bestbosses.errors import PersistenceError
from app.bestbosses.modules.profiles.models import Profile

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.bestbosses.models import User

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("first_name", "last_name", "email", "linkedin_profile")


@dataclass(frozen=True)
class ProfileRecord:
    user_id: int
    first_name: str
    last_name: str
    email: str
    linkedin_profile: str
    has_approved_nomination: bool

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


def profile_from_row(row: Mapping[str, Any]) -> ProfileRecord:
    """
    Map a raw `profiles` row to a ProfileRecord.

    Every field is checked; a row with a missing or mistyped column raises
    PersistenceError instead of being patched with defaults.
    """
    problems: list[str] = []

    user_id = row.get("user_id")
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        problems.append(f"user_id={user_id!r}")

    texts: dict[str, str] = {}
    for name in _TEXT_FIELDS:
        value = row.get(name)
        if not isinstance(value, str):
            problems.append(f"{name}={value!r}")
        else:
            texts[name] = value

    flag = row.get("has_approved_nomination")
    if isinstance(flag, int) and not isinstance(flag, bool) and flag in (0, 1):
        flag = bool(flag)
    if not isinstance(flag, bool):
        problems.append(f"has_approved_nomination={flag!r}")

    if problems:
        raise PersistenceError(f"Malformed profile row: {', '.join(problems)}")

    return ProfileRecord(
        user_id=user_id,  # type: ignore[arg-type]
        has_approved_nomination=flag,  # type: ignore[arg-type]
        **texts,
    )


def get_profile(s: "Session", user_id: int) -> ProfileRecord | None:
    """Fresh read of a user's profile; None when the user has none."""
    with store_call("profile lookup"):
        row = s.execute(select(Profile.__table__).where(Profile.user_id == user_id)).mappings().one_or_none()
    return profile_from_row(row) if row is not None else None


def get_profiles(s: "Session", user_ids: Iterable[int]) -> dict[int, ProfileRecord]:
    ids = sorted(set(user_ids))
    if not ids:
        return {}
    with store_call("profile batch lookup"):
        rows = s.execute(select(Profile.__table__).where(Profile.user_id.in_(ids))).mappings().all()
    out: dict[int, ProfileRecord] = {}
    for row in rows:
        rec = profile_from_row(row)
        out[rec.user_id] = rec
    return out


def create_profile(
    s: "Session",
    user: "User",
    *,
    first_name: str,
    last_name: str,
    linkedin_profile: str = "",
) -> Profile:
    now = datetime.utcnow()
    profile = Profile(
        user_id=user.id,
        first_name=(first_name or "").strip(),
        last_name=(last_name or "").strip(),
        email=user.email,
        linkedin_profile=(linkedin_profile or "").strip(),
        has_approved_nomination=False,
        created_at=now,
        updated_at=now,
    )
    with store_call("profile create"):
        s.add(profile)
        s.flush()
    return profile


def mark_has_approved_nomination(s: "Session", user: "User") -> None:
    """
    Grant directory access to `user`. Runs inside the caller's transaction so the
    flag commits together with the approval that earned it.
    """
    now = datetime.utcnow()
    with store_call("profile access flag update"):
        result = s.execute(
            update(Profile)
            .where(Profile.user_id == user.id)
            .values(has_approved_nomination=True, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            return
        # Nominator never got a profile row (e.g. account created out of band).
        logger.warning("No profile for user_id=%s; creating one to record directory access", user.id)
        s.add(
            Profile(
                user_id=user.id,
                first_name="",
                last_name="",
                email=user.email,
                linkedin_profile="",
                has_approved_nomination=True,
                created_at=now,
                updated_at=now,
            )
        )
        s.flush()
