from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import or_

from app.bestbosses.db import store_call
from app.bestbosses.errors import AuthorizationError, NotFoundError
from app.bestbosses.modules.nominations.models import Boss, Nomination
from app.bestbosses.modules.nominations.service import STATUS_APPROVED, nomination_slug
from app.bestbosses.modules.profiles.service import ProfileRecord, get_profile, get_profiles
from app.bestbosses.rbac import is_admin

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.bestbosses.viewer import Viewer

_NOMINATION_ID_RE = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class NominatorAttribution:
    first_name: str
    last_name: str
    linkedin_profile: str

    @classmethod
    def from_profile(cls, profile: ProfileRecord | None) -> "NominatorAttribution | None":
        if profile is None:
            return None
        return cls(profile.first_name, profile.last_name, profile.linkedin_profile)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class BossView:
    """What a boss profile page and a directory card show."""

    id: int
    nomination_id: int
    first_name: str
    last_name: str
    company: str
    location: str
    industry: str
    function: str
    email: str
    linkedin_profile: str
    review: str
    nominator_id: int
    slug: str
    nominator: NominatorAttribution | None
    materialized: bool
    listed_at: datetime | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


def _view_from_boss(boss: Boss, nominator: ProfileRecord | None) -> BossView:
    return BossView(
        id=boss.id,
        nomination_id=boss.nomination_id,
        first_name=boss.first_name,
        last_name=boss.last_name,
        company=boss.company,
        location=boss.location,
        industry=boss.industry,
        function=boss.function,
        email=boss.email,
        linkedin_profile=boss.linkedin_profile,
        review=boss.review,
        nominator_id=boss.nominator_id,
        slug=boss.slug,
        nominator=NominatorAttribution.from_profile(nominator),
        materialized=True,
        listed_at=boss.created_at,
    )


def _view_from_nomination(nomination: Nomination, nominator: ProfileRecord | None) -> BossView:
    return BossView(
        id=nomination.id,
        nomination_id=nomination.id,
        first_name=nomination.boss_first_name,
        last_name=nomination.boss_last_name,
        company=nomination.company,
        location=nomination.location,
        industry=nomination.industry,
        function=nomination.function,
        email=nomination.email,
        linkedin_profile=nomination.linkedin_profile,
        review=nomination.review,
        nominator_id=nomination.nominator_id,
        slug=nomination_slug(nomination),
        nominator=NominatorAttribution.from_profile(nominator),
        materialized=False,
        listed_at=nomination.reviewed_at or nomination.updated_at,
    )


# ---------- Access gate ----------

def can_view_directory(s: "Session", viewer: "Viewer", *, admin_email: str | None = None) -> bool:
    """
    True when the viewer is logged in and either has an approved nomination or
    is the configured admin. Read fresh from the profiles table on every call.
    """
    if not viewer.is_authenticated:
        return False
    if is_admin(viewer, admin_email):
        return True
    profile = get_profile(s, viewer.id)  # type: ignore[arg-type]
    return bool(profile and profile.has_approved_nomination)


def require_directory_access(s: "Session", viewer: "Viewer", *, admin_email: str | None = None) -> None:
    if not can_view_directory(s, viewer, admin_email=admin_email):
        raise AuthorizationError("Nominate a boss to unlock the directory.")


# ---------- Slug resolution ----------

def resolve_slug(s: "Session", slug: str) -> BossView | None:
    """
    Materialized Boss row first; otherwise treat the last `-` token as a
    nomination id and synthesize the view from that nomination if approved.
    """
    slug = slug or ""
    with store_call("boss lookup by slug"):
        boss = s.query(Boss).filter(Boss.slug == slug).one_or_none()
    if boss is not None:
        return _view_from_boss(boss, get_profile(s, boss.nominator_id))

    tokens = slug.split("-")
    if len(tokens) < 3:
        return None
    candidate = tokens[-1]
    if not _NOMINATION_ID_RE.fullmatch(candidate):
        return None

    with store_call("nomination lookup by slug"):
        nomination = (
            s.query(Nomination)
            .filter(Nomination.id == int(candidate), Nomination.status == STATUS_APPROVED)
            .one_or_none()
        )
    if nomination is None:
        return None
    nominator = get_profile(s, nomination.nominator_id)
    if nomination.boss is not None:
        return _view_from_boss(nomination.boss, nominator)
    return _view_from_nomination(nomination, nominator)


def require_boss_view(s: "Session", slug: str) -> BossView:
    view = resolve_slug(s, slug)
    if view is None:
        raise NotFoundError(f"No boss found for {slug!r}")
    return view


# ---------- Directory listing ----------

def list_directory(s: "Session", search: str = "") -> list[BossView]:
    """
    Every approved boss, newest first: materialized rows plus approved
    nominations that do not have a row yet.
    """
    search = (search or "").strip()
    like = f"%{search}%"

    with store_call("directory bosses"):
        q = s.query(Boss)
        if search:
            q = q.filter(
                or_(
                    Boss.first_name.ilike(like),
                    Boss.last_name.ilike(like),
                    Boss.company.ilike(like),
                    Boss.location.ilike(like),
                    Boss.industry.ilike(like),
                    Boss.function.ilike(like),
                )
            )
        bosses = q.all()

    with store_call("directory nominations"):
        nq = (
            s.query(Nomination)
            .outerjoin(Boss, Boss.nomination_id == Nomination.id)
            .filter(Nomination.status == STATUS_APPROVED)
            .filter(Boss.id.is_(None))
        )
        if search:
            nq = nq.filter(
                or_(
                    Nomination.boss_first_name.ilike(like),
                    Nomination.boss_last_name.ilike(like),
                    Nomination.company.ilike(like),
                    Nomination.location.ilike(like),
                    Nomination.industry.ilike(like),
                    Nomination.function.ilike(like),
                )
            )
        unmaterialized = nq.all()

    profiles = get_profiles(s, [b.nominator_id for b in bosses] + [n.nominator_id for n in unmaterialized])
    views = [_view_from_boss(b, profiles.get(b.nominator_id)) for b in bosses]
    views += [_view_from_nomination(n, profiles.get(n.nominator_id)) for n in unmaterialized]
    views.sort(key=lambda v: (v.listed_at or datetime.min, v.nomination_id), reverse=True)
    return views


# Shown (blurred) on the access-required page so visitors see what they are missing.
SAMPLE_PREVIEWS = [
    {
        "first_name": "Sarah",
        "last_name": "Chen",
        "company": "Tech Innovations Inc",
        "location": "San Francisco, CA",
        "industry": "Technology",
        "function": "Engineering Manager",
        "review": "Sarah transformed our engineering culture by implementing mentorship programs and "
        "creating a psychologically safe environment where everyone could contribute their best ideas.",
    },
    {
        "first_name": "Michael",
        "last_name": "Rodriguez",
        "company": "Global Marketing Solutions",
        "location": "New York, NY",
        "industry": "Marketing",
        "function": "Creative Director",
        "review": "Michael has an incredible ability to balance creative vision with practical business "
        "needs. He empowers his team to take creative risks while providing support and guidance.",
    },
    {
        "first_name": "Jennifer",
        "last_name": "Thompson",
        "company": "Healthcare Partners",
        "location": "Chicago, IL",
        "industry": "Healthcare",
        "function": "Operations Manager",
        "review": "Jennifer leads with empathy and strategic thinking. During challenging times, she "
        "maintained team morale while driving operational excellence.",
    },
]
