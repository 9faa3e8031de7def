"""
Nomination lifecycle service.

Handles submission, moderation transitions (pending -> approved | rejected),
Boss materialization and the notifications each step queues.

Transitions are conditional updates (`... WHERE status = 'pending'`), so two
moderators racing on the same nomination cannot both win: the loser gets
InvalidStateError. Repeating approve/reject on a decided nomination is also an
InvalidStateError rather than a silent no-op.

Callers own the transaction: commit after a successful call, then deliver the
queued notifications (see notifications.service.notify_after_commit).
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING
from urllib.parse import quote

from flask import current_app
from sqlalchemy import func, update

from app.bestbosses.audit import record_event
from app.bestbosses.db import store_call
from app.bestbosses.errors import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from app.bestbosses.models import User
from app.bestbosses.modules.notifications import messages
from app.bestbosses.modules.notifications.models import NotificationOutbox
from app.bestbosses.modules.notifications.service import enqueue_notification
from app.bestbosses.modules.profiles.service import ProfileRecord, get_profile, get_profiles, mark_has_approved_nomination
from app.bestbosses.rbac import is_admin
from app.bestbosses.utils import column_max_lengths, is_valid_email, length_errors

from .models import Boss, Nomination

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.bestbosses.viewer import Viewer

logger = logging.getLogger(__name__)


REVIEW_MIN_LENGTH = 100

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
VALID_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)

# Valid status transitions
STATUS_TRANSITIONS = {
    STATUS_PENDING: {STATUS_APPROVED, STATUS_REJECTED},
    STATUS_APPROVED: set(),
    STATUS_REJECTED: set(),
}

INDUSTRIES = sorted([
    "Consulting", "Education", "Finance", "Government", "Healthcare", "Human Resources",
    "Legal", "Manufacturing", "Marketing", "Non-profit", "Operations", "Real Estate",
    "Retail", "Sales", "Technology", "Other",
])

FUNCTIONS = sorted([
    "Business Development", "Customer Success", "Data Science", "Design", "Engineering",
    "Finance", "Human Resources", "IT", "Legal", "Marketing", "Operations",
    "Product Management", "Quality Assurance", "Sales", "Strategy", "Other",
])

# Form/payload field -> label used in validation messages.
NOMINATION_FIELDS = {
    "boss_first_name": "Boss first name",
    "boss_last_name": "Boss last name",
    "company": "Company",
    "location": "Location",
    "industry": "Industry",
    "function": "Function",
    "email": "Boss email",
    "linkedin_profile": "LinkedIn profile",
    "review": "Review",
}

# Column sizes; longer values are rejected before they reach the database.
NOMINATION_MAX_LENGTHS = column_max_lengths(Nomination.__table__)


# ---------- Slugs & URLs ----------

def boss_slug(first_name: str, last_name: str, nomination_id: int) -> str:
    """`lowercase(first)-lowercase(last)-<nomination id>`; the id suffix carries uniqueness."""
    return f"{(first_name or '').lower()}-{(last_name or '').lower()}-{nomination_id}"


def nomination_slug(nomination: Nomination) -> str:
    return boss_slug(nomination.boss_first_name, nomination.boss_last_name, nomination.id)


def boss_profile_url(base_url: str, slug: str) -> str:
    return f"{base_url.rstrip('/')}/boss/{quote(slug, safe='-')}"


def directory_url(base_url: str) -> str:
    return f"{base_url.rstrip('/')}/directory"


# ---------- Validation ----------

def validate_nomination_payload(payload: dict) -> list[str]:
    """Validate a submission payload. Returns list of errors (empty when valid)."""
    errors: list[str] = []
    for key, label in NOMINATION_FIELDS.items():
        value = payload.get(key)
        if not isinstance(value, str) or not value.strip():
            errors.append(f"{label} is required.")
    errors.extend(length_errors(payload, NOMINATION_FIELDS, NOMINATION_MAX_LENGTHS))

    industry = payload.get("industry")
    if isinstance(industry, str) and industry.strip() and industry not in INDUSTRIES:
        errors.append(f"Invalid industry. Must be one of: {', '.join(INDUSTRIES)}")

    function = payload.get("function")
    if isinstance(function, str) and function.strip() and function not in FUNCTIONS:
        errors.append(f"Invalid function. Must be one of: {', '.join(FUNCTIONS)}")

    email = payload.get("email")
    if isinstance(email, str) and email.strip() and not is_valid_email(email.strip()):
        errors.append("Boss email is not a valid email address.")

    review = payload.get("review")
    if isinstance(review, str) and review.strip() and len(review) < REVIEW_MIN_LENGTH:
        errors.append(
            f"Please provide at least {REVIEW_MIN_LENGTH} characters explaining why you'd "
            f"recommend this person ({len(review)} so far)."
        )
    return errors


# ---------- Reads ----------

def get_nomination(s: "Session", nomination_id: int) -> Nomination:
    with store_call("nomination lookup"):
        nomination = s.get(Nomination, nomination_id)
    if nomination is None:
        raise NotFoundError(f"Nomination {nomination_id} not found")
    return nomination


def list_nominations(s: "Session", status: str | None = None) -> list[tuple[Nomination, ProfileRecord | None]]:
    """Moderation queue: newest first, each paired with the nominator's profile."""
    with store_call("nomination list"):
        q = s.query(Nomination)
        if status:
            q = q.filter(Nomination.status == status)
        nominations = q.order_by(Nomination.created_at.desc(), Nomination.id.desc()).all()
    profiles = get_profiles(s, (n.nominator_id for n in nominations))
    return [(n, profiles.get(n.nominator_id)) for n in nominations]


def nominations_for_nominator(s: "Session", user_id: int) -> list[Nomination]:
    with store_call("nominations by nominator"):
        return (
            s.query(Nomination)
            .filter(Nomination.nominator_id == user_id)
            .order_by(Nomination.created_at.desc(), Nomination.id.desc())
            .all()
        )


def count_by_status(s: "Session") -> dict[str, int]:
    with store_call("nomination counts"):
        rows = s.query(Nomination.status, func.count(Nomination.id)).group_by(Nomination.status).all()
    counts = {st: 0 for st in VALID_STATUSES}
    counts.update({st: int(n) for st, n in rows})
    return counts


# ---------- Helpers ----------

def _require_moderator(actor: "Viewer", admin_email: str | None) -> None:
    if not is_admin(actor, admin_email):
        raise AuthorizationError("Only the administrator can moderate nominations.")


def _nominator(s: "Session", nomination: Nomination) -> tuple[User, ProfileRecord | None]:
    with store_call("nominator lookup"):
        user = s.get(User, nomination.nominator_id)
    if user is None:
        raise NotFoundError(f"Nominator {nomination.nominator_id} not found")
    return user, get_profile(s, user.id)


def _transition(s: "Session", nomination_id: int, new_status: str, actor: "Viewer") -> Nomination:
    """Atomic conditional update out of `pending`."""
    if new_status not in STATUS_TRANSITIONS[STATUS_PENDING]:
        raise ValueError(f"Invalid status: {new_status}")

    now = datetime.utcnow()
    with store_call(f"nomination {new_status} update"):
        result = s.execute(
            update(Nomination)
            .where(Nomination.id == nomination_id, Nomination.status == STATUS_PENDING)
            .values(status=new_status, updated_at=now, reviewed_at=now, reviewed_by_user_id=actor.id)
            .execution_options(synchronize_session=False)
        )
        nomination = s.get(Nomination, nomination_id, populate_existing=True)

    if nomination is None:
        raise NotFoundError(f"Nomination {nomination_id} not found")
    if result.rowcount != 1:
        raise InvalidStateError(
            f"Cannot transition from '{nomination.status}' to '{new_status}': "
            "only pending nominations can be moderated."
        )
    return nomination


def _boss_notification_data(nomination: Nomination, nominator: ProfileRecord | None, base_url: str) -> dict[str, str]:
    profile_url = boss_profile_url(base_url, nomination_slug(nomination))
    return {
        "boss_first_name": nomination.boss_first_name,
        "boss_last_name": nomination.boss_last_name,
        "nominator_name": nominator.full_name if nominator else "",
        "review": nomination.review,
        "industry": nomination.industry,
        "function": nomination.function,
        "boss_profile_url": profile_url,
        "certificate_url": f"{profile_url}#certificate",
    }


def materialize_boss(s: "Session", nomination: Nomination) -> Boss:
    """Create the directory row for an approved nomination (no-op if it already exists)."""
    if nomination.status != STATUS_APPROVED:
        raise InvalidStateError(f"Nomination {nomination.id} is {nomination.status}; only approved nominations become bosses.")
    with store_call("boss lookup"):
        existing = s.query(Boss).filter(Boss.nomination_id == nomination.id).one_or_none()
    if existing is not None:
        return existing

    now = datetime.utcnow()
    boss = Boss(
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
        created_at=now,
        updated_at=now,
    )
    with store_call("boss create"):
        s.add(boss)
        s.flush()
    return boss


# ---------- Lifecycle ----------

def submit_nomination(s: "Session", viewer: "Viewer", payload: dict) -> Nomination:
    """Persist a new `pending` nomination for `viewer` and queue their receipt email."""
    if not viewer.is_authenticated:
        raise AuthorizationError("Please log in to nominate a boss.")

    errors = validate_nomination_payload(payload)
    if errors:
        raise ValidationError(errors)

    now = datetime.utcnow()
    nomination = Nomination(
        nominator_id=viewer.id,
        status=STATUS_PENDING,
        created_at=now,
        updated_at=now,
        **{key: payload[key] for key in NOMINATION_FIELDS},
    )
    with store_call("nomination create"):
        s.add(nomination)
        s.flush()

    profile = get_profile(s, viewer.id)  # type: ignore[arg-type]
    enqueue_notification(
        s,
        messages.NOMINATION_SUBMITTED,
        profile.email if profile else (viewer.email or ""),
        {
            "nominator_first_name": profile.first_name if profile else "",
            "boss_name": nomination.boss_name,
        },
        nomination_id=nomination.id,
    )

    record_event(
        s,
        actor=viewer,
        action="nomination.submit",
        entity_type="Nomination",
        entity_id=str(nomination.id),
        metadata={"boss_name": nomination.boss_name, "company": nomination.company},
    )
    return nomination


def approve_nomination(
    s: "Session",
    nomination_id: int,
    *,
    actor: "Viewer",
    base_url: str,
    admin_email: str | None = None,
    materialize: bool | None = None,
) -> Nomination:
    """
    pending -> approved.

    In the same transaction: grant the nominator directory access, materialize
    the Boss row (unless disabled) and queue the nominator and boss emails.
    """
    _require_moderator(actor, admin_email)
    nomination = _transition(s, nomination_id, STATUS_APPROVED, actor)

    nominator_user, nominator_profile = _nominator(s, nomination)
    mark_has_approved_nomination(s, nominator_user)

    if materialize is None:
        materialize = bool(current_app.config.get("MATERIALIZE_BOSS_ON_APPROVE", True))
    if materialize:
        materialize_boss(s, nomination)

    slug = nomination_slug(nomination)
    enqueue_notification(
        s,
        messages.NOMINATION_APPROVED_NOMINATOR,
        nominator_profile.email if nominator_profile else nominator_user.email,
        {
            "nominator_first_name": nominator_profile.first_name if nominator_profile else "",
            "boss_name": nomination.boss_name,
            "directory_url": directory_url(base_url),
            "boss_profile_url": boss_profile_url(base_url, slug),
        },
        nomination_id=nomination.id,
    )
    enqueue_notification(
        s,
        messages.NOMINATION_APPROVED_BOSS,
        nomination.email,
        _boss_notification_data(nomination, nominator_profile, base_url),
        nomination_id=nomination.id,
    )

    record_event(
        s,
        actor=actor,
        action="nomination.approve",
        entity_type="Nomination",
        entity_id=str(nomination.id),
        metadata={
            "from": STATUS_PENDING,
            "to": STATUS_APPROVED,
            "slug": slug,
            "nominator_id": nomination.nominator_id,
            "materialized": materialize,
        },
    )
    logger.info("Nomination %s approved by %s (slug=%s)", nomination.id, actor.email, slug)
    return nomination


def reject_nomination(
    s: "Session",
    nomination_id: int,
    *,
    actor: "Viewer",
    reason: str | None = None,
    admin_email: str | None = None,
) -> Nomination:
    """pending -> rejected. No notifications."""
    _require_moderator(actor, admin_email)
    nomination = _transition(s, nomination_id, STATUS_REJECTED, actor)
    record_event(
        s,
        actor=actor,
        action="nomination.reject",
        entity_type="Nomination",
        entity_id=str(nomination.id),
        reason=reason or None,
        metadata={"from": STATUS_PENDING, "to": STATUS_REJECTED},
    )
    logger.info("Nomination %s rejected by %s", nomination.id, actor.email)
    return nomination


def resend_boss_notification(
    s: "Session",
    nomination_id: int,
    *,
    actor: "Viewer",
    base_url: str,
    admin_email: str | None = None,
) -> NotificationOutbox:
    """Queue the boss-facing approval email again. Approved nominations only."""
    _require_moderator(actor, admin_email)
    nomination = get_nomination(s, nomination_id)
    if nomination.status != STATUS_APPROVED:
        raise InvalidStateError(
            f"Nomination {nomination.id} is {nomination.status}; the boss email can only be resent for approved nominations."
        )
    _, nominator_profile = _nominator(s, nomination)
    msg = enqueue_notification(
        s,
        messages.NOMINATION_APPROVED_BOSS,
        nomination.email,
        _boss_notification_data(nomination, nominator_profile, base_url),
        nomination_id=nomination.id,
    )
    record_event(
        s,
        actor=actor,
        action="nomination.resend_boss_email",
        entity_type="Nomination",
        entity_id=str(nomination.id),
        metadata={"to": nomination.email, "outbox_id": msg.id},
    )
    return msg
