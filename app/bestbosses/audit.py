"""
Audit trail.

Every state-changing action (auth, nomination moderation, outbox retries)
appends one `audit_events` row in the caller's transaction, so the event
commits or rolls back together with the change it describes.
"""
from __future__ import annotations

import json
from typing import Any, Protocol

from flask import g, has_app_context, has_request_context, request
from sqlalchemy.orm import Session

from app.bestbosses.models import AuditEvent


class Actor(Protocol):
    """Anything with an id and email: a User row or a request Viewer."""

    id: int | None
    email: str | None


def _request_origin(request_id: str | None) -> tuple[str | None, str | None]:
    rid = request_id or (g.get("request_id") if has_app_context() else None)
    ip = request.remote_addr if has_request_context() else None
    return rid, ip


def record_event(
    s: Session,
    *,
    actor: Actor | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    rid, ip = _request_origin(request_id)
    ev = AuditEvent(
        request_id=rid,
        client_ip=ip,
        actor_user_id=getattr(actor, "id", None),
        actor_user_email=getattr(actor, "email", None),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        # datetimes and other non-JSON values are stored as their str()
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
    )
    s.add(ev)
    return ev
