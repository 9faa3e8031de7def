from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from flask import current_app
from sqlalchemy import update

from app.bestbosses.db import store_call
from app.bestbosses.errors import NotificationError
from app.bestbosses.modules.notifications.dispatchers import Dispatcher, dispatcher_from_config
from app.bestbosses.modules.notifications.messages import NOTIFICATION_TYPES
from app.bestbosses.modules.notifications.models import (
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SENDING,
    STATUS_SENT,
    NotificationOutbox,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from flask import Flask
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


@dataclass
class DeliveryReport:
    sent: int = 0
    failed: int = 0
    warnings: list[str] = field(default_factory=list)


def get_dispatcher(app: "Flask | None" = None) -> Dispatcher:
    app = app or current_app._get_current_object()  # type: ignore[attr-defined]
    dispatcher = app.extensions.get("notification_dispatcher")
    if dispatcher is None:
        dispatcher = dispatcher_from_config(app.config)
        app.extensions["notification_dispatcher"] = dispatcher
    return dispatcher


def enqueue_notification(
    s: "Session",
    kind: str,
    to: str,
    data: dict[str, Any],
    *,
    nomination_id: int | None = None,
) -> NotificationOutbox:
    """Queue a message in the caller's transaction. Nothing is sent until `deliver_pending`."""
    if kind not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {kind!r}")
    msg = NotificationOutbox(
        kind=kind,
        recipient=(to or "").strip(),
        payload_json=json.dumps(data, sort_keys=True),
        nomination_id=nomination_id,
        status=STATUS_PENDING,
        attempts=0,
        created_at=datetime.utcnow(),
    )
    with store_call("outbox enqueue"):
        s.add(msg)
        s.flush()
    return msg


def _claim(s: "Session", msg_id: int) -> NotificationOutbox | None:
    """
    Move one message `pending -> sending` and commit, so a concurrent deliverer
    (another request, the retry button, drain_outbox) skips it.
    """
    with store_call("outbox claim"):
        result = s.execute(
            update(NotificationOutbox)
            .where(NotificationOutbox.id == msg_id, NotificationOutbox.status == STATUS_PENDING)
            .values(status=STATUS_SENDING, attempts=NotificationOutbox.attempts + 1)
            .execution_options(synchronize_session=False)
        )
        s.commit()
        if result.rowcount != 1:
            return None
        return s.get(NotificationOutbox, msg_id, populate_existing=True)


def deliver_pending(
    s: "Session",
    *,
    dispatcher: Dispatcher | None = None,
    ids: "Iterable[int] | None" = None,
    max_attempts: int | None = None,
) -> DeliveryReport:
    """
    Deliver queued messages (all pending ones, or only `ids`) and commit the outcome.

    Call this after the transaction that enqueued the messages has committed.
    Each message is claimed before it is handed to the dispatcher, so it is
    sent at most once even when several deliverers run at the same time.
    Dispatch failures are logged and reported as warnings; they never raise.
    """
    dispatcher = dispatcher or get_dispatcher()
    if max_attempts is None:
        max_attempts = int(current_app.config.get("NOTIFICATION_MAX_ATTEMPTS") or DEFAULT_MAX_ATTEMPTS)

    with store_call("outbox read"):
        q = s.query(NotificationOutbox.id).filter(NotificationOutbox.status == STATUS_PENDING)
        if ids is not None:
            id_list = list(ids)
            if not id_list:
                return DeliveryReport()
            q = q.filter(NotificationOutbox.id.in_(id_list))
        candidates = [row_id for (row_id,) in q.order_by(NotificationOutbox.id.asc()).all()]

    report = DeliveryReport()
    for msg_id in candidates:
        msg = _claim(s, msg_id)
        if msg is None:
            continue
        try:
            dispatcher.send(msg.kind, msg.recipient, json.loads(msg.payload_json or "{}"))
        except NotificationError as e:
            msg.last_error = str(e)[:1024]
            msg.status = STATUS_FAILED if msg.attempts >= max_attempts else STATUS_PENDING
            report.failed += 1
            report.warnings.append(f"Could not send {msg.kind} email to {msg.recipient}: {e}")
            logger.warning(
                "Notification %s (%s to %s) failed on attempt %s: %s",
                msg.id,
                msg.kind,
                msg.recipient,
                msg.attempts,
                e,
            )
        else:
            msg.status = STATUS_SENT
            msg.sent_at = datetime.utcnow()
            msg.last_error = None
            report.sent += 1
        with store_call("outbox update"):
            s.commit()
    return report


def notify_after_commit(s: "Session", nomination_id: int, *, dispatcher: Dispatcher | None = None) -> DeliveryReport:
    """Deliver whatever a just-committed lifecycle step queued for `nomination_id`."""
    with store_call("outbox read"):
        ids = [
            row_id
            for (row_id,) in s.query(NotificationOutbox.id)
            .filter(NotificationOutbox.nomination_id == nomination_id)
            .filter(NotificationOutbox.status == STATUS_PENDING)
            .all()
        ]
    return deliver_pending(s, dispatcher=dispatcher, ids=ids)


def requeue_failed(s: "Session") -> int:
    """Give messages that exhausted their attempts another round."""
    with store_call("outbox requeue"):
        failed = s.query(NotificationOutbox).filter(NotificationOutbox.status == STATUS_FAILED).all()
        for msg in failed:
            msg.status = STATUS_PENDING
            msg.attempts = 0
        s.flush()
    return len(failed)
