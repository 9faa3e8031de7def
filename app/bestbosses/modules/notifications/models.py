from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.bestbosses.models import Base


STATUS_PENDING = "pending"
STATUS_SENDING = "sending"
STATUS_SENT = "sent"
STATUS_FAILED = "failed"
OUTBOX_STATUSES = (STATUS_PENDING, STATUS_SENDING, STATUS_SENT, STATUS_FAILED)


class NotificationOutbox(Base):
    """
    Outgoing email, written in the same transaction as the state change that
    caused it and delivered after commit.
    """

    __tablename__ = "notification_outbox"
    __table_args__ = (
        Index("idx_notification_outbox_status", "status"),
        Index("idx_notification_outbox_nomination_id", "nomination_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    kind: Mapped[str] = mapped_column(String(64), nullable=False)  # e.g. "nomination_approved_boss"
    recipient: Mapped[str] = mapped_column(String(320), nullable=False)
    payload_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    nomination_id: Mapped[int | None] = mapped_column(ForeignKey("nominations.id", ondelete="SET NULL"), nullable=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING)  # see OUTBOX_STATUSES
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
