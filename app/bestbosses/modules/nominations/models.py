from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.bestbosses.models import Base


class Nomination(Base):
    __tablename__ = "nominations"
    __table_args__ = (
        Index("idx_nominations_status", "status"),
        Index("idx_nominations_nominator_id", "nominator_id"),
        Index("idx_nominations_created_at", "created_at"),
        CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_nominations_status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Boss identity
    boss_first_name: Mapped[str] = mapped_column(String(128), nullable=False)
    boss_last_name: Mapped[str] = mapped_column(String(128), nullable=False)
    company: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    industry: Mapped[str] = mapped_column(String(128), nullable=False)
    function: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    linkedin_profile: Mapped[str] = mapped_column(String(512), nullable=False)
    review: Mapped[str] = mapped_column(Text, nullable=False)

    nominator_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")  # pending, approved, rejected

    # Moderation decision
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    reviewed_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    boss: Mapped["Boss | None"] = relationship("Boss", back_populates="nomination", uselist=False, lazy="selectin")

    @property
    def boss_name(self) -> str:
        return f"{self.boss_first_name} {self.boss_last_name}"


class Boss(Base):
    """Directory-visible projection of an approved nomination, addressable by slug."""

    __tablename__ = "bosses"
    __table_args__ = (
        Index("idx_bosses_slug", "slug", unique=True),
        Index("idx_bosses_nomination_id", "nomination_id", unique=True),
        Index("idx_bosses_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    nomination_id: Mapped[int] = mapped_column(ForeignKey("nominations.id", ondelete="CASCADE"), nullable=False)

    first_name: Mapped[str] = mapped_column(String(128), nullable=False)
    last_name: Mapped[str] = mapped_column(String(128), nullable=False)
    company: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    industry: Mapped[str] = mapped_column(String(128), nullable=False)
    function: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    linkedin_profile: Mapped[str] = mapped_column(String(512), nullable=False)
    review: Mapped[str] = mapped_column(Text, nullable=False)

    nominator_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    slug: Mapped[str] = mapped_column(String(600), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    nomination: Mapped[Nomination] = relationship("Nomination", back_populates="boss", lazy="selectin")
