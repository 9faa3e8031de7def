from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from flask import g

if TYPE_CHECKING:
    from app.bestbosses.models import User


@dataclass(frozen=True)
class Viewer:
    """
    Who is making the current request. Built per request from the session
    user and passed explicitly to the access gate and lifecycle services.
    """

    id: int | None = None
    email: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.id is not None

    @classmethod
    def anonymous(cls) -> "Viewer":
        return cls()

    @classmethod
    def from_user(cls, user: "User | None") -> "Viewer":
        if user is None or not user.is_active:
            return cls.anonymous()
        return cls(id=user.id, email=(user.email or "").strip().lower())


def current_viewer() -> Viewer:
    return Viewer.from_user(getattr(g, "current_user", None))
