"""
Error taxonomy shared by the service layer and the HTTP layer.

Services raise these; blueprints translate them into flashes, redirects and
error pages (see `create_app` for the app-wide handlers).
"""
from __future__ import annotations


class BestBossesError(Exception):
    pass


class ValidationError(BestBossesError, ValueError):
    """Input rejected before anything was persisted."""

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors: list[str] = list(errors)
        super().__init__("; ".join(self.errors))


class NotFoundError(BestBossesError):
    pass


class AuthorizationError(BestBossesError):
    """Viewer is not allowed to see directory content (distinct from not-found)."""


class InvalidStateError(BestBossesError):
    pass


class NotificationError(BestBossesError, RuntimeError):
    """Dispatch failure. Always recovered locally by the outbox."""


class PersistenceError(BestBossesError, RuntimeError):
    """Store call failed, or a stored row could not be mapped."""
