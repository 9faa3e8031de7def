import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    admin_email: str
    public_base_url: str

    notification_backend: str
    smtp_server: str
    smtp_port: int
    smtp_use_tls: bool
    smtp_username: str
    smtp_password: str
    email_from: str
    notification_max_attempts: int

    materialize_boss_on_approve: bool


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_bool(name: str, default: bool) -> bool:
    raw = _getenv(name)
    if not raw:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer (got {raw!r}).")


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///bestbosses.db"),
        admin_email=_getenv("ADMIN_EMAIL", "").lower(),
        public_base_url=_getenv("PUBLIC_BASE_URL", "").rstrip("/"),
        notification_backend=_getenv("NOTIFICATION_BACKEND", "log").lower(),
        smtp_server=_getenv("SMTP_SERVER", ""),
        smtp_port=_getenv_int("SMTP_PORT", 587),
        smtp_use_tls=_getenv_bool("SMTP_USE_TLS", True),
        smtp_username=_getenv("SMTP_USERNAME", ""),
        smtp_password=_getenv("SMTP_PASSWORD", ""),
        email_from=_getenv("EMAIL_FROM", "Best Bosses <info@bestbosses.org>"),
        notification_max_attempts=_getenv_int("NOTIFICATION_MAX_ATTEMPTS", 5),
        materialize_boss_on_approve=_getenv_bool("MATERIALIZE_BOSS_ON_APPROVE", True),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "ADMIN_EMAIL": s.admin_email,
        "PUBLIC_BASE_URL": s.public_base_url,
        # notifications
        "NOTIFICATION_BACKEND": s.notification_backend,
        "SMTP_SERVER": s.smtp_server,
        "SMTP_PORT": s.smtp_port,
        "SMTP_USE_TLS": s.smtp_use_tls,
        "SMTP_USERNAME": s.smtp_username,
        "SMTP_PASSWORD": s.smtp_password,
        "EMAIL_FROM": s.email_from,
        "NOTIFICATION_MAX_ATTEMPTS": s.notification_max_attempts,
        # lifecycle
        "MATERIALIZE_BOSS_ON_APPROVE": s.materialize_boss_on_approve,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # nomination forms are small; 1MB is plenty
        "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,
    }
