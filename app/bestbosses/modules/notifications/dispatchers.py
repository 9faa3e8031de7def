from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from app.bestbosses.errors import NotificationError
from app.bestbosses.modules.notifications.messages import NOTIFICATION_TYPES, compose_message

logger = logging.getLogger(__name__)


class Dispatcher:
    """send(type, to, data). Raises NotificationError when the message could not be handed off."""

    def send(self, kind: str, to: str, data: dict[str, Any]) -> None:
        raise NotImplementedError


def _check(kind: str, to: str) -> None:
    if kind not in NOTIFICATION_TYPES:
        raise NotificationError(f"Unknown notification type: {kind!r}")
    if not (to or "").strip():
        raise NotificationError(f"No recipient for {kind} notification")


class LogDispatcher(Dispatcher):
    """Development/test backend: composes the message, logs it and keeps it in memory."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, dict[str, Any]]] = []

    def send(self, kind: str, to: str, data: dict[str, Any]) -> None:
        _check(kind, to)
        content = compose_message(kind, data)
        self.sent.append((kind, to, dict(data)))
        logger.info("[EMAIL_LOG] to=%s type=%s subject=%r", to, kind, content.subject)


@dataclass(frozen=True)
class SmtpDispatcher(Dispatcher):
    server: str
    port: int
    use_tls: bool
    username: str
    password: str
    email_from: str
    timeout_seconds: int = 30

    def send(self, kind: str, to: str, data: dict[str, Any]) -> None:
        _check(kind, to)
        if not self.server:
            raise NotificationError("SMTP server not configured (SMTP_SERVER environment variable missing)")
        if not self.email_from:
            raise NotificationError("Email from address not configured (EMAIL_FROM environment variable missing)")

        content = compose_message(kind, data)
        msg = MIMEMultipart("alternative")
        msg.attach(MIMEText(content.text, "plain", "utf-8"))
        msg.attach(MIMEText(content.html, "html", "utf-8"))
        msg["Subject"] = content.subject
        msg["From"] = self.email_from
        msg["To"] = to

        try:
            with smtplib.SMTP(self.server, self.port, timeout=self.timeout_seconds) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(msg)
        except smtplib.SMTPAuthenticationError as e:
            raise NotificationError(f"SMTP authentication failed: {e}") from e
        except smtplib.SMTPException as e:
            raise NotificationError(f"SMTP error: {e}") from e
        except OSError as e:
            raise NotificationError(f"SMTP connection error: {e}") from e

        logger.info("[EMAIL_SUCCESS] Sent %s email to %s with subject: %s", kind, to, content.subject)


def dispatcher_from_config(config: dict) -> Dispatcher:
    backend = (config.get("NOTIFICATION_BACKEND") or "log").strip().lower()
    if backend == "smtp":
        return SmtpDispatcher(
            server=(config.get("SMTP_SERVER") or "").strip(),
            port=int(config.get("SMTP_PORT") or 587),
            use_tls=bool(config.get("SMTP_USE_TLS", True)),
            username=(config.get("SMTP_USERNAME") or "").strip(),
            password=config.get("SMTP_PASSWORD") or "",
            email_from=(config.get("EMAIL_FROM") or "").strip(),
        )
    if backend != "log":
        raise RuntimeError(f"Unknown NOTIFICATION_BACKEND {backend!r} (expected 'log' or 'smtp').")
    return LogDispatcher()
