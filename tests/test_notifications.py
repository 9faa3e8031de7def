"""Tests for email composition, dispatch backends and the notification outbox."""
import smtplib
from datetime import date

import pytest

from app.bestbosses import create_app
from app.bestbosses.errors import NotificationError
from app.bestbosses.models import Base
from app.bestbosses.modules.notifications import messages
from app.bestbosses.modules.notifications.dispatchers import (
    Dispatcher,
    LogDispatcher,
    SmtpDispatcher,
    dispatcher_from_config,
)
from app.bestbosses.modules.notifications.models import NotificationOutbox
from app.bestbosses.modules.notifications.service import (
    _claim,
    deliver_pending,
    enqueue_notification,
    requeue_failed,
)


class FailingDispatcher(Dispatcher):
    def __init__(self):
        self.calls = 0

    def send(self, kind, to, data):
        self.calls += 1
        raise NotificationError("mailbox unavailable")


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("NOTIFICATION_BACKEND", "log")
    monkeypatch.setenv("NOTIFICATION_MAX_ATTEMPTS", "2")
    monkeypatch.delenv("SMTP_SERVER", raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    return app


@pytest.fixture()
def s(app):
    with app.app_context():
        session = app.extensions["sqlalchemy_sessionmaker"]()
        try:
            yield session
        finally:
            session.close()


BOSS_DATA = {
    "boss_first_name": "Jane",
    "boss_last_name": "Doe",
    "nominator_name": "Alice Able",
    "review": "Jane <b>always</b> had our backs.",
    "industry": "Technology",
    "function": "Engineering",
    "boss_profile_url": "https://bestbosses.example/boss/jane-doe-1",
    "certificate_url": "https://bestbosses.example/boss/jane-doe-1#certificate",
}


# ---------- Composition ----------

def test_subjects():
    assert messages.compose_message(messages.CONFIRMATION, {"confirmation_link": "https://x/c"}).subject == (
        "Please confirm your Best Bosses registration"
    )
    assert messages.compose_message(
        messages.NOMINATION_SUBMITTED, {"nominator_first_name": "Alice", "boss_name": "Jane Doe"}
    ).subject == "Thank you for your nomination!"
    assert messages.compose_message(
        messages.NOMINATION_APPROVED_NOMINATOR,
        {"nominator_first_name": "Alice", "boss_name": "Jane Doe", "directory_url": "d", "boss_profile_url": "p"},
    ).subject == "Your nomination of Jane Doe was approved!"
    assert messages.compose_message(messages.NOMINATION_APPROVED_BOSS, BOSS_DATA).subject == (
        "Alice Able Nominated You As a Best Boss!"
    )


def test_boss_email_escapes_review_and_links_certificate():
    content = messages.compose_message(messages.NOMINATION_APPROVED_BOSS, BOSS_DATA, issued=date(2024, 3, 5))
    assert "<b>always</b>" not in content.html
    assert "&lt;b&gt;always&lt;/b&gt;" in content.html
    assert "<b>always</b>" in content.text
    assert BOSS_DATA["certificate_url"] in content.html
    assert "organizationId=99177270" in content.html
    assert "issueYear=2024" in content.html
    assert "issueMonth=3" in content.html


def test_nominator_email_shares_profile_on_linkedin():
    content = messages.compose_message(
        messages.NOMINATION_APPROVED_NOMINATOR,
        {
            "nominator_first_name": "Alice",
            "boss_name": "Jane Doe",
            "directory_url": "https://bestbosses.example/directory",
            "boss_profile_url": "https://bestbosses.example/boss/jane-doe-1",
        },
    )
    assert "Hi Alice," in content.html
    assert "https://bestbosses.example/directory" in content.html
    assert "linkedin.com/feed/?shareActive=true" in content.html
    assert "https://bestbosses.example/boss/jane-doe-1" in content.text


def test_linkedin_urls_are_encoded():
    url = messages.linkedin_add_certification_url("https://x.example/boss/a-b-1", date(2025, 11, 1))
    assert "certUrl=https%3A%2F%2Fx.example%2Fboss%2Fa-b-1" in url
    assert "name=Certified%20Best%20Boss" in url
    assert "issueMonth=11" in url
    assert messages.job_posting_mailto("https://x.example/p").startswith("mailto:?subject=Add%20to%20My%20Job%20Posting")


def test_unknown_type_is_rejected():
    with pytest.raises(NotificationError):
        messages.compose_message("welcome_gift", {})


# ---------- Dispatchers ----------

def test_log_dispatcher_records_and_validates():
    d = LogDispatcher()
    d.send(messages.CONFIRMATION, "alice@example.com", {"confirmation_link": "https://x/c"})
    assert d.sent == [(messages.CONFIRMATION, "alice@example.com", {"confirmation_link": "https://x/c"})]
    with pytest.raises(NotificationError):
        d.send(messages.CONFIRMATION, "  ", {})
    with pytest.raises(NotificationError):
        d.send("bogus", "alice@example.com", {})


def test_dispatcher_from_config():
    assert isinstance(dispatcher_from_config({"NOTIFICATION_BACKEND": "log"}), LogDispatcher)
    smtp = dispatcher_from_config(
        {"NOTIFICATION_BACKEND": "smtp", "SMTP_SERVER": "mail.example", "SMTP_PORT": 2525, "EMAIL_FROM": "a@b.c"}
    )
    assert isinstance(smtp, SmtpDispatcher)
    assert smtp.port == 2525
    with pytest.raises(RuntimeError):
        dispatcher_from_config({"NOTIFICATION_BACKEND": "carrier-pigeon"})


def test_smtp_dispatcher_without_server_fails():
    d = SmtpDispatcher(server="", port=587, use_tls=True, username="", password="", email_from="a@b.c")
    with pytest.raises(NotificationError):
        d.send(messages.CONFIRMATION, "alice@example.com", {"confirmation_link": "https://x/c"})


def test_smtp_connection_errors_become_notification_errors(monkeypatch):
    def _refuse(*args, **kwargs):
        raise ConnectionRefusedError("connection refused")

    monkeypatch.setattr(smtplib, "SMTP", _refuse)
    d = SmtpDispatcher(server="mail.example", port=587, use_tls=True, username="", password="", email_from="a@b.c")
    with pytest.raises(NotificationError, match="connection refused"):
        d.send(messages.CONFIRMATION, "alice@example.com", {"confirmation_link": "https://x/c"})


def test_smtp_dispatcher_sends_multipart(monkeypatch):
    sent = []

    class FakeSMTP:
        def __init__(self, server, port, timeout=None):
            self.server = server

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def starttls(self):
            sent.append("starttls")

        def login(self, username, password):
            sent.append(("login", username))

        def send_message(self, msg):
            sent.append(msg)

    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    d = SmtpDispatcher(
        server="mail.example", port=587, use_tls=True, username="u", password="p", email_from="Best Bosses <info@x.org>"
    )
    d.send(messages.NOMINATION_SUBMITTED, "alice@example.com", {"nominator_first_name": "Alice", "boss_name": "Jane Doe"})

    assert sent[0] == "starttls"
    assert sent[1] == ("login", "u")
    msg = sent[2]
    assert msg["To"] == "alice@example.com"
    assert msg["Subject"] == "Thank you for your nomination!"
    assert msg.is_multipart()


# ---------- Outbox ----------

def test_enqueue_rejects_unknown_type(s):
    with pytest.raises(ValueError):
        enqueue_notification(s, "bogus", "a@b.c", {})


def test_deliver_pending_marks_sent(app, s):
    enqueue_notification(s, messages.CONFIRMATION, "alice@example.com", {"confirmation_link": "https://x/c"})
    s.commit()

    report = deliver_pending(s)
    assert (report.sent, report.failed) == (1, 0)
    msg = s.query(NotificationOutbox).one()
    assert msg.status == "sent"
    assert msg.attempts == 1
    assert msg.sent_at is not None
    assert app.extensions["notification_dispatcher"].sent[0][1] == "alice@example.com"

    # Already-sent messages are not sent twice.
    assert deliver_pending(s).sent == 0


def test_failures_retry_until_max_attempts(s):
    enqueue_notification(s, messages.CONFIRMATION, "alice@example.com", {"confirmation_link": "https://x/c"})
    s.commit()
    failing = FailingDispatcher()

    report = deliver_pending(s, dispatcher=failing)
    assert report.failed == 1
    assert report.warnings and "mailbox unavailable" in report.warnings[0]
    msg = s.query(NotificationOutbox).one()
    assert (msg.status, msg.attempts) == ("pending", 1)

    deliver_pending(s, dispatcher=failing)
    assert (msg.status, msg.attempts) == ("failed", 2)

    # Failed messages are left alone until requeued.
    deliver_pending(s, dispatcher=failing)
    assert failing.calls == 2

    assert requeue_failed(s) == 1
    s.commit()
    report = deliver_pending(s)
    assert report.sent == 1
    assert msg.status == "sent"
    assert msg.last_error is None


def test_deliver_only_selected_ids(s):
    a = enqueue_notification(s, messages.CONFIRMATION, "a@example.com", {"confirmation_link": "https://x/a"})
    enqueue_notification(s, messages.CONFIRMATION, "b@example.com", {"confirmation_link": "https://x/b"})
    s.commit()

    assert deliver_pending(s, ids=[a.id]).sent == 1
    assert deliver_pending(s, ids=[]).sent == 0
    statuses = {m.recipient: m.status for m in s.query(NotificationOutbox).all()}
    assert statuses == {"a@example.com": "sent", "b@example.com": "pending"}


class ReentrantDispatcher(LogDispatcher):
    """Runs a second deliverer on another session while the first send is in flight."""

    def __init__(self, other_session):
        super().__init__()
        self.other_session = other_session
        self.nested_reports = []

    def send(self, kind, to, data):
        if not self.nested_reports:
            self.nested_reports.append(deliver_pending(self.other_session, dispatcher=self))
        super().send(kind, to, data)


def test_concurrent_deliverers_send_once(app, s):
    enqueue_notification(s, messages.CONFIRMATION, "alice@example.com", {"confirmation_link": "https://x/c"})
    s.commit()

    other = app.extensions["sqlalchemy_sessionmaker"]()
    try:
        d = ReentrantDispatcher(other)
        report = deliver_pending(s, dispatcher=d)
    finally:
        other.close()

    assert report.sent == 1
    assert d.nested_reports[0].sent == 0
    assert len(d.sent) == 1
    msg = s.query(NotificationOutbox).one()
    assert (msg.status, msg.attempts) == ("sent", 1)


def test_claim_is_won_by_one_session(app, s):
    msg = enqueue_notification(s, messages.CONFIRMATION, "alice@example.com", {"confirmation_link": "https://x/c"})
    s.commit()

    other = app.extensions["sqlalchemy_sessionmaker"]()
    try:
        claimed = _claim(s, msg.id)
        assert claimed is not None
        assert (claimed.status, claimed.attempts) == ("sending", 1)
        assert _claim(other, msg.id) is None
    finally:
        other.close()

    # A message stuck in "sending" is not picked up by a later run.
    assert deliver_pending(s).sent == 0
