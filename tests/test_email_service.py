import smtplib
from datetime import date
from types import SimpleNamespace

import pytest

from leave_mgmt.utils import email_service


class DummySMTP:
    sent = []

    def __init__(self, host, port, timeout=None, **kwargs):
        self.host, self.port = host, port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def ehlo(self):
        pass

    def starttls(self, context=None):
        pass

    def login(self, user, password):
        if password == "bad":
            raise smtplib.SMTPAuthenticationError(535, b"denied")

    def send_message(self, msg):
        DummySMTP.sent.append(msg)


@pytest.fixture
def smtp(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_USER", "mailer@example.com")
    monkeypatch.setenv("SMTP_PASS", "pw")
    for key in ("SMTP_PORT", "FROM_EMAIL", "FROM_NAME"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(smtplib, "SMTP", DummySMTP)
    DummySMTP.sent = []
    return DummySMTP


def _leave(**overrides):
    requester = SimpleNamespace(first_name="Ethan", email="emp@example.com")
    data = dict(
        id=12, user=requester, status="approved", leave_type=SimpleNamespace(name="Annual Leave"),
        start_date=date(2025, 6, 2), end_date=date(2025, 6, 3), number_of_days=2.0,
        rejection_reason=None, manager_notes=None,
    )
    data.update(overrides)
    return SimpleNamespace(**data)


APPROVER = SimpleNamespace(full_name="Mark Manager", email="manager@example.com")


def test_debug_mode_without_smtp_settings(monkeypatch):
    monkeypatch.delenv("SMTP_HOST", raising=False)
    assert email_service.send_email("a@example.com", "Hi", "body") is True


def test_send_email_uses_starttls(smtp):
    assert email_service.send_email("a@example.com", "Hello", "body", reply_to="b@example.com") is True
    msg = smtp.sent[0]
    assert msg["To"] == "a@example.com"
    assert msg["Reply-To"] == "b@example.com"
    assert msg["From"] == "Leave Portal <mailer@example.com>"


def test_authentication_failure_raises(smtp, monkeypatch):
    monkeypatch.setenv("SMTP_PASS", "bad")
    with pytest.raises(RuntimeError, match="Authentication"):
        email_service.send_email("a@example.com", "Hello", "body")


def test_decision_email_content(smtp):
    leave = _leave(status="rejected", rejection_reason="Release week")
    assert email_service.send_leave_decision_email(leave, APPROVER) is True

    msg = smtp.sent[0]
    assert msg["Subject"] == "Your leave request #12 has been Rejected"
    body = msg.get_content()
    assert "rejected by Mark Manager" in body
    assert "Reason: Release week" in body


def test_decision_email_errors_are_not_raised(smtp, monkeypatch):
    monkeypatch.setenv("SMTP_PASS", "bad")
    assert email_service.send_leave_decision_email(_leave(), APPROVER) is False
    assert email_service.send_leave_decision_email(_leave(user=None), APPROVER) is False
