import smtplib

import pytest

from cabinetry.core.settings import settings
from cabinetry.services import email_service


class FakeSMTP:
    sent = []
    failures = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port = host, port

    def __enter__(self):
        if FakeSMTP.failures:
            raise FakeSMTP.failures.pop(0)
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        self.credentials = (user, password)

    def send_message(self, msg):
        FakeSMTP.sent.append(msg)


@pytest.fixture
def smtp(monkeypatch):
    FakeSMTP.sent, FakeSMTP.failures = [], []
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(settings, "SMTP_HOST", "smtp.example.com")
    monkeypatch.setattr(settings, "SMTP_FROM_EMAIL", "orders@example.com")
    return FakeSMTP


def test_no_recipient_is_skipped():
    assert email_service.send_email(None, "Subject", "body") is False


def test_dev_mode_only_logs():
    assert settings.SMTP_HOST is None
    assert email_service.send_email("jo@example.com", "Subject", "body") is True


def test_quote_email_is_sent(smtp):
    ok = email_service.send_quote_email(
        "jo@example.com", "Jo", "QUO-20250131-0001", "q-1", "484.08", "2025-03-02"
    )
    assert ok is True
    (msg,) = smtp.sent
    assert msg["To"] == "jo@example.com"
    assert msg["From"] == "Custom Cabinets <orders@example.com>"
    assert msg["Subject"] == "Your quote QUO-20250131-0001 is ready"
    text = msg.get_body(preferencelist=("plain",)).get_content()
    assert "valid until 2025-03-02" in text
    assert "/portal/quotes/q-1" in text
    assert msg.get_body(preferencelist=("html",)) is not None


def test_transient_failure_is_retried(smtp):
    smtp.failures.append(smtplib.SMTPServerDisconnected("dropped"))
    assert email_service.send_message_notification("jo@example.com", "order", "ORD-1", "Hello") is True
    assert len(smtp.sent) == 1


def test_permanent_failure_is_raised(smtp):
    smtp.failures.append(smtplib.SMTPResponseException(550, b"mailbox unavailable"))
    with pytest.raises(smtplib.SMTPResponseException):
        email_service.send_order_confirmation("jo@example.com", None, "ORD-1", "o-1", "95.39", "19.08")
    assert smtp.sent == []


@pytest.mark.parametrize(
    "error,retryable",
    [
        (smtplib.SMTPResponseException(421, b"try later"), True),
        (smtplib.SMTPResponseException(554, b"rejected"), False),
        (smtplib.SMTPServerDisconnected(), True),
        (ConnectionRefusedError(), True),
        (ValueError("bad header"), False),
    ],
)
def test_transient_smtp_errors(error, retryable):
    assert email_service._is_transient_smtp_error(error) is retryable
