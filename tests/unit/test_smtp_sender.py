from __future__ import annotations

import smtplib

import pytest

from venture_connect.delivery.email import sender as sender_mod
from venture_connect.delivery.email.sender import SMTPEmailProvider


class _FakeSMTP:
    instances: list[_FakeSMTP] = []
    fail_with: Exception | None = None

    def __init__(self, host, port, timeout=None) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout
        self.sent = []
        self.tls = False
        _FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def ehlo(self):
        return None

    def has_extn(self, name):
        return name == "starttls"

    def starttls(self):
        self.tls = True

    def login(self, user, password):
        return None

    def send_message(self, msg):
        if _FakeSMTP.fail_with is not None:
            raise _FakeSMTP.fail_with
        self.sent.append(msg)


@pytest.fixture()
def smtp(settings, monkeypatch):
    settings.smtp_host = "smtp.local"
    settings.smtp_port = 2525
    settings.smtp_timeout_sec = 7
    settings.email_from = "robot@venture.io"
    _FakeSMTP.instances = []
    _FakeSMTP.fail_with = None
    monkeypatch.setattr(sender_mod.smtplib, "SMTP", _FakeSMTP)
    return _FakeSMTP


def test_send_mail_multipart_with_timeout(smtp) -> None:
    result = SMTPEmailProvider().send_mail(
        recipients=["a@example.com", "b@example.com"],
        subject="Meeting Reminder (starts in ~5 minutes)",
        text_body="plain",
        html_body="<p>html</p>",
        ref_id="mtg_1",
    )

    assert result.ok is True
    conn = smtp.instances[0]
    assert conn.timeout == 7
    assert conn.tls is True
    msg = conn.sent[0]
    assert msg["To"] == "a@example.com, b@example.com"
    assert msg["From"] == "robot@venture.io"
    assert msg.is_multipart()


def test_send_mail_failure_is_reported_not_raised(smtp) -> None:
    smtp.fail_with = smtplib.SMTPRecipientsRefused({"a@example.com": (550, b"no")})
    result = SMTPEmailProvider().send_mail(
        recipients=["a@example.com"], subject="s", text_body="t"
    )
    assert result.ok is False
    assert result.error


def test_send_mail_without_host_or_recipients(settings) -> None:
    settings.smtp_host = None
    assert SMTPEmailProvider().send_mail(recipients=["a@x"], subject="s", text_body="t").ok is False
    settings.smtp_host = "smtp.local"
    assert SMTPEmailProvider().send_mail(recipients=[], subject="s", text_body="t").ok is False
