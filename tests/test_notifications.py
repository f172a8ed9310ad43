import smtplib

import requests

from familytree.config import settings
from familytree.services import email, sms
from familytree.services.email import NEW_MEMBER_ADDED, PENDING_APPROVED, render_template, send_email, send_template_email
from familytree.services.sms import send_sms


class FakeSMTP:
    sent = []
    fail_with = None

    def __init__(self, host, port, timeout=None):
        self.host, self.port = host, port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, username, password):
        if FakeSMTP.fail_with:
            raise FakeSMTP.fail_with

    def send_message(self, msg):
        FakeSMTP.sent.append(msg)


def _use_smtp(monkeypatch):
    FakeSMTP.sent = []
    FakeSMTP.fail_with = None
    monkeypatch.setattr(settings, "EMAIL_PROVIDER", "smtp")
    monkeypatch.setattr(settings, "SMTP_USERNAME", "mailer")
    monkeypatch.setattr(email.smtplib, "SMTP", FakeSMTP)


# ============================================================
# EMAIL
# ============================================================

def test_test_mode_does_not_send(monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_PROVIDER", "none")

    result = send_email("a@example.com", "subject", "<p>x</p>", "x")

    assert result.success
    assert result.message_id.startswith("test-")


def test_smtp_sends_multipart_message(monkeypatch):
    _use_smtp(monkeypatch)

    result = send_template_email(["a@example.com", "b@example.com"], PENDING_APPROVED, {"memberName": "فهد"})

    assert result.success
    assert len(FakeSMTP.sent) == 1
    msg = FakeSMTP.sent[0]
    assert msg["To"] == "a@example.com, b@example.com"
    assert msg.is_multipart()
    assert result.message_id == msg["Message-ID"]


def test_smtp_failure_is_reported(monkeypatch):
    _use_smtp(monkeypatch)
    FakeSMTP.fail_with = smtplib.SMTPAuthenticationError(535, b"bad credentials")

    result = send_email("a@example.com", "subject", "<p>x</p>", "x")

    assert not result.success
    assert "SMTP error" in result.error


def test_unknown_provider(monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_PROVIDER", "carrier-pigeon")

    assert not send_email("a@example.com", "s").success


def test_templates_escape_member_name():
    rendered = render_template(NEW_MEMBER_ADDED, {"memberName": "<script>x</script>", "viewUrl": "http://x/member/P001"})

    assert "<script>" not in rendered["html"]
    assert "http://x/member/P001" in rendered["text"]


# ============================================================
# SMS
# ============================================================

class FakeResponse:
    def __init__(self, ok=True, payload=None, status_code=201, text=""):
        self.ok = ok
        self._payload = payload or {}
        self.status_code = status_code
        self.text = text

    def json(self):
        return self._payload


def _use_twilio(monkeypatch):
    monkeypatch.setattr(settings, "SMS_PROVIDER", "twilio")
    monkeypatch.setattr(settings, "TWILIO_ACCOUNT_SID", "AC123")
    monkeypatch.setattr(settings, "TWILIO_AUTH_TOKEN", "secret")
    monkeypatch.setattr(settings, "TWILIO_FROM_NUMBER", "+15550000")


def test_sms_disabled_is_a_no_op(monkeypatch):
    monkeypatch.setattr(settings, "SMS_PROVIDER", "none")

    assert send_sms("+966500000000", "hi").success


def test_twilio_request(monkeypatch):
    _use_twilio(monkeypatch)
    calls = []

    def fake_post(url, data=None, auth=None, timeout=None):
        calls.append((url, data, auth))
        return FakeResponse(payload={"sid": "SM1"})

    monkeypatch.setattr(sms.requests, "post", fake_post)

    result = send_sms("+966500000000", "hi")

    assert result.success
    assert result.message_id == "SM1"
    url, data, auth = calls[0]
    assert "AC123" in url
    assert data == {"To": "+966500000000", "From": "+15550000", "Body": "hi"}
    assert auth == ("AC123", "secret")


def test_twilio_errors_are_reported(monkeypatch):
    _use_twilio(monkeypatch)

    def refused(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(sms.requests, "post", refused)
    assert not send_sms("+966500000000", "hi").success

    monkeypatch.setattr(sms.requests, "post", lambda *a, **k: FakeResponse(ok=False, status_code=400, text="bad number"))
    result = send_sms("+966500000000", "hi")
    assert not result.success
    assert "bad number" in result.error
