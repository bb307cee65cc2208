import smtplib

import pytest

from luna.clients.email_client import EmailClient, EmailDeliveryError
from luna.config import Settings


def _client(**overrides) -> EmailClient:
    config = Settings(email_enabled=True, smtp_retries=3, **overrides)
    return EmailClient(config)


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    async def _sleep(_):
        return None

    monkeypatch.setattr("luna.clients.email_client.asyncio.sleep", _sleep)


def test_otp_message_contents():
    msg = _client(smtp_user="luna@example.com")._build_otp_message(
        "bob@lunamail.com", "123456", "Bob"
    )
    assert msg["To"] == "bob@lunamail.com"
    assert "luna@example.com" in msg["From"]
    body = msg.get_content()
    assert "Hi Bob" in body and "123456" in body


@pytest.mark.asyncio
async def test_send_retries_then_succeeds(monkeypatch):
    client = _client()
    calls = []

    def flaky(msg):
        calls.append(msg)
        if len(calls) < 2:
            raise smtplib.SMTPServerDisconnected("gone")

    monkeypatch.setattr(client, "_send_blocking", flaky)
    await client.send_otp("bob@lunamail.com", "123456", "Bob")
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_send_gives_up_after_retries(monkeypatch):
    client = _client()
    calls = []

    def broken(msg):
        calls.append(msg)
        raise ConnectionRefusedError("no smtp")

    monkeypatch.setattr(client, "_send_blocking", broken)
    with pytest.raises(EmailDeliveryError):
        await client.send_otp("bob@lunamail.com", "123456", "Bob")
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_disabled_email_sends_nothing(monkeypatch):
    client = EmailClient(Settings(email_enabled=False))

    def fail(msg):
        raise AssertionError("should not send")

    monkeypatch.setattr(client, "_send_blocking", fail)
    await client.send_otp("bob@lunamail.com", "123456", "Bob")
