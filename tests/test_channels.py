import json
from datetime import date
from urllib.parse import parse_qs

import httpx

from todo_alert.alerts.channels import (
    SmsChannel,
    TelegramChannel,
    WhatsAppChannel,
    build_channels,
    find_channel,
    rich_message,
    sms_message,
)
from todo_alert.alerts.state import ChannelOwner, TaskAlertView
from todo_alert.config import Settings

TASK = TaskAlertView(
    id=7,
    user_id=3,
    title="Renew passport",
    due_date=date(2024, 6, 1),
    due_time="10:00",
    description="bring photos",
    priority="high",
    category="errands",
)

OWNER = ChannelOwner(
    user_id=3,
    phone_number="+15550001000",
    whatsapp_enabled=True,
    whatsapp_number="+15550001000",
    telegram_enabled=True,
    telegram_chat_id="4242",
    sms_enabled=True,
    sms_number="+15550002000",
)


def _recording_client(status=200, payload=None, exc=None):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if exc is not None:
            raise exc
        return httpx.Response(status, json=payload if payload is not None else {"sid": "SM1", "ok": True})

    return httpx.Client(transport=httpx.MockTransport(handler)), requests


def _form(request):
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


def test_rich_message_layout():
    text = rich_message(TASK, is_reminder=False)
    assert text.splitlines()[0] == "🔔 Task Due"
    assert "🔴 *Renew passport*" in text
    assert "📝 bring photos" in text
    assert "📅 2024-06-01 ⏰ 10:00" in text
    assert text.endswith("🏷️ errands")

    reminder = rich_message(TASK, is_reminder=True, bold_prefix=True)
    assert reminder.startswith("⏰ *Early Reminder*")


def test_rich_message_skips_empty_description():
    bare = TaskAlertView(id=1, user_id=1, title="x", due_date=date(2024, 6, 1), due_time="08:00", priority="low")
    text = rich_message(bare, is_reminder=True)
    assert "📝" not in text
    assert "🟢 *x*" in text


def test_sms_message_is_plain():
    assert sms_message(TASK, is_reminder=True) == (
        "[REMINDER] HIGH: Renew passport\n2024-06-01 at 10:00\nCategory: errands"
    )
    assert sms_message(TASK, is_reminder=False).startswith("[DUE NOW] HIGH:")


def test_whatsapp_posts_to_twilio_with_prefixed_numbers():
    client, requests = _recording_client(status=201)
    channel = WhatsAppChannel("AC123", "tok", "+14155238886", client=client)

    assert channel.send(TASK, OWNER, is_reminder=False) is True

    [req] = requests
    assert req.method == "POST"
    assert str(req.url) == "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json"
    assert req.headers["authorization"].startswith("Basic ")
    form = _form(req)
    assert form["From"] == "whatsapp:+14155238886"
    assert form["To"] == "whatsapp:+15550001000"
    assert form["Body"].startswith("🔔 Task Due")


def test_sms_uses_plain_numbers_and_sms_destination():
    client, requests = _recording_client(status=201)
    channel = SmsChannel("AC123", "tok", "+15005550006", client=client)

    assert channel.send(TASK, OWNER, is_reminder=True) is True
    form = _form(requests[0])
    assert form["From"] == "+15005550006"
    assert form["To"] == "+15550002000"
    assert form["Body"].startswith("[REMINDER]")


def test_telegram_posts_markdown_to_chat():
    client, requests = _recording_client(payload={"ok": True, "result": {}})
    channel = TelegramChannel("123-abc", client=client)

    assert channel.send(TASK, OWNER) is True
    [req] = requests
    assert str(req.url) == "https://api.telegram.org/bot123-abc/sendMessage"
    body = json.loads(req.content)
    assert body["chat_id"] == "4242"
    assert body["parse_mode"] == "Markdown"
    assert body["text"].startswith("🔔 *Task Due*")


def test_telegram_ok_false_is_not_delivered():
    client, _ = _recording_client(payload={"ok": False, "description": "chat not found"})
    assert TelegramChannel("123-abc", client=client).send(TASK, OWNER) is False


def test_provider_error_status_is_not_delivered():
    client, requests = _recording_client(status=500, payload={"message": "boom"})
    assert WhatsAppChannel("AC123", "tok", "+1", client=client).send(TASK, OWNER) is False
    assert len(requests) == 1


def test_transport_error_is_not_delivered():
    client, _ = _recording_client(exc=httpx.ConnectError("unreachable"))
    assert SmsChannel("AC123", "tok", "+1", client=client).send(TASK, OWNER) is False


def test_disabled_or_missing_destination_sends_nothing():
    client, requests = _recording_client()
    disabled = ChannelOwner(user_id=3, whatsapp_enabled=False, whatsapp_number="+15550001000")
    no_number = ChannelOwner(user_id=3, whatsapp_enabled=True, whatsapp_number=None)
    channel = WhatsAppChannel("AC123", "tok", "+1", client=client)

    assert channel.send(TASK, disabled) is False
    assert channel.send(TASK, no_number) is False
    assert not channel.is_enabled_for(disabled)
    assert requests == []


def test_build_channels_without_credentials_is_empty():
    assert build_channels(Settings(_env_file=None)) == []


def test_build_channels_ignores_placeholders():
    cfg = Settings(
        _env_file=None,
        TWILIO_ACCOUNT_SID="your_account_sid",
        TWILIO_AUTH_TOKEN="your_auth_token",
        TWILIO_WHATSAPP_NUMBER="+14155238886",
        TELEGRAM_BOT_TOKEN="your_bot_token",
    )
    assert build_channels(cfg) == []


def test_build_channels_full_config_in_fixed_order():
    client, _ = _recording_client()
    cfg = Settings(
        _env_file=None,
        TWILIO_ACCOUNT_SID="AC0123456789",
        TWILIO_AUTH_TOKEN="secret",
        TWILIO_WHATSAPP_NUMBER="+14155238886",
        TWILIO_PHONE_NUMBER="+15005550006",
        TELEGRAM_BOT_TOKEN="123-abc",
    )
    channels = build_channels(cfg, client=client)
    assert [c.name for c in channels] == ["whatsapp", "telegram", "sms"]
    assert find_channel(channels, "telegram") is channels[1]
    assert find_channel(channels, "pigeon") is None


def test_build_channels_requires_account_sid_prefix():
    cfg = Settings(
        _env_file=None,
        TWILIO_ACCOUNT_SID="XX0123",
        TWILIO_AUTH_TOKEN="secret",
        TWILIO_PHONE_NUMBER="+15005550006",
    )
    assert build_channels(cfg) == []
