"""Notification channel adapters.

Every adapter exposes ``send(task, owner, is_reminder) -> bool``. ``send``
never raises: provider errors are logged and reported as "not delivered".
WhatsApp and SMS go through the Twilio Messages REST endpoint, Telegram
through the Bot API ``sendMessage`` method, both over httpx.
"""

from __future__ import annotations

import abc
import logging
from typing import Optional

import httpx

from .state import ChannelOwner, TaskAlertView

logger = logging.getLogger(__name__)

PRIORITY_MARKERS = {"high": "🔴", "medium": "🟡", "low": "🟢"}


def rich_message(task: TaskAlertView, is_reminder: bool, bold_prefix: bool = False) -> str:
    """Multi-line message used by chat style channels."""
    label = "Early Reminder" if is_reminder else "Task Due"
    if bold_prefix:
        label = f"*{label}*"
    prefix = f"⏰ {label}" if is_reminder else f"🔔 {label}"
    marker = PRIORITY_MARKERS.get(task.priority or "medium", PRIORITY_MARKERS["medium"])
    lines = [prefix, "", f"{marker} *{task.title}*"]
    if task.description:
        lines.append(f"📝 {task.description}")
    lines.append(f"📅 {task.due_date.isoformat()} ⏰ {task.due_time}")
    lines.append(f"🏷️ {task.category or 'general'}")
    return "\n".join(lines)


def sms_message(task: TaskAlertView, is_reminder: bool) -> str:
    prefix = "REMINDER" if is_reminder else "DUE NOW"
    priority = (task.priority or "medium").upper()
    return (
        f"[{prefix}] {priority}: {task.title}\n"
        f"{task.due_date.isoformat()} at {task.due_time}\n"
        f"Category: {task.category or 'general'}"
    )


class ChannelAdapter(abc.ABC):
    """One notification channel; iterated uniformly by the alert engine."""

    name: str = "channel"

    def __init__(self, client: Optional[httpx.Client] = None, timeout: Optional[float] = None):
        self._client = client or httpx.Client(timeout=timeout)

    @abc.abstractmethod
    def destination(self, owner: ChannelOwner) -> Optional[str]:
        """Return the owner's address on this channel if the channel is enabled."""

    @abc.abstractmethod
    def format_message(self, task: TaskAlertView, is_reminder: bool) -> str:
        ...

    @abc.abstractmethod
    def _deliver(self, destination: str, body: str) -> None:
        """Hand one message to the provider; raise on failure."""

    def is_enabled_for(self, owner: ChannelOwner) -> bool:
        return bool(self.destination(owner))

    def send(self, task: TaskAlertView, owner: ChannelOwner, is_reminder: bool = False) -> bool:
        destination = self.destination(owner)
        if not destination:
            return False
        if not self.send_text(destination, self.format_message(task, is_reminder)):
            return False
        logger.info(
            "channel=%s task_id=%s user_id=%s reminder=%s delivered=true",
            self.name, task.id, owner.user_id, is_reminder,
        )
        return True

    def send_text(self, destination: str, text: str) -> bool:
        try:
            self._deliver(destination, text)
        except Exception as exc:
            logger.warning("channel=%s delivered=false error=%s", self.name, exc)
            return False
        return True

    def close(self) -> None:
        self._client.close()


class TwilioChannel(ChannelAdapter):
    """Base for channels delivered through Twilio's Messages resource."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        api_base: str = "https://api.twilio.com",
        client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(client=client, timeout=timeout)
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.api_base = api_base.rstrip("/")

    def _address(self, number: str) -> str:
        return number

    def _deliver(self, destination: str, body: str) -> None:
        url = f"{self.api_base}/2010-04-01/Accounts/{self.account_sid}/Messages.json"
        resp = self._client.post(
            url,
            data={
                "From": self._address(self.from_number),
                "To": self._address(destination),
                "Body": body,
            },
            auth=(self.account_sid, self.auth_token),
        )
        resp.raise_for_status()


class WhatsAppChannel(TwilioChannel):
    name = "whatsapp"

    def _address(self, number: str) -> str:
        return number if number.startswith("whatsapp:") else f"whatsapp:{number}"

    def destination(self, owner: ChannelOwner) -> Optional[str]:
        return owner.whatsapp_number if owner.whatsapp_enabled else None

    def format_message(self, task: TaskAlertView, is_reminder: bool) -> str:
        return rich_message(task, is_reminder)


class SmsChannel(TwilioChannel):
    name = "sms"

    def destination(self, owner: ChannelOwner) -> Optional[str]:
        return owner.sms_number if owner.sms_enabled else None

    def format_message(self, task: TaskAlertView, is_reminder: bool) -> str:
        return sms_message(task, is_reminder)


class TelegramChannel(ChannelAdapter):
    name = "telegram"

    def __init__(
        self,
        bot_token: str,
        api_base: str = "https://api.telegram.org",
        client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(client=client, timeout=timeout)
        self.bot_token = bot_token
        self.api_base = api_base.rstrip("/")

    def destination(self, owner: ChannelOwner) -> Optional[str]:
        return owner.telegram_chat_id if owner.telegram_enabled else None

    def format_message(self, task: TaskAlertView, is_reminder: bool) -> str:
        return rich_message(task, is_reminder, bold_prefix=True)

    def _deliver(self, destination: str, body: str) -> None:
        resp = self._client.post(
            f"{self.api_base}/bot{self.bot_token}/sendMessage",
            json={"chat_id": destination, "text": body, "parse_mode": "Markdown"},
        )
        resp.raise_for_status()
        payload = resp.json()
        if not payload.get("ok", False):
            raise RuntimeError(payload.get("description") or "telegram rejected message")


def _configured(value: Optional[str]) -> bool:
    # .env.example placeholders look like "your_account_sid"
    return bool(value) and "your_" not in value


def build_channels(settings, client: Optional[httpx.Client] = None) -> list[ChannelAdapter]:
    """Return adapters for every channel whose credentials are configured."""
    timeout = settings.CHANNEL_SEND_TIMEOUT_SECONDS
    channels: list[ChannelAdapter] = []
    twilio_ok = (
        _configured(settings.TWILIO_ACCOUNT_SID)
        and settings.TWILIO_ACCOUNT_SID.startswith("AC")
        and _configured(settings.TWILIO_AUTH_TOKEN)
    )
    if twilio_ok and settings.TWILIO_WHATSAPP_NUMBER:
        channels.append(WhatsAppChannel(
            settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN, settings.TWILIO_WHATSAPP_NUMBER,
            api_base=settings.TWILIO_API_BASE, client=client, timeout=timeout,
        ))
    if _configured(settings.TELEGRAM_BOT_TOKEN):
        channels.append(TelegramChannel(
            settings.TELEGRAM_BOT_TOKEN,
            api_base=settings.TELEGRAM_API_BASE, client=client, timeout=timeout,
        ))
    if twilio_ok and settings.TWILIO_PHONE_NUMBER:
        channels.append(SmsChannel(
            settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN, settings.TWILIO_PHONE_NUMBER,
            api_base=settings.TWILIO_API_BASE, client=client, timeout=timeout,
        ))
    return channels


def find_channel(channels: list[ChannelAdapter], name: str) -> Optional[ChannelAdapter]:
    for channel in channels:
        if channel.name == name:
            return channel
    return None
