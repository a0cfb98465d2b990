"""Per-task alert state and the pure transition planner.

A task's alert phase is never stored; it is recomputed on every tick from
the stored flags (``notified``, ``reminder_sent``, ``alert_count``,
``last_alert_sent``, ``snoozed_until``) and the current time. ``plan_tick``
turns one snapshot into the ordered list of steps the engine must carry out.
Nothing here touches storage or channels, so the whole transition table can
be exercised with plain dataclasses.

Transitions are evaluated in a fixed order; each one sees the state left by
the previous one:

1. snoozed          -> nothing else happens this tick
2. snooze expiring  -> clear snooze, reset ``notified`` / ``reminder_sent``
3. pending reminder -> early reminder, ``reminder_sent`` set
4. pending due      -> due alert, ``notified`` set, counter bumped,
                       next instance scheduled for recurring tasks
5. escalating       -> repeat alert for high priority, counter bumped

Due and reminder checks compare at minute resolution because due times
carry no seconds. Escalation spacing compares full timestamps.
"""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from .recurrence import next_due_date


class AlertPhase(str, enum.Enum):
    SNOOZED = "snoozed"
    SNOOZE_EXPIRING = "snooze_expiring"
    PENDING_REMINDER = "pending_reminder"
    PENDING_DUE = "pending_due"
    ESCALATING = "escalating"
    IDLE = "idle"


class StepKind(str, enum.Enum):
    CLEAR_SNOOZE = "clear_snooze"
    REMINDER = "reminder"
    DUE = "due"
    ESCALATE = "escalate"


@dataclass(frozen=True)
class AlertPolicy:
    escalation_interval: timedelta = timedelta(minutes=30)
    max_alerts: int = 5
    escalation_priority: str = "high"

    @classmethod
    def from_settings(cls, settings) -> "AlertPolicy":
        return cls(
            escalation_interval=timedelta(minutes=settings.ESCALATION_INTERVAL_MINUTES),
            max_alerts=settings.ESCALATION_MAX_ALERTS,
        )


DEFAULT_POLICY = AlertPolicy()


@dataclass(frozen=True)
class ChannelOwner:
    """Owner contact data joined onto every candidate task."""

    user_id: int
    phone_number: str = ""
    name: Optional[str] = None
    whatsapp_enabled: bool = False
    telegram_enabled: bool = False
    sms_enabled: bool = False
    whatsapp_number: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    sms_number: Optional[str] = None


@dataclass(frozen=True)
class TaskAlertView:
    """Snapshot of the fields the alerting decision depends on."""

    id: int
    user_id: int
    title: str
    due_date: date
    due_time: str
    description: str = ""
    recurring: str = "none"
    priority: str = "medium"
    category: str = "general"
    reminder_minutes: int = 0
    notes: str = ""
    completed: bool = False
    notified: bool = False
    reminder_sent: bool = False
    alert_count: int = 0
    last_alert_sent: Optional[datetime] = None
    snoozed_until: Optional[datetime] = None
    subtasks: tuple[str, ...] = ()

    @property
    def due_at(self) -> datetime:
        hours, minutes = self.due_time.split(":")[:2]
        return datetime.combine(self.due_date, time(int(hours), int(minutes)))

    def with_changes(self, **changes: Any) -> "TaskAlertView":
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class AlertStep:
    kind: StepKind
    changes: dict[str, Any] = field(default_factory=dict)
    # Only set on a DUE step of a recurring task
    next_due: Optional[date] = None

    @property
    def sends(self) -> bool:
        return self.kind is not StepKind.CLEAR_SNOOZE

    @property
    def is_reminder(self) -> bool:
        return self.kind is StepKind.REMINDER


def _minute(now: datetime) -> datetime:
    return now.replace(second=0, microsecond=0)


def is_snoozed(view: TaskAlertView, now: datetime) -> bool:
    return view.snoozed_until is not None and view.snoozed_until > now


def snooze_expired(view: TaskAlertView, now: datetime) -> bool:
    return view.snoozed_until is not None and view.snoozed_until <= now


def reminder_pending(view: TaskAlertView, now: datetime) -> bool:
    if view.reminder_minutes <= 0 or view.reminder_sent:
        return False
    due_at = view.due_at
    starts_at = due_at - timedelta(minutes=view.reminder_minutes)
    return starts_at <= _minute(now) < due_at


def due_pending(view: TaskAlertView, now: datetime) -> bool:
    return not view.notified and view.due_at <= _minute(now)


def escalation_pending(view: TaskAlertView, now: datetime, policy: AlertPolicy = DEFAULT_POLICY) -> bool:
    if not view.notified or view.completed:
        return False
    if view.priority != policy.escalation_priority:
        return False
    if view.last_alert_sent is None or view.alert_count >= policy.max_alerts:
        return False
    return now - view.last_alert_sent >= policy.escalation_interval


def classify(view: TaskAlertView, now: datetime, policy: AlertPolicy = DEFAULT_POLICY) -> AlertPhase:
    """Return the first phase of the transition table the task is in."""
    if view.completed:
        return AlertPhase.IDLE
    if is_snoozed(view, now):
        return AlertPhase.SNOOZED
    if snooze_expired(view, now):
        return AlertPhase.SNOOZE_EXPIRING
    if reminder_pending(view, now):
        return AlertPhase.PENDING_REMINDER
    if due_pending(view, now):
        return AlertPhase.PENDING_DUE
    if escalation_pending(view, now, policy):
        return AlertPhase.ESCALATING
    return AlertPhase.IDLE


def plan_tick(view: TaskAlertView, now: datetime, policy: AlertPolicy = DEFAULT_POLICY) -> list[AlertStep]:
    """Return the ordered steps one tick at ``now`` applies to ``view``."""
    steps: list[AlertStep] = []
    if view.completed or is_snoozed(view, now):
        return steps

    def take(step: AlertStep) -> None:
        nonlocal view
        steps.append(step)
        view = view.with_changes(**step.changes)

    if snooze_expired(view, now):
        # alert_count and last_alert_sent survive the snooze cycle
        take(AlertStep(
            StepKind.CLEAR_SNOOZE,
            {"snoozed_until": None, "notified": False, "reminder_sent": False},
        ))

    if reminder_pending(view, now):
        take(AlertStep(StepKind.REMINDER, {"reminder_sent": True}))

    if due_pending(view, now):
        take(AlertStep(
            StepKind.DUE,
            {"notified": True, "alert_count": view.alert_count + 1, "last_alert_sent": now},
            next_due=next_due_date(view.due_date, view.recurring),
        ))

    if escalation_pending(view, now, policy):
        take(AlertStep(
            StepKind.ESCALATE,
            {"alert_count": view.alert_count + 1, "last_alert_sent": now},
        ))

    return steps
