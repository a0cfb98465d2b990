"""The due-task alerting engine: one ``run_tick(now)`` per scheduler interval."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from .channels import ChannelAdapter
from .state import DEFAULT_POLICY, AlertPolicy, AlertStep, ChannelOwner, StepKind, TaskAlertView, plan_tick
from .store import TaskStore, next_instance_data

logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    evaluated: int = 0
    snoozes_cleared: int = 0
    reminders: int = 0
    due_alerts: int = 0
    escalations: int = 0
    regenerated: int = 0
    failed: int = 0
    skipped: bool = False


class AlertEngine:
    def __init__(
        self,
        store: TaskStore,
        channels: Sequence[ChannelAdapter],
        policy: AlertPolicy = DEFAULT_POLICY,
    ):
        self.store = store
        self.channels = list(channels)
        self.policy = policy

    def run_tick(self, now: Optional[datetime] = None) -> TickReport:
        """Evaluate every incomplete task once against ``now``.

        Never raises. A failing task is logged and skipped; a failing scan
        skips the whole tick and the next tick starts over.
        """
        now = now or datetime.now()
        report = TickReport()
        try:
            candidates = self.store.list_all_incomplete()
        except Exception:
            logger.exception("alert tick skipped: candidate scan failed now=%s", now.isoformat())
            report.skipped = True
            return report

        for task, owner in candidates:
            report.evaluated += 1
            try:
                self._process(task, owner, now, report)
            except Exception:
                report.failed += 1
                logger.exception("alert task failed task_id=%s user_id=%s", task.id, task.user_id)

        try:
            self.store.cleanup_expired_auxiliary(now)
        except Exception:
            logger.exception("otp cleanup failed")

        logger.info(
            "alert tick now=%s evaluated=%s reminders=%s due=%s escalations=%s regenerated=%s failed=%s",
            now.isoformat(timespec="seconds"),
            report.evaluated,
            report.reminders,
            report.due_alerts,
            report.escalations,
            report.regenerated,
            report.failed,
        )
        return report

    def _process(self, task: TaskAlertView, owner: ChannelOwner, now: datetime, report: TickReport) -> None:
        for step in plan_tick(task, now, self.policy):
            # Messages render the state the step starts from.
            if step.sends:
                self._dispatch(task, owner, step)
            if step.kind is StepKind.DUE and step.next_due is not None:
                new_id = self.store.fire_due(
                    task.id,
                    task.user_id,
                    step.changes,
                    next_instance_data(task, step.next_due),
                    task.subtasks,
                )
                report.regenerated += 1
                logger.info(
                    "recurring task regenerated task_id=%s new_task_id=%s due_date=%s",
                    task.id, new_id, step.next_due.isoformat(),
                )
            else:
                self.store.update(task.id, task.user_id, step.changes)
            task = task.with_changes(**step.changes)
            self._count(step, report)

    def _dispatch(self, task: TaskAlertView, owner: ChannelOwner, step: AlertStep) -> int:
        """Send on every channel; returns how many delivered."""
        delivered = 0
        for channel in self.channels:
            try:
                ok = channel.send(task, owner, step.is_reminder)
            except Exception:
                ok = False
                logger.exception("channel=%s raised task_id=%s", getattr(channel, "name", "?"), task.id)
            if ok:
                delivered += 1
        enabled = sum(1 for channel in self.channels if channel.is_enabled_for(owner))
        logger.info(
            "alert sent kind=%s task_id=%s title=%r delivered=%s enabled=%s",
            step.kind.value, task.id, task.title, delivered, enabled,
        )
        return delivered

    def close(self) -> None:
        for channel in self.channels:
            channel.close()

    @staticmethod
    def _count(step: AlertStep, report: TickReport) -> None:
        if step.kind is StepKind.CLEAR_SNOOZE:
            report.snoozes_cleared += 1
        elif step.kind is StepKind.REMINDER:
            report.reminders += 1
        elif step.kind is StepKind.DUE:
            report.due_alerts += 1
        elif step.kind is StepKind.ESCALATE:
            report.escalations += 1
