# PURPOSE: completion/overdue reporting over one user's tasks.
# Period buckets are keyed by task creation time; "overdue" is judged against now.

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Literal

from .db_models import TaskDB
from .models import PeriodStats, StatsSummary

PeriodUnit = Literal["day", "week", "month", "year"]


def _due_at(task: TaskDB) -> datetime:
    hours, minutes = task.due_time.split(":")[:2]
    return datetime.combine(task.due_date, time(int(hours), int(minutes)))


def is_overdue(task: TaskDB, now: datetime) -> bool:
    return not task.completed and _due_at(task) < now


def _rate(completed: int, total: int) -> float:
    return round(completed / total * 100, 1) if total else 0.0


def summary(tasks: Iterable[TaskDB], now: datetime) -> StatsSummary:
    tasks = list(tasks)
    total = len(tasks)
    completed = sum(1 for t in tasks if t.completed)
    overdue = sum(1 for t in tasks if is_overdue(t, now))
    return StatsSummary(
        total=total,
        completed=completed,
        pending=total - completed - overdue,
        overdue=overdue,
        notified=sum(1 for t in tasks if t.notified),
        completion_rate=_rate(completed, total),
    )


def _day_start(d: date) -> datetime:
    return datetime.combine(d, time.min)


def _day_end(d: date) -> datetime:
    return datetime.combine(d, time.max)


def period_bounds(now: datetime, back: int, unit: PeriodUnit) -> tuple[datetime, datetime]:
    """Start/end of the bucket ``back`` periods before the current one."""
    today = now.date()
    if unit == "day":
        d = today - timedelta(days=back)
        return _day_start(d), _day_end(d)
    if unit == "week":
        start = today - timedelta(days=7 * back)
        return _day_start(start), _day_end(start + timedelta(days=6))
    if unit == "month":
        index = today.year * 12 + today.month - 1 - back
        year, month = divmod(index, 12)
        month += 1
        last = calendar.monthrange(year, month)[1]
        return _day_start(date(year, month, 1)), _day_end(date(year, month, last))
    year = today.year - back
    return _day_start(date(year, 1, 1)), _day_end(date(year, 12, 31))


def period_label(start: datetime, unit: PeriodUnit) -> str:
    if unit == "day":
        return f"{start:%b} {start.day}"
    if unit == "week":
        return f"Week of {start:%b} {start.day}"
    if unit == "month":
        return f"{start:%B %Y}"
    return str(start.year)


def period_stats(tasks: Iterable[TaskDB], periods: int, unit: PeriodUnit, now: datetime) -> List[PeriodStats]:
    """Oldest bucket first, ending with the current period."""
    tasks = list(tasks)
    results = []
    for back in range(periods - 1, -1, -1):
        start, end = period_bounds(now, back, unit)
        bucket = [t for t in tasks if t.created_at is not None and start <= t.created_at <= end]
        total = len(bucket)
        completed = sum(1 for t in bucket if t.completed)
        overdue = sum(1 for t in bucket if is_overdue(t, now))
        results.append(
            PeriodStats(
                period=period_label(start, unit),
                period_start=start,
                period_end=end,
                total=total,
                completed=completed,
                pending=total - completed - overdue,
                overdue=overdue,
                completion_rate=_rate(completed, total),
            )
        )
    return results
