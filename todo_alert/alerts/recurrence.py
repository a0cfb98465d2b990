"""Calendar arithmetic for recurring tasks."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

RECURRENCE_KINDS = ("none", "daily", "weekly", "monthly")


def add_month(current: date) -> date:
    """Same day next month; days past the end of a shorter month carry into the month after."""
    month = current.month
    year = current.year + month // 12
    month = month % 12 + 1
    return date(year, month, 1) + timedelta(days=current.day - 1)


def next_due_date(current: date, recurrence: Optional[str]) -> Optional[date]:
    """Return the due date of the next instance, or None for non-recurring kinds.

    Works on calendar dates only; the caller copies the due time unchanged.
    """
    if recurrence == "daily":
        return current + timedelta(days=1)
    if recurrence == "weekly":
        return current + timedelta(weeks=1)
    if recurrence == "monthly":
        return add_month(current)
    return None
