"""SQLAlchemy side of the alert engine: candidate scan and per-task mutations."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Callable, Iterable, Optional, Protocol, Sequence

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, joinedload, selectinload

from ..db_models import OtpCodeDB, SubtaskDB, TaskDB, UserDB
from .state import ChannelOwner, TaskAlertView

Candidate = tuple[TaskAlertView, ChannelOwner]

# Columns the engine is allowed to write back
ALERT_FIELDS = frozenset(
    {"notified", "reminder_sent", "alert_count", "last_alert_sent", "snoozed_until"}
)


class TaskStore(Protocol):
    def list_all_incomplete(self) -> list[Candidate]: ...

    def list_due_candidates(self, now: datetime) -> list[Candidate]: ...

    def update(self, task_id: int, user_id: int, changes: dict[str, Any]) -> None: ...

    def fire_due(
        self,
        task_id: int,
        user_id: int,
        changes: dict[str, Any],
        next_data: dict[str, Any],
        subtask_texts: Sequence[str] = (),
    ) -> int: ...

    def create(self, user_id: int, data: dict[str, Any]) -> int: ...

    def add_subtask(self, task_id: int, text: str) -> None: ...

    def cleanup_expired_auxiliary(self, now: datetime) -> int: ...


def owner_from_row(user: UserDB) -> ChannelOwner:
    return ChannelOwner(
        user_id=user.id,
        phone_number=user.phone_number,
        name=user.name,
        whatsapp_enabled=bool(user.whatsapp_enabled),
        telegram_enabled=bool(user.telegram_enabled),
        sms_enabled=bool(user.sms_enabled),
        whatsapp_number=user.whatsapp_number,
        telegram_chat_id=user.telegram_chat_id,
        sms_number=user.sms_number,
    )


def view_from_row(row: TaskDB) -> TaskAlertView:
    return TaskAlertView(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        due_date=row.due_date,
        due_time=row.due_time,
        description=row.description or "",
        recurring=row.recurring or "none",
        priority=row.priority or "medium",
        category=row.category or "general",
        reminder_minutes=row.reminder_minutes or 0,
        notes=row.notes or "",
        completed=bool(row.completed),
        notified=bool(row.notified),
        reminder_sent=bool(row.reminder_sent),
        alert_count=row.alert_count or 0,
        last_alert_sent=row.last_alert_sent,
        snoozed_until=row.snoozed_until,
        subtasks=tuple(s.text for s in row.subtasks),
    )


def next_instance_data(view: TaskAlertView, due_date: date) -> dict[str, Any]:
    """Fields of the row that takes over from a recurring task's fired instance."""
    return {
        "title": view.title,
        "description": view.description,
        "due_date": due_date,
        "due_time": view.due_time,
        "recurring": view.recurring,
        "priority": view.priority,
        "category": view.category,
        "reminder_minutes": view.reminder_minutes,
        "notes": view.notes,
    }


class SqlAlchemyTaskStore:
    """Each call opens its own session and commits once."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def _query_candidates(self, db: Session, extra: Optional[Iterable] = None) -> list[Candidate]:
        query = (
            db.query(TaskDB)
            .options(joinedload(TaskDB.owner), selectinload(TaskDB.subtasks))
            .filter(TaskDB.completed.is_(False))
        )
        for criterion in extra or ():
            query = query.filter(criterion)
        rows = query.order_by(TaskDB.due_date, TaskDB.due_time, TaskDB.id).all()
        return [(view_from_row(r), owner_from_row(r.owner)) for r in rows]

    def list_all_incomplete(self) -> list[Candidate]:
        """Every incomplete task, so pre-due reminder windows are visible too."""
        with self._session_factory() as db:
            return self._query_candidates(db)

    def list_due_candidates(self, now: datetime) -> list[Candidate]:
        """Incomplete tasks already at or past due (compared as date + HH:MM)."""
        today = now.date()
        current_time = now.strftime("%H:%M")
        past_due = or_(
            TaskDB.due_date < today,
            and_(TaskDB.due_date == today, TaskDB.due_time <= current_time),
        )
        with self._session_factory() as db:
            return self._query_candidates(db, [past_due])

    @staticmethod
    def _apply_changes(db: Session, task_id: int, user_id: int, changes: dict[str, Any]) -> None:
        unknown = set(changes) - ALERT_FIELDS
        if unknown:
            raise ValueError(f"not an alert field: {', '.join(sorted(unknown))}")
        updated = (
            db.query(TaskDB)
            .filter(TaskDB.id == task_id, TaskDB.user_id == user_id)
            .update(changes, synchronize_session=False)
        )
        if not updated:
            raise LookupError(f"task {task_id} of user {user_id} no longer exists")

    def _insert_instance(
        self, db: Session, user_id: int, data: dict[str, Any], subtask_texts: Sequence[str] = ()
    ) -> int:
        row = TaskDB(user_id=user_id, **data)
        row.subtasks = [SubtaskDB(text=text, completed=False) for text in subtask_texts]
        db.add(row)
        db.flush()
        return row.id

    def update(self, task_id: int, user_id: int, changes: dict[str, Any]) -> None:
        with self._session_factory() as db:
            self._apply_changes(db, task_id, user_id, changes)
            db.commit()

    def fire_due(
        self,
        task_id: int,
        user_id: int,
        changes: dict[str, Any],
        next_data: dict[str, Any],
        subtask_texts: Sequence[str] = (),
    ) -> int:
        """Write a recurring task's due flags and its next instance in one transaction.

        Either all of it commits or none of it does; on failure the task stays
        pending due and the next tick tries again.
        """
        with self._session_factory() as db:
            self._apply_changes(db, task_id, user_id, changes)
            new_id = self._insert_instance(db, user_id, next_data, subtask_texts)
            db.commit()
            return new_id

    def create(self, user_id: int, data: dict[str, Any]) -> int:
        with self._session_factory() as db:
            new_id = self._insert_instance(db, user_id, data)
            db.commit()
            return new_id

    def add_subtask(self, task_id: int, text: str) -> None:
        with self._session_factory() as db:
            db.add(SubtaskDB(task_id=task_id, text=text, completed=False))
            db.commit()

    def cleanup_expired_auxiliary(self, now: datetime) -> int:
        """Drop used or expired one-time login codes."""
        with self._session_factory() as db:
            deleted = (
                db.query(OtpCodeDB)
                .filter(or_(OtpCodeDB.expires_at < now, OtpCodeDB.used.is_(True)))
                .delete(synchronize_session=False)
            )
            db.commit()
            return deleted
