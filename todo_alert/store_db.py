# PURPOSE: task/user/OTP persistence used by the HTTP routers.
# The alert engine has its own narrow store in alerts/store.py.

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, List, Optional, Sequence

from sqlalchemy import case, func
from sqlalchemy.orm import Session, selectinload

from .db_models import OtpCodeDB, SubtaskDB, TaskDB, UserDB, now_local


# --- Session dependency ----------------------------------------------------


def get_db():
    """Yield a SQLAlchemy session (used as a FastAPI dependency)."""
    from .db import SessionLocal

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# --- Helpers ---------------------------------------------------------------

TASK_FIELDS = (
    "title",
    "description",
    "due_date",
    "due_time",
    "recurring",
    "priority",
    "category",
    "reminder_minutes",
    "notes",
)


def _apply_common_filters(
    query,
    *,
    owner_id: Optional[int] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    category: Optional[str] = None,
    q: Optional[str] = None,
):
    """Apply shared filters to a TaskDB query."""
    if owner_id is not None:
        query = query.filter(TaskDB.user_id == owner_id)
    if status == "pending":
        query = query.filter(TaskDB.completed.is_(False))
    elif status == "completed":
        query = query.filter(TaskDB.completed.is_(True))
    if priority:
        query = query.filter(TaskDB.priority == priority)
    if category:
        query = query.filter(TaskDB.category == category)
    if q:
        like = f"%{q}%"
        query = query.filter(TaskDB.title.ilike(like))
    return query


def _apply_ordering(query, *, order_by: str, order_dir: str):
    """
    Apply ordering with a safe allow-list of columns.
    Allowed: due (date then time), priority (low < medium < high), created_at.
    Includes stable secondary ordering for deterministic results.
    """
    if order_by == "priority":
        primaries: list[Any] = [
            case(
                (TaskDB.priority == "low", 0),
                (TaskDB.priority == "medium", 1),
                (TaskDB.priority == "high", 2),
                else_=1,
            )
        ]
    elif order_by == "created_at":
        primaries = [TaskDB.created_at]
    else:
        primaries = [TaskDB.due_date, TaskDB.due_time]

    if order_dir == "desc":
        return query.order_by(*[p.desc() for p in primaries], TaskDB.id.desc())
    return query.order_by(*[p.asc() for p in primaries], TaskDB.id.asc())


def _replace_subtasks(row: TaskDB, subtasks) -> None:
    row.subtasks = [
        SubtaskDB(text=s.text, completed=bool(getattr(s, "completed", False)))
        for s in subtasks
    ]


# --- CRUD: Tasks -----------------------------------------------------------


def list_tasks(
    db: Session,
    *,
    owner_id: Optional[int] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    category: Optional[str] = None,
    q: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    order_by: str = "due",
    order_dir: str = "asc",
) -> List[TaskDB]:
    """Return a paginated list of tasks with filters and ordering applied."""
    query = db.query(TaskDB).options(selectinload(TaskDB.subtasks))
    query = _apply_common_filters(
        query,
        owner_id=owner_id,
        status=status,
        priority=priority,
        category=category,
        q=q,
    )
    query = _apply_ordering(query, order_by=order_by, order_dir=order_dir)
    if offset:
        query = query.offset(offset)
    if limit:
        query = query.limit(limit)
    return query.all()


def count_tasks(
    db: Session,
    *,
    owner_id: Optional[int] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    category: Optional[str] = None,
    q: Optional[str] = None,
) -> int:
    """Return total count for the given filters (no pagination)."""
    query = db.query(func.count(TaskDB.id))
    query = _apply_common_filters(
        query,
        owner_id=owner_id,
        status=status,
        priority=priority,
        category=category,
        q=q,
    )
    return int(query.scalar() or 0)


def all_tasks(db: Session, *, owner_id: int) -> List[TaskDB]:
    """Every task of one owner, unpaginated (reports)."""
    return db.query(TaskDB).filter(TaskDB.user_id == owner_id).all()


def create_task(db: Session, data, *, owner_id: int) -> TaskDB:
    """Create a task (and its subtasks) with fresh alerting state."""
    row = TaskDB(
        user_id=owner_id,
        notified=False,
        reminder_sent=False,
        alert_count=0,
        completed=False,
        created_at=now_local(),
        **{field: getattr(data, field) for field in TASK_FIELDS},
    )
    _replace_subtasks(row, getattr(data, "subtasks", None) or [])
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_task(db: Session, task_id: int, *, owner_id: Optional[int] = None):
    """Fetch a single task; if owner_id is given, enforce ownership."""
    query = db.query(TaskDB).filter(TaskDB.id == task_id)
    if owner_id is not None:
        query = query.filter(TaskDB.user_id == owner_id)
    return query.one_or_none()


def replace_task(db: Session, task_id: int, data, *, owner_id: Optional[int] = None):
    """Full replace of a task (PUT). Returns updated row or None if not found."""
    row = get_task(db, task_id, owner_id=owner_id)
    if not row:
        return None
    for field in TASK_FIELDS:
        setattr(row, field, getattr(data, field))
    row.completed = bool(getattr(data, "completed", False))
    if getattr(data, "subtasks", None) is not None:
        _replace_subtasks(row, data.subtasks)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def update_task(db: Session, task_id: int, data, *, owner_id: Optional[int] = None):
    """Partial update (PATCH). Returns updated row or None if not found."""
    row = get_task(db, task_id, owner_id=owner_id)
    if not row:
        return None
    for field in TASK_FIELDS + ("completed",):
        if hasattr(data, field) and getattr(data, field) is not None:
            setattr(row, field, getattr(data, field))
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def delete_task(db: Session, task_id: int, *, owner_id: Optional[int] = None) -> bool:
    """Delete a task and its subtasks; returns False if not found/forbidden."""
    row = get_task(db, task_id, owner_id=owner_id)
    if not row:
        return False
    db.delete(row)
    db.commit()
    return True


def complete_task(db: Session, task_id: int, *, owner_id: Optional[int] = None) -> bool:
    row = get_task(db, task_id, owner_id=owner_id)
    if not row:
        return False
    row.completed = True
    db.commit()
    return True


def snooze_task(
    db: Session,
    task_id: int,
    minutes: int,
    *,
    owner_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """Suspend alerting until now + minutes; returns the new snoozed_until."""
    row = get_task(db, task_id, owner_id=owner_id)
    if not row:
        return None
    row.snoozed_until = (now or now_local()) + timedelta(minutes=minutes)
    db.commit()
    return row.snoozed_until


def toggle_subtask(db: Session, task_id: int, subtask_id: int, *, owner_id: Optional[int] = None):
    """Flip a subtask's completed flag; None if the task or subtask is not found."""
    if get_task(db, task_id, owner_id=owner_id) is None:
        return None
    sub = (
        db.query(SubtaskDB)
        .filter(SubtaskDB.id == subtask_id, SubtaskDB.task_id == task_id)
        .one_or_none()
    )
    if sub is None:
        return None
    sub.completed = not sub.completed
    db.commit()
    db.refresh(sub)
    return sub


# --- Bulk ops --------------------------------------------------------------


def bulk_delete_tasks(db: Session, ids: Sequence[int], *, owner_id: Optional[int] = None) -> int:
    """Delete many tasks by IDs; only deletes owned tasks if owner_id is set."""
    if not ids:
        return 0
    q = db.query(TaskDB).filter(TaskDB.id.in_(list(ids)))
    if owner_id is not None:
        q = q.filter(TaskDB.user_id == owner_id)
    deleted = 0
    for row in q.all():
        db.delete(row)
        deleted += 1
    db.commit()
    return deleted


def bulk_complete_tasks(db: Session, ids: Sequence[int], *, owner_id: Optional[int] = None) -> int:
    """Mark many tasks completed; only affects owned tasks if owner_id is set."""
    if not ids:
        return 0
    q = db.query(TaskDB).filter(TaskDB.id.in_(list(ids)))
    if owner_id is not None:
        q = q.filter(TaskDB.user_id == owner_id)
    updated = 0
    for row in q.all():
        row.completed = True
        updated += 1
    db.commit()
    return updated


# --- Users and alert preferences -------------------------------------------

PREFERENCE_FIELDS = (
    "whatsapp_enabled",
    "telegram_enabled",
    "sms_enabled",
    "browser_notifications_enabled",
    "whatsapp_number",
    "telegram_chat_id",
    "sms_number",
)


def get_user(db: Session, user_id: int) -> Optional[UserDB]:
    return db.get(UserDB, user_id)


def get_user_by_phone(db: Session, phone_number: str) -> Optional[UserDB]:
    return db.query(UserDB).filter(UserDB.phone_number == phone_number).one_or_none()


def create_user(db: Session, phone_number: str, *, name: Optional[str] = None, password_hash: Optional[str] = None) -> UserDB:
    user = UserDB(
        phone_number=phone_number,
        name=name or "User",
        password_hash=password_hash,
        created_at=now_local(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def touch_last_login(db: Session, user: UserDB) -> None:
    user.last_login = now_local()
    db.commit()


def update_preferences(db: Session, user_id: int, prefs) -> Optional[UserDB]:
    """Overwrite every channel flag and destination; empty strings clear destinations."""
    user = get_user(db, user_id)
    if user is None:
        return None
    for field in PREFERENCE_FIELDS:
        value = getattr(prefs, field)
        if isinstance(value, str):
            value = value.strip() or None
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return user


# --- One-time login codes --------------------------------------------------


def create_otp(db: Session, phone_number: str, code: str, *, ttl_minutes: int) -> OtpCodeDB:
    now = now_local()
    row = OtpCodeDB(
        phone_number=phone_number,
        code=code,
        created_at=now,
        expires_at=now + timedelta(minutes=ttl_minutes),
        used=False,
    )
    db.add(row)
    db.commit()
    return row


def consume_otp(db: Session, phone_number: str, code: str, *, now: Optional[datetime] = None) -> bool:
    """Mark the newest matching, unexpired, unused code as used; False if none."""
    row = (
        db.query(OtpCodeDB)
        .filter(
            OtpCodeDB.phone_number == phone_number,
            OtpCodeDB.code == code,
            OtpCodeDB.used.is_(False),
            OtpCodeDB.expires_at > (now or now_local()),
        )
        .order_by(OtpCodeDB.created_at.desc(), OtpCodeDB.id.desc())
        .first()
    )
    if row is None:
        return False
    row.used = True
    db.commit()
    return True
