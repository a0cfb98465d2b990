# PURPOSE: define how users, tasks, subtasks and OTP codes look in the database.
# Datetimes are naive local wall-clock values; due dates/times are never timezone-converted.

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


def now_local() -> datetime:
    """Return the naive local datetime used for every stored timestamp."""
    return datetime.now()


class UserDB(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    phone_number: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    password_hash: Mapped[str | None] = mapped_column(String, nullable=True)  # OTP-only users have none

    # per-channel enablement
    whatsapp_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    telegram_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    sms_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    browser_notifications_enabled: Mapped[bool] = mapped_column(Boolean, default=True)

    # per-channel destinations
    whatsapp_number: Mapped[str | None] = mapped_column(String, nullable=True)
    telegram_chat_id: Mapped[str | None] = mapped_column(String, nullable=True)
    sms_number: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=now_local)
    last_login: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    tasks = relationship(
        "TaskDB",
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class TaskDB(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, default="")
    due_date = Column(Date, nullable=False)
    due_time = Column(String(5), nullable=False)  # "HH:MM"
    recurring = Column(String, default="none")  # none | daily | weekly | monthly
    priority = Column(String, default="medium")  # low | medium | high
    category = Column(String, default="general")
    reminder_minutes = Column(Integer, default=0)
    notes = Column(Text, default="")

    # alerting state of the current due instance
    snoozed_until = Column(DateTime, nullable=True)
    notified = Column(Boolean, default=False, nullable=False)
    reminder_sent = Column(Boolean, default=False, nullable=False)
    alert_count = Column(Integer, default=0, nullable=False)
    last_alert_sent = Column(DateTime, nullable=True)

    completed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=now_local)

    owner = relationship("UserDB", back_populates="tasks")
    subtasks = relationship(
        "SubtaskDB",
        back_populates="task",
        order_by="SubtaskDB.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class SubtaskDB(Base):
    __tablename__ = "subtasks"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    text = Column(String, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)

    task = relationship("TaskDB", back_populates="subtasks")


class OtpCodeDB(Base):
    __tablename__ = "otp_codes"

    id = Column(Integer, primary_key=True)
    phone_number = Column(String, nullable=False, index=True)
    code = Column(String, nullable=False)
    created_at = Column(DateTime, default=now_local, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, default=False, nullable=False)


# Helpful indexes for the scheduler scan and list filters
Index("ix_tasks_user_id", TaskDB.user_id)
Index("ix_tasks_completed_due", TaskDB.completed, TaskDB.due_date, TaskDB.due_time)
Index("ix_tasks_priority", TaskDB.priority)
Index("ix_subtasks_task_id", SubtaskDB.task_id)
