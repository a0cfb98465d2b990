# PURPOSE: pydantic v2 request/response schemas for the JSON API.

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Priority = Literal["low", "medium", "high"]
Recurrence = Literal["none", "daily", "weekly", "monthly"]
Channel = Literal["whatsapp", "telegram", "sms"]

# E.164, same rule the OTP flow has always enforced
PHONE_PATTERN = r"^\+?[1-9]\d{1,14}$"
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


# --- Subtasks ---


class SubtaskIn(BaseModel):
    text: str = Field(min_length=1, max_length=200)
    completed: bool = False
    model_config = ConfigDict(extra="ignore")


class Subtask(BaseModel):
    id: int
    text: str
    completed: bool
    model_config = ConfigDict(from_attributes=True)


# --- Tasks ---


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    due_date: date
    due_time: str = Field(pattern=TIME_PATTERN)
    recurring: Recurrence = "none"
    priority: Priority = "medium"
    category: str = "general"
    reminder_minutes: int = Field(default=0, ge=0)
    notes: str = ""
    subtasks: list[SubtaskIn] = Field(default_factory=list)
    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "examples": [
                {"title": "Buy milk", "due_date": "2025-06-01", "due_time": "18:00"},
                {
                    "title": "Take medication",
                    "due_date": "2025-06-01",
                    "due_time": "08:00",
                    "recurring": "daily",
                    "priority": "high",
                    "reminder_minutes": 15,
                },
            ]
        },
    )


class TaskPut(TaskCreate):
    """Full replace; subtasks are replaced wholesale only when given."""

    completed: bool = False
    subtasks: list[SubtaskIn] | None = None  # type: ignore[assignment]


class TaskUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    due_date: date | None = None
    due_time: str | None = Field(default=None, pattern=TIME_PATTERN)
    recurring: Recurrence | None = None
    priority: Priority | None = None
    category: str | None = None
    reminder_minutes: int | None = Field(default=None, ge=0)
    notes: str | None = None
    completed: bool | None = None
    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={"examples": [{"priority": "high"}, {"due_time": "09:30"}]},
    )


class Task(BaseModel):
    id: int
    title: str
    description: str | None
    due_date: date
    due_time: str
    recurring: Recurrence
    priority: Priority
    category: str | None
    reminder_minutes: int
    notes: str | None
    completed: bool
    notified: bool
    reminder_sent: bool
    alert_count: int
    last_alert_sent: datetime | None
    snoozed_until: datetime | None
    created_at: datetime
    subtasks: list[Subtask] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)  # ORM -> schema


class SnoozeRequest(BaseModel):
    minutes: int = Field(gt=0, le=60 * 24 * 30)


class SnoozeResponse(BaseModel):
    message: str
    snoozed_until: datetime


class TaskTemplate(BaseModel):
    id: int
    name: str
    title: str
    description: str
    recurring: Recurrence
    due_time: str | None = None
    priority: Priority
    category: str
    reminder_minutes: int = 0
    subtasks: list[SubtaskIn] = Field(default_factory=list)


# --- Bulk operation schemas ---


class TaskIdList(BaseModel):
    """Helper schema for bulk operations with ids."""

    ids: list[int] = Field(min_length=1)


# --- Alert preferences ---


class AlertPreferences(BaseModel):
    whatsapp_enabled: bool = False
    telegram_enabled: bool = False
    sms_enabled: bool = False
    browser_notifications_enabled: bool = False
    whatsapp_number: str | None = None
    telegram_chat_id: str | None = None
    sms_number: str | None = None
    model_config = ConfigDict(from_attributes=True, extra="ignore")


# --- User / Auth schemas ---


class UserBase(BaseModel):
    phone_number: str = Field(pattern=PHONE_PATTERN)


class UserCreate(UserBase):
    name: str | None = None
    # Raw password only in create request
    password: str = Field(min_length=1)


class UserPublic(UserBase):
    id: int
    name: str | None = None
    model_config = ConfigDict(from_attributes=True)  # allow ORM -> schema


class TokenResponse(BaseModel):
    # Simple JWT response
    access_token: str
    token_type: Literal["bearer"] = "bearer"
    model_config = ConfigDict(
        json_schema_extra={"examples": [{"access_token": "<jwt>", "token_type": "bearer"}]}
    )


class OtpRequest(UserBase):
    pass


class OtpRequestResponse(BaseModel):
    message: str
    phone_number: str
    # Only populated when no SMS channel is configured (local development)
    otp: str | None = None


class OtpVerify(UserBase):
    code: str = Field(min_length=4, max_length=10)
    name: str | None = None


# --- Reporting ---


class StatsSummary(BaseModel):
    total: int
    completed: int
    pending: int
    overdue: int
    notified: int
    completion_rate: float


class PeriodStats(BaseModel):
    period: str
    period_start: datetime
    period_end: datetime
    total: int
    completed: int
    pending: int
    overdue: int
    completion_rate: float
