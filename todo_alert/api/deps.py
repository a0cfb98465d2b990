from functools import lru_cache
from typing import Literal

from fastapi import HTTPException, Query

from ..alerts.channels import ChannelAdapter, build_channels
from ..config import settings
from ..models import Priority

# Shared list filter/order types
TaskStatus = Literal["pending", "completed"]
OrderBy = Literal["due", "priority", "created_at"]
OrderDir = Literal["asc", "desc"]


def _literal_error(field: str, allowed: tuple[str, ...], value: str) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail=[
            {
                "type": "literal_error",
                "loc": ["query", field],
                "msg": f"{field} must be one of: {', '.join(allowed)}",
                "input": value,
            }
        ],
    )


def _parse_choice(field: str, value: str | None, allowed: tuple[str, ...], default=None):
    # Empty string from a form/select means "no filter"
    if value is None or value == "":
        return default
    if value in allowed:
        return value
    raise _literal_error(field, allowed, value)


def parse_status(status: str | None = Query(None)) -> TaskStatus | None:
    return _parse_choice("status", status, ("pending", "completed"))


def parse_priority(priority: str | None = Query(None)) -> Priority | None:
    return _parse_choice("priority", priority, ("low", "medium", "high"))


def parse_order_by(order_by: str | None = Query(None)) -> OrderBy:
    return _parse_choice("order_by", order_by, ("due", "priority", "created_at"), default="due")


def parse_order_dir(order_dir: str | None = Query(None)) -> OrderDir:
    return _parse_choice("order_dir", order_dir, ("asc", "desc"), default="asc")


@lru_cache(maxsize=1)
def get_channels() -> list[ChannelAdapter]:
    """Channel adapters for request-time sends (OTP codes, test messages)."""
    return build_channels(settings)
