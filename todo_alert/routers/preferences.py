# PURPOSE: per-user alert channel preferences and channel test sends.

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..alerts.channels import ChannelAdapter, find_channel
from ..api.deps import get_channels
from ..auth import get_current_user
from ..models import AlertPreferences, Channel, UserPublic
from ..store_db import get_db, get_user, update_preferences

router = APIRouter(tags=["preferences"])

# channel name -> user column holding its destination
DESTINATION_FIELDS = {
    "whatsapp": "whatsapp_number",
    "telegram": "telegram_chat_id",
    "sms": "sms_number",
}
LABELS = {"whatsapp": "WhatsApp", "telegram": "Telegram", "sms": "SMS"}


@router.get("/user/preferences", response_model=AlertPreferences)
def get_preferences(db: Session = Depends(get_db), user: UserPublic = Depends(get_current_user)):
    row = get_user(db, user.id)
    if row is None:
        raise HTTPException(status_code=404, detail="User not found")
    return row


@router.put("/user/preferences", response_model=AlertPreferences)
def put_preferences(
    payload: AlertPreferences,
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
):
    row = update_preferences(db, user.id, payload)
    if row is None:
        raise HTTPException(status_code=404, detail="User not found")
    return row


@router.post("/test/{channel}")
def send_test_message(
    channel: Channel,
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
    channels: list[ChannelAdapter] = Depends(get_channels),
):
    label = LABELS[channel]
    adapter = find_channel(channels, channel)
    if adapter is None:
        raise HTTPException(status_code=400, detail=f"{label} not configured")
    row = get_user(db, user.id)
    destination = getattr(row, DESTINATION_FIELDS[channel], None) if row else None
    if not destination:
        raise HTTPException(status_code=400, detail=f"{label} destination not set in preferences")
    if not adapter.send_text(destination, "🔔 Test message from Todo Alert!"):
        raise HTTPException(status_code=502, detail=f"{label} test message failed")
    return {"message": f"{label} test message sent!"}
