import asyncio
import json

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from database import get_db
from app_models import User
from app_utils.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from config import PUSH_HEARTBEAT_SECONDS
from routers.deps import get_current_user, get_stream_user
from schemas import NotificationResponse, UnreadCountResponse, MessageResponse, Page
from services import notification_service
from services.push_channels import connection_manager

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])

POLL_INTERVAL_SECONDS = 0.1


@router.get("/", response_model=Page[NotificationResponse])
def list_notifications(
    page: int = Query(0, ge=0),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return notification_service.list_notifications(db, current_user, page, size)


@router.get("/count", response_model=UnreadCountResponse)
def unread_count(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"count": notification_service.count_unread(db, current_user)}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def mark_as_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notification = notification_service.mark_as_read(db, current_user, notification_id)
    return NotificationResponse.from_notification(notification)


@router.post("/read-all", response_model=MessageResponse)
def mark_all_as_read(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    count = notification_service.mark_all_as_read(db, current_user)
    return {"status": "success", "message": f"{count} notifications marked as read"}


def format_sse(event, data):
    if not isinstance(data, str):
        data = json.dumps(data)
    return f"event: {event}\ndata: {data}\n\n"


async def stream_events(channel, is_disconnected, heartbeat_seconds=PUSH_HEARTBEAT_SECONDS):
    """Drain a push channel as SSE frames until it closes or the client goes away."""
    idle = 0.0
    try:
        while not channel.closed:
            if await is_disconnected():
                break

            item = channel.get_nowait()
            if item is not None:
                event, data = item
                yield format_sse(event, data)
                idle = 0.0
                continue

            await asyncio.sleep(POLL_INTERVAL_SECONDS)
            idle += POLL_INTERVAL_SECONDS
            if idle >= heartbeat_seconds:
                yield ": heartbeat\n\n"
                idle = 0.0
    finally:
        connection_manager.unregister(channel.user_id, channel)


@router.get("/stream")
async def stream(request: Request, current_user: User = Depends(get_stream_user)):
    """Live notifications via Server-Sent Events (INIT once, then NOTIFICATION events)."""
    channel = connection_manager.register(current_user.id)
    channel.send(notification_service.INIT_EVENT, "Connection established")

    return StreamingResponse(
        stream_events(channel, request.is_disconnected),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
