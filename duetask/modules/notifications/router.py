import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from duetask.db import GetDb
from duetask.modules.auth.deps import RequireAuthenticated, UserContext
from duetask.modules.notifications.schemas import (
    NotificationBulkUpdateResponse,
    NotificationListResponse,
    NotificationOut,
)
from duetask.modules.notifications.services import (
    BuildNotificationPayload,
    CountUnread,
    DismissNotification,
    ListNotifications,
    MarkAllRead,
    MarkNotificationRead,
)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])
logger = logging.getLogger("notifications")


def _handle_db_error(exc: Exception) -> None:
    logger.exception("notifications database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Notifications storage not initialized. Run alembic upgrade head.",
    ) from exc


def _NotFound() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")


@router.get("", response_model=NotificationListResponse)
def ListNotificationItems(
    include_read: bool = True,
    include_dismissed: bool = False,
    limit: int = 20,
    offset: int = 0,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> NotificationListResponse:
    try:
        records = ListNotifications(
            db,
            user_id=user.Id,
            include_read=include_read,
            include_dismissed=include_dismissed,
            limit=max(1, min(limit, 100)),
            offset=max(0, offset),
        )
        notifications = [NotificationOut(**BuildNotificationPayload(record)) for record in records]
        return NotificationListResponse(
            Notifications=notifications,
            UnreadCount=CountUnread(db, user_id=user.Id),
        )
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/read-all", response_model=NotificationBulkUpdateResponse)
def MarkAllNotificationsRead(
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> NotificationBulkUpdateResponse:
    try:
        return NotificationBulkUpdateResponse(UpdatedCount=MarkAllRead(db, user_id=user.Id))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/{notification_id}/read", response_model=NotificationOut)
def MarkNotificationItemRead(
    notification_id: int,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> NotificationOut:
    try:
        record = MarkNotificationRead(db, user_id=user.Id, notification_id=notification_id)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    if record is None:
        raise _NotFound()
    return NotificationOut(**BuildNotificationPayload(record))


@router.post("/{notification_id}/dismiss", response_model=NotificationOut)
def DismissNotificationItem(
    notification_id: int,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> NotificationOut:
    try:
        record = DismissNotification(db, user_id=user.Id, notification_id=notification_id)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    if record is None:
        raise _NotFound()
    return NotificationOut(**BuildNotificationPayload(record))
