import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from duetask.modules.auth.deps import NowUtc
from duetask.modules.notifications.models import Notification

logger = logging.getLogger("notifications")

TITLE_MAX_LENGTH = 160
BODY_MAX_LENGTH = 400


def _Truncate(value: str | None, limit: int) -> str | None:
    if value is None or len(value) <= limit:
        return value
    return value[: limit - 3].rstrip() + "..."


def CreateNotification(
    db: Session,
    *,
    user_id: int,
    title: str,
    body: str | None = None,
    notification_type: str = "General",
    link_url: str | None = None,
    source_module: str | None = None,
    source_id: str | None = None,
) -> Notification:
    now = NowUtc()
    record = Notification(
        UserId=user_id,
        Type=notification_type or "General",
        Title=_Truncate(title, TITLE_MAX_LENGTH),
        Body=_Truncate(body, BODY_MAX_LENGTH),
        LinkUrl=link_url,
        SourceModule=source_module,
        SourceId=source_id,
        IsRead=False,
        IsDismissed=False,
        CreatedAt=now,
        UpdatedAt=now,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def BuildNotificationPayload(record: Notification) -> dict:
    return {
        "Id": record.Id,
        "UserId": record.UserId,
        "Type": record.Type,
        "Title": record.Title,
        "Body": record.Body,
        "LinkUrl": record.LinkUrl,
        "SourceModule": record.SourceModule,
        "SourceId": record.SourceId,
        "IsRead": record.IsRead,
        "ReadAt": record.ReadAt,
        "IsDismissed": record.IsDismissed,
        "DismissedAt": record.DismissedAt,
        "CreatedAt": record.CreatedAt,
        "UpdatedAt": record.UpdatedAt,
    }


def ListNotifications(
    db: Session,
    *,
    user_id: int,
    include_read: bool,
    include_dismissed: bool,
    limit: int,
    offset: int = 0,
) -> list[Notification]:
    query = db.query(Notification).filter(Notification.UserId == user_id)
    if not include_read:
        query = query.filter(Notification.IsRead == False)  # noqa: E712
    if not include_dismissed:
        query = query.filter(Notification.IsDismissed == False)  # noqa: E712
    return (
        query.order_by(Notification.CreatedAt.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def CountUnread(db: Session, *, user_id: int) -> int:
    value = (
        db.query(func.count(Notification.Id))
        .filter(
            Notification.UserId == user_id,
            Notification.IsRead == False,  # noqa: E712
            Notification.IsDismissed == False,  # noqa: E712
        )
        .scalar()
    )
    return int(value or 0)


def _GetUserNotification(db: Session, user_id: int, notification_id: int) -> Notification | None:
    return (
        db.query(Notification)
        .filter(Notification.Id == notification_id, Notification.UserId == user_id)
        .first()
    )


def MarkNotificationRead(db: Session, *, user_id: int, notification_id: int) -> Notification | None:
    record = _GetUserNotification(db, user_id, notification_id)
    if record is None:
        return None
    if record.IsRead:
        return record
    now = NowUtc()
    record.IsRead = True
    record.ReadAt = now
    record.UpdatedAt = now
    db.commit()
    db.refresh(record)
    return record


def DismissNotification(db: Session, *, user_id: int, notification_id: int) -> Notification | None:
    record = _GetUserNotification(db, user_id, notification_id)
    if record is None:
        return None
    now = NowUtc()
    record.IsDismissed = True
    record.DismissedAt = now
    if not record.IsRead:
        record.IsRead = True
        record.ReadAt = now
    record.UpdatedAt = now
    db.commit()
    db.refresh(record)
    return record


def MarkAllRead(db: Session, *, user_id: int) -> int:
    now = NowUtc()
    updated = (
        db.query(Notification)
        .filter(
            Notification.UserId == user_id,
            Notification.IsRead == False,  # noqa: E712
            Notification.IsDismissed == False,  # noqa: E712
        )
        .update(
            {
                Notification.IsRead: True,
                Notification.ReadAt: now,
                Notification.UpdatedAt: now,
            },
            synchronize_session=False,
        )
    )
    db.commit()
    return int(updated or 0)


def DeleteUserNotifications(db: Session, *, user_id: int) -> int:
    deleted = db.query(Notification).filter(Notification.UserId == user_id).delete(synchronize_session=False)
    return int(deleted or 0)
