from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class NotificationOut(BaseModel):
    Id: int
    UserId: int
    Type: str
    Title: str
    Body: str | None = None
    LinkUrl: str | None = None
    SourceModule: str | None = None
    SourceId: str | None = None
    IsRead: bool
    ReadAt: datetime | None = None
    IsDismissed: bool
    DismissedAt: datetime | None = None
    CreatedAt: datetime
    UpdatedAt: datetime


class NotificationListResponse(BaseModel):
    Notifications: list[NotificationOut]
    UnreadCount: int


class NotificationBulkUpdateResponse(BaseModel):
    UpdatedCount: int
