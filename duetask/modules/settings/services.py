import logging

from sqlalchemy.orm import Session

from duetask.modules.auth.deps import NowUtc
from duetask.modules.auth.models import RefreshToken, User, UserPreferences
from duetask.modules.notifications.services import DeleteUserNotifications
from duetask.modules.tasks.models import Subtask, Task
from duetask.modules.tasks.services.tasks_service import BuildTaskStats, TaskStats
from duetask.modules.tasks.utils.due import NormalizeTimeZone

logger = logging.getLogger("app.settings")

DELETE_CONFIRMATION = "DELETE"


class SettingsError(ValueError):
    pass


def _CleanText(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def UpdateProfile(db: Session, user: User, payload: dict) -> User:
    if "Name" in payload:
        name = _CleanText(payload["Name"])
        if not name or len(name) < 2:
            raise SettingsError("Name must be at least 2 characters.")
        user.Name = name
    for key in ("AvatarUrl", "Location", "Bio"):
        if key in payload:
            setattr(user, key, _CleanText(payload[key]))
    user.UpdatedAt = NowUtc()
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def EnsurePreferences(db: Session, user_id: int) -> UserPreferences:
    record = db.query(UserPreferences).filter(UserPreferences.UserId == user_id).first()
    if record:
        return record
    now = NowUtc()
    record = UserPreferences(
        UserId=user_id,
        NotificationsEnabled=True,
        DefaultView="list",
        Theme="system",
        CreatedAt=now,
        UpdatedAt=now,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def UpdatePreferences(db: Session, user_id: int, payload: dict) -> UserPreferences:
    record = EnsurePreferences(db, user_id)
    if payload.get("NotificationsEnabled") is not None:
        record.NotificationsEnabled = bool(payload["NotificationsEnabled"])
    for key in ("DefaultView", "Theme"):
        value = payload.get(key)
        if value is not None:
            setattr(record, key, value.value if hasattr(value, "value") else value)
    if "TimeZone" in payload:
        try:
            record.TimeZone = NormalizeTimeZone(payload["TimeZone"])
        except ValueError as exc:
            raise SettingsError(str(exc)) from exc
    record.UpdatedAt = NowUtc()
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def DeleteAccount(db: Session, user: User, confirmation: str) -> None:
    if (confirmation or "").strip() != DELETE_CONFIRMATION:
        raise SettingsError('Type "DELETE" to confirm account deletion.')
    task_ids = [row.Id for row in db.query(Task.Id).filter(Task.OwnerUserId == user.Id).all()]
    if task_ids:
        db.query(Subtask).filter(Subtask.TaskId.in_(task_ids)).delete(synchronize_session=False)
        db.query(Task).filter(Task.Id.in_(task_ids)).delete(synchronize_session=False)
    DeleteUserNotifications(db, user_id=user.Id)
    db.query(RefreshToken).filter(RefreshToken.UserId == user.Id).delete(synchronize_session=False)
    db.query(UserPreferences).filter(UserPreferences.UserId == user.Id).delete(synchronize_session=False)
    db.delete(user)
    db.commit()
    logger.info("account %s deleted with %s tasks", user.Id, len(task_ids))


def GetUserStats(db: Session, user_id: int) -> TaskStats:
    tasks = db.query(Task).filter(Task.OwnerUserId == user_id).all()
    return BuildTaskStats(tasks)
