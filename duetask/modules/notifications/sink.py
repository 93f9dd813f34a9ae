import logging
from typing import Callable

from sqlalchemy.orm import Session

from duetask.db import OpenSession
from duetask.modules.auth.models import UserPreferences
from duetask.modules.notifications.services import CreateNotification

logger = logging.getLogger("notifications")

TASK_NOTIFICATION_TYPE = "TaskReminder"


def _ParseTaskId(source_id: str | None) -> int | None:
    if not source_id or not source_id.startswith("task:"):
        return None
    try:
        return int(source_id.split(":")[1])
    except (IndexError, ValueError):
        return None


class InAppNotificationSink:
    """Delivers scheduler notifications into the user's in-app inbox."""

    def __init__(self, session_factory: Callable[[], Session] = OpenSession):
        self._session_factory = session_factory

    def RequestPermission(self) -> bool:
        return True

    def Show(
        self,
        title: str,
        body: str,
        *,
        user_id: int | None = None,
        source_id: str | None = None,
    ) -> None:
        if user_id is None:
            logger.warning("dropping notification without a recipient: %s", title)
            return
        db = self._session_factory()
        try:
            preferences = db.query(UserPreferences).filter(UserPreferences.UserId == user_id).first()
            if preferences is not None and not preferences.NotificationsEnabled:
                return
            task_id = _ParseTaskId(source_id)
            CreateNotification(
                db,
                user_id=user_id,
                title=title,
                body=body,
                notification_type=TASK_NOTIFICATION_TYPE,
                link_url=f"/tasks/{task_id}" if task_id else None,
                source_module="tasks",
                source_id=source_id,
            )
        except Exception:  # noqa: BLE001
            db.rollback()
            logger.exception("failed to store notification for user %s", user_id)
        finally:
            db.close()
