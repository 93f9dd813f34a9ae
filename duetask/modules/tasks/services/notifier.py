from __future__ import annotations

from typing import Callable

from sqlalchemy.orm import Session

from duetask.db import OpenSession
from duetask.modules.notifications.sink import InAppNotificationSink
from duetask.modules.tasks.models import Task
from duetask.modules.tasks.services.scheduler import TaskNotificationScheduler
from duetask.modules.tasks.store import TaskStore
from duetask.modules.tasks.utils.config import Settings


class OpenTaskSource:
    """Loads every open, unmuted task for a server-side notification cycle."""

    def __init__(self, session_factory: Callable[[], Session] = OpenSession):
        self._session_factory = session_factory
        self._time_zones: dict[int, str | None] = {}

    def __call__(self) -> list[Task]:
        db = self._session_factory()
        try:
            store = TaskStore(db)
            tasks = store.ListOpenTasks()
            self._time_zones = store.GetUserTimeZones(task.OwnerUserId for task in tasks)
            db.expunge_all()
            return tasks
        finally:
            db.close()

    def ResolveTimeZone(self, task: Task) -> str | None:
        return self._time_zones.get(task.OwnerUserId)


def BuildTaskNotificationScheduler(
    session_factory: Callable[[], Session] = OpenSession,
) -> TaskNotificationScheduler:
    source = OpenTaskSource(session_factory)
    return TaskNotificationScheduler(
        InAppNotificationSink(session_factory),
        load_tasks=source,
        poll_seconds=Settings.NotificationPollSeconds,
        lead_minutes=Settings.StartLeadMinutes,
        resolve_timezone=source.ResolveTimeZone,
    )
