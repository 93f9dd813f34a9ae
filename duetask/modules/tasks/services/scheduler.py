"""Periodic task notifications.

``TaskNotificationScheduler`` polls a task source and announces two things:
tasks about to start, and tasks whose deadline classification calls for a
notification. Each announcement is remembered so the next cycle does not
repeat it; a task climbing to a more severe level is announced again.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, Protocol

from duetask.modules.auth.deps import NowUtc
from duetask.modules.tasks.services.health import LEVEL_RANK, ClassifyTask, TaskWarningLevel
from duetask.modules.tasks.services.transitions import COMPLETED, CurrentStatusFields
from duetask.modules.tasks.utils.config import Settings
from duetask.modules.tasks.utils.due import EnsureAware

logger = logging.getLogger("tasks.scheduler")


class NotificationSink(Protocol):
    def RequestPermission(self) -> bool: ...

    def Show(
        self,
        title: str,
        body: str,
        *,
        user_id: int | None = None,
        source_id: str | None = None,
    ) -> None: ...


@dataclass(frozen=True)
class FiredNotification:
    TaskId: int
    OwnerUserId: int | None
    Kind: str
    Level: str
    Title: str
    Body: str

    @property
    def SourceId(self) -> str:
        return f"task:{self.TaskId}:{self.Kind}:{self.Level}"


def _IsSuppressed(task, now: datetime) -> bool:
    if CurrentStatusFields(task).Status == COMPLETED:
        return True
    if task.NotificationsMuted:
        return True
    snoozed_until = EnsureAware(task.SnoozedUntil)
    return snoozed_until is not None and snoozed_until > now


class TaskNotificationScheduler:
    def __init__(
        self,
        sink: NotificationSink,
        load_tasks: Callable[[], Iterable] | None = None,
        clock: Callable[[], datetime] = NowUtc,
        poll_seconds: int | None = None,
        lead_minutes: int | None = None,
        resolve_timezone: Callable[[object], str | None] | None = None,
    ):
        self._sink = sink
        self._load_tasks = load_tasks
        self._clock = clock
        self._poll_seconds = poll_seconds or Settings.NotificationPollSeconds
        if lead_minutes is None:
            lead_minutes = Settings.StartLeadMinutes
        self._lead = timedelta(minutes=lead_minutes)
        self._resolve_timezone = resolve_timezone
        self._announced_starts: set[tuple[int, datetime]] = set()
        self._announced_levels: dict[int, TaskWarningLevel] = {}
        self._permitted: bool | None = None
        self._state_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def IsRunning(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def CheckTasks(self, tasks: Iterable, now: datetime | None = None) -> list[FiredNotification]:
        now = EnsureAware(now or self._clock())
        fired: list[FiredNotification] = []
        with self._state_lock:
            seen: set[int] = set()
            for task in tasks:
                seen.add(task.Id)
                if _IsSuppressed(task, now):
                    if CurrentStatusFields(task).Status == COMPLETED:
                        self._announced_levels.pop(task.Id, None)
                    continue
                for notice in (self._CheckStart(task, now), self._CheckDeadline(task, now)):
                    if notice is not None:
                        fired.append(notice)

            for task_id in list(self._announced_levels):
                if task_id not in seen:
                    del self._announced_levels[task_id]
            self._announced_starts = {
                (task_id, start)
                for task_id, start in self._announced_starts
                if task_id in seen and start > now
            }

        for notice in fired:
            self._Deliver(notice)
        return fired

    def RunOnce(self) -> list[FiredNotification]:
        if self._load_tasks is None:
            return []
        try:
            tasks = list(self._load_tasks())
        except Exception:  # noqa: BLE001
            logger.exception("task notification scheduler failed to load tasks")
            return []
        return self.CheckTasks(tasks)

    def Start(self) -> None:
        if self.IsRunning:
            return
        self._EnsurePermission()
        self._stop.clear()
        self._thread = threading.Thread(target=self._Run, name="task-notifications", daemon=True)
        self._thread.start()
        logger.info("task notification scheduler started (poll=%ss)", self._poll_seconds)

    def Stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        logger.info("task notification scheduler stopped")

    def __enter__(self) -> "TaskNotificationScheduler":
        self.Start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.Stop()

    def _Run(self) -> None:
        while not self._stop.is_set():
            self.RunOnce()
            self._stop.wait(self._poll_seconds)

    def _CheckStart(self, task, now: datetime) -> FiredNotification | None:
        if not task.NotifyOnStart or task.StartTime is None:
            return None
        start = EnsureAware(task.StartTime)
        if not (start - self._lead <= now < start):
            return None
        key = (task.Id, start)
        if key in self._announced_starts:
            return None
        self._announced_starts.add(key)
        minutes = max(1, int((start - now).total_seconds() // 60))
        return FiredNotification(
            TaskId=task.Id,
            OwnerUserId=getattr(task, "OwnerUserId", None),
            Kind="start",
            Level=TaskWarningLevel.Info.value,
            Title="Task starting soon",
            Body=f'"{task.Title}" starts in {minutes} min',
        )

    def _CheckDeadline(self, task, now: datetime) -> FiredNotification | None:
        tz_name = self._resolve_timezone(task) if self._resolve_timezone else None
        warning = ClassifyTask(task, now, tz_name)
        if not warning.ShouldNotify:
            self._announced_levels.pop(task.Id, None)
            return None

        previous = self._announced_levels.get(task.Id)
        self._announced_levels[task.Id] = warning.Level
        # Same level or lower: remember it, so a later climb announces again.
        if previous is not None and LEVEL_RANK[warning.Level] <= LEVEL_RANK[previous]:
            return None

        if warning.TimeRemaining is None or warning.TimeRemaining < timedelta(0):
            title = "Task Overdue"
            body = f'"{task.Title}" is overdue!'
        else:
            title = "Task due soon"
            body = f'"{task.Title}": {warning.Message} ({warning.TimeRemainingLabel} left)'
        return FiredNotification(
            TaskId=task.Id,
            OwnerUserId=getattr(task, "OwnerUserId", None),
            Kind="deadline",
            Level=warning.Level.value,
            Title=title,
            Body=body,
        )

    def _EnsurePermission(self) -> bool:
        if self._permitted is None:
            try:
                self._permitted = bool(self._sink.RequestPermission())
            except Exception:  # noqa: BLE001
                logger.exception("notification permission request failed")
                self._permitted = False
        return self._permitted

    def _Deliver(self, notice: FiredNotification) -> None:
        if not self._EnsurePermission():
            return
        try:
            self._sink.Show(
                notice.Title,
                notice.Body,
                user_id=notice.OwnerUserId,
                source_id=notice.SourceId,
            )
        except Exception:  # noqa: BLE001
            logger.exception("failed to deliver notification for task %s", notice.TaskId)
