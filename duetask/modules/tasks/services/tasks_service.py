from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable

from duetask.modules.auth.deps import NowUtc, UserContext
from duetask.modules.tasks.errors import TaskLockedError, TaskNotFoundError, TaskValidationError
from duetask.modules.tasks.models import Subtask, Task
from duetask.modules.tasks.schemas import TaskPriority, TaskStatus, TaskView
from duetask.modules.tasks.services.events import (
    BuildDuplicateCompletionEvents,
    DetectNewlyCompletedSubtasks,
    DispatchTaskEvents,
)
from duetask.modules.tasks.services.health import EvaluateTaskHealth, TaskHealth
from duetask.modules.tasks.services.lock_policy import AssertEditable
from duetask.modules.tasks.services.transitions import (
    COMPLETED,
    OVERDUE,
    PENDING,
    AreAllSubtasksCompleted,
    ApplyStatusChange,
    CurrentStatusFields,
    InitialStatusFields,
    ResolveStatusUpdate,
    SweepOverdue,
)
from duetask.modules.tasks.utils.due import (
    EnsureAware,
    NormalizeDueTime,
    NormalizeTimeZone,
    ResolveTimezone,
)

logger = logging.getLogger("tasks")

TAGS_MAX_LENGTH = 500

_CONTENT_FIELDS = (
    "Title",
    "Description",
    "Notes",
    "Category",
    "Priority",
    "Tags",
    "DueDate",
    "DueTime",
    "TimeZone",
    "StartTime",
    "EndTime",
    "NotifyOnStart",
    "LockedAfterDue",
)
EDITABLE_FIELDS = _CONTENT_FIELDS + ("Status", "Subtasks")

_VIEW_STATUSES = {
    TaskView.Pending.value: [PENDING],
    TaskView.Overdue.value: [OVERDUE],
    TaskView.Completed.value: [COMPLETED],
}


@dataclass
class TaskStats:
    TotalTasks: int
    CompletedTasks: int
    PendingTasks: int
    OverdueTasks: int
    CompletionRate: int


def ParseTags(value: str | None) -> list[str]:
    if not value:
        return []
    return [item for item in (part.strip() for part in value.split(",")) if item]


def _NormalizeTags(values: Iterable[str] | None) -> str | None:
    tags: list[str] = []
    seen: set[str] = set()
    for value in values or []:
        cleaned = " ".join((value or "").replace(",", " ").split())
        if not cleaned:
            continue
        key = cleaned.lower()
        if key in seen:
            continue
        seen.add(key)
        tags.append(cleaned)
    if not tags:
        return None
    joined = ",".join(tags)
    if len(joined) > TAGS_MAX_LENGTH:
        raise TaskValidationError("Too many tags.")
    return joined


def _NormalizeText(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def _NormalizeTitle(value: str | None) -> str:
    cleaned = _NormalizeText(value)
    if not cleaned:
        raise TaskValidationError("Title is required.")
    return cleaned


def _EnumValue(enum_type, value, label: str) -> str | None:
    if value is None:
        return None
    try:
        return enum_type(value.value if hasattr(value, "value") else value).value
    except ValueError as exc:
        raise TaskValidationError(f"Invalid {label}.") from exc


def _NormalizeSubtasks(items: Iterable | None) -> list[dict]:
    subtasks = []
    for item in items or []:
        data = item if isinstance(item, dict) else item.model_dump()
        title = _NormalizeText(data.get("Title"))
        if not title:
            raise TaskValidationError("Subtask title is required.")
        subtasks.append(
            {
                "Id": data.get("Id"),
                "Title": title,
                "IsCompleted": bool(data.get("IsCompleted")),
            }
        )
    return subtasks


def _ValidateSchedule(
    due_date: date | None,
    due_time: str | None,
    start_time: datetime | None,
    end_time: datetime | None,
) -> None:
    if due_time and not due_date:
        raise TaskValidationError("Due time requires a due date.")
    if start_time and end_time and EnsureAware(end_time) < EnsureAware(start_time):
        raise TaskValidationError("End time must be after start time.")


def _GetOwnedTask(store, user: UserContext, task_id: int) -> Task:
    record = store.GetTask(task_id, user.Id)
    if not record:
        raise TaskNotFoundError("Task not found")
    return record


def ResolveTaskTimeZone(store, task) -> str | None:
    return task.TimeZone or store.GetUserTimeZone(task.OwnerUserId)


def CreateTask(store, user: UserContext, payload: dict, now: datetime | None = None) -> Task:
    now = now or NowUtc()
    title = _NormalizeTitle(payload.get("Title"))
    due_date = payload.get("DueDate")
    due_time = NormalizeDueTime(payload.get("DueTime"))
    time_zone = NormalizeTimeZone(payload.get("TimeZone"))
    start_time = payload.get("StartTime")
    end_time = payload.get("EndTime")
    _ValidateSchedule(due_date, due_time, start_time, end_time)
    subtasks = [dict(item, Id=None) for item in _NormalizeSubtasks(payload.get("Subtasks"))]

    status_fields = InitialStatusFields(
        due_date,
        due_time,
        now,
        time_zone or store.GetUserTimeZone(user.Id),
        completed=AreAllSubtasksCompleted(subtasks),
    )
    record = Task(
        OwnerUserId=user.Id,
        Title=title,
        Description=_NormalizeText(payload.get("Description")),
        Notes=_NormalizeText(payload.get("Notes")),
        Category=_NormalizeText(payload.get("Category")),
        Priority=_EnumValue(TaskPriority, payload.get("Priority"), "priority") or TaskPriority.Medium.value,
        Tags=_NormalizeTags(payload.get("Tags")),
        DueDate=due_date,
        DueTime=due_time,
        TimeZone=time_zone,
        StartTime=start_time,
        EndTime=end_time,
        NotifyOnStart=payload.get("NotifyOnStart", True),
        LockedAfterDue=payload.get("LockedAfterDue", True),
        NotificationsMuted=False,
        PartiallyResolved=False,
        DuplicatedFromTaskId=payload.get("DuplicatedFromTaskId"),
        SortOrder=store.NextSortOrder(user.Id),
        CreatedAt=now,
        UpdatedAt=now,
        **status_fields.AsPatch(),
    )
    store.AddTask(record)
    if subtasks:
        store.ReplaceSubtasks(record.Id, subtasks)
    store.Commit()
    logger.info("task %s created for user %s (status=%s)", record.Id, user.Id, record.Status)
    return record


def _CatchUpOverdue(store, record: Task, now: datetime, tz_name: str | None) -> None:
    swept = SweepOverdue(record, now, tz_name)
    if swept.Status == CurrentStatusFields(record).Status:
        return
    store.UpdateTask(record, {**swept.AsPatch(), "UpdatedAt": now})
    store.Commit()
    logger.info("task %s passed its due date; marked overdue", record.Id)


def UpdateTask(
    store,
    user: UserContext,
    task_id: int,
    payload: dict,
    now: datetime | None = None,
) -> Task:
    """Apply a partial update to a task.

    The pipeline runs in a fixed order: bring the stored status up to date
    with the clock, enforce the lock, normalize content fields, derive the
    new status (explicit request, then due-date change, then subtask
    completion) and finally persist the task, its subtasks and any
    cross-task side effects in one commit.
    """
    now = now or NowUtc()
    record = _GetOwnedTask(store, user, task_id)
    data = {key: value for key, value in payload.items() if key in EDITABLE_FIELDS}
    requested_status = _EnumValue(TaskStatus, data.get("Status"), "status")
    stored_tz = ResolveTaskTimeZone(store, record)

    _CatchUpOverdue(store, record, now, stored_tz)
    try:
        AssertEditable(record, data)
    except TaskLockedError as exc:
        logger.info("rejected edit of locked task %s (%s)", record.Id, exc.Code)
        raise

    patch: dict = {}
    if "Title" in data:
        patch["Title"] = _NormalizeTitle(data["Title"])
    for key in ("Description", "Notes", "Category"):
        if key in data:
            patch[key] = _NormalizeText(data[key])
    if "Priority" in data:
        patch["Priority"] = _EnumValue(TaskPriority, data["Priority"], "priority") or TaskPriority.Medium.value
    if "Tags" in data:
        patch["Tags"] = _NormalizeTags(data["Tags"])
    if "DueDate" in data:
        patch["DueDate"] = data["DueDate"]
    if "DueTime" in data:
        patch["DueTime"] = NormalizeDueTime(data["DueTime"])
    if "TimeZone" in data:
        patch["TimeZone"] = NormalizeTimeZone(data["TimeZone"])
    for key in ("StartTime", "EndTime"):
        if key in data:
            patch[key] = data[key]
    for key in ("NotifyOnStart", "LockedAfterDue"):
        if key in data and data[key] is not None:
            patch[key] = bool(data[key])

    due_date = patch.get("DueDate", record.DueDate)
    due_time = patch.get("DueTime", record.DueTime)
    time_zone = patch.get("TimeZone", record.TimeZone)
    _ValidateSchedule(
        due_date,
        due_time,
        patch.get("StartTime", record.StartTime),
        patch.get("EndTime", record.EndTime),
    )
    due_changed = (due_date, due_time, time_zone) != (record.DueDate, record.DueTime, record.TimeZone)
    effective_tz = time_zone or store.GetUserTimeZone(record.OwnerUserId)
    status_fields = ResolveStatusUpdate(
        record,
        requested_status,
        due_changed,
        due_date,
        due_time,
        now,
        effective_tz,
    )

    subtasks: list[dict] | None = None
    newly_completed: list = []
    if "Subtasks" in data:
        subtasks = _NormalizeSubtasks(data["Subtasks"])
        newly_completed = DetectNewlyCompletedSubtasks(store.ListSubtasks(record.Id), subtasks)
        if (
            requested_status is None
            and status_fields.Status != COMPLETED
            and newly_completed
            and AreAllSubtasksCompleted(subtasks)
        ):
            status_fields = ApplyStatusChange(status_fields, COMPLETED, now)

    patch.update(status_fields.AsPatch())
    patch["UpdatedAt"] = now
    store.UpdateTask(record, patch)
    if subtasks is not None:
        store.ReplaceSubtasks(record.Id, subtasks)
    DispatchTaskEvents(store, BuildDuplicateCompletionEvents(record, newly_completed, now))
    store.Commit()
    logger.info("task %s updated (status=%s)", record.Id, record.Status)
    return record


def DeleteTask(store, user: UserContext, task_id: int) -> None:
    record = _GetOwnedTask(store, user, task_id)
    store.DeleteTask(record)
    store.Commit()
    logger.info("task %s deleted", task_id)


def BatchDeleteTasks(store, user: UserContext, task_ids: Iterable[int]) -> int:
    records = store.ListTasksByIds(user.Id, set(task_ids))
    for record in records:
        store.DeleteTask(record)
    store.Commit()
    logger.info("batch deleted %s tasks for user %s", len(records), user.Id)
    return len(records)


def ReorderTasks(store, user: UserContext, task_ids: list[int], now: datetime | None = None) -> list[Task]:
    now = now or NowUtc()
    if len(set(task_ids)) != len(task_ids):
        raise TaskValidationError("Task ids must be unique.")
    records = {record.Id: record for record in store.ListTasksByIds(user.Id, task_ids)}
    missing = [task_id for task_id in task_ids if task_id not in records]
    if missing:
        raise TaskNotFoundError(f"Task not found: {missing[0]}")
    ordered = []
    for index, task_id in enumerate(task_ids):
        record = records[task_id]
        if record.SortOrder != index:
            store.UpdateTask(record, {"SortOrder": index, "UpdatedAt": now})
        ordered.append(record)
    store.Commit()
    return ordered


def DuplicateTask(
    store,
    user: UserContext,
    task_id: int,
    payload: dict | None = None,
    now: datetime | None = None,
) -> Task:
    payload = payload or {}
    source = _GetOwnedTask(store, user, task_id)
    subtasks = [
        {"Title": item.Title, "IsCompleted": False}
        for item in store.ListSubtasks(source.Id)
        if not item.IsCompleted
    ]
    return CreateTask(
        store,
        user,
        {
            "Title": source.Title,
            "Description": source.Description,
            "Notes": source.Notes,
            "Category": source.Category,
            "Priority": source.Priority,
            "Tags": ParseTags(source.Tags),
            "DueDate": payload.get("DueDate"),
            "DueTime": payload.get("DueTime"),
            "TimeZone": source.TimeZone,
            "NotifyOnStart": source.NotifyOnStart,
            "LockedAfterDue": source.LockedAfterDue,
            "DuplicatedFromTaskId": source.Id,
            "Subtasks": subtasks,
        },
        now=now,
    )


def SnoozeTask(
    store,
    user: UserContext,
    task_id: int,
    minutes: int | None,
    until: datetime | None,
    now: datetime | None = None,
) -> Task:
    now = now or NowUtc()
    record = _GetOwnedTask(store, user, task_id)
    if until:
        snoozed_until = EnsureAware(until)
    elif minutes is not None:
        snoozed_until = now + timedelta(minutes=minutes)
    else:
        raise TaskValidationError("Snooze time required")
    if snoozed_until <= now:
        raise TaskValidationError("Snooze time must be in the future")
    store.UpdateTask(record, {"SnoozedUntil": snoozed_until, "UpdatedAt": now})
    store.Commit()
    return record


def SetTaskMuted(
    store,
    user: UserContext,
    task_id: int,
    muted: bool,
    now: datetime | None = None,
) -> Task:
    now = now or NowUtc()
    record = _GetOwnedTask(store, user, task_id)
    patch = {"NotificationsMuted": muted, "UpdatedAt": now}
    if not muted:
        patch["PartiallyResolved"] = False
    store.UpdateTask(record, patch)
    store.Commit()
    return record


def GetTask(store, user: UserContext, task_id: int) -> Task:
    return _GetOwnedTask(store, user, task_id)


def _IsDueToday(task: Task, now: datetime, tz_name: str | None) -> bool:
    if not task.DueDate:
        return False
    local_today = EnsureAware(now).astimezone(ResolveTimezone(task.TimeZone or tz_name)).date()
    due_date = task.DueDate.date() if isinstance(task.DueDate, datetime) else task.DueDate
    return due_date == local_today


def ListTasks(store, user: UserContext, view: str = "all", now: datetime | None = None) -> list[Task]:
    normalized = (view or TaskView.All.value).lower()
    if normalized == TaskView.Today.value:
        now = now or NowUtc()
        tz_name = store.GetUserTimeZone(user.Id)
        records = store.ListTasks(user.Id, [PENDING, OVERDUE])
        return [task for task in records if _IsDueToday(task, now, tz_name)]
    return store.ListTasks(user.Id, _VIEW_STATUSES.get(normalized))


def ListTaskSubtasks(store, tasks: list[Task]) -> dict[int, list[Subtask]]:
    return store.ListSubtasksForTasks([task.Id for task in tasks])


def GetTaskHealth(store, user: UserContext, task_id: int, now: datetime | None = None) -> tuple[Task, TaskHealth]:
    now = now or NowUtc()
    record = _GetOwnedTask(store, user, task_id)
    return record, EvaluateTaskHealth(record, now, ResolveTaskTimeZone(store, record))


def BuildTaskStats(tasks: Iterable) -> TaskStats:
    statuses = [CurrentStatusFields(task).Status for task in tasks]
    total = len(statuses)
    completed = statuses.count(COMPLETED)
    return TaskStats(
        TotalTasks=total,
        CompletedTasks=completed,
        PendingTasks=statuses.count(PENDING),
        OverdueTasks=statuses.count(OVERDUE),
        CompletionRate=round(completed / total * 100) if total else 0,
    )
