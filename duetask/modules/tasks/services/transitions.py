"""Task status transitions.

Every function here is pure: it reads a task-like object (anything exposing
``Status``, ``CompletedAt`` and ``OverdueAt``) and returns the status fields
the task should end up with. Persisting them is the caller's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

from duetask.modules.tasks.schemas import TaskStatus
from duetask.modules.tasks.utils.due import IsPastDue

PENDING = TaskStatus.Pending.value
OVERDUE = TaskStatus.Overdue.value
COMPLETED = TaskStatus.Completed.value


@dataclass(frozen=True)
class StatusFields:
    Status: str
    CompletedAt: datetime | None = None
    OverdueAt: datetime | None = None

    def AsPatch(self) -> dict:
        return {
            "Status": self.Status,
            "CompletedAt": self.CompletedAt,
            "OverdueAt": self.OverdueAt,
        }


def CurrentStatusFields(task) -> StatusFields:
    return StatusFields(
        Status=_StatusValue(task.Status) or PENDING,
        CompletedAt=task.CompletedAt,
        OverdueAt=task.OverdueAt,
    )


def _StatusValue(value) -> str | None:
    if value is None:
        return None
    return value.value if hasattr(value, "value") else str(value)


def ApplyStatusChange(task, requested_status, now: datetime) -> StatusFields:
    current = CurrentStatusFields(task)
    requested = _StatusValue(requested_status)
    if requested is None or requested == current.Status:
        return current

    if requested == COMPLETED:
        return StatusFields(Status=COMPLETED, CompletedAt=now, OverdueAt=None)
    if requested == PENDING:
        return StatusFields(Status=PENDING, CompletedAt=None, OverdueAt=None)
    if requested == OVERDUE:
        return StatusFields(Status=OVERDUE, CompletedAt=None, OverdueAt=now)
    return current


def ApplyDueAutoTransition(
    fields: StatusFields,
    due_date: date | None,
    due_time: str | None,
    now: datetime,
    tz_name: str | None = None,
) -> StatusFields:
    if fields.Status == COMPLETED:
        return fields
    if IsPastDue(due_date, due_time, now, tz_name):
        overdue_at = fields.OverdueAt if fields.Status == OVERDUE and fields.OverdueAt else now
        return StatusFields(Status=OVERDUE, CompletedAt=None, OverdueAt=overdue_at)
    if due_date:
        return StatusFields(Status=PENDING, CompletedAt=None, OverdueAt=None)
    return fields


def ResolveStatusUpdate(
    task,
    requested_status,
    due_changed: bool,
    due_date: date | None,
    due_time: str | None,
    now: datetime,
    tz_name: str | None = None,
) -> StatusFields:
    # An explicit COMPLETED in the same update wins over the due-date check.
    fields = ApplyStatusChange(task, requested_status, now)
    if due_changed and _StatusValue(requested_status) != COMPLETED:
        fields = ApplyDueAutoTransition(fields, due_date, due_time, now, tz_name)
    return fields


def InitialStatusFields(
    due_date: date | None,
    due_time: str | None,
    now: datetime,
    tz_name: str | None = None,
    completed: bool = False,
) -> StatusFields:
    if completed:
        return StatusFields(Status=COMPLETED, CompletedAt=now, OverdueAt=None)
    if IsPastDue(due_date, due_time, now, tz_name):
        return StatusFields(Status=OVERDUE, CompletedAt=None, OverdueAt=now)
    return StatusFields(Status=PENDING)


def SweepOverdue(task, now: datetime, tz_name: str | None = None) -> StatusFields:
    current = CurrentStatusFields(task)
    if current.Status != PENDING:
        return current
    if not IsPastDue(task.DueDate, task.DueTime, now, getattr(task, "TimeZone", None) or tz_name):
        return current
    return StatusFields(Status=OVERDUE, CompletedAt=None, OverdueAt=now)


def ApplyStatusFields(record, fields: StatusFields) -> None:
    record.Status = fields.Status
    record.CompletedAt = fields.CompletedAt
    record.OverdueAt = fields.OverdueAt


def AreAllSubtasksCompleted(subtasks: Iterable) -> bool:
    items = list(subtasks)
    if not items:
        return False
    return all(_IsCompleted(item) for item in items)


def _IsCompleted(item) -> bool:
    if isinstance(item, dict):
        return bool(item.get("IsCompleted"))
    return bool(item.IsCompleted)
