from __future__ import annotations

from typing import Iterable

from duetask.modules.tasks.errors import (
    SUBTASK_LOCKED_MESSAGE,
    TASK_LOCKED_MESSAGE,
    TaskLockedError,
)
from duetask.modules.tasks.services.transitions import COMPLETED, OVERDUE, CurrentStatusFields


def IsLocked(task) -> bool:
    return CurrentStatusFields(task).Status == OVERDUE and bool(task.LockedAfterDue)


def IsCompletionOnly(requested_fields: dict) -> bool:
    if set(requested_fields) != {"Status"}:
        return False
    status = requested_fields["Status"]
    value = status.value if hasattr(status, "value") else status
    return value == COMPLETED


def AssertEditable(task, requested_fields: dict | Iterable[str]) -> None:
    """Reject edits to a locked task.

    A locked task accepts exactly one kind of change: marking it COMPLETED.
    Any request touching other fields fails with TASK_LOCKED, or with
    SUBTASK_LOCKED when the subtask list is the only thing being changed.
    """
    if not IsLocked(task):
        return
    if not isinstance(requested_fields, dict):
        requested_fields = {name: None for name in requested_fields}
    if not requested_fields:
        return
    if IsCompletionOnly(requested_fields):
        return
    if set(requested_fields) == {"Subtasks"}:
        raise TaskLockedError(SUBTASK_LOCKED_MESSAGE, "SUBTASK_LOCKED")
    raise TaskLockedError(TASK_LOCKED_MESSAGE)
