"""Deadline classification and health scoring.

``ClassifyTask`` turns the time left before a task's deadline into a warning
level the notification scheduler can act on. ``CalculateHealthScore`` maps the
same distance onto a 0-100 scale for display, and ``SuggestActions`` offers the
user something to do about a task that is slipping.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from duetask.modules.tasks.services.transitions import COMPLETED, OVERDUE, CurrentStatusFields
from duetask.modules.tasks.utils.due import EnsureAware, ResolveTaskDueInstant


class TaskWarningLevel(str, Enum):
    Nothing = "none"
    Info = "info"
    Warning = "warning"
    Critical = "critical"


LEVEL_RANK = {
    TaskWarningLevel.Nothing: 0,
    TaskWarningLevel.Info: 1,
    TaskWarningLevel.Warning: 2,
    TaskWarningLevel.Critical: 3,
}

HOUR = timedelta(hours=1)


@dataclass
class TaskWarning:
    Level: TaskWarningLevel
    Message: str = ""
    ShouldNotify: bool = False
    TimeRemaining: timedelta | None = None

    @property
    def TimeRemainingLabel(self) -> str | None:
        if self.TimeRemaining is None:
            return None
        return FormatTimeRemaining(self.TimeRemaining)


@dataclass
class SuggestedAction:
    Type: str
    Message: str
    Priority: str = "medium"


@dataclass
class TaskHealth:
    Warning: TaskWarning
    Score: int
    Label: str
    Actions: list[SuggestedAction] = field(default_factory=list)


def FormatTimeRemaining(delta: timedelta) -> str:
    total_minutes = int(abs(delta).total_seconds() // 60)
    days, remainder = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(remainder, 60)
    if delta < timedelta(0):
        total_hours = days * 24 + hours
        return f"Overdue by {total_hours}h {minutes}m"
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def TimeUntilDue(task, now: datetime, tz_name: str | None = None) -> timedelta | None:
    now = EnsureAware(now)
    current = CurrentStatusFields(task)
    if current.Status == OVERDUE and current.OverdueAt is not None:
        return -(now - EnsureAware(current.OverdueAt))
    due_at = ResolveTaskDueInstant(task, tz_name)
    if due_at is None:
        return None
    return due_at - now


def ClassifyTask(task, now: datetime, tz_name: str | None = None) -> TaskWarning:
    status = CurrentStatusFields(task).Status
    if status == COMPLETED:
        return TaskWarning(Level=TaskWarningLevel.Nothing)

    remaining = TimeUntilDue(task, now, tz_name)
    if status == OVERDUE:
        return TaskWarning(
            Level=TaskWarningLevel.Critical,
            Message="This task is overdue",
            ShouldNotify=True,
            TimeRemaining=remaining,
        )
    if remaining is None:
        return TaskWarning(Level=TaskWarningLevel.Nothing)
    if remaining < timedelta(0):
        return TaskWarning(
            Level=TaskWarningLevel.Critical,
            Message="This task is overdue",
            ShouldNotify=True,
            TimeRemaining=remaining,
        )
    if remaining <= HOUR:
        return TaskWarning(
            Level=TaskWarningLevel.Critical,
            Message="Due in less than 1 hour",
            ShouldNotify=True,
            TimeRemaining=remaining,
        )
    if remaining <= 3 * HOUR:
        return TaskWarning(
            Level=TaskWarningLevel.Warning,
            Message="Due in less than 3 hours",
            ShouldNotify=True,
            TimeRemaining=remaining,
        )
    if remaining <= 24 * HOUR:
        return TaskWarning(
            Level=TaskWarningLevel.Warning,
            Message="Due within 24 hours",
            ShouldNotify=True,
            TimeRemaining=remaining,
        )
    return TaskWarning(
        Level=TaskWarningLevel.Info,
        Message="Upcoming task",
        ShouldNotify=False,
        TimeRemaining=remaining,
    )


def CalculateHealthScore(task, now: datetime, tz_name: str | None = None) -> int:
    status = CurrentStatusFields(task).Status
    if status == COMPLETED:
        return 100
    if status == OVERDUE:
        return 0
    due_at = ResolveTaskDueInstant(task, tz_name)
    if due_at is None:
        return 100

    hours = (due_at - EnsureAware(now)).total_seconds() / 3600
    if hours <= 0:
        return 0
    days = hours / 24
    if days > 7:
        return 100
    if days >= 3:
        return 80 + math.floor((days - 3) / 4 * 19)
    if days >= 1:
        return 60 + math.floor((days - 1) / 2 * 19)
    if hours >= 12:
        return 40 + math.floor((hours - 12) / 12 * 19)
    if hours >= 3:
        return 20 + math.floor((hours - 3) / 9 * 19)
    if hours >= 1:
        return 10 + math.floor((hours - 1) / 2 * 9)
    return math.floor(hours * 10)


def HealthStatusLabel(score: int) -> str:
    if score >= 80:
        return "Healthy"
    if score >= 40:
        return "At Risk"
    return "Critical"


def SuggestActions(task, now: datetime, tz_name: str | None = None) -> list[SuggestedAction]:
    actions: list[SuggestedAction] = []
    score = CalculateHealthScore(task, now, tz_name)
    warning = ClassifyTask(task, now, tz_name)

    if score < 40:
        actions.append(SuggestedAction("prioritize", "Consider prioritizing this task", "high"))
        if task.DueDate:
            actions.append(SuggestedAction("reschedule", "Consider rescheduling if not urgent", "medium"))
    elif score < 80:
        actions.append(SuggestedAction("prioritize", "Keep this task in focus", "medium"))

    if warning.Level == TaskWarningLevel.Critical and task.DueDate:
        actions.append(SuggestedAction("extend", "Request deadline extension if needed", "high"))

    # Locked tasks only accept completion.
    if CurrentStatusFields(task).Status == OVERDUE and task.LockedAfterDue:
        actions.append(SuggestedAction("duplicate", "Duplicate this task with a new due date", "medium"))
    return actions


def EvaluateTaskHealth(task, now: datetime, tz_name: str | None = None) -> TaskHealth:
    score = CalculateHealthScore(task, now, tz_name)
    return TaskHealth(
        Warning=ClassifyTask(task, now, tz_name),
        Score=score,
        Label=HealthStatusLabel(score),
        Actions=SuggestActions(task, now, tz_name),
    )
