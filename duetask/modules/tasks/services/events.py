from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

logger = logging.getLogger("tasks")


@dataclass(frozen=True)
class SubtaskCompletedOnDuplicate:
    DuplicateTaskId: int
    OriginalTaskId: int
    OwnerUserId: int
    SubtaskTitles: tuple[str, ...]
    OccurredAt: datetime


def _Field(item, name: str):
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def DetectNewlyCompletedSubtasks(previous: Iterable, incoming: Iterable) -> list:
    was_completed = {
        _Field(item, "Id"): bool(_Field(item, "IsCompleted"))
        for item in previous
        if _Field(item, "Id") is not None
    }
    newly_completed = []
    for item in incoming:
        if not _Field(item, "IsCompleted"):
            continue
        item_id = _Field(item, "Id")
        if item_id is None or not was_completed.get(item_id, False):
            newly_completed.append(item)
    return newly_completed


def BuildDuplicateCompletionEvents(task, newly_completed: list, now: datetime) -> list[SubtaskCompletedOnDuplicate]:
    if not newly_completed or not task.DuplicatedFromTaskId:
        return []
    return [
        SubtaskCompletedOnDuplicate(
            DuplicateTaskId=task.Id,
            OriginalTaskId=task.DuplicatedFromTaskId,
            OwnerUserId=task.OwnerUserId,
            SubtaskTitles=tuple(_Field(item, "Title") or "" for item in newly_completed),
            OccurredAt=now,
        )
    ]


def HandleSubtaskCompletedOnDuplicate(store, event: SubtaskCompletedOnDuplicate) -> bool:
    original = store.GetTask(event.OriginalTaskId, event.OwnerUserId)
    if original is None:
        logger.info(
            "duplicate task %s completed subtasks but original %s no longer exists",
            event.DuplicateTaskId,
            event.OriginalTaskId,
        )
        return False
    if original.NotificationsMuted:
        return False
    store.UpdateTask(original, {"NotificationsMuted": True, "PartiallyResolved": True})
    logger.info(
        "muted original task %s after progress on duplicate %s",
        event.OriginalTaskId,
        event.DuplicateTaskId,
    )
    return True


def DispatchTaskEvents(store, events: Iterable[SubtaskCompletedOnDuplicate]) -> int:
    handled = 0
    for event in events:
        if HandleSubtaskCompletedOnDuplicate(store, event):
            handled += 1
    return handled
