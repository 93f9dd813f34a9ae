from __future__ import annotations

import logging
from datetime import datetime, timedelta

from duetask.modules.auth.deps import NowUtc
from duetask.modules.tasks.models import Task, TaskOverdueSweepRun
from duetask.modules.tasks.services.transitions import CurrentStatusFields, SweepOverdue

logger = logging.getLogger("tasks")


def SweepOverdueTasks(store, now: datetime | None = None, triggered_by: str = "cron") -> list[Task]:
    """Move every PENDING task whose deadline has passed to OVERDUE.

    Re-running is harmless: tasks already OVERDUE are not candidates. Each run
    is recorded in the sweep history, including failed ones.
    """
    now = now or NowUtc()
    # A deadline dated tomorrow in UTC can already be past in zones east of UTC.
    candidates = store.ListPendingDueBy(now.date() + timedelta(days=1))
    time_zones = store.GetUserTimeZones(task.OwnerUserId for task in candidates)
    updated: list[Task] = []
    try:
        for task in candidates:
            fields = SweepOverdue(task, now, time_zones.get(task.OwnerUserId))
            if fields.Status == CurrentStatusFields(task).Status:
                continue
            store.UpdateTask(task, {**fields.AsPatch(), "UpdatedAt": now})
            updated.append(task)
        store.AddSweepRun(
            TaskOverdueSweepRun(
                RanAt=now,
                Result="Success",
                TasksUpdated=len(updated),
                TriggeredBy=triggered_by,
                CreatedAt=now,
            )
        )
        store.Commit()
    except Exception as exc:
        store.Rollback()
        logger.exception("overdue sweep failed")
        store.AddSweepRun(
            TaskOverdueSweepRun(
                RanAt=now,
                Result="Failed",
                TasksUpdated=0,
                ErrorMessage=str(exc)[:500],
                TriggeredBy=triggered_by,
                CreatedAt=now,
            )
        )
        store.Commit()
        raise
    logger.info("overdue sweep updated %s of %s candidate tasks", len(updated), len(candidates))
    return updated
