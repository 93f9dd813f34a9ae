from __future__ import annotations

from datetime import date
from typing import Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from duetask.modules.auth.models import UserPreferences
from duetask.modules.tasks.errors import TaskConflictError, TaskValidationError
from duetask.modules.tasks.models import Subtask, Task, TaskOverdueSweepRun

CONFLICT_MESSAGE = "Task was modified by another request. Reload and try again."


class TaskStore:
    """Persistence for tasks and their subtasks on top of a SQLAlchemy session.

    Writes are flushed, never committed; the caller decides when a unit of work
    ends through ``Commit`` or ``Rollback``.
    """

    def __init__(self, db: Session):
        self.db = db

    def GetTask(self, task_id: int, owner_user_id: int | None = None) -> Task | None:
        query = self.db.query(Task).filter(Task.Id == task_id)
        if owner_user_id is not None:
            query = query.filter(Task.OwnerUserId == owner_user_id)
        return query.first()

    def ListTasks(self, owner_user_id: int, statuses: Iterable[str] | None = None) -> list[Task]:
        query = self.db.query(Task).filter(Task.OwnerUserId == owner_user_id)
        if statuses:
            query = query.filter(Task.Status.in_(list(statuses)))
        return query.order_by(Task.SortOrder.asc(), Task.CreatedAt.desc(), Task.Id.desc()).all()

    def ListTasksByIds(self, owner_user_id: int, task_ids: Iterable[int]) -> list[Task]:
        ids = list(task_ids)
        if not ids:
            return []
        return (
            self.db.query(Task)
            .filter(Task.OwnerUserId == owner_user_id, Task.Id.in_(ids))
            .all()
        )

    def ListPendingDueBy(self, due_by: date) -> list[Task]:
        return (
            self.db.query(Task)
            .filter(Task.Status == "PENDING", Task.DueDate.isnot(None), Task.DueDate <= due_by)
            .all()
        )

    def ListOpenTasks(self) -> list[Task]:
        return (
            self.db.query(Task)
            .filter(Task.Status != "COMPLETED", Task.NotificationsMuted == False)  # noqa: E712
            .all()
        )

    def ListDuplicates(self, task_id: int) -> list[Task]:
        return self.db.query(Task).filter(Task.DuplicatedFromTaskId == task_id).all()

    def NextSortOrder(self, owner_user_id: int) -> int:
        current = (
            self.db.query(func.max(Task.SortOrder))
            .filter(Task.OwnerUserId == owner_user_id)
            .scalar()
        )
        return (current or 0) + 1

    def ListSubtasks(self, task_id: int) -> list[Subtask]:
        return (
            self.db.query(Subtask)
            .filter(Subtask.TaskId == task_id)
            .order_by(Subtask.SortOrder.asc(), Subtask.Id.asc())
            .all()
        )

    def ListSubtasksForTasks(self, task_ids: Iterable[int]) -> dict[int, list[Subtask]]:
        ids = list(task_ids)
        grouped: dict[int, list[Subtask]] = {task_id: [] for task_id in ids}
        if not ids:
            return grouped
        rows = (
            self.db.query(Subtask)
            .filter(Subtask.TaskId.in_(ids))
            .order_by(Subtask.TaskId.asc(), Subtask.SortOrder.asc(), Subtask.Id.asc())
            .all()
        )
        for row in rows:
            grouped.setdefault(row.TaskId, []).append(row)
        return grouped

    def GetUserTimeZone(self, user_id: int) -> str | None:
        return self.GetUserTimeZones([user_id]).get(user_id)

    def GetUserTimeZones(self, user_ids: Iterable[int]) -> dict[int, str | None]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        rows = (
            self.db.query(UserPreferences.UserId, UserPreferences.TimeZone)
            .filter(UserPreferences.UserId.in_(ids))
            .all()
        )
        return {row.UserId: row.TimeZone for row in rows}

    def AddTask(self, record: Task) -> Task:
        self.db.add(record)
        self._Flush()
        return record

    def UpdateTask(self, record: Task, patch: dict) -> Task:
        for key, value in patch.items():
            setattr(record, key, value)
        self._Flush()
        return record

    def ReplaceSubtasks(self, task_id: int, subtasks: list[dict]) -> list[Subtask]:
        existing = {row.Id: row for row in self.ListSubtasks(task_id)}
        kept: list[Subtask] = []
        for index, item in enumerate(subtasks):
            subtask_id = item.get("Id")
            row = existing.pop(subtask_id, None) if subtask_id is not None else None
            if subtask_id is not None and row is None:
                raise TaskValidationError(f"Subtask {subtask_id} does not belong to this task.")
            if row is None:
                row = Subtask(TaskId=task_id)
                self.db.add(row)
            row.Title = item["Title"]
            row.IsCompleted = bool(item.get("IsCompleted"))
            row.SortOrder = index
            kept.append(row)
        for row in existing.values():
            self.db.delete(row)
        self._Flush()
        return kept

    def DeleteTask(self, record: Task) -> None:
        for duplicate in self.ListDuplicates(record.Id):
            duplicate.DuplicatedFromTaskId = None
        self.db.query(Subtask).filter(Subtask.TaskId == record.Id).delete(synchronize_session=False)
        self.db.delete(record)
        self._Flush()

    def AddSweepRun(self, run: TaskOverdueSweepRun) -> TaskOverdueSweepRun:
        self.db.add(run)
        self._Flush()
        return run

    def Commit(self) -> None:
        try:
            self.db.commit()
        except StaleDataError as exc:
            self.db.rollback()
            raise TaskConflictError(CONFLICT_MESSAGE) from exc

    def Rollback(self) -> None:
        self.db.rollback()

    def _Flush(self) -> None:
        try:
            self.db.flush()
        except StaleDataError as exc:
            self.db.rollback()
            raise TaskConflictError(CONFLICT_MESSAGE) from exc
