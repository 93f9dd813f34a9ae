import hmac
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from duetask.db import GetDb
from duetask.modules.auth.deps import NowUtc, RequireAuthenticated, UserContext
from duetask.modules.tasks.errors import (
    TaskConflictError,
    TaskError,
    TaskLockedError,
    TaskNotFoundError,
)
from duetask.modules.tasks.schemas import (
    OverdueSweepResponse,
    OverdueTaskOut,
    SubtaskOut,
    SuggestedActionOut,
    TaskBatchDeleteRequest,
    TaskBatchDeleteResponse,
    TaskCreate,
    TaskDuplicateRequest,
    TaskHealthOut,
    TaskListResponse,
    TaskOut,
    TaskReorderRequest,
    TaskSnoozeRequest,
    TaskUpdate,
    TaskView,
)
from duetask.modules.tasks.services.lock_policy import IsLocked
from duetask.modules.tasks.services.sweep import SweepOverdueTasks
from duetask.modules.tasks.services.tasks_service import (
    BatchDeleteTasks,
    CreateTask,
    DeleteTask,
    DuplicateTask,
    GetTask,
    GetTaskHealth,
    ListTaskSubtasks,
    ListTasks,
    ParseTags,
    ReorderTasks,
    SetTaskMuted,
    SnoozeTask,
    UpdateTask,
)
from duetask.modules.tasks.store import TaskStore
from duetask.modules.tasks.utils.config import Settings

router = APIRouter(prefix="/api/tasks", tags=["tasks"])
logger = logging.getLogger("tasks")


def GetTaskStore(db: Session = Depends(GetDb)) -> TaskStore:
    return TaskStore(db)


def _handle_db_error(exc: Exception) -> None:
    logger.exception("tasks database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Tasks storage not initialized. Run alembic upgrade head.",
    ) from exc


def _handle_task_error(exc: Exception) -> None:
    detail = str(exc)
    if isinstance(exc, TaskNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail) from exc
    if isinstance(exc, TaskLockedError):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"Message": detail, "Code": exc.Code},
        ) from exc
    if isinstance(exc, TaskConflictError):
        logger.warning("task update conflict: %s", detail)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail) from exc
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail) from exc


def _BuildTaskOut(task, subtasks: list) -> TaskOut:
    return TaskOut(
        Id=task.Id,
        OwnerUserId=task.OwnerUserId,
        Title=task.Title,
        Description=task.Description,
        Notes=task.Notes,
        Category=task.Category,
        Priority=task.Priority,
        Tags=ParseTags(task.Tags),
        DueDate=task.DueDate,
        DueTime=task.DueTime,
        TimeZone=task.TimeZone,
        StartTime=task.StartTime,
        EndTime=task.EndTime,
        NotifyOnStart=task.NotifyOnStart,
        Status=task.Status,
        CompletedAt=task.CompletedAt,
        OverdueAt=task.OverdueAt,
        LockedAfterDue=task.LockedAfterDue,
        IsLocked=IsLocked(task),
        NotificationsMuted=task.NotificationsMuted,
        SnoozedUntil=task.SnoozedUntil,
        PartiallyResolved=task.PartiallyResolved,
        DuplicatedFromTaskId=task.DuplicatedFromTaskId,
        SortOrder=task.SortOrder or 0,
        Subtasks=[
            SubtaskOut(Id=item.Id, TaskId=item.TaskId, Title=item.Title, IsCompleted=item.IsCompleted)
            for item in subtasks
        ],
        CreatedAt=task.CreatedAt,
        UpdatedAt=task.UpdatedAt,
    )


def _BuildTaskOutList(store: TaskStore, tasks: list) -> list[TaskOut]:
    subtasks = ListTaskSubtasks(store, tasks)
    return [_BuildTaskOut(task, subtasks.get(task.Id, [])) for task in tasks]


def _RequireCronSecret(request: Request) -> None:
    secret = Settings.CronSecret
    if not secret:
        return
    auth_header = request.headers.get("Authorization", "")
    provided = auth_header.replace("Bearer ", "", 1).strip() if auth_header.startswith("Bearer ") else ""
    if not hmac.compare_digest(provided, secret):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.get("", response_model=TaskListResponse)
def ListTaskItems(
    view: TaskView = TaskView.All,
    store: TaskStore = Depends(GetTaskStore),
    user: UserContext = Depends(RequireAuthenticated),
) -> TaskListResponse:
    try:
        tasks = ListTasks(store, user, view.value)
        return TaskListResponse(Tasks=_BuildTaskOutList(store, tasks))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
def CreateTaskItem(
    payload: TaskCreate,
    store: TaskStore = Depends(GetTaskStore),
    user: UserContext = Depends(RequireAuthenticated),
) -> TaskOut:
    try:
        record = CreateTask(store, user, payload.model_dump())
        return _BuildTaskOutList(store, [record])[0]
    except TaskError as exc:
        _handle_task_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/cron/update-overdue", response_model=OverdueSweepResponse)
def UpdateOverdueTasks(
    request: Request,
    store: TaskStore = Depends(GetTaskStore),
) -> OverdueSweepResponse:
    _RequireCronSecret(request)
    try:
        updated = SweepOverdueTasks(store, NowUtc(), triggered_by="cron")
        return OverdueSweepResponse(
            UpdatedCount=len(updated),
            UpdatedTasks=[OverdueTaskOut(Id=task.Id, Title=task.Title) for task in updated],
        )
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/batch-delete", response_model=TaskBatchDeleteResponse)
def BatchDeleteTaskItems(
    payload: TaskBatchDeleteRequest,
    store: TaskStore = Depends(GetTaskStore),
    user: UserContext = Depends(RequireAuthenticated),
) -> TaskBatchDeleteResponse:
    try:
        return TaskBatchDeleteResponse(DeletedCount=BatchDeleteTasks(store, user, payload.TaskIds))
    except TaskError as exc:
        _handle_task_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.put("/reorder", response_model=TaskListResponse)
def ReorderTaskItems(
    payload: TaskReorderRequest,
    store: TaskStore = Depends(GetTaskStore),
    user: UserContext = Depends(RequireAuthenticated),
) -> TaskListResponse:
    try:
        tasks = ReorderTasks(store, user, payload.TaskIds)
        return TaskListResponse(Tasks=_BuildTaskOutList(store, tasks))
    except TaskError as exc:
        _handle_task_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/{task_id}", response_model=TaskOut)
def GetTaskItem(
    task_id: int,
    store: TaskStore = Depends(GetTaskStore),
    user: UserContext = Depends(RequireAuthenticated),
) -> TaskOut:
    try:
        record = GetTask(store, user, task_id)
        return _BuildTaskOutList(store, [record])[0]
    except TaskError as exc:
        _handle_task_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.patch("/{task_id}", response_model=TaskOut)
def UpdateTaskItem(
    task_id: int,
    payload: TaskUpdate,
    store: TaskStore = Depends(GetTaskStore),
    user: UserContext = Depends(RequireAuthenticated),
) -> TaskOut:
    try:
        record = UpdateTask(store, user, task_id, payload.model_dump(exclude_unset=True))
        return _BuildTaskOutList(store, [record])[0]
    except TaskError as exc:
        _handle_task_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def DeleteTaskItem(
    task_id: int,
    store: TaskStore = Depends(GetTaskStore),
    user: UserContext = Depends(RequireAuthenticated),
) -> None:
    try:
        DeleteTask(store, user, task_id)
    except TaskError as exc:
        _handle_task_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/{task_id}/duplicate", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
def DuplicateTaskItem(
    task_id: int,
    payload: TaskDuplicateRequest | None = None,
    store: TaskStore = Depends(GetTaskStore),
    user: UserContext = Depends(RequireAuthenticated),
) -> TaskOut:
    try:
        record = DuplicateTask(store, user, task_id, payload.model_dump() if payload else None)
        return _BuildTaskOutList(store, [record])[0]
    except TaskError as exc:
        _handle_task_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/{task_id}/snooze", response_model=TaskOut)
def SnoozeTaskItem(
    task_id: int,
    payload: TaskSnoozeRequest,
    store: TaskStore = Depends(GetTaskStore),
    user: UserContext = Depends(RequireAuthenticated),
) -> TaskOut:
    try:
        record = SnoozeTask(store, user, task_id, payload.Minutes, payload.SnoozeUntil)
        return _BuildTaskOutList(store, [record])[0]
    except TaskError as exc:
        _handle_task_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/{task_id}/mute", response_model=TaskOut)
def MuteTaskItem(
    task_id: int,
    store: TaskStore = Depends(GetTaskStore),
    user: UserContext = Depends(RequireAuthenticated),
) -> TaskOut:
    try:
        record = SetTaskMuted(store, user, task_id, True)
        return _BuildTaskOutList(store, [record])[0]
    except TaskError as exc:
        _handle_task_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/{task_id}/unmute", response_model=TaskOut)
def UnmuteTaskItem(
    task_id: int,
    store: TaskStore = Depends(GetTaskStore),
    user: UserContext = Depends(RequireAuthenticated),
) -> TaskOut:
    try:
        record = SetTaskMuted(store, user, task_id, False)
        return _BuildTaskOutList(store, [record])[0]
    except TaskError as exc:
        _handle_task_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/{task_id}/health", response_model=TaskHealthOut)
def GetTaskHealthItem(
    task_id: int,
    store: TaskStore = Depends(GetTaskStore),
    user: UserContext = Depends(RequireAuthenticated),
) -> TaskHealthOut:
    try:
        record, health = GetTaskHealth(store, user, task_id)
    except TaskError as exc:
        _handle_task_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    remaining = health.Warning.TimeRemaining
    return TaskHealthOut(
        TaskId=record.Id,
        Level=health.Warning.Level.value,
        Message=health.Warning.Message,
        ShouldNotify=health.Warning.ShouldNotify,
        TimeRemainingSeconds=int(remaining.total_seconds()) if remaining is not None else None,
        TimeRemaining=health.Warning.TimeRemainingLabel,
        HealthScore=health.Score,
        HealthLabel=health.Label,
        SuggestedActions=[
            SuggestedActionOut(Type=action.Type, Message=action.Message, Priority=action.Priority)
            for action in health.Actions
        ],
    )
