from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    Pending = "PENDING"
    Overdue = "OVERDUE"
    Completed = "COMPLETED"


class TaskPriority(str, Enum):
    Low = "LOW"
    Medium = "MEDIUM"
    High = "HIGH"
    Urgent = "URGENT"


class TaskView(str, Enum):
    All = "all"
    Pending = "pending"
    Overdue = "overdue"
    Completed = "completed"
    Today = "today"


class SubtaskIn(BaseModel):
    Id: int | None = None
    Title: str = Field(min_length=1, max_length=200)
    IsCompleted: bool = False


class SubtaskOut(BaseModel):
    Id: int
    TaskId: int
    Title: str
    IsCompleted: bool


class TaskOut(BaseModel):
    Id: int
    OwnerUserId: int
    Title: str
    Description: str | None
    Notes: str | None
    Category: str | None
    Priority: TaskPriority
    Tags: list[str]
    DueDate: date | None
    DueTime: str | None
    TimeZone: str | None
    StartTime: datetime | None
    EndTime: datetime | None
    NotifyOnStart: bool
    Status: TaskStatus
    CompletedAt: datetime | None
    OverdueAt: datetime | None
    LockedAfterDue: bool
    IsLocked: bool
    NotificationsMuted: bool
    SnoozedUntil: datetime | None
    PartiallyResolved: bool
    DuplicatedFromTaskId: int | None
    SortOrder: int
    Subtasks: list[SubtaskOut]
    CreatedAt: datetime
    UpdatedAt: datetime


class TaskListResponse(BaseModel):
    Tasks: list[TaskOut]


class TaskCreate(BaseModel):
    Title: str = Field(min_length=1, max_length=200)
    Description: str | None = None
    Notes: str | None = None
    Category: str | None = Field(default=None, max_length=80)
    Priority: TaskPriority = TaskPriority.Medium
    Tags: list[str] = Field(default_factory=list)
    DueDate: date | None = None
    DueTime: str | None = None
    TimeZone: str | None = None
    StartTime: datetime | None = None
    EndTime: datetime | None = None
    NotifyOnStart: bool = True
    LockedAfterDue: bool = True
    Subtasks: list[SubtaskIn] = Field(default_factory=list)


class TaskUpdate(BaseModel):
    Title: str | None = Field(default=None, min_length=1, max_length=200)
    Description: str | None = None
    Notes: str | None = None
    Category: str | None = Field(default=None, max_length=80)
    Priority: TaskPriority | None = None
    Status: TaskStatus | None = None
    Tags: list[str] | None = None
    DueDate: date | None = None
    DueTime: str | None = None
    TimeZone: str | None = None
    StartTime: datetime | None = None
    EndTime: datetime | None = None
    NotifyOnStart: bool | None = None
    LockedAfterDue: bool | None = None
    Subtasks: list[SubtaskIn] | None = None


class TaskDuplicateRequest(BaseModel):
    DueDate: date | None = None
    DueTime: str | None = None


class TaskSnoozeRequest(BaseModel):
    Minutes: int | None = Field(default=None, ge=1)
    SnoozeUntil: datetime | None = None


class TaskBatchDeleteRequest(BaseModel):
    TaskIds: list[int] = Field(min_length=1)


class TaskBatchDeleteResponse(BaseModel):
    DeletedCount: int


class TaskReorderRequest(BaseModel):
    TaskIds: list[int] = Field(min_length=1)


class SuggestedActionOut(BaseModel):
    Type: str
    Message: str
    Priority: str


class TaskHealthOut(BaseModel):
    TaskId: int
    Level: str
    Message: str
    ShouldNotify: bool
    TimeRemainingSeconds: int | None
    TimeRemaining: str | None
    HealthScore: int
    HealthLabel: str
    SuggestedActions: list[SuggestedActionOut]


class OverdueTaskOut(BaseModel):
    Id: int
    Title: str


class OverdueSweepResponse(BaseModel):
    Success: bool = True
    UpdatedCount: int
    UpdatedTasks: list[OverdueTaskOut]
