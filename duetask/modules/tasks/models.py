from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Unicode,
)

from duetask.db import Base


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_owner_status", "OwnerUserId", "Status"),
        Index("ix_tasks_due_status", "DueDate", "Status"),
        Index("ix_tasks_duplicated_from", "DuplicatedFromTaskId"),
        {"schema": "tasks"},
    )

    Id = Column(Integer, primary_key=True, index=True)
    OwnerUserId = Column(Integer, nullable=False, index=True)
    Title = Column(Unicode(200), nullable=False)
    Description = Column(Text)
    Notes = Column(Text)
    Category = Column(Unicode(80))
    Priority = Column(String(10), nullable=False, default="MEDIUM")
    Tags = Column(Unicode(500))
    DueDate = Column(Date)
    DueTime = Column(String(5))
    TimeZone = Column(String(64))
    StartTime = Column(DateTime(timezone=True))
    EndTime = Column(DateTime(timezone=True))
    NotifyOnStart = Column(Boolean, nullable=False, default=True)
    Status = Column(String(10), nullable=False, default="PENDING")
    CompletedAt = Column(DateTime(timezone=True))
    OverdueAt = Column(DateTime(timezone=True))
    LockedAfterDue = Column(Boolean, nullable=False, default=True)
    NotificationsMuted = Column(Boolean, nullable=False, default=False)
    SnoozedUntil = Column(DateTime(timezone=True))
    PartiallyResolved = Column(Boolean, nullable=False, default=False)
    DuplicatedFromTaskId = Column(Integer)
    SortOrder = Column(Integer, nullable=False, default=0)
    Version = Column(Integer, nullable=False, default=1)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    UpdatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": Version}


class Subtask(Base):
    __tablename__ = "subtasks"
    __table_args__ = {"schema": "tasks"}

    Id = Column(Integer, primary_key=True, index=True)
    TaskId = Column(Integer, ForeignKey("tasks.tasks.Id", ondelete="CASCADE"), nullable=False, index=True)
    Title = Column(Unicode(200), nullable=False)
    IsCompleted = Column(Boolean, nullable=False, default=False)
    SortOrder = Column(Integer, nullable=False, default=0)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class TaskOverdueSweepRun(Base):
    __tablename__ = "overdue_sweep_runs"
    __table_args__ = {"schema": "tasks"}

    Id = Column(Integer, primary_key=True, index=True)
    RanAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    Result = Column(String(20), nullable=False)
    TasksUpdated = Column(Integer, default=0, nullable=False)
    ErrorMessage = Column(String(500))
    TriggeredBy = Column(String(40))
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
