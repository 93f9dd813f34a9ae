from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from duetask.modules.auth.deps import UserContext
from duetask.modules.tasks.errors import TaskLockedError, TaskNotFoundError, TaskValidationError
from duetask.modules.tasks.models import Task
from duetask.modules.tasks.services import tasks_service
from duetask.modules.tasks.services.transitions import COMPLETED, OVERDUE, PENDING

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
YESTERDAY = date(2023, 12, 31)
NEXT_WEEK = date(2024, 1, 8)
USER = UserContext(Id=7, Email="sam@example.com", Name="Sam")


class _FakeStore:
    def __init__(self, time_zone="UTC"):
        self.tasks = {}
        self.subtasks = {}
        self.sweep_runs = []
        self.commits = 0
        self.rollbacks = 0
        self._time_zone = time_zone
        self._next_task_id = 1
        self._next_subtask_id = 100

    def GetTask(self, task_id, owner_user_id=None):
        record = self.tasks.get(task_id)
        if record is None:
            return None
        if owner_user_id is not None and record.OwnerUserId != owner_user_id:
            return None
        return record

    def ListTasks(self, owner_user_id, statuses=None):
        return [
            record
            for record in self.tasks.values()
            if record.OwnerUserId == owner_user_id and (statuses is None or record.Status in statuses)
        ]

    def ListTasksByIds(self, owner_user_id, task_ids):
        return [self.tasks[task_id] for task_id in task_ids if self.GetTask(task_id, owner_user_id)]

    def ListPendingDueBy(self, due_by):
        return [
            record
            for record in self.tasks.values()
            if record.Status == PENDING and record.DueDate is not None and record.DueDate <= due_by
        ]

    def NextSortOrder(self, owner_user_id):
        return len(self.ListTasks(owner_user_id))

    def ListSubtasks(self, task_id):
        return list(self.subtasks.get(task_id, []))

    def ListSubtasksForTasks(self, task_ids):
        return {task_id: self.ListSubtasks(task_id) for task_id in task_ids}

    def GetUserTimeZone(self, user_id):
        return self._time_zone

    def GetUserTimeZones(self, user_ids):
        return {user_id: self._time_zone for user_id in user_ids}

    def AddTask(self, record):
        record.Id = self._next_task_id
        self._next_task_id += 1
        self.tasks[record.Id] = record
        return record

    def UpdateTask(self, record, patch):
        for key, value in patch.items():
            setattr(record, key, value)
        return record

    def ReplaceSubtasks(self, task_id, subtasks):
        rows = []
        for index, item in enumerate(subtasks):
            subtask_id = item.get("Id")
            if subtask_id is None:
                subtask_id = self._next_subtask_id
                self._next_subtask_id += 1
            rows.append(
                SimpleNamespace(
                    Id=subtask_id,
                    TaskId=task_id,
                    Title=item["Title"],
                    IsCompleted=item["IsCompleted"],
                    SortOrder=index,
                )
            )
        self.subtasks[task_id] = rows
        return rows

    def DeleteTask(self, record):
        self.tasks.pop(record.Id, None)
        self.subtasks.pop(record.Id, None)

    def AddSweepRun(self, run):
        self.sweep_runs.append(run)
        return run

    def Commit(self):
        self.commits += 1

    def Rollback(self):
        self.rollbacks += 1


def _Seed(store, **overrides):
    values = dict(
        OwnerUserId=USER.Id,
        Title="File taxes",
        Priority="MEDIUM",
        DueDate=NEXT_WEEK,
        DueTime=None,
        TimeZone="UTC",
        NotifyOnStart=True,
        Status=PENDING,
        CompletedAt=None,
        OverdueAt=None,
        LockedAfterDue=True,
        NotificationsMuted=False,
        PartiallyResolved=False,
        DuplicatedFromTaskId=None,
        SortOrder=0,
    )
    subtasks = overrides.pop("subtasks", None)
    values.update(overrides)
    record = store.AddTask(Task(**values))
    if subtasks:
        store.ReplaceSubtasks(
            record.Id,
            [{"Id": None, "Title": title, "IsCompleted": done} for title, done in subtasks],
        )
    return record


def _SubtaskPayload(store, task_id, completed_titles):
    return [
        {"Id": item.Id, "Title": item.Title, "IsCompleted": item.Title in completed_titles}
        for item in store.ListSubtasks(task_id)
    ]


def test_completing_subtasks_one_by_one_completes_task_at_the_end():
    store = _FakeStore()
    record = _Seed(store, subtasks=[("Gather receipts", False), ("Fill forms", False)])

    tasks_service.UpdateTask(
        store, USER, record.Id, {"Subtasks": _SubtaskPayload(store, record.Id, {"Gather receipts"})}, now=NOW
    )
    assert record.Status == PENDING
    assert record.CompletedAt is None

    tasks_service.UpdateTask(
        store,
        USER,
        record.Id,
        {"Subtasks": _SubtaskPayload(store, record.Id, {"Gather receipts", "Fill forms"})},
        now=NOW,
    )
    assert record.Status == COMPLETED
    assert record.CompletedAt == NOW


def test_explicit_status_beats_subtask_auto_completion():
    store = _FakeStore()
    record = _Seed(store, subtasks=[("Only step", False)])

    tasks_service.UpdateTask(
        store,
        USER,
        record.Id,
        {"Status": "PENDING", "Subtasks": _SubtaskPayload(store, record.Id, {"Only step"})},
        now=NOW,
    )

    assert record.Status == PENDING


def test_locked_task_accepts_completion():
    store = _FakeStore()
    record = _Seed(store, DueDate=YESTERDAY, Status=OVERDUE, OverdueAt=NOW - timedelta(hours=12))

    tasks_service.UpdateTask(store, USER, record.Id, {"Status": "COMPLETED"}, now=NOW)

    assert record.Status == COMPLETED
    assert record.CompletedAt == NOW
    assert record.OverdueAt is None


@pytest.mark.parametrize(
    "payload, code",
    [
        ({"Title": "Renamed"}, "TASK_LOCKED"),
        ({"Status": "COMPLETED", "Title": "Renamed"}, "TASK_LOCKED"),
        ({"Status": "PENDING"}, "TASK_LOCKED"),
        ({"Subtasks": [{"Title": "New step", "IsCompleted": False}]}, "SUBTASK_LOCKED"),
    ],
)
def test_locked_task_rejects_other_edits(payload, code):
    store = _FakeStore()
    record = _Seed(store, DueDate=YESTERDAY, Status=OVERDUE, OverdueAt=NOW - timedelta(hours=12))

    with pytest.raises(TaskLockedError) as exc_info:
        tasks_service.UpdateTask(store, USER, record.Id, payload, now=NOW)

    assert exc_info.value.Code == code
    assert record.Title == "File taxes"
    assert record.Status == OVERDUE


def test_unlocked_overdue_task_can_be_edited():
    store = _FakeStore()
    record = _Seed(
        store,
        DueDate=YESTERDAY,
        Status=OVERDUE,
        OverdueAt=NOW - timedelta(hours=12),
        LockedAfterDue=False,
    )

    tasks_service.UpdateTask(store, USER, record.Id, {"Title": "File taxes late"}, now=NOW)

    assert record.Title == "File taxes late"
    assert record.Status == OVERDUE


def test_stale_pending_task_is_marked_overdue_before_lock_check():
    store = _FakeStore()
    record = _Seed(store, DueDate=YESTERDAY)

    with pytest.raises(TaskLockedError):
        tasks_service.UpdateTask(store, USER, record.Id, {"Title": "Renamed"}, now=NOW)

    assert record.Status == OVERDUE
    assert record.OverdueAt == NOW
    assert store.commits == 1


def test_moving_due_date_forward_reopens_overdue_task():
    store = _FakeStore()
    record = _Seed(
        store,
        DueDate=YESTERDAY,
        Status=OVERDUE,
        OverdueAt=NOW - timedelta(hours=12),
        LockedAfterDue=False,
    )

    tasks_service.UpdateTask(store, USER, record.Id, {"DueDate": NEXT_WEEK}, now=NOW)

    assert record.Status == PENDING
    assert record.OverdueAt is None


def test_moving_due_date_into_past_marks_overdue():
    store = _FakeStore()
    record = _Seed(store)

    tasks_service.UpdateTask(store, USER, record.Id, {"DueDate": YESTERDAY}, now=NOW)

    assert record.Status == OVERDUE
    assert record.OverdueAt == NOW


def test_completion_in_same_update_wins_over_past_due_date():
    store = _FakeStore()
    record = _Seed(store)

    tasks_service.UpdateTask(store, USER, record.Id, {"DueDate": YESTERDAY, "Status": "COMPLETED"}, now=NOW)

    assert record.Status == COMPLETED
    assert record.OverdueAt is None


def test_saving_unchanged_due_date_keeps_completed_task_completed():
    store = _FakeStore()
    record = _Seed(store, DueDate=YESTERDAY, Status=COMPLETED, CompletedAt=NOW - timedelta(days=2))

    tasks_service.UpdateTask(store, USER, record.Id, {"DueDate": YESTERDAY, "Notes": "done early"}, now=NOW)

    assert record.Status == COMPLETED
    assert record.Notes == "done early"


def test_duplicate_progress_mutes_original_once():
    store = _FakeStore()
    original = _Seed(
        store,
        DueDate=YESTERDAY,
        Status=OVERDUE,
        OverdueAt=NOW - timedelta(hours=12),
        Tags="home,paperwork",
        subtasks=[("Gather receipts", True), ("Fill forms", False), ("Submit", False)],
    )

    duplicate = tasks_service.DuplicateTask(store, USER, original.Id, {"DueDate": NEXT_WEEK}, now=NOW)

    assert duplicate.DuplicatedFromTaskId == original.Id
    assert duplicate.Status == PENDING
    assert duplicate.Tags == "home,paperwork"
    assert duplicate.LockedAfterDue is True
    assert [(item.Title, item.IsCompleted) for item in store.ListSubtasks(duplicate.Id)] == [
        ("Fill forms", False),
        ("Submit", False),
    ]

    tasks_service.UpdateTask(
        store, USER, duplicate.Id, {"Subtasks": _SubtaskPayload(store, duplicate.Id, {"Fill forms"})}, now=NOW
    )
    assert original.NotificationsMuted is True
    assert original.PartiallyResolved is True
    assert original.Status == OVERDUE

    tasks_service.SetTaskMuted(store, USER, original.Id, False, now=NOW)
    assert original.PartiallyResolved is False


def test_unknown_or_foreign_task_is_not_found():
    store = _FakeStore()
    record = _Seed(store, OwnerUserId=99)

    with pytest.raises(TaskNotFoundError):
        tasks_service.UpdateTask(store, USER, record.Id, {"Title": "Mine now"}, now=NOW)
    with pytest.raises(TaskNotFoundError):
        tasks_service.UpdateTask(store, USER, 404, {"Title": "Ghost"}, now=NOW)


@pytest.mark.parametrize(
    "payload, message",
    [
        ({"Status": "ARCHIVED"}, "Invalid status."),
        ({"Title": "   "}, "Title is required."),
        ({"DueTime": "25:00"}, "Due time must be in HH:MM format."),
        ({"TimeZone": "Mars/Olympus"}, "Time zone is invalid."),
    ],
)
def test_invalid_updates_are_rejected(payload, message):
    store = _FakeStore()
    record = _Seed(store)

    with pytest.raises(TaskValidationError) as exc_info:
        tasks_service.UpdateTask(store, USER, record.Id, payload, now=NOW)

    assert str(exc_info.value) == message


def test_create_with_past_due_date_starts_overdue():
    store = _FakeStore()

    record = tasks_service.CreateTask(
        store,
        USER,
        {"Title": "  Renew passport ", "DueDate": YESTERDAY, "Tags": ["travel", "Travel", " docs "]},
        now=NOW,
    )

    assert record.Title == "Renew passport"
    assert record.Status == OVERDUE
    assert record.OverdueAt == NOW
    assert record.Tags == "travel,docs"
    assert store.commits == 1


def test_create_with_all_subtasks_done_starts_completed():
    store = _FakeStore()

    record = tasks_service.CreateTask(
        store,
        USER,
        {"Title": "Pack", "Subtasks": [{"Title": "Socks", "IsCompleted": True}]},
        now=NOW,
    )

    assert record.Status == COMPLETED
    assert record.CompletedAt == NOW


def test_create_rejects_due_time_without_date():
    with pytest.raises(TaskValidationError):
        tasks_service.CreateTask(_FakeStore(), USER, {"Title": "Call", "DueTime": "09:00"}, now=NOW)


def test_snooze_requires_future_time():
    store = _FakeStore()
    record = _Seed(store)

    tasks_service.SnoozeTask(store, USER, record.Id, 30, None, now=NOW)
    assert record.SnoozedUntil == NOW + timedelta(minutes=30)

    with pytest.raises(TaskValidationError):
        tasks_service.SnoozeTask(store, USER, record.Id, None, NOW - timedelta(minutes=1), now=NOW)
    with pytest.raises(TaskValidationError):
        tasks_service.SnoozeTask(store, USER, record.Id, None, None, now=NOW)


def test_reorder_assigns_positions_and_rejects_duplicates():
    store = _FakeStore()
    first = _Seed(store, Title="First")
    second = _Seed(store, Title="Second", SortOrder=1)

    ordered = tasks_service.ReorderTasks(store, USER, [second.Id, first.Id], now=NOW)

    assert [record.Title for record in ordered] == ["Second", "First"]
    assert (second.SortOrder, first.SortOrder) == (0, 1)
    with pytest.raises(TaskValidationError):
        tasks_service.ReorderTasks(store, USER, [first.Id, first.Id], now=NOW)


def test_today_view_uses_local_calendar_day():
    store = _FakeStore(time_zone="Australia/Sydney")
    today_local = _Seed(store, Title="Local today", DueDate=date(2024, 1, 1), TimeZone=None)
    _Seed(store, Title="Tomorrow", DueDate=date(2024, 1, 2), TimeZone=None)
    late_evening = datetime(2023, 12, 31, 20, 0, tzinfo=timezone.utc)

    assert tasks_service.ListTasks(store, USER, "today", now=late_evening) == [today_local]


def test_stats_count_each_status():
    tasks = [
        SimpleNamespace(Status=PENDING, CompletedAt=None, OverdueAt=None),
        SimpleNamespace(Status=COMPLETED, CompletedAt=NOW, OverdueAt=None),
        SimpleNamespace(Status=COMPLETED, CompletedAt=NOW, OverdueAt=None),
        SimpleNamespace(Status=OVERDUE, CompletedAt=None, OverdueAt=NOW),
    ]

    stats = tasks_service.BuildTaskStats(tasks)

    assert (stats.TotalTasks, stats.CompletedTasks, stats.PendingTasks, stats.OverdueTasks) == (4, 2, 1, 1)
    assert stats.CompletionRate == 50
