from datetime import datetime, timezone
from types import SimpleNamespace

from duetask.modules.tasks.services.events import (
    BuildDuplicateCompletionEvents,
    DetectNewlyCompletedSubtasks,
    DispatchTaskEvents,
    HandleSubtaskCompletedOnDuplicate,
    SubtaskCompletedOnDuplicate,
)

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class _FakeStore:
    def __init__(self, tasks):
        self.tasks = {task.Id: task for task in tasks}
        self.updates = []

    def GetTask(self, task_id, owner_user_id=None):
        task = self.tasks.get(task_id)
        if task is None or task.OwnerUserId != owner_user_id:
            return None
        return task

    def UpdateTask(self, record, patch):
        self.updates.append((record.Id, patch))
        for key, value in patch.items():
            setattr(record, key, value)
        return record


def _Event(original_id=1, owner=7):
    return SubtaskCompletedOnDuplicate(
        DuplicateTaskId=2,
        OriginalTaskId=original_id,
        OwnerUserId=owner,
        SubtaskTitles=("Draft",),
        OccurredAt=NOW,
    )


def _Original(**overrides):
    values = dict(Id=1, OwnerUserId=7, NotificationsMuted=False, PartiallyResolved=False)
    values.update(overrides)
    return SimpleNamespace(**values)


def test_detects_only_transitions_to_completed():
    previous = [
        SimpleNamespace(Id=10, Title="Draft", IsCompleted=False),
        SimpleNamespace(Id=11, Title="Review", IsCompleted=True),
        SimpleNamespace(Id=12, Title="Publish", IsCompleted=False),
    ]
    incoming = [
        {"Id": 10, "Title": "Draft", "IsCompleted": True},
        {"Id": 11, "Title": "Review", "IsCompleted": True},
        {"Id": 12, "Title": "Publish", "IsCompleted": False},
        {"Id": None, "Title": "Announce", "IsCompleted": True},
    ]

    newly = DetectNewlyCompletedSubtasks(previous, incoming)

    assert [item["Title"] for item in newly] == ["Draft", "Announce"]


def test_no_event_for_tasks_that_are_not_duplicates():
    task = SimpleNamespace(Id=2, OwnerUserId=7, DuplicatedFromTaskId=None)
    assert BuildDuplicateCompletionEvents(task, [{"Title": "Draft"}], NOW) == []


def test_no_event_without_new_completions():
    task = SimpleNamespace(Id=2, OwnerUserId=7, DuplicatedFromTaskId=1)
    assert BuildDuplicateCompletionEvents(task, [], NOW) == []


def test_event_carries_both_task_ids():
    task = SimpleNamespace(Id=2, OwnerUserId=7, DuplicatedFromTaskId=1)
    [event] = BuildDuplicateCompletionEvents(task, [{"Title": "Draft"}], NOW)
    assert (event.DuplicateTaskId, event.OriginalTaskId, event.OwnerUserId) == (2, 1, 7)
    assert event.SubtaskTitles == ("Draft",)


def test_handler_mutes_and_marks_original_partially_resolved():
    original = _Original()
    store = _FakeStore([original])

    assert HandleSubtaskCompletedOnDuplicate(store, _Event()) is True
    assert original.NotificationsMuted is True
    assert original.PartiallyResolved is True


def test_handler_is_idempotent_once_muted():
    original = _Original(NotificationsMuted=True, PartiallyResolved=True)
    store = _FakeStore([original])

    assert HandleSubtaskCompletedOnDuplicate(store, _Event()) is False
    assert store.updates == []


def test_handler_ignores_missing_or_foreign_original():
    store = _FakeStore([_Original(OwnerUserId=99)])
    assert HandleSubtaskCompletedOnDuplicate(store, _Event()) is False
    assert HandleSubtaskCompletedOnDuplicate(store, _Event(original_id=404)) is False


def test_dispatch_counts_handled_events():
    store = _FakeStore([_Original()])
    assert DispatchTaskEvents(store, [_Event(), _Event()]) == 1
