from datetime import date, datetime, timedelta, timezone
from itertools import product
from types import SimpleNamespace

import pytest

from duetask.modules.tasks.services import transitions
from duetask.modules.tasks.services.transitions import COMPLETED, OVERDUE, PENDING

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
EARLIER = NOW - timedelta(hours=6)


def _Task(status, completed_at=None, overdue_at=None, due_date=None, due_time=None):
    return SimpleNamespace(
        Status=status,
        CompletedAt=completed_at,
        OverdueAt=overdue_at,
        DueDate=due_date,
        DueTime=due_time,
        TimeZone="UTC",
    )


@pytest.mark.parametrize(
    "start, requested, expected",
    [
        (_Task(PENDING), COMPLETED, (COMPLETED, NOW, None)),
        (_Task(OVERDUE, overdue_at=EARLIER), COMPLETED, (COMPLETED, NOW, None)),
        (_Task(COMPLETED, completed_at=EARLIER), PENDING, (PENDING, None, None)),
        (_Task(OVERDUE, overdue_at=EARLIER), PENDING, (PENDING, None, None)),
        (_Task(PENDING), OVERDUE, (OVERDUE, None, NOW)),
        (_Task(COMPLETED, completed_at=EARLIER), OVERDUE, (OVERDUE, None, NOW)),
    ],
)
def test_transition_table(start, requested, expected):
    result = transitions.ApplyStatusChange(start, requested, NOW)
    assert (result.Status, result.CompletedAt, result.OverdueAt) == expected


def test_same_status_request_is_a_no_op():
    task = _Task(OVERDUE, overdue_at=EARLIER)
    result = transitions.ApplyStatusChange(task, OVERDUE, NOW)
    assert result.OverdueAt == EARLIER

    assert transitions.ApplyStatusChange(task, None, NOW).OverdueAt == EARLIER


def test_completed_at_set_only_when_completed_after_any_sequence():
    for sequence in product([PENDING, OVERDUE, COMPLETED], repeat=4):
        task = _Task(PENDING)
        for step, requested in enumerate(sequence):
            fields = transitions.ApplyStatusChange(task, requested, NOW + timedelta(minutes=step))
            transitions.ApplyStatusFields(task, fields)
            assert (task.CompletedAt is not None) == (task.Status == COMPLETED)
            assert task.OverdueAt is None or task.Status == OVERDUE


def test_due_change_into_past_forces_overdue():
    task = _Task(PENDING)
    result = transitions.ResolveStatusUpdate(task, None, True, date(2023, 12, 31), None, NOW, "UTC")
    assert result.Status == OVERDUE
    assert result.OverdueAt == NOW


def test_due_change_into_future_reopens_overdue_task():
    task = _Task(OVERDUE, overdue_at=EARLIER)
    result = transitions.ResolveStatusUpdate(task, None, True, date(2024, 1, 5), "09:00", NOW, "UTC")
    assert result.Status == PENDING
    assert result.OverdueAt is None


def test_explicit_completion_wins_over_past_due_date():
    task = _Task(PENDING)
    result = transitions.ResolveStatusUpdate(task, COMPLETED, True, date(2023, 12, 31), None, NOW, "UTC")
    assert result.Status == COMPLETED
    assert result.CompletedAt == NOW
    assert result.OverdueAt is None


def test_completed_task_is_never_reopened_by_due_change():
    task = _Task(COMPLETED, completed_at=EARLIER)
    result = transitions.ResolveStatusUpdate(task, None, True, date(2023, 12, 31), None, NOW, "UTC")
    assert result.Status == COMPLETED
    assert result.CompletedAt == EARLIER


def test_due_change_on_already_overdue_task_keeps_overdue_at():
    task = _Task(OVERDUE, overdue_at=EARLIER)
    result = transitions.ResolveStatusUpdate(task, None, True, date(2023, 12, 30), None, NOW, "UTC")
    assert result.Status == OVERDUE
    assert result.OverdueAt == EARLIER


def test_sweep_is_idempotent():
    task = _Task(PENDING, due_date=date(2024, 1, 1), due_time="09:00")
    first = transitions.SweepOverdue(task, NOW)
    transitions.ApplyStatusFields(task, first)
    second = transitions.SweepOverdue(task, NOW + timedelta(minutes=5))

    assert first.Status == OVERDUE
    assert second == first


def test_sweep_leaves_future_and_undated_tasks_alone():
    assert transitions.SweepOverdue(_Task(PENDING, due_date=date(2024, 1, 2)), NOW).Status == PENDING
    assert transitions.SweepOverdue(_Task(PENDING), NOW).Status == PENDING
    completed = _Task(COMPLETED, completed_at=EARLIER, due_date=date(2023, 1, 1))
    assert transitions.SweepOverdue(completed, NOW).Status == COMPLETED


def test_initial_status_fields():
    assert transitions.InitialStatusFields(date(2023, 12, 31), None, NOW, "UTC").Status == OVERDUE
    assert transitions.InitialStatusFields(date(2024, 1, 2), None, NOW, "UTC").Status == PENDING
    assert transitions.InitialStatusFields(None, None, NOW).Status == PENDING
    completed = transitions.InitialStatusFields(date(2023, 12, 31), None, NOW, "UTC", completed=True)
    assert completed.Status == COMPLETED
    assert completed.CompletedAt == NOW


def test_all_subtasks_completed_requires_at_least_one():
    assert transitions.AreAllSubtasksCompleted([]) is False
    assert transitions.AreAllSubtasksCompleted([{"IsCompleted": True}, SimpleNamespace(IsCompleted=True)]) is True
    assert transitions.AreAllSubtasksCompleted([{"IsCompleted": True}, {"IsCompleted": False}]) is False
