from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from duetask.modules.tasks.services import health
from duetask.modules.tasks.services.health import TaskWarningLevel

DUE = datetime(2024, 1, 1, 17, 0, tzinfo=timezone.utc)


def _Task(status="PENDING", due_date=date(2024, 1, 1), due_time="17:00", **overrides):
    values = dict(
        Id=1,
        Status=status,
        CompletedAt=None,
        OverdueAt=None,
        DueDate=due_date,
        DueTime=due_time,
        TimeZone="UTC",
        Priority="MEDIUM",
        LockedAfterDue=True,
        NotificationsMuted=False,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_classifier_one_minute_inside_the_hour_is_critical():
    warning = health.ClassifyTask(_Task(), datetime(2024, 1, 1, 16, 1, tzinfo=timezone.utc))
    assert warning.Level == TaskWarningLevel.Critical
    assert warning.Message == "Due in less than 1 hour"
    assert warning.ShouldNotify is True
    assert warning.TimeRemaining == timedelta(minutes=59)


def test_classifier_exactly_one_hour_is_critical():
    warning = health.ClassifyTask(_Task(), datetime(2024, 1, 1, 16, 0, tzinfo=timezone.utc))
    assert warning.Level == TaskWarningLevel.Critical


def test_classifier_three_hours_is_warning():
    warning = health.ClassifyTask(_Task(), datetime(2024, 1, 1, 14, 0, tzinfo=timezone.utc))
    assert warning.Level == TaskWarningLevel.Warning
    assert warning.Message == "Due in less than 3 hours"
    assert warning.ShouldNotify is True


def test_classifier_within_a_day_is_warning():
    warning = health.ClassifyTask(_Task(), datetime(2024, 1, 1, 13, 59, tzinfo=timezone.utc))
    assert warning.Level == TaskWarningLevel.Warning
    assert warning.Message == "Due within 24 hours"
    assert warning.ShouldNotify is True


def test_classifier_beyond_a_day_is_info():
    warning = health.ClassifyTask(_Task(), DUE - timedelta(hours=30))
    assert warning.Level == TaskWarningLevel.Info
    assert warning.ShouldNotify is False


def test_classifier_completed_and_undated_tasks_are_quiet():
    now = DUE - timedelta(minutes=5)
    completed = health.ClassifyTask(_Task("COMPLETED", CompletedAt=now), now)
    undated = health.ClassifyTask(_Task(due_date=None, due_time=None), now)
    assert completed.Level == TaskWarningLevel.Nothing
    assert undated.Level == TaskWarningLevel.Nothing
    assert completed.ShouldNotify is False
    assert undated.ShouldNotify is False


def test_classifier_overdue_task_reports_elapsed_time():
    overdue_at = DUE + timedelta(minutes=1)
    now = overdue_at + timedelta(hours=2, minutes=5)
    warning = health.ClassifyTask(_Task("OVERDUE", OverdueAt=overdue_at), now)
    assert warning.Level == TaskWarningLevel.Critical
    assert warning.Message == "This task is overdue"
    assert warning.TimeRemaining == -timedelta(hours=2, minutes=5)
    assert warning.TimeRemainingLabel == "Overdue by 2h 5m"


def test_classifier_pending_past_due_is_critical():
    warning = health.ClassifyTask(_Task(), DUE + timedelta(minutes=1))
    assert warning.Level == TaskWarningLevel.Critical
    assert warning.Message == "This task is overdue"


@pytest.mark.parametrize(
    "remaining, expected",
    [
        (timedelta(days=8), 100),
        (timedelta(days=7), 99),
        (timedelta(days=5), 89),
        (timedelta(days=3), 80),
        (timedelta(days=2), 69),
        (timedelta(days=1), 60),
        (timedelta(hours=18), 49),
        (timedelta(hours=12), 40),
        (timedelta(hours=6), 26),
        (timedelta(hours=3), 20),
        (timedelta(hours=2), 14),
        (timedelta(hours=1), 10),
        (timedelta(minutes=30), 5),
        (timedelta(0), 0),
        (-timedelta(hours=1), 0),
    ],
)
def test_health_score_bands(remaining, expected):
    assert health.CalculateHealthScore(_Task(), DUE - remaining) == expected


def test_health_score_fixed_for_completed_overdue_and_undated():
    now = DUE - timedelta(days=10)
    assert health.CalculateHealthScore(_Task("COMPLETED", CompletedAt=now), now) == 100
    assert health.CalculateHealthScore(_Task("OVERDUE", OverdueAt=now), now) == 0
    assert health.CalculateHealthScore(_Task(due_date=None, due_time=None), now) == 100


def test_health_score_never_increases_as_due_approaches():
    task = _Task()
    now = DUE - timedelta(days=10)
    previous = health.CalculateHealthScore(task, now)
    while now <= DUE + timedelta(minutes=30):
        now += timedelta(minutes=7)
        score = health.CalculateHealthScore(task, now)
        assert score <= previous
        previous = score


def test_health_status_labels():
    assert health.HealthStatusLabel(80) == "Healthy"
    assert health.HealthStatusLabel(79) == "At Risk"
    assert health.HealthStatusLabel(40) == "At Risk"
    assert health.HealthStatusLabel(39) == "Critical"


@pytest.mark.parametrize(
    "delta, expected",
    [
        (timedelta(days=2, hours=3, minutes=10), "2d 3h"),
        (timedelta(hours=1, minutes=30), "1h 30m"),
        (timedelta(minutes=5), "5m"),
        (-timedelta(days=1, hours=1, minutes=5), "Overdue by 25h 5m"),
    ],
)
def test_format_time_remaining(delta, expected):
    assert health.FormatTimeRemaining(delta) == expected


def test_suggested_actions_for_locked_overdue_task():
    now = DUE + timedelta(hours=1)
    task = _Task("OVERDUE", OverdueAt=DUE)
    actions = [action.Type for action in health.SuggestActions(task, now)]
    assert actions == ["prioritize", "reschedule", "extend", "duplicate"]


def test_suggested_actions_for_task_at_risk():
    actions = health.SuggestActions(_Task(), DUE - timedelta(days=2))
    assert [(action.Type, action.Priority) for action in actions] == [("prioritize", "medium")]


def test_no_suggested_actions_for_healthy_task():
    assert health.SuggestActions(_Task(), DUE - timedelta(days=9)) == []


def test_evaluate_task_health_combines_results():
    result = health.EvaluateTaskHealth(_Task(), DUE - timedelta(minutes=30))
    assert result.Warning.Level == TaskWarningLevel.Critical
    assert result.Score == 5
    assert result.Label == "Critical"
    assert [action.Type for action in result.Actions] == ["prioritize", "reschedule", "extend"]
