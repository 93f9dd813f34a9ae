import os


def GetEnv(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def GetIntEnv(name: str, default: int) -> int:
    raw = GetEnv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc


def GetBoolEnv(name: str, default: bool = False) -> bool:
    raw = GetEnv(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "y", "on"}


class TasksSettings:
    DefaultTimeZone = GetEnv("TASKS_DEFAULT_TIMEZONE", "UTC")
    NotificationPollSeconds = GetIntEnv("TASKS_NOTIFICATION_POLL_SECONDS", 60)
    StartLeadMinutes = GetIntEnv("TASKS_START_LEAD_MINUTES", 5)
    SchedulerEnabled = GetBoolEnv("TASKS_NOTIFICATION_SCHEDULER_ENABLED", False)
    CronSecret = GetEnv("CRON_SECRET")


Settings = TasksSettings()
