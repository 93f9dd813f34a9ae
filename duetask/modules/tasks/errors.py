class TaskError(ValueError):
    Code = "TASK_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        if code:
            self.Code = code


class TaskValidationError(TaskError):
    Code = "VALIDATION_ERROR"


class TaskLockedError(TaskError):
    Code = "TASK_LOCKED"


class TaskNotFoundError(TaskError):
    Code = "NOT_FOUND"


class TaskConflictError(TaskError):
    Code = "CONFLICT"


TASK_LOCKED_MESSAGE = "This task is locked because it is overdue. Complete or duplicate it instead."
SUBTASK_LOCKED_MESSAGE = "Cannot update subtasks of an overdue locked task."
