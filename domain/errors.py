"""
Errors raised by the task service.

Every error here is recoverable: the HTTP layer turns each one into a
response envelope and the process keeps serving.
"""

from typing import Optional


class TaskServiceError(Exception):
    """Base class for all task service errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class AuthorizationError(TaskServiceError):
    """Missing, malformed or expired credential."""

    def __init__(self, message: str = "user account not authorized, please login or sign up!"):
        super().__init__(message)


class ValidationError(TaskServiceError):
    """A request field broke one of its constraints."""

    def __init__(self, field: str, reason: str):
        self.field = field
        super().__init__(f"Invalid {field}: {reason}", details={"field": field, "reason": reason})


class NotFoundError(TaskServiceError):
    """The task does not exist or belongs to another user."""

    def __init__(self, task_id: int):
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}", details={"task_id": task_id})


class PersistenceError(TaskServiceError):
    """The storage engine was unavailable or rejected the operation."""

    def __init__(self, operation: str, reason: Optional[str] = None):
        message = f"Storage {operation} failed"
        if reason:
            message += f": {reason}"
        super().__init__(message, details={"operation": operation, "reason": reason})


class OperationTimeoutError(TaskServiceError):
    """The caller's deadline elapsed before the operation finished."""

    def __init__(self, operation: str):
        super().__init__(f"Storage {operation} timed out", details={"operation": operation})


class OperationNotImplementedError(TaskServiceError):
    """The configured repository does not support this operation."""

    def __init__(self, operation: str):
        super().__init__(f"Operation not implemented: {operation}", details={"operation": operation})
