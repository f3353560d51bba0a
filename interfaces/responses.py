"""
Response envelopes.

Successful results, errors and authorization failures each have their own
shape. The unauthorized envelope carries only a message, so clients can
tell it apart structurally from every other response.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from domain.entities import Task
from domain.errors import (AuthorizationError, NotFoundError, OperationNotImplementedError,
                           OperationTimeoutError, PersistenceError, TaskServiceError,
                           ValidationError)
from schemas.task import (ErrorEnvelope, TaskEnvelope, TaskListEnvelope, TaskResponse,
                          UnauthorizedEnvelope)

FORMAT_DATETIME = "%Y-%m-%d %H:%M:%S"
MESSAGE_NOT_AUTHORIZED = "user account not authorized, please login or sign up!"

_ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    PersistenceError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    OperationTimeoutError: status.HTTP_504_GATEWAY_TIMEOUT,
    OperationNotImplementedError: status.HTTP_501_NOT_IMPLEMENTED,
}


def _timestamp() -> str:
    return datetime.now().strftime(FORMAT_DATETIME)


def _json(envelope: BaseModel, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=envelope.model_dump(mode="json", by_alias=True),
    )


def task_response(task: Optional[Task], status_code: int, reference_id: int, user_id: int, message: str) -> JSONResponse:
    envelope = TaskEnvelope(
        data=TaskResponse.from_task(task) if task is not None else None,
        status_code=status_code,
        reference_id=reference_id,
        authorization_echo=str(user_id),
        message=message,
        timestamp=_timestamp(),
    )
    return _json(envelope, status_code)


def task_list_response(tasks: List[Task], user_id: int, message: str) -> JSONResponse:
    envelope = TaskListEnvelope(
        data=[TaskResponse.from_task(task) for task in tasks],
        count=len(tasks),
        status_code=status.HTTP_200_OK,
        authorization_echo=str(user_id),
        message=message,
        timestamp=_timestamp(),
    )
    return _json(envelope, status.HTTP_200_OK)


def unauthorized_response(message: str = MESSAGE_NOT_AUTHORIZED) -> JSONResponse:
    return _json(UnauthorizedEnvelope(message=message), status.HTTP_401_UNAUTHORIZED)


def error_response(error: TaskServiceError) -> JSONResponse:
    if isinstance(error, AuthorizationError):
        return unauthorized_response(error.message)
    status_code = _ERROR_STATUS.get(type(error), status.HTTP_500_INTERNAL_SERVER_ERROR)
    envelope = ErrorEnvelope(
        status_code=status_code,
        message=error.message,
        field=getattr(error, "field", None),
        timestamp=_timestamp(),
    )
    return _json(envelope, status_code)


def internal_error_response(message: str = "An unexpected error occurred") -> JSONResponse:
    envelope = ErrorEnvelope(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message=message,
        timestamp=_timestamp(),
    )
    return _json(envelope, status.HTTP_500_INTERNAL_SERVER_ERROR)
