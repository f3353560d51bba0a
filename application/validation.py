from typing import Any, Type, TypeVar

import pydantic
from pydantic import BaseModel

from domain.entities import MAX_ID
from domain.errors import ValidationError
from schemas.task import TaskCreate, TaskStatusUpdate, TaskUpdate

ModelT = TypeVar("ModelT", bound=BaseModel)


def _validate(model: Type[ModelT], payload: Any) -> ModelT:
    if not isinstance(payload, dict):
        raise ValidationError("body", "expected a JSON object")
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as e:
        # Report the first offending field only
        error = e.errors()[0]
        loc = error.get("loc") or ("body",)
        raise ValidationError(str(loc[0]), error.get("msg", "invalid value")) from None


def validate_create(payload: Any) -> TaskCreate:
    return _validate(TaskCreate, payload)


def validate_update(payload: Any) -> TaskUpdate:
    update = _validate(TaskUpdate, payload)
    if not update.changes():
        raise ValidationError("body", "no updatable fields supplied")
    return update


def validate_status(payload: Any) -> TaskStatusUpdate:
    return _validate(TaskStatusUpdate, payload)


def parse_task_id(raw: str) -> int:
    try:
        task_id = int(raw)
    except (TypeError, ValueError):
        raise ValidationError("task_id", "must be an integer") from None
    if not 0 < task_id <= MAX_ID:
        raise ValidationError("task_id", f"must be between 1 and {MAX_ID}")
    return task_id
