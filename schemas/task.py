from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr

from domain.entities import Task


class TaskCreate(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    title: StrictStr = Field(min_length=1)
    description: StrictStr = ""


class TaskUpdate(BaseModel):
    """Partial update: only fields the client actually sent are applied."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    title: Optional[StrictStr] = Field(default=None, min_length=1)
    description: Optional[StrictStr] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class TaskStatusUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    completed: StrictBool


class TaskResponse(BaseModel):
    task_id: Optional[int] = Field(default=None, serialization_alias="taskID")
    user_id: int = Field(serialization_alias="userID")
    title: str
    description: str
    completed: bool
    completed_at: Optional[datetime] = Field(default=None, serialization_alias="completedAt")
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, serialization_alias="updatedAt")

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        return cls(
            task_id=task.id,
            user_id=task.user_id,
            title=task.title,
            description=task.description,
            completed=task.completed,
            completed_at=task.completed_at,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class TaskEnvelope(BaseModel):
    data: Optional[TaskResponse] = None
    status_code: int = Field(serialization_alias="statusCode")
    reference_id: int = Field(serialization_alias="referenceID")
    authorization_echo: str = Field(serialization_alias="authorizationEcho")
    message: str
    timestamp: str


class TaskListEnvelope(BaseModel):
    data: List[TaskResponse]
    count: int
    status_code: int = Field(serialization_alias="statusCode")
    reference_id: int = Field(default=0, serialization_alias="referenceID")
    authorization_echo: str = Field(serialization_alias="authorizationEcho")
    message: str
    timestamp: str


class ErrorEnvelope(BaseModel):
    status_code: int = Field(serialization_alias="statusCode")
    message: str
    field: Optional[str] = None
    timestamp: str


class UnauthorizedEnvelope(BaseModel):
    message: str
