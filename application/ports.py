"""
Contracts the task lifecycle depends on.

`TaskRepository` is the only way the application layer reaches durable
storage, and `IdentityResolver` the only way it learns who the caller is.
Both are swappable: the SQLite adapter and the JWT resolver in
`infrastructure` are the defaults wired up by `main.create_app`.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol

from domain.errors import OperationNotImplementedError


@dataclass
class TaskRecord:
    """Durable form of a task. `task_id` is assigned by storage on first save."""

    user_id: int
    title: str
    description: str
    completed: bool
    completed_at: Optional[datetime]
    created_at: datetime
    updated_at: Optional[datetime] = None
    task_id: Optional[int] = None


class IdentityResolver(Protocol):
    async def resolve(self, credential: Optional[str]) -> Optional[int]:
        """Return the authenticated user id, or None when unauthorized."""
        ...


class TaskRepository:
    """
    Storage contract for task records.

    Every method takes an optional `timeout` (seconds) which bounds the
    whole call, including waiting for a connection. Adapters raise
    NotFoundError, PersistenceError or OperationTimeoutError from
    `domain.errors`; operations an adapter does not support raise
    OperationNotImplementedError.
    """

    def save(self, record: TaskRecord, timeout: Optional[float] = None) -> TaskRecord:
        raise OperationNotImplementedError("save")

    def update_by_id(
        self, task_id: int, owner_id: int, fields: dict, timeout: Optional[float] = None
    ) -> TaskRecord:
        raise OperationNotImplementedError("update_by_id")

    def find_by_id(self, task_id: int, timeout: Optional[float] = None) -> TaskRecord:
        raise OperationNotImplementedError("find_by_id")

    def find_all_by_owner(self, owner_id: int, timeout: Optional[float] = None) -> List[TaskRecord]:
        raise OperationNotImplementedError("find_all_by_owner")

    def delete_by_id(self, task_id: int, owner_id: int, timeout: Optional[float] = None) -> None:
        raise OperationNotImplementedError("delete_by_id")
