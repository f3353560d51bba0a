import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from application.ports import TaskRecord, TaskRepository
from domain.entities import Task
from domain.errors import NotFoundError
from schemas.task import TaskCreate, TaskUpdate

logger = logging.getLogger(__name__)


def _to_record(task: Task) -> TaskRecord:
    return TaskRecord(
        user_id=task.user_id,
        title=task.title,
        description=task.description,
        completed=task.completed,
        completed_at=task.completed_at,
        created_at=task.created_at,
        updated_at=task.updated_at,
        task_id=task.id,
    )


def _to_task(record: TaskRecord) -> Task:
    return Task(
        id=record.task_id,
        user_id=record.user_id,
        title=record.title,
        description=record.description,
        completed=record.completed,
        completed_at=record.completed_at,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class TaskUseCases:
    """
    Task lifecycle for an already-authenticated caller.

    `user_id` always comes from the identity resolver, never from the
    request body, so a task's owner is fixed at creation and every read or
    write is scoped to it.
    """

    def __init__(
        self,
        repository: TaskRepository,
        completion_offset: timedelta = timedelta(days=1),
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repository = repository
        self.completion_offset = completion_offset
        self.clock = clock

    def create_task(self, request: TaskCreate, user_id: int, timeout: Optional[float] = None) -> Task:
        now = self.clock()
        task = Task(
            user_id=user_id,
            title=request.title,
            description=request.description,
            completed=False,
            completed_at=now + self.completion_offset,
            created_at=now,
            updated_at=None,
        )
        saved = self.repository.save(_to_record(task), timeout=timeout)
        logger.info("Created task %s for user %s", saved.task_id, user_id)
        return _to_task(saved)

    def update_task(
        self, task_id: int, request: TaskUpdate, user_id: int, timeout: Optional[float] = None
    ) -> Task:
        # Only the supplied fields are written; owner, completion state and
        # created_at stay as stored.
        fields = request.changes()
        fields["updated_at"] = self.clock()
        updated = self.repository.update_by_id(task_id, user_id, fields, timeout=timeout)
        logger.info("Updated task %s fields %s", task_id, sorted(fields))
        return _to_task(updated)

    def find_task_by_id(self, task_id: int, user_id: int, timeout: Optional[float] = None) -> Task:
        record = self.repository.find_by_id(task_id, timeout=timeout)
        if record.user_id != user_id:
            logger.warning("User %s asked for task %s owned by another user", user_id, task_id)
            raise NotFoundError(task_id)
        return _to_task(record)

    def find_all_tasks(self, user_id: int, timeout: Optional[float] = None) -> List[Task]:
        records = self.repository.find_all_by_owner(user_id, timeout=timeout)
        return [_to_task(record) for record in records]

    def delete_task(self, task_id: int, user_id: int, timeout: Optional[float] = None) -> None:
        self.repository.delete_by_id(task_id, user_id, timeout=timeout)
        logger.info("Deleted task %s for user %s", task_id, user_id)

    def update_task_status(
        self, task_id: int, completed: bool, user_id: int, timeout: Optional[float] = None
    ) -> Task:
        fields = {"completed": completed, "updated_at": self.clock()}
        updated = self.repository.update_by_id(task_id, user_id, fields, timeout=timeout)
        logger.info("Task %s marked completed=%s", task_id, completed)
        return _to_task(updated)
