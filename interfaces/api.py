# interfaces/api.py
import json
import logging

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from application.use_cases import TaskUseCases
from application.validation import parse_task_id, validate_create, validate_status, validate_update
from domain.errors import AuthorizationError, PersistenceError, TaskServiceError, ValidationError
from interfaces.responses import (error_response, internal_error_response, task_list_response,
                                  task_response)

logger = logging.getLogger(__name__)

router = APIRouter()

AUTH_HEADER_KEY = "Authorization"
TIMEOUT_HEADER_KEY = "X-Request-Timeout"


def get_use_cases(request: Request) -> TaskUseCases:
    return request.app.state.use_cases


async def authenticate(request: Request) -> int:
    """Resolves the caller before anything else touches task data."""
    resolver = request.app.state.identity_resolver
    user_id = await resolver.resolve(request.headers.get(AUTH_HEADER_KEY))
    if user_id is None:
        raise AuthorizationError()
    return user_id


def request_timeout(request: Request) -> float:
    """Request deadline in seconds; a client may ask for a shorter one."""
    default = request.app.state.settings.request_timeout_seconds
    raw = request.headers.get(TIMEOUT_HEADER_KEY)
    if raw:
        try:
            requested = float(raw)
        except ValueError:
            raise ValidationError(TIMEOUT_HEADER_KEY, "must be a number of seconds") from None
        if 0 < requested < default:
            return requested
    return default


async def read_json(request: Request):
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("body", "malformed JSON") from None


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(TaskServiceError)
    async def task_service_error_handler(request: Request, exc: TaskServiceError) -> JSONResponse:
        if isinstance(exc, PersistenceError):
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
        elif isinstance(exc, AuthorizationError):
            logger.info(f"{request.method} {request.url.path} rejected: not authorized")
        else:
            logger.info(f"{request.method} {request.url.path} failed: {exc.message}")
        return error_response(exc)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return internal_error_response()


# Dependency order matters: `authenticate` runs before the request
# timeout header or the body is looked at.

@router.post("/tasks")
async def create_task(
    request: Request,
    user_id: int = Depends(authenticate),
    timeout: float = Depends(request_timeout),
    use_cases: TaskUseCases = Depends(get_use_cases),
):
    task_request = validate_create(await read_json(request))
    logger.info(f"task request body: {task_request}")
    created = await run_in_threadpool(use_cases.create_task, task_request, user_id, timeout)
    return task_response(created, status.HTTP_201_CREATED, created.id, user_id, "create task successful")


@router.get("/tasks")
async def find_all_tasks(
    user_id: int = Depends(authenticate),
    timeout: float = Depends(request_timeout),
    use_cases: TaskUseCases = Depends(get_use_cases),
):
    tasks = await run_in_threadpool(use_cases.find_all_tasks, user_id, timeout)
    return task_list_response(tasks, user_id, "request find task successful!")


@router.get("/tasks/{task_id}")
async def find_task_by_id(
    task_id: str,
    user_id: int = Depends(authenticate),
    timeout: float = Depends(request_timeout),
    use_cases: TaskUseCases = Depends(get_use_cases),
):
    task_pk = parse_task_id(task_id)
    logger.info(f"find task by id_task: {task_pk}")
    task = await run_in_threadpool(use_cases.find_task_by_id, task_pk, user_id, timeout)
    return task_response(task, status.HTTP_200_OK, task.id, user_id, "request find task successful!")


@router.put("/tasks/{task_id}")
async def update_task(
    task_id: str,
    request: Request,
    user_id: int = Depends(authenticate),
    timeout: float = Depends(request_timeout),
    use_cases: TaskUseCases = Depends(get_use_cases),
):
    task_pk = parse_task_id(task_id)
    update_request = validate_update(await read_json(request))
    logger.info(f"Update task request: {update_request}")
    task = await run_in_threadpool(use_cases.update_task, task_pk, update_request, user_id, timeout)
    return task_response(task, status.HTTP_200_OK, task.id, user_id, "update task successfully")


@router.patch("/tasks/{task_id}/status")
async def update_task_status(
    task_id: str,
    request: Request,
    user_id: int = Depends(authenticate),
    timeout: float = Depends(request_timeout),
    use_cases: TaskUseCases = Depends(get_use_cases),
):
    task_pk = parse_task_id(task_id)
    status_request = validate_status(await read_json(request))
    task = await run_in_threadpool(
        use_cases.update_task_status, task_pk, status_request.completed, user_id, timeout
    )
    return task_response(task, status.HTTP_200_OK, task.id, user_id, "update task status successfully")


@router.delete("/tasks/{task_id}")
async def delete_task(
    task_id: str,
    user_id: int = Depends(authenticate),
    timeout: float = Depends(request_timeout),
    use_cases: TaskUseCases = Depends(get_use_cases),
):
    task_pk = parse_task_id(task_id)
    await run_in_threadpool(use_cases.delete_task, task_pk, user_id, timeout)
    return task_response(None, status.HTTP_200_OK, task_pk, user_id, "delete task successfully")
