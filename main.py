import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute

from application.ports import IdentityResolver, TaskRepository
from application.use_cases import TaskUseCases
from config import Settings
from infrastructure.auth import build_identity_resolver
from infrastructure.database import Database
from interfaces.api import register_exception_handlers
from interfaces.api import router as task_router

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_logging_configured = False


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Set up process-wide logging. Handlers are attached only once per process."""
    global _logging_configured
    root = logging.getLogger()
    root.setLevel(level)
    if _logging_configured:
        return

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    handlers = [logging.StreamHandler()]
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    _logging_configured = True


def log_routes(app: FastAPI) -> None:
    logger.info("Registered Handler Router:")
    for route in app.routes:
        if isinstance(route, APIRoute):
            logger.info(f"{sorted(route.methods)} {route.path}")


def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[TaskRepository] = None,
    identity_resolver: Optional[IdentityResolver] = None,
) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings.log_level, settings.log_file)

    if repository is None:
        repository = Database(
            settings.database_path,
            max_open_conns=settings.db_max_open_conns,
            max_idle_conns=settings.db_max_idle_conns,
            conn_max_lifetime=settings.db_conn_max_lifetime,
            pool_timeout=settings.db_pool_timeout,
        )
        logger.info(f"Connected to database {settings.database_path}")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log_routes(app)
        yield
        close = getattr(repository, "close", None)
        if close is not None:
            close()
        logger.info("Task service stopped")

    app = FastAPI(title="To-Do List", lifespan=lifespan)
    app.state.settings = settings
    app.state.identity_resolver = identity_resolver or build_identity_resolver(settings)
    app.state.use_cases = TaskUseCases(repository, completion_offset=settings.task_completion_offset)
    app.include_router(task_router)
    register_exception_handlers(app)

    if settings.cors_origins_list:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins_list,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        response = await call_next(request)
        logger.info(f"Request Handler: {request.url.hostname} {request.method} {request.url.path} {response.status_code}")
        return response

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


if __name__ == "__main__":
    uvicorn.run(create_app(), host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
