"""FastAPI application factory for the task dependency API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from ..cache import Cache, FileCache
from ..config import CacheSettings, get_cache_settings, load_config
from ..constants import STATE_DIR_NAME
from ..storage import FileStore
from ..task_engine.engine import TaskEngine
from .task_api import create_dependency_router, create_task_router


def create_app(
    project_dir: Optional[Path] = None,
    cache: Optional[Cache] = None,
    settings: Optional[CacheSettings] = None,
    enable_cors: bool = True,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        project_dir: Project directory holding ``.todo_api/`` (default: cwd).
        cache: Cache collaborator; a :class:`FileCache` under ``.todo_api/``,
            shared with CLI invocations, is created when omitted.
        settings: Overrides the settings read from ``.todo_api/config.yaml``.
        enable_cors: Whether to enable CORS.

    Returns:
        Configured FastAPI app.
    """
    project_dir = (project_dir or Path.cwd()).resolve()
    if settings is None:
        config, err = load_config(project_dir)
        if err:
            logger.warning("Ignoring invalid config: {}", err)
        settings = get_cache_settings(config)

    state_dir = project_dir / STATE_DIR_NAME
    owns_cache = cache is None
    if cache is None:
        cache = FileCache(state_dir)
    engine = TaskEngine(FileStore(state_dir), cache, settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Serving tasks from {}", state_dir)
        yield
        if owns_cache:
            await cache.close()

    app = FastAPI(
        title="Todo Dependency API",
        description="Task tracking with validated task dependencies",
        version="1.0.0",
        lifespan=lifespan,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.engine = engine
    app.state.project_dir = project_dir

    def _get_engine() -> TaskEngine:
        return app.state.engine

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(create_task_router(_get_engine))
    app.include_router(create_dependency_router(_get_engine))
    return app
