"""Task and dependency API endpoints.

Two routers are mounted by :func:`create_app`: ``/api/v1/TaskItems`` and
``/api/v1/TaskDependencies``.  Engine errors are translated here: missing ids
become 404, rejected dependency edges become 400.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional

from fastapi import APIRouter, HTTPException, Query, Response
from pydantic import BaseModel

from ..constants import DEFAULT_TASK_PRIORITY, DEFAULT_TASK_STATUS, MAX_PAGE_SIZE
from ..errors import DependencyRejectedError, EntityNotFoundError
from ..task_engine.engine import TaskEngine
from ..task_engine.model import TaskDependency, TaskItem


# ---------------------------------------------------------------------------
# Pydantic request / response models
# ---------------------------------------------------------------------------

class TaskItemRequest(BaseModel):
    title: str
    description: str = ""
    priority: str = DEFAULT_TASK_PRIORITY
    status: str = DEFAULT_TASK_STATUS
    due_date: Optional[datetime] = None

    def to_fields(self) -> dict[str, Any]:
        data = self.model_dump()
        data["due_date"] = self.due_date.isoformat() if self.due_date else None
        return data


class TaskItemResponse(BaseModel):
    id: int
    title: str
    description: str
    priority: str
    status: str
    due_date: Optional[str] = None

    @classmethod
    def from_entity(cls, task: TaskItem) -> "TaskItemResponse":
        return cls(**task.to_dict())


class TaskDependencyRequest(BaseModel):
    task_id: int
    dependent_task_id: int


class TaskDependencyResponse(BaseModel):
    id: int
    task_id: int
    dependent_task_id: int

    @classmethod
    def from_entity(cls, dep: TaskDependency) -> "TaskDependencyResponse":
        return cls(**dep.to_dict())


def _not_found(exc: EntityNotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(exc))


# ---------------------------------------------------------------------------
# Router factories
# ---------------------------------------------------------------------------

def create_task_router(get_engine: Callable[[], TaskEngine]) -> APIRouter:
    """Create the task CRUD router.

    Parameters
    ----------
    get_engine:
        A callable returning the :class:`TaskEngine` bound to the app.
    """
    router = APIRouter(prefix="/api/v1/TaskItems", tags=["tasks"])

    @router.get("", response_model=list[TaskItemResponse])
    async def list_tasks(
        page_index: int = Query(1, ge=1, alias="pageIndex"),
        page_size: Optional[int] = Query(None, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    ) -> list[TaskItemResponse]:
        tasks = await get_engine().list_tasks(page_index, page_size)
        return [TaskItemResponse.from_entity(t) for t in tasks]

    @router.get("/{task_id}", response_model=TaskItemResponse)
    async def get_task(task_id: int) -> TaskItemResponse:
        try:
            task = await get_engine().get_task(task_id)
        except EntityNotFoundError as e:
            raise _not_found(e)
        return TaskItemResponse.from_entity(task)

    @router.post("", response_model=TaskItemResponse, status_code=201)
    async def create_task(body: TaskItemRequest, response: Response) -> TaskItemResponse:
        task = await get_engine().create_task(**body.to_fields())
        response.headers["Location"] = f"{router.prefix}/{task.id}"
        return TaskItemResponse.from_entity(task)

    @router.put("/{task_id}", status_code=204)
    async def update_task(task_id: int, body: TaskItemRequest) -> Response:
        try:
            await get_engine().update_task(task_id, **body.to_fields())
        except EntityNotFoundError as e:
            raise _not_found(e)
        return Response(status_code=204)

    @router.delete("/{task_id}", status_code=204)
    async def delete_task(task_id: int) -> Response:
        try:
            await get_engine().delete_task(task_id)
        except EntityNotFoundError as e:
            raise _not_found(e)
        return Response(status_code=204)

    return router


def create_dependency_router(get_engine: Callable[[], TaskEngine]) -> APIRouter:
    """Create the dependency router; writes are validated by the engine."""
    router = APIRouter(prefix="/api/v1/TaskDependencies", tags=["dependencies"])

    @router.get("", response_model=list[TaskDependencyResponse])
    async def list_dependencies(
        page_index: int = Query(1, ge=1, alias="pageIndex"),
        page_size: Optional[int] = Query(None, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    ) -> list[TaskDependencyResponse]:
        deps = await get_engine().list_dependencies(page_index, page_size)
        return [TaskDependencyResponse.from_entity(d) for d in deps]

    @router.get("/{dependency_id}", response_model=TaskDependencyResponse)
    async def get_dependency(dependency_id: int) -> TaskDependencyResponse:
        try:
            dep = await get_engine().get_dependency(dependency_id)
        except EntityNotFoundError as e:
            raise _not_found(e)
        return TaskDependencyResponse.from_entity(dep)

    @router.post("", response_model=TaskDependencyResponse, status_code=201)
    async def create_dependency(body: TaskDependencyRequest, response: Response) -> TaskDependencyResponse:
        try:
            dep = await get_engine().create_dependency(body.task_id, body.dependent_task_id)
        except DependencyRejectedError as e:
            raise HTTPException(status_code=400, detail=str(e))
        response.headers["Location"] = f"{router.prefix}/{dep.id}"
        return TaskDependencyResponse.from_entity(dep)

    @router.put("/{dependency_id}", status_code=204)
    async def update_dependency(dependency_id: int, body: TaskDependencyRequest) -> Response:
        try:
            await get_engine().update_dependency(dependency_id, body.task_id, body.dependent_task_id)
        except EntityNotFoundError as e:
            raise _not_found(e)
        except DependencyRejectedError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return Response(status_code=204)

    @router.delete("/{dependency_id}", status_code=204)
    async def delete_dependency(dependency_id: int) -> Response:
        try:
            await get_engine().delete_dependency(dependency_id)
        except EntityNotFoundError as e:
            raise _not_found(e)
        return Response(status_code=204)

    return router
