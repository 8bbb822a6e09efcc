"""
Task Routes
"""

from typing import List

from fastapi import APIRouter, status

from shared.schemas.task import TaskCreateSchema, TaskSchema
from services.task_service.utils.dependencies import TaskServiceDep

router = APIRouter()


@router.post("", response_model=TaskSchema, status_code=status.HTTP_201_CREATED)
async def create_task(task_data: TaskCreateSchema, task_service: TaskServiceDep):
    """
    Create a task and queue its notification

    400 when the user does not exist; 503 when the task was stored but the
    notification could not be queued (the task is kept).
    """
    return await task_service.create_task_and_notify(
        title=task_data.title,
        description=task_data.description,
        user_id=task_data.user_id
    )


@router.get("", response_model=List[TaskSchema])
async def list_tasks(task_service: TaskServiceDep):
    return await task_service.list_tasks()


@router.get("/user/{user_id}", response_model=List[TaskSchema])
async def list_user_tasks(user_id: str, task_service: TaskServiceDep):
    """Tasks for one user, newest first"""
    return await task_service.list_tasks_for_user(user_id)
