from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from research_tasks.core.auth import get_current_staff, get_current_user
from research_tasks.database import get_db
from research_tasks.models.user import User
from research_tasks.schemas.stats import StatsResponse, to_response
from research_tasks.schemas.task import (
    TaskEnvelope,
    TaskListResponse,
    TaskResponse,
    TaskStatusUpdate,
    TaskSummaryListResponse,
    summarize,
)
from research_tasks.services import stats as stats_service
from research_tasks.services import tasks as task_service
from research_tasks.services.attachments import AttachmentHandler

router = APIRouter(prefix="/tasks", tags=["tasks"])


def get_attachment_handler(request: Request) -> AttachmentHandler:
    return request.app.state.attachments


def _envelope(task, message: Optional[str] = None) -> TaskEnvelope:
    return TaskEnvelope(message=message, task=TaskResponse.model_validate(task))


@router.post("/submit", response_model=TaskEnvelope, status_code=status.HTTP_201_CREATED)
async def submit_task(
    research: str = Form(...),
    challenges: Optional[str] = Form(None),
    files: Optional[List[UploadFile]] = File(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    attachments: AttachmentHandler = Depends(get_attachment_handler),
):
    # every part is validated before anything is stored
    pending = await attachments.prepare(files)
    descriptors = await attachments.store_all(pending)
    try:
        task = await task_service.submit_task(db, current_user, research, challenges, descriptors)
    except Exception:
        await attachments.discard(descriptors)
        raise
    return _envelope(task, "Task submitted successfully")


@router.get("/my-tasks/{email}", response_model=TaskListResponse)
async def get_my_tasks(
    email: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    tasks = await task_service.list_tasks_of(db, current_user, email)
    return TaskListResponse(tasks=[TaskResponse.model_validate(t) for t in tasks])


@router.get("/all", response_model=TaskSummaryListResponse)
async def get_all_tasks(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    views = await task_service.list_all_tasks(db, current_user)
    return TaskSummaryListResponse(tasks=[summarize(v) for v in views])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_staff),
):
    return to_response(await stats_service.compute_stats(db, current_user))


@router.get("/{task_id}", response_model=TaskEnvelope)
async def get_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _envelope(await task_service.get_task(db, current_user, task_id))


@router.patch("/{task_id}/status", response_model=TaskEnvelope)
async def update_task_status(
    task_id: int,
    status_in: TaskStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    task = await task_service.update_status(db, current_user, task_id, status_in.status)
    return _envelope(task, "Task status updated")


@router.post("/{task_id}/revert", response_model=TaskEnvelope)
async def revert_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    task = await task_service.revert_to_pending(db, current_user, task_id)
    return _envelope(task, "Task moved back to pending")


@router.post("/{task_id}/approve", response_model=TaskEnvelope)
async def approve_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    task = await task_service.approve_task(db, current_user, task_id)
    return _envelope(task, "Task approved")


@router.post("/{task_id}/reject", response_model=TaskEnvelope)
async def reject_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    task = await task_service.reject_task(db, current_user, task_id)
    return _envelope(task, "Task sent back for review")


@router.delete("/{task_id}")
async def delete_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    attachments: AttachmentHandler = Depends(get_attachment_handler),
):
    task = await task_service.delete_task(db, current_user, task_id)
    await attachments.discard(task.attachments or [])
    return {"message": "Task deleted successfully"}
