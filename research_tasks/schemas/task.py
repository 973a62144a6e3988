from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from research_tasks.models.task import TaskStatus


class TaskStatusUpdate(BaseModel):
    status: str  # validated against TaskStatus by the lifecycle service → 400 INVALID_STATUS


class AttachmentResponse(BaseModel):
    name: str
    url: str
    mime_type: str
    size: int
    provider: Optional[str] = None
    public_id: Optional[str] = None


class TaskResponse(BaseModel):
    id: int
    owner_email: str
    research: str
    challenges: Optional[str]
    attachments: List[AttachmentResponse]
    status: TaskStatus
    submitted_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TaskOwner(BaseModel):
    email: str
    name: Optional[str]


class TaskSummaryResponse(TaskResponse):
    owner: TaskOwner
    comment_count: int


class TaskEnvelope(BaseModel):
    message: Optional[str] = None
    task: TaskResponse


class TaskListResponse(BaseModel):
    tasks: List[TaskResponse]


class TaskSummaryListResponse(BaseModel):
    tasks: List[TaskSummaryResponse]


def summarize(view) -> TaskSummaryResponse:
    """TaskView → response with owner and comment-count projection."""
    base = TaskResponse.model_validate(view.task)
    return TaskSummaryResponse(
        **base.model_dump(),
        owner=TaskOwner(email=view.task.owner_email, name=view.owner_name),
        comment_count=view.comment_count,
    )
