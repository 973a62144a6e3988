from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from research_tasks.core.auth import get_current_user
from research_tasks.database import get_db
from research_tasks.models.user import User
from research_tasks.schemas.comment import (
    CommentCreate,
    CommentEnvelope,
    CommentListResponse,
    CommentResponse,
    CommentUpdate,
)
from research_tasks.services import comments as comment_service

router = APIRouter(prefix="/comments", tags=["comments"])


@router.get("/{task_id}", response_model=CommentListResponse)
async def list_comments(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    comments = await comment_service.list_comments(db, current_user, task_id)
    return CommentListResponse(comments=[CommentResponse.model_validate(c) for c in comments])


@router.post("/{task_id}", response_model=CommentEnvelope, status_code=status.HTTP_201_CREATED)
async def add_comment(
    task_id: int,
    comment_in: CommentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    comment = await comment_service.add_comment(db, current_user, task_id, comment_in.content)
    return CommentEnvelope(comment=CommentResponse.model_validate(comment))


@router.put("/{comment_id}", response_model=CommentEnvelope)
async def update_comment(
    comment_id: int,
    comment_in: CommentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    comment = await comment_service.update_comment(db, current_user, comment_id, comment_in.content)
    return CommentEnvelope(comment=CommentResponse.model_validate(comment))


@router.delete("/{comment_id}")
async def delete_comment(
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await comment_service.delete_comment(db, current_user, comment_id)
    return {"message": "Comment deleted successfully"}
