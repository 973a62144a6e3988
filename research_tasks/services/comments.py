from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from research_tasks.core import policy
from research_tasks.core.errors import Forbidden, InvalidInput, NotFound
from research_tasks.models import Comment, User
from research_tasks.models.user import utc_now
from research_tasks.services.tasks import get_task_or_404


def _clean(content: str) -> str:
    content = (content or "").strip()
    if not content:
        raise InvalidInput("Comment content is required")
    return content


async def _get_comment_or_404(db: AsyncSession, comment_id: int) -> Comment:
    result = await db.execute(select(Comment).where(Comment.id == comment_id))
    comment = result.scalar_one_or_none()
    if comment is None:
        raise NotFound("Comment not found")
    return comment


async def add_comment(db: AsyncSession, author: User, task_id: int, content: str) -> Comment:
    task = await get_task_or_404(db, task_id)
    if not policy.can_comment(author, task):
        raise Forbidden("You do not have access to this task")

    now = utc_now()
    comment = Comment(
        task_id=task.id,
        author_email=author.email,
        content=_clean(content),
        created_at=now,
        updated_at=now,
    )
    db.add(comment)
    await db.commit()
    await db.refresh(comment)
    return comment


async def list_comments(db: AsyncSession, requester: User, task_id: int) -> List[Comment]:
    task = await get_task_or_404(db, task_id)
    if not policy.can_view_task(requester, task):
        raise Forbidden("You do not have access to this task")

    result = await db.execute(
        select(Comment)
        .where(Comment.task_id == task.id)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    return list(result.scalars().all())


async def update_comment(db: AsyncSession, requester: User, comment_id: int, content: str) -> Comment:
    comment = await _get_comment_or_404(db, comment_id)
    if not policy.can_edit_comment(requester, comment):
        raise Forbidden("Not authorized to update this comment")

    comment.content = _clean(content)
    comment.updated_at = utc_now()
    db.add(comment)
    await db.commit()
    await db.refresh(comment)
    return comment


async def delete_comment(db: AsyncSession, requester: User, comment_id: int) -> None:
    comment = await _get_comment_or_404(db, comment_id)
    if not policy.can_edit_comment(requester, comment):
        raise Forbidden("Not authorized to delete this comment")

    await db.delete(comment)
    await db.commit()
