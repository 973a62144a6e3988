"""Task lifecycle: submission, review transitions, listing and deletion.

Single-task operations always look the task up first (404) and only then
apply the authorization policy (403).
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import String, cast, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from research_tasks.core import policy
from research_tasks.core.errors import Conflict, Forbidden, InvalidInput, InvalidStatus, NotFound
from research_tasks.models import Comment, Task, TaskStatus, User
from research_tasks.models.user import utc_now

logger = logging.getLogger(__name__)

# owner-driven moves; approve/reject are admin-only and accept any source state
OWNER_TRANSITIONS = {
    (TaskStatus.PENDING, TaskStatus.REVIEW),
    (TaskStatus.REVIEW, TaskStatus.PENDING),
}


@dataclass
class TaskView:
    task: Task
    owner_name: Optional[str]
    comment_count: int


def parse_status(value: Any) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in TaskStatus)
        raise InvalidStatus(f"Invalid status '{value}'. Must be one of: {allowed}")


async def get_task_or_404(db: AsyncSession, task_id: int) -> Task:
    result = await db.execute(select(Task).where(Task.id == task_id))
    task = result.scalar_one_or_none()
    if task is None:
        raise NotFound("Task not found")
    return task


async def submit_task(
    db: AsyncSession,
    owner: User,
    research: str,
    challenges: Optional[str],
    attachments: List[Dict[str, Any]],
) -> Task:
    if not policy.can_submit_task(owner):
        raise Forbidden("Your account may not submit tasks")
    if not research or not research.strip():
        raise InvalidInput("research is required")

    task = Task(
        owner_email=owner.email,
        research=research.strip(),
        challenges=challenges.strip() if challenges and challenges.strip() else None,
        attachments=attachments,
        status=TaskStatus.PENDING,
    )
    db.add(task)
    await db.commit()
    await db.refresh(task)
    logger.info("Task %s submitted by %s with %d file(s)", task.id, owner.email, len(attachments))
    return task


async def get_task(db: AsyncSession, actor: User, task_id: int) -> Task:
    task = await get_task_or_404(db, task_id)
    if not policy.can_view_task(actor, task):
        raise Forbidden("You do not have access to this task")
    return task


async def _compare_and_set(db: AsyncSession, task: Task, target: TaskStatus) -> Task:
    observed = task.status
    result = await db.execute(
        update(Task)
        .where(Task.id == task.id)
        .where(Task.status == observed)
        .values(status=target, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        # gone in the meantime, or someone else moved it first
        await get_task_or_404(db, task.id)
        raise Conflict(
            "Task status was changed by someone else, reload and try again",
            code="STATUS_CONFLICT",
            status_code=409,
        )
    await db.commit()
    await db.refresh(task)
    logger.info("Task %s: %s -> %s", task.id, TaskStatus(observed).value, target.value)
    return task


async def update_status(db: AsyncSession, actor: User, task_id: int, status_value: Any) -> Task:
    target = parse_status(status_value)
    task = await get_task_or_404(db, task_id)
    if not policy.can_mutate_task(actor, task):
        raise Forbidden("Only the task owner can change its status")

    current = TaskStatus(task.status)
    if (current, target) not in OWNER_TRANSITIONS:
        raise InvalidStatus(f"Cannot change status from {current.value} to {target.value}")
    return await _compare_and_set(db, task, target)


async def revert_to_pending(db: AsyncSession, actor: User, task_id: int) -> Task:
    return await update_status(db, actor, task_id, TaskStatus.PENDING)


async def approve_task(db: AsyncSession, actor: User, task_id: int) -> Task:
    task = await get_task_or_404(db, task_id)
    if not policy.can_review_task(actor):
        raise Forbidden("Admin access required")
    return await _compare_and_set(db, task, TaskStatus.COMPLETED)


async def reject_task(db: AsyncSession, actor: User, task_id: int) -> Task:
    task = await get_task_or_404(db, task_id)
    if not policy.can_review_task(actor):
        raise Forbidden("Admin access required")
    return await _compare_and_set(db, task, TaskStatus.REVIEW)


async def delete_task(db: AsyncSession, actor: User, task_id: int) -> Task:
    """Deletes the task and its comments; returns the removed row."""
    task = await get_task_or_404(db, task_id)
    if not policy.can_delete_task(actor, task):
        raise Forbidden("Only the owner or an admin can delete this task")

    await db.execute(delete(Comment).where(Comment.task_id == task.id))
    await db.delete(task)
    await db.commit()
    logger.info("Task %s deleted by %s", task_id, actor.email)
    return task


async def get_task_for_file(db: AsyncSession, actor: User, stored_name: str) -> Task:
    """The task that owns the attachment stored as ``stored_name``."""
    result = await db.execute(
        select(Task).where(cast(Task.attachments, String).contains(stored_name, autoescape=True))
    )
    for task in result.scalars():
        if any(a.get("public_id") == stored_name for a in task.attachments or []):
            break
    else:
        raise NotFound("File not found")

    if not policy.can_view_attachment(actor, task):
        raise Forbidden("You do not have access to this file")
    return task


async def list_tasks_of(db: AsyncSession, actor: User, email: str) -> List[Task]:
    if not policy.can_list_tasks_of(actor, email):
        raise Forbidden("You can only fetch your own tasks")
    result = await db.execute(
        select(Task)
        .where(func.lower(Task.owner_email) == email.lower())
        .order_by(Task.submitted_at.desc(), Task.id.desc())
    )
    return list(result.scalars().all())


def task_views_query():
    comment_counts = (
        select(Comment.task_id, func.count(Comment.id).label("comment_count"))
        .group_by(Comment.task_id)
        .subquery()
    )
    return (
        select(Task, User.name, func.coalesce(comment_counts.c.comment_count, 0))
        .join(User, User.email == Task.owner_email)
        .outerjoin(comment_counts, comment_counts.c.task_id == Task.id)
        .order_by(Task.submitted_at.desc(), Task.id.desc())
    )


async def list_all_tasks(db: AsyncSession, actor: User) -> List[TaskView]:
    stmt = task_views_query()
    if not policy.can_view_all_tasks(actor):
        stmt = stmt.where(Task.status == TaskStatus.COMPLETED)
    result = await db.execute(stmt)
    return [TaskView(task, owner_name, count) for task, owner_name, count in result.all()]
