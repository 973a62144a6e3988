from dataclasses import dataclass, field
from typing import List

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from research_tasks.core import policy
from research_tasks.core.errors import Forbidden
from research_tasks.models import Comment, Task, TaskStatus, User
from research_tasks.services.tasks import TaskView, task_views_query

RECENT_TASKS_LIMIT = 5


@dataclass
class DashboardStats:
    total_tasks: int = 0
    completed_tasks: int = 0
    pending_tasks: int = 0
    review_tasks: int = 0
    active_users: int = 0
    total_comments: int = 0
    recent_tasks: List[TaskView] = field(default_factory=list)


async def compute_stats(db: AsyncSession, actor: User) -> DashboardStats:
    if not policy.can_view_stats(actor):
        raise Forbidden("Supporter or admin access required")

    stats = DashboardStats()

    total = await db.execute(select(func.count(Task.id)))
    stats.total_tasks = total.scalar_one()

    by_status = await db.execute(select(Task.status, func.count(Task.id)).group_by(Task.status))
    counts = {TaskStatus(status): count for status, count in by_status.all()}
    stats.completed_tasks = counts.get(TaskStatus.COMPLETED, 0)
    stats.pending_tasks = counts.get(TaskStatus.PENDING, 0)
    stats.review_tasks = counts.get(TaskStatus.REVIEW, 0)

    # "active" = has submitted at least one task
    active = await db.execute(select(func.count(distinct(Task.owner_email))))
    stats.active_users = active.scalar_one()

    comments = await db.execute(select(func.count(Comment.id)))
    stats.total_comments = comments.scalar_one()

    recent = await db.execute(task_views_query().limit(RECENT_TASKS_LIMIT))
    stats.recent_tasks = [TaskView(task, name, count) for task, name, count in recent.all()]
    return stats
