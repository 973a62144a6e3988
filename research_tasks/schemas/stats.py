from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from research_tasks.models.task import TaskStatus
from research_tasks.schemas.task import TaskOwner, summarize


class CamelModel(BaseModel):
    # the dashboard client reads camelCase keys, nested objects included
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StatsCounts(CamelModel):
    total_tasks: int
    completed_tasks: int
    pending_tasks: int
    review_tasks: int
    active_users: int
    total_comments: int


class RecentAttachment(CamelModel):
    name: str
    url: str
    mime_type: str
    size: int
    provider: Optional[str] = None
    public_id: Optional[str] = None


class RecentTask(CamelModel):
    id: int
    owner_email: str
    research: str
    challenges: Optional[str]
    attachments: List[RecentAttachment]
    status: TaskStatus
    submitted_at: datetime
    updated_at: datetime
    owner: TaskOwner
    comment_count: int


class StatsResponse(CamelModel):
    stats: StatsCounts
    recent_tasks: List[RecentTask]


def to_response(stats) -> StatsResponse:
    return StatsResponse(
        stats=StatsCounts(
            total_tasks=stats.total_tasks,
            completed_tasks=stats.completed_tasks,
            pending_tasks=stats.pending_tasks,
            review_tasks=stats.review_tasks,
            active_users=stats.active_users,
            total_comments=stats.total_comments,
        ),
        recent_tasks=[RecentTask.model_validate(summarize(view).model_dump()) for view in stats.recent_tasks],
    )
