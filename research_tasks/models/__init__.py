from research_tasks.models.user import Role, User
from research_tasks.models.task import Task, TaskStatus
from research_tasks.models.comment import Comment

__all__ = ["Comment", "Role", "Task", "TaskStatus", "User"]
