import enum

from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, Integer, String, Text

from research_tasks.database import Base
from research_tasks.models.user import utc_now


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    REVIEW = "review"
    COMPLETED = "completed"


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    owner_email = Column(
        String, ForeignKey("users.email", ondelete="CASCADE"), index=True, nullable=False
    )
    research = Column(Text, nullable=False)
    challenges = Column(Text, nullable=True)
    # [{name, url, mime_type, size, provider, public_id}, ...]
    attachments = Column(JSON, nullable=False, default=list)
    status = Column(
        Enum(TaskStatus, name="task_status", native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=TaskStatus.PENDING,
        index=True,
    )
    submitted_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
