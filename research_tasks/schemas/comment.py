from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class CommentUpdate(CommentCreate):
    pass


class CommentResponse(BaseModel):
    id: int
    task_id: int
    author_email: str
    content: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CommentEnvelope(BaseModel):
    comment: CommentResponse


class CommentListResponse(BaseModel):
    comments: List[CommentResponse]
