from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from research_tasks.models.user import Role


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)
    name: Optional[str] = Field(None, min_length=2, max_length=100)


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)


class CompleteProfile(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)


class UserResponse(BaseModel):
    id: int
    email: EmailStr
    name: Optional[str]  # ← Nullable until the profile is completed
    role: Role
    profile_complete: bool
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class UserEnvelope(BaseModel):
    user: UserResponse


class UserListResponse(BaseModel):
    users: List[UserResponse]


class UserActionResponse(BaseModel):
    message: str
    user: Optional[UserResponse] = None


class AuthResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserResponse
