# research_tasks/routers/users.py
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from research_tasks.core.auth import get_current_admin, get_current_user
from research_tasks.core.errors import InvalidInput
from research_tasks.core.security import create_access_token
from research_tasks.database import get_db
from research_tasks.models.user import Role, User
from research_tasks.schemas.user import (
    AuthResponse,
    CompleteProfile,
    UserActionResponse,
    UserCreate,
    UserEnvelope,
    UserListResponse,
    UserLogin,
    UserResponse,
)
from research_tasks.services import users as user_service

router = APIRouter(prefix="/users", tags=["users"])


def _require_local_auth(request: Request) -> None:
    if request.app.state.identity_verifier.provider != "local":
        raise InvalidInput(
            "Password accounts are disabled; sign in through the identity provider",
            code="PASSWORD_AUTH_DISABLED",
        )


def _issue_token(request: Request, user: User) -> AuthResponse:
    token = create_access_token(
        {"sub": str(user.id), "email": user.email}, request.app.state.settings
    )
    return AuthResponse(token=token, user=UserResponse.model_validate(user))


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(user_in: UserCreate, request: Request, db: AsyncSession = Depends(get_db)):
    _require_local_auth(request)
    user = await user_service.register(db, user_in.email, user_in.password, user_in.name)
    return _issue_token(request, user)


@router.post("/login", response_model=AuthResponse)
async def login(user_in: UserLogin, request: Request, db: AsyncSession = Depends(get_db)):
    _require_local_auth(request)
    user = await user_service.authenticate(db, user_in.email, user_in.password)
    return _issue_token(request, user)


@router.get("/me", response_model=UserEnvelope)
async def read_users_me(current_user: User = Depends(get_current_user)):
    return UserEnvelope(user=UserResponse.model_validate(current_user))


@router.post("/complete-profile", response_model=UserEnvelope)
async def complete_profile(
    profile: CompleteProfile,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = await user_service.complete_profile(db, current_user, profile.name)
    return UserEnvelope(user=UserResponse.model_validate(user))


@router.get("", response_model=UserListResponse)
async def list_users(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    users = await user_service.list_users(db, admin)
    return UserListResponse(users=[UserResponse.model_validate(u) for u in users])


async def _change_role(db: AsyncSession, actor: User, user_id: int, role: Role) -> UserActionResponse:
    user = await user_service.change_role(db, actor, user_id, role)
    return UserActionResponse(message=f"User is now {role.value}", user=UserResponse.model_validate(user))


@router.post("/{user_id}/promote", response_model=UserActionResponse)
async def promote_to_admin(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await _change_role(db, current_user, user_id, Role.ADMIN)


@router.post("/{user_id}/promote-supporter", response_model=UserActionResponse)
async def promote_to_supporter(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await _change_role(db, current_user, user_id, Role.SUPPORTER)


@router.post("/{user_id}/demote", response_model=UserActionResponse)
async def demote(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await _change_role(db, current_user, user_id, Role.USER)


@router.post("/{user_id}/delete", response_model=UserActionResponse)
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await user_service.delete_user(db, current_user, user_id)
    return UserActionResponse(message="User deleted successfully")
