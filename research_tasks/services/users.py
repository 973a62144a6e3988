import logging
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from research_tasks.core import policy
from research_tasks.core.errors import Conflict, Forbidden, InvalidInput, NotFound, Unauthenticated
from research_tasks.core.identity import ExternalIdentity
from research_tasks.models import Comment, Role, Task, User
from research_tasks.utils.password import hash_password, verify_password

logger = logging.getLogger(__name__)


async def get_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


async def register(db: AsyncSession, email: str, password: str, name: Optional[str] = None) -> User:
    if await get_by_email(db, email):
        raise Conflict("Email already registered", code="EMAIL_TAKEN")

    try:
        hashed_pw = hash_password(password)
    except ValueError as e:
        raise InvalidInput(str(e))

    user = User(
        email=email,
        name=name,
        hashed_password=hashed_pw,
        role=Role.USER,
        profile_complete=bool(name),
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # lost a race against another registration for the same address
        await db.rollback()
        raise Conflict("Email already registered", code="EMAIL_TAKEN")
    await db.refresh(user)
    logger.info("Registered user %s", user.email)
    return user


async def authenticate(db: AsyncSession, email: str, password: str) -> User:
    user = await get_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        raise Unauthenticated("Invalid credentials")
    if not user.is_active:
        raise Unauthenticated("Account is disabled")
    return user


async def reconcile_identity(db: AsyncSession, identity: ExternalIdentity) -> User:
    """Find or create the local user behind a provider identity.

    Lookup is by provider subject id; an existing password account with the
    same email is linked instead of duplicated. Role is never changed here.
    """
    result = await db.execute(select(User).where(User.external_id == identity.subject_id))
    user = result.scalar_one_or_none()
    if user:
        return user

    if not identity.email:
        raise Unauthenticated("Identity provider did not supply an email address")

    user = await get_by_email(db, identity.email)
    if user:
        if user.external_id and user.external_id != identity.subject_id:
            raise Unauthenticated("Email is linked to a different identity")
        user.external_id = identity.subject_id
    else:
        user = User(
            email=identity.email,
            name=identity.display_name,
            external_id=identity.subject_id,
            role=Role.USER,
            profile_complete=False,
        )
        db.add(user)

    try:
        await db.commit()
    except IntegrityError:
        # a concurrent first request created the row; use it
        await db.rollback()
        result = await db.execute(select(User).where(User.external_id == identity.subject_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise
        return user
    await db.refresh(user)
    logger.info("Linked identity %s to user %s", identity.subject_id, user.email)
    return user


async def complete_profile(db: AsyncSession, user: User, name: str) -> User:
    user.name = name
    user.profile_complete = True
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def list_users(db: AsyncSession, actor: User) -> List[User]:
    if not policy.can_manage_users(actor):
        raise Forbidden("Admin access required")
    result = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
    return list(result.scalars().all())


async def _get_target(db: AsyncSession, user_id: int) -> User:
    target = await get_by_id(db, user_id)
    if target is None:
        raise NotFound("User not found")
    return target


def _raise_for(decision: policy.RoleChange, new_role: Optional[Role] = None) -> None:
    if decision is policy.RoleChange.NOT_ADMIN:
        raise Forbidden("Admin access required")
    if decision is policy.RoleChange.TARGET_IS_ADMIN:
        raise Forbidden("Admin accounts cannot be modified or deleted")
    if decision is policy.RoleChange.UNCHANGED:
        raise Conflict(f"User is already {new_role.value}", code="ROLE_UNCHANGED")


async def change_role(db: AsyncSession, actor: User, user_id: int, new_role: Role) -> User:
    target = await _get_target(db, user_id)
    decision = policy.can_promote(actor, target, new_role)
    _raise_for(decision, new_role)

    previous = target.role
    target.role = new_role
    db.add(target)
    await db.commit()
    await db.refresh(target)
    logger.info(
        "User %s changed role of %s: %s -> %s",
        actor.email, target.email, Role(previous).value, new_role.value,
    )
    return target


async def delete_user(db: AsyncSession, actor: User, user_id: int) -> None:
    target = await _get_target(db, user_id)
    _raise_for(policy.can_delete_user(actor, target))

    owned_tasks = select(Task.id).where(Task.owner_email == target.email)
    await db.execute(delete(Comment).where(Comment.task_id.in_(owned_tasks)))
    await db.execute(delete(Comment).where(Comment.author_email == target.email))
    await db.execute(delete(Task).where(Task.owner_email == target.email))
    await db.delete(target)
    await db.commit()
    logger.info("User %s deleted user %s", actor.email, target.email)
