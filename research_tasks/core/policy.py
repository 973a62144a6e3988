"""Authorization predicates.

Everything here is pure: no I/O, no exceptions for a denied request.
Callers decide which error a ``False`` (or a non-ALLOWED decision) maps to.
"""

import enum
from typing import Protocol

from research_tasks.models.task import TaskStatus
from research_tasks.models.user import Role


class Actor(Protocol):
    email: str
    role: Role


class OwnedResource(Protocol):
    owner_email: str


def same_identity(a: str, b: str) -> bool:
    """Emails compare case-insensitively everywhere ownership is checked."""
    return (a or "").casefold() == (b or "").casefold()


def is_owner(user: Actor, task: OwnedResource) -> bool:
    return same_identity(user.email, task.owner_email)


def is_admin(user: Actor) -> bool:
    return Role(user.role) is Role.ADMIN


def is_staff(user: Actor) -> bool:
    """Supporters and admins (the reviewing side)."""
    return Role(user.role).at_least(Role.SUPPORTER)


def can_submit_task(user: Actor) -> bool:
    return bool(getattr(user, "is_active", True))


def can_view_task(user: Actor, task: OwnedResource) -> bool:
    return is_staff(user) or is_owner(user, task)


def can_mutate_task(user: Actor, task: OwnedResource) -> bool:
    """Owner-level transitions (status update, revert) belong to the owner only."""
    return is_owner(user, task)


def can_review_task(user: Actor) -> bool:
    """approve / reject"""
    return is_admin(user)


def can_delete_task(user: Actor, task: OwnedResource) -> bool:
    return is_owner(user, task) or is_admin(user)


def can_view_attachment(user: Actor, task) -> bool:
    """Files follow their task, and files of completed work are visible to everyone."""
    return can_view_task(user, task) or TaskStatus(task.status) is TaskStatus.COMPLETED


def can_view_all_tasks(user: Actor) -> bool:
    """Unrestricted listing; everyone else only sees completed work."""
    return is_staff(user)


def can_view_stats(user: Actor) -> bool:
    return is_staff(user)


def can_comment(user: Actor, task: OwnedResource) -> bool:
    return can_view_task(user, task)


def can_edit_comment(user: Actor, comment) -> bool:
    return same_identity(user.email, comment.author_email) or is_admin(user)


def can_manage_users(user: Actor) -> bool:
    return is_admin(user)


def can_list_tasks_of(user: Actor, email: str) -> bool:
    return same_identity(user.email, email)


class RoleChange(str, enum.Enum):
    ALLOWED = "allowed"
    NOT_ADMIN = "not_admin"          # actor may not manage users
    TARGET_IS_ADMIN = "target_is_admin"  # admins are never demoted or re-assigned
    UNCHANGED = "unchanged"          # target already holds the role


def can_promote(actor: Actor, target: Actor, new_role: Role) -> RoleChange:
    if not can_manage_users(actor):
        return RoleChange.NOT_ADMIN
    if Role(target.role) is Role.ADMIN:
        # covers admin → admin as well: the protection rule wins over idempotence
        return RoleChange.TARGET_IS_ADMIN
    if Role(target.role) is Role(new_role):
        return RoleChange.UNCHANGED
    return RoleChange.ALLOWED


def can_delete_user(actor: Actor, target: Actor) -> RoleChange:
    if not can_manage_users(actor):
        return RoleChange.NOT_ADMIN
    if Role(target.role) is Role.ADMIN:
        return RoleChange.TARGET_IS_ADMIN
    return RoleChange.ALLOWED
