from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from research_tasks.core import policy
from research_tasks.core.errors import Forbidden, Unauthenticated
from research_tasks.core.identity import IdentityVerifier
from research_tasks.database import get_db
from research_tasks.models.user import User
from research_tasks.services import users as user_service

# auto_error=False so a missing header is reported as 401, not FastAPI's default
reusable_oauth2 = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    token: HTTPAuthorizationCredentials | None = Depends(reusable_oauth2),
) -> User:
    if token is None or not token.credentials:
        raise Unauthenticated("Authentication required")

    verifier: IdentityVerifier = request.app.state.identity_verifier
    identity = await verifier.verify(token.credentials)

    if verifier.provider == "local":
        try:
            user_id = int(identity.subject_id)
        except ValueError:
            raise Unauthenticated("Invalid token")
        user = await user_service.get_by_id(db, user_id)
        if user is None:
            raise Unauthenticated("User no longer exists")
    else:
        user = await user_service.reconcile_identity(db, identity)

    if not user.is_active:
        raise Unauthenticated("Account is disabled")

    request.state.user = user
    return user


async def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    if not policy.can_manage_users(current_user):
        raise Forbidden("Admin access required")
    return current_user


async def get_current_staff(current_user: User = Depends(get_current_user)) -> User:
    """Supporters and admins."""
    if not policy.is_staff(current_user):
        raise Forbidden("Supporter or admin access required")
    return current_user
