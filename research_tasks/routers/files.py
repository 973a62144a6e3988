from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from research_tasks.core.auth import get_current_user
from research_tasks.core.errors import NotFound
from research_tasks.database import get_db
from research_tasks.models.user import User
from research_tasks.services import tasks as task_service
from research_tasks.services.storage import LocalStorage

router = APIRouter(tags=["files"])


def _local_storage(request: Request) -> LocalStorage:
    storage = request.app.state.storage
    if not isinstance(storage, LocalStorage):
        # remote backends hand out their own URLs
        raise NotFound("File not found")
    return storage


async def _authorized_path(request: Request, db: AsyncSession, user: User, filename: str):
    storage = _local_storage(request)
    await task_service.get_task_for_file(db, user, filename)
    return storage.resolve(filename)


@router.get("/uploads/{filename}")
async def view_file(
    filename: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    path = await _authorized_path(request, db, current_user, filename)
    return FileResponse(path, content_disposition_type="inline")


@router.get("/download/{filename}")
async def download_file(
    filename: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    path = await _authorized_path(request, db, current_user, filename)
    return FileResponse(path, filename=filename)
