# research_tasks/main.py
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from research_tasks.config import Settings, get_settings
from research_tasks.core.errors import register_exception_handlers
from research_tasks.core.identity import build_identity_verifier
from research_tasks.database import Database
from research_tasks.logging_setup import setup_logging
from research_tasks.routers import comments, files, health, task, users
from research_tasks.services.attachments import AttachmentHandler
from research_tasks.services.reminders import ReminderScheduler, build_email_sender
from research_tasks.services.storage import build_storage

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    setup_logging(settings.LOG_LEVEL)

    # backends first: a bad AUTH_PROVIDER/STORAGE_BACKEND fails before the engine exists
    app.state.storage = build_storage(settings)
    app.state.attachments = AttachmentHandler(
        app.state.storage,
        max_file_size=settings.MAX_UPLOAD_SIZE,
        max_files=settings.MAX_FILES_PER_TASK,
    )
    verifier = build_identity_verifier(settings)
    app.state.identity_verifier = verifier

    database: Optional[Database] = None
    scheduler: Optional[ReminderScheduler] = None
    try:
        database = Database(settings.effective_database_url, echo=settings.SQL_ECHO)
        app.state.db = database
        if database.is_sqlite:
            # Postgres deployments are migrated with alembic
            await database.create_all()

        if settings.REMINDER_ENABLED:
            scheduler = ReminderScheduler(database, build_email_sender(settings), settings.REMINDER_HOUR_UTC)
            scheduler.start()
        app.state.reminders = scheduler

        logger.info(
            "Startup complete (auth=%s, storage=%s, env=%s)",
            verifier.provider,
            app.state.storage.name,
            settings.ENVIRONMENT,
        )
        yield
    finally:
        if scheduler is not None:
            await scheduler.stop()
        await app.state.identity_verifier.close()
        if database is not None:
            await database.dispose()
        logger.info("Shutdown complete")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(title="Research Tasks", version="1.0", lifespan=lifespan)
    app.state.settings = settings

    if settings.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(task.router)
    app.include_router(comments.router)
    app.include_router(files.router)

    @app.get("/")
    def read_root():
        return {"message": "Welcome to the Research Tasks API"}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("research_tasks.main:app", host="0.0.0.0", port=get_settings().PORT, reload=True)
