"""
Notification Service — FastAPI エントリーポイント

Order Service などから fire-and-forget で送られる通知を保存し、
利用者ごとの一覧・既読管理を提供する。
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from pydantic import BaseModel, Field

from ..common.db import create_engine, create_session_factory, create_tables
from ..common.errors import NotFoundError, install_error_handlers
from ..common.logging import configure_logging
from . import commands, queries
from .commands import NotificationCategory
from .config import Settings
from .schema import metadata

router = APIRouter()


class CreateNotificationRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    category: NotificationCategory
    order_id: str | None = None


@router.post("/notifications", status_code=201)
async def cmd_create_notification(req: CreateNotificationRequest, request: Request):
    async with request.app.state.session_factory() as session:
        return await commands.create_notification(
            session, req.user_id, req.message, req.category, req.order_id
        )


@router.get("/notifications")
async def query_list_notifications(request: Request, user: str, unread_only: bool = False):
    """利用者の通知一覧 (unread_only=true で未読のみ)"""
    async with request.app.state.session_factory() as session:
        return await queries.list_notifications(session, user, unread_only)


@router.get("/notifications/{notification_id}")
async def query_get_notification(notification_id: str, request: Request):
    async with request.app.state.session_factory() as session:
        notification = await queries.get_notification(session, notification_id)
        if not notification:
            raise NotFoundError("Notification", notification_id)
        return notification


@router.patch("/notifications/{notification_id}/read")
async def cmd_mark_read(notification_id: str, request: Request):
    async with request.app.state.session_factory() as session:
        return await commands.mark_read(session, notification_id)


@router.post("/notifications/read-all")
async def cmd_mark_all_read(request: Request, user: str):
    async with request.app.state.session_factory() as session:
        updated = await commands.mark_all_read(session, user)
        return {"message": "All notifications marked as read", "updated": updated}


@router.delete("/notifications/{notification_id}")
async def cmd_delete_notification(notification_id: str, request: Request):
    async with request.app.state.session_factory() as session:
        await commands.delete_notification(session, notification_id)
        return {"message": "Notification deleted"}


@router.get("/health")
async def health():
    return {"status": "ok", "service": "notification-service"}


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        engine = create_engine(settings.database_url)
        await create_tables(engine, metadata)
        app.state.session_factory = create_session_factory(engine)
        yield
        await engine.dispose()

    app = FastAPI(title="Notification Service", lifespan=lifespan)
    app.state.settings = settings
    install_error_handlers(app)
    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
