"""Endpoints and websocket handler for user notifications."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from sqlalchemy.orm import Session, sessionmaker

from notification_hub.application.background import BackgroundWorkQueue
from notification_hub.application.use_cases.notifications import (
    NotificationDispatcher,
    acknowledge_notifications,
    count_unread,
    delete_all_notifications,
    delete_old_notifications,
    list_notifications,
    mark_all_as_read,
    mark_notification_as_read,
)
from notification_hub.domain.entities import User
from notification_hub.infrastructure.database import SessionLocal, get_db
from notification_hub.infrastructure.notifications import NotificationPublisher
from notification_hub.interfaces.api.dependencies import (
    get_current_active_user,
    get_publisher,
    get_session_factory,
    get_work_queue,
    require_admin,
    resolve_current_user,
)
from notification_hub.interfaces.api.schemas import (
    DeletedResponse,
    NotificationListResponse,
    NotificationRead,
    SystemNoticeAccepted,
    SystemNoticeRequest,
    UnreadCountResponse,
    UpdatedResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
def list_user_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> NotificationListResponse:
    """Return one page of the authenticated user's notifications."""

    try:
        result = list_notifications(db, current_user.id, page=page, limit=limit)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return NotificationListResponse(
        items=[NotificationRead.from_entity(item) for item in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
def get_unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> UnreadCountResponse:
    return UnreadCountResponse(unread_count=count_unread(db, current_user.id))


@router.patch("/read-all", response_model=UpdatedResponse)
def mark_all_notifications_as_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> UpdatedResponse:
    return UpdatedResponse(updated=mark_all_as_read(db, current_user.id))


@router.patch("/{notification_id}/read", response_model=NotificationRead)
def mark_as_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> NotificationRead:
    try:
        notification = mark_notification_as_read(
            db, notification_id, user_id=current_user.id
        )
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return NotificationRead.from_entity(notification)


@router.delete("/delete-all", response_model=DeletedResponse)
def delete_all(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> DeletedResponse:
    return DeletedResponse(deleted=delete_all_notifications(db, current_user.id))


@router.delete("/delete-old", response_model=DeletedResponse)
def delete_old(
    days: int = Query(30, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> DeletedResponse:
    try:
        deleted = delete_old_notifications(db, current_user.id, days=days)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return DeletedResponse(deleted=deleted)


@router.post(
    "/broadcast",
    response_model=SystemNoticeAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
def broadcast_system_notice(
    payload: SystemNoticeRequest,
    current_user: User = Depends(require_admin),
    publisher: NotificationPublisher = Depends(get_publisher),
    work_queue: BackgroundWorkQueue = Depends(get_work_queue),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> SystemNoticeAccepted:
    """Queue a maintenance or update notice for every active user."""

    def _broadcast() -> None:
        session = session_factory()
        try:
            NotificationDispatcher(
                session, publisher, work_queue=work_queue
            ).broadcast_system_notice(
                payload.type, payload.title, payload.message, link=payload.link
            )
        finally:
            session.close()

    work_queue.submit(f"system-notice:{payload.type}", _broadcast)
    logger.info("User %s queued a %s notice", current_user.id, payload.type)
    return SystemNoticeAccepted(type=payload.type)


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket) -> None:
    """Push channel; the client announces itself with a ``register`` message."""

    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    session = SessionLocal()
    try:
        user = resolve_current_user(token, session)
        if not user.can_be_notified():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Usuario inactivo")
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        session.close()

    registry = websocket.app.state.channel_registry
    await websocket.accept()
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                continue

            if not isinstance(message, dict):
                continue

            message_type = message.get("type")
            if message_type == "register":
                if _as_int(message.get("user_id")) != user.id:
                    await websocket.send_json(
                        {"type": "error", "detail": "El usuario no coincide con el token"}
                    )
                    await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
                    return
                registry.register(user.id, websocket)
                await websocket.send_json({"type": "registered", "user_id": user.id})
                continue

            if message_type == "ping":
                await websocket.send_json({"type": "pong"})
                continue

            if message_type == "ack":
                ids = [
                    value
                    for value in (_as_int(item) for item in _as_list(message.get("ids")))
                    if value is not None
                ]
                if ids:
                    ack_session = SessionLocal()
                    try:
                        updated = acknowledge_notifications(ack_session, ids, user_id=user.id)
                    finally:
                        ack_session.close()
                    await websocket.send_json({"type": "ack", "updated": updated})
                continue
    except WebSocketDisconnect:
        logger.debug("Live channel of user %s disconnected", user.id)
    finally:
        registry.unregister(websocket)
