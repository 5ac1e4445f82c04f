"""Endpoints and websocket handler for user notifications."""

from __future__ import annotations

import logging
from datetime import timedelta
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
from starlette.concurrency import run_in_threadpool

from app.application.use_cases.notifications import NotificationService
from app.domain.entities import Notification, NotificationPage
from app.domain.exceptions import NotificationValidationError, TransientStoreError
from app.infrastructure.notifications import serialize_notification
from app.interfaces.api.dependencies import (
    get_current_user_id,
    get_notification_service,
    resolve_user_id,
)
from app.interfaces.api.schemas import (
    NotificationActionResponse,
    NotificationCreateRequest,
    NotificationPageRead,
    NotificationRead,
    UnreadCountRead,
)
from app.utils import isoformat_or_none

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])

NOT_FOUND_DETAIL = "Notification not found or access denied"

ACK_EVENT = "notification-ack"
ACK_MARKED_READ = "MARKED_READ"
ACK_DISMISSED = "DISMISSED"
ACK_ALL_MARKED_READ = "ALL_MARKED_READ"
STORE_UNAVAILABLE_DETAIL = "Notification store unavailable"


def _notification_to_schema(notification: Notification) -> NotificationRead:
    return NotificationRead(
        id=notification.id or 0,
        user_id=notification.user_id,
        type=notification.type.name,
        title=notification.title,
        message=notification.message,
        status=notification.status.name,
        priority=notification.priority.name,
        created_at=notification.created_at,
        read_at=notification.read_at,
        dismissed_at=notification.dismissed_at,
        expires_at=notification.expires_at,
        related_entity_id=notification.related_entity_id,
        action_url=notification.action_url,
        metadata=notification.metadata or {},
    )


def _page_to_schema(page: NotificationPage) -> NotificationPageRead:
    return NotificationPageRead(
        items=[_notification_to_schema(notification) for notification in page.items],
        total=page.total,
        page=page.page,
        size=page.size,
        total_pages=page.total_pages,
        has_next=page.has_next,
    )


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL)


@router.get("/", response_model=NotificationPageRead)
def list_notifications(
    page: int = Query(0, ge=0),
    size: int | None = Query(None, ge=1),
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationPageRead:
    """Return one page of the user's notifications, newest first."""

    return _page_to_schema(service.get_page(user_id, page=page, size=size))


@router.get("/all", response_model=list[NotificationRead])
def list_all_notifications(
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> list[NotificationRead]:
    return [_notification_to_schema(n) for n in service.get_all(user_id)]


@router.get("/unread", response_model=list[NotificationRead])
def list_unread_notifications(
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> list[NotificationRead]:
    return [_notification_to_schema(n) for n in service.get_unread(user_id)]


@router.get("/unread/count", response_model=UnreadCountRead)
def count_unread_notifications(
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> UnreadCountRead:
    return UnreadCountRead(count=service.get_unread_count(user_id))


@router.get("/recent", response_model=list[NotificationRead])
def list_recent_notifications(
    hours: int | None = Query(None, ge=1),
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> list[NotificationRead]:
    """Return notifications created within the last ``hours`` (24 by default)."""

    window = timedelta(hours=hours) if hours is not None else None
    return [_notification_to_schema(n) for n in service.get_recent(user_id, window)]


@router.get("/active", response_model=list[NotificationRead])
def list_active_notifications(
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> list[NotificationRead]:
    """Return notifications that have no expiry or have not expired yet."""

    return [_notification_to_schema(n) for n in service.get_active(user_id)]


@router.get("/type/{notification_type}", response_model=list[NotificationRead])
def list_notifications_by_type(
    notification_type: str,
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> list[NotificationRead]:
    try:
        notifications = service.get_by_type(user_id, notification_type)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return [_notification_to_schema(n) for n in notifications]


@router.get("/priority/{priority}", response_model=list[NotificationRead])
def list_notifications_by_priority(
    priority: str,
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> list[NotificationRead]:
    try:
        notifications = service.get_by_priority(user_id, priority)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return [_notification_to_schema(n) for n in notifications]


@router.put("/read-all", response_model=NotificationActionResponse)
def mark_all_notifications_read(
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationActionResponse:
    updated = service.mark_all_read(user_id)
    return NotificationActionResponse(message="All notifications marked as read", updated=updated)


@router.post("/test", response_model=NotificationRead, status_code=status.HTTP_201_CREATED)
def create_test_notification(
    payload: NotificationCreateRequest,
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationRead:
    """Create a notification for the authenticated user."""

    try:
        notification = service.create(
            user_id,
            payload.type,
            payload.title,
            payload.message,
            payload.priority,
            related_entity_id=payload.related_entity_id,
            action_url=payload.action_url,
            expires_at=payload.expires_at,
            metadata=payload.metadata,
        )
    except NotificationValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _notification_to_schema(notification)


@router.get("/{notification_id}", response_model=NotificationRead)
def get_notification(
    notification_id: int,
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationRead:
    notification = service.get(notification_id, user_id)
    if notification is None:
        raise _not_found()
    return _notification_to_schema(notification)


@router.put("/{notification_id}/read", response_model=NotificationActionResponse)
def mark_notification_read(
    notification_id: int,
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationActionResponse:
    if not service.mark_read(notification_id, user_id):
        raise _not_found()
    return NotificationActionResponse(message="Notification marked as read")


@router.put("/{notification_id}/dismiss", response_model=NotificationActionResponse)
def dismiss_notification(
    notification_id: int,
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationActionResponse:
    if not service.mark_dismissed(notification_id, user_id):
        raise _not_found()
    return NotificationActionResponse(message="Notification dismissed")


@router.delete("/{notification_id}", response_model=NotificationActionResponse)
def delete_notification(
    notification_id: int,
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationActionResponse:
    if not service.delete(notification_id, user_id):
        raise _not_found()
    return NotificationActionResponse(message="Notification deleted")


# -- websocket ------------------------------------------------------------------


def _ack(
    action: str, notification_id: int | None, success: bool, error: str | None = None
) -> dict[str, Any]:
    data: dict[str, Any] = {
        "action": action,
        "notification_id": notification_id,
        "success": success,
    }
    if error:
        data["error"] = error
    return {"type": ACK_EVENT, "data": data}


def _message_notification_id(message: dict[str, Any]) -> int | None:
    raw = message.get("notification_id", message.get("notificationId"))
    if isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _error(message: str) -> dict[str, Any]:
    return {"type": "error", "data": {"message": message}}


async def _send_snapshot(websocket: WebSocket, service: NotificationService, user_id: str) -> None:
    try:
        unread = await run_in_threadpool(service.get_unread, user_id)
    except TransientStoreError:
        logger.exception("Could not load unread notifications for user %s", user_id)
        await websocket.send_json(_error(STORE_UNAVAILABLE_DETAIL))
        return
    await websocket.send_json(
        {
            "type": "init",
            "data": {
                "unread_count": len(unread),
                "notifications": [serialize_notification(n) for n in unread],
            },
        }
    )


async def _handle_transition(
    websocket: WebSocket,
    service: NotificationService,
    user_id: str,
    message: dict[str, Any],
    *,
    action: str,
) -> None:
    notification_id = _message_notification_id(message)
    if notification_id is None:
        await websocket.send_json(_ack(action, None, False, "notification_id is required"))
        return

    change = service.mark_read if action == ACK_MARKED_READ else service.mark_dismissed
    try:
        success = await run_in_threadpool(change, notification_id, user_id)
    except TransientStoreError:
        logger.exception("Could not update notification %s over websocket", notification_id)
        await websocket.send_json(_ack(action, notification_id, False, STORE_UNAVAILABLE_DETAIL))
        return

    error = None if success else NOT_FOUND_DETAIL
    await websocket.send_json(_ack(action, notification_id, success, error))


async def _handle_mark_all(websocket: WebSocket, service: NotificationService, user_id: str) -> None:
    try:
        await run_in_threadpool(service.mark_all_read, user_id)
    except TransientStoreError:
        logger.exception("Could not mark notifications as read for user %s", user_id)
        await websocket.send_json(
            _ack(ACK_ALL_MARKED_READ, None, False, STORE_UNAVAILABLE_DETAIL)
        )
        return
    await websocket.send_json(_ack(ACK_ALL_MARKED_READ, None, True))


async def _handle_ping(websocket: WebSocket, service: NotificationService, user_id: str) -> None:
    try:
        unread_count = await run_in_threadpool(service.get_unread_count, user_id)
    except TransientStoreError:
        logger.exception("Could not count unread notifications for user %s", user_id)
        await websocket.send_json(_error(STORE_UNAVAILABLE_DETAIL))
        return
    await websocket.send_json(
        {
            "type": "pong",
            "data": {
                "timestamp": isoformat_or_none(service.now()),
                "unread_count": unread_count,
            },
        }
    )


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket) -> None:
    """Websocket endpoint that streams notifications to the authenticated user."""

    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=1008)
        return

    state = websocket.app.state
    try:
        user_id = resolve_user_id(token, state.settings)
    except HTTPException:
        await websocket.close(code=1008)
        return

    service: NotificationService = state.notification_service
    manager = state.notification_manager

    await manager.connect(user_id, websocket)
    logger.info("Notification websocket opened for user %s", user_id)
    try:
        await _send_snapshot(websocket, service, user_id)
        while True:
            try:
                message = await websocket.receive_json()
            except WebSocketDisconnect:
                raise
            except ValueError:
                continue

            if not isinstance(message, dict):
                continue

            message_type = message.get("type")
            if message_type == "ping":
                await _handle_ping(websocket, service, user_id)
            elif message_type == "subscribe":
                await _send_snapshot(websocket, service, user_id)
            elif message_type == "mark-read":
                await _handle_transition(websocket, service, user_id, message, action=ACK_MARKED_READ)
            elif message_type == "dismiss":
                await _handle_transition(websocket, service, user_id, message, action=ACK_DISMISSED)
            elif message_type == "mark-all-read":
                await _handle_mark_all(websocket, service, user_id)
            else:
                logger.debug("Ignoring websocket message of type %r from user %s", message_type, user_id)
    except WebSocketDisconnect:
        logger.info("Notification websocket closed for user %s", user_id)
    finally:
        manager.disconnect(user_id, websocket)
