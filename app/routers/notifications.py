from fastapi import APIRouter, Depends
from loguru import logger

from app.cache import get_unread_cache, invalidate_unread_cache, set_unread_cache
from app.crud import notification_crud
from app.deps import CurrentUser, get_current_user
from app.errors import Forbidden, NotFound
from app.schemas import NotificationResponse, UnreadCount

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    current_user: CurrentUser = Depends(get_current_user),
) -> list[NotificationResponse]:
    return await notification_crud.list_for_user(current_user.id)


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
    current_user: CurrentUser = Depends(get_current_user),
) -> UnreadCount:
    cached = await get_unread_cache(current_user.id)
    if cached is not None:
        logger.debug("Cache hit for unread count: user_id={}", current_user.id)
        return UnreadCount(count=cached)

    logger.debug("Cache miss for unread count: user_id={}", current_user.id)
    count = await notification_crud.count_unread(current_user.id)
    await set_unread_cache(current_user.id, count)
    return UnreadCount(count=count)


@router.patch("/{notification_id}", response_model=NotificationResponse)
async def mark_read(
    notification_id: int,
    current_user: CurrentUser = Depends(get_current_user),
) -> NotificationResponse:
    notification = await notification_crud.get(id=notification_id)
    if not notification:
        raise NotFound("Notification not found")
    if notification.user_id != current_user.id:
        raise Forbidden()

    updated = await notification_crud.mark_read(notification_id)
    if not updated:
        raise NotFound("Notification not found")
    await invalidate_unread_cache(current_user.id)
    return updated
