# bizhub/modules/notifications/routers.py
from fastapi import APIRouter, Depends, Path, Query, status

from bizhub.core.security import CurrentUser
from bizhub.models.api_common import CountResponse, MessageResponse
from .models import MarkAllReadAPI, NotificationAPI, NotificationListAPI
from .services import NotificationService, get_notification_service

router = APIRouter()


@router.get("/", response_model=NotificationListAPI, summary="List my notifications")
async def list_notifications(
    current_user: CurrentUser,
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    service: NotificationService = Depends(get_notification_service),
):
    items = await service.list_for_user(current_user.id, unread_only=unread_only, limit=limit)
    unread = await service.repo.count_unread(current_user.id)
    return NotificationListAPI(
        notifications=[NotificationAPI.model_validate(n) for n in items],
        unread_count=unread,
    )


@router.get("/unread-count", response_model=CountResponse, summary="Count unread notifications")
async def unread_count(current_user: CurrentUser, service: NotificationService = Depends(get_notification_service)):
    return CountResponse(count=await service.repo.count_unread(current_user.id))


@router.put("/read-all", response_model=MarkAllReadAPI, summary="Mark all notifications read")
async def mark_all_read(current_user: CurrentUser, service: NotificationService = Depends(get_notification_service)):
    updated = await service.mark_all_read(current_user.id)
    return MarkAllReadAPI(message="All notifications marked as read", updated=updated)


@router.put("/{notification_id}/read", response_model=NotificationAPI, summary="Mark a notification read")
async def mark_read(
    current_user: CurrentUser,
    notification_id: str = Path(...),
    service: NotificationService = Depends(get_notification_service),
):
    return NotificationAPI.model_validate(await service.mark_read(notification_id, current_user.id))


@router.delete("/{notification_id}", response_model=MessageResponse, status_code=status.HTTP_200_OK)
async def delete_notification(
    current_user: CurrentUser,
    notification_id: str = Path(...),
    service: NotificationService = Depends(get_notification_service),
):
    await service.delete(notification_id, current_user.id)
    return MessageResponse(message="Notification deleted")
