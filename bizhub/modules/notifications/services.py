# bizhub/modules/notifications/services.py
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import Depends, HTTPException, status
from loguru import logger

from bizhub.core.repository import to_object_id
from bizhub.websocket.events import push_event
from .models import NOTIFICATION_TYPES, NotificationAPI, NotificationInDB
from .repository import NotificationRepository, get_notification_repository


class NotificationService:
    """Stores in-app notifications and pushes them to the recipient's open sockets."""

    def __init__(self, repo: NotificationRepository):
        self.repo = repo

    async def notify(
        self,
        user_id: ObjectId,
        type: NOTIFICATION_TYPES,
        title: str,
        message: str,
        link: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> NotificationInDB:
        notification = await self.repo.create({
            "user_id": user_id,
            "type": type,
            "title": title,
            "message": message,
            "is_read": False,
            "link": link,
            "metadata": metadata or {},
        })
        logger.bind(user_id=str(user_id), type=type).info(f"Notification created: {title}")
        await push_event(
            "notification",
            NotificationAPI.model_validate(notification).model_dump(),
            user_id=str(user_id),
        )
        return notification

    async def list_for_user(self, user_id: ObjectId, unread_only: bool = False, limit: int = 50) -> List[NotificationInDB]:
        query: Dict[str, Any] = {"user_id": user_id}
        if unread_only:
            query["is_read"] = False
        return await self.repo.list_by(query, limit=limit, sort=[("created_at", -1)])

    async def _get_owned(self, notification_id: str, user_id: ObjectId) -> NotificationInDB:
        notification = await self.repo.get_by_id(notification_id)
        if notification is None or notification.user_id != user_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
        return notification

    async def mark_read(self, notification_id: str, user_id: ObjectId) -> NotificationInDB:
        await self._get_owned(notification_id, user_id)
        return await self.repo.update(notification_id, {"is_read": True})

    async def mark_all_read(self, user_id: ObjectId) -> int:
        updated = await self.repo.mark_all_read(user_id)
        await push_event("notifications-read", {"updated": updated}, user_id=str(user_id))
        return updated

    async def delete(self, notification_id: str, user_id: ObjectId) -> None:
        await self._get_owned(notification_id, user_id)
        await self.repo.delete(to_object_id(notification_id))


async def get_notification_service(
    repo: NotificationRepository = Depends(get_notification_repository),
) -> NotificationService:
    return NotificationService(repo)
