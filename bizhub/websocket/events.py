# bizhub/websocket/events.py

from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi.encoders import jsonable_encoder
from loguru import logger

from bizhub.core.repository import utc_now
from .connection_manager import notification_manager


def build_event(event: str, data: Dict[str, Any]) -> Dict[str, Any]:
    return {"event": event, "data": jsonable_encoder(data, custom_encoder={ObjectId: str}), "timestamp": utc_now().isoformat()}


async def push_event(event: str, data: Dict[str, Any], user_id: Optional[str] = None):
    """Pushes a real-time event to one user, or to every connected client when user_id is None."""
    message = build_event(event, data)
    if user_id is None:
        await notification_manager.broadcast(message)
    else:
        delivered = await notification_manager.send_personal_message(str(user_id), message)
        if not delivered:
            logger.debug(f"Event '{event}' not delivered live; user {user_id} is offline")
