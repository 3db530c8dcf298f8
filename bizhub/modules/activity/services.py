# bizhub/modules/activity/services.py
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import Depends, HTTPException, Request, status
from loguru import logger

from bizhub.core.repository import utc_now
from bizhub.modules.users.models import UserInDB
from .models import (
    ACTIVITY_ACTIONS, ACTIVITY_RESOURCES, ActivityAPI, ActivityInDB, ActivityListAPI,
    ActivityStatsAPI, ActivitySummaryAPI, PaginationAPI,
)
from .repository import ActivityRepository, get_activity_repository


def _client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


class ActivityLogger:
    """Audit trail writer. Failures are logged, never raised to the caller."""

    def __init__(self, repo: ActivityRepository):
        self.repo = repo

    async def log(
        self,
        user: UserInDB,
        action: ACTIVITY_ACTIONS,
        resource: ACTIVITY_RESOURCES,
        description: str,
        details: Optional[Dict[str, Any]] = None,
        request: Optional[Request] = None,
    ) -> Optional[ActivityInDB]:
        try:
            return await self.repo.create({
                "user_id": user.id,
                "user_name": user.name,
                "action": action,
                "resource": resource,
                "description": description,
                "details": details or {},
                "ip_address": _client_ip(request),
                "user_agent": request.headers.get("user-agent") if request else None,
                "timestamp": utc_now(),
            })
        except Exception:
            logger.bind(user_id=str(user.id), action=action, resource=resource).exception("Error logging activity")
            return None


class ActivityService:
    async def _summary(self, repo: ActivityRepository, scope: Dict[str, Any]) -> ActivitySummaryAPI:
        now = utc_now()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        by_action = await repo.count_by("action", scope)
        return ActivitySummaryAPI(
            total=await repo.count(scope),
            today=await repo.count({**scope, "timestamp": {"$gte": today}}),
            this_week=await repo.count({**scope, "timestamp": {"$gte": now - timedelta(days=7)}}),
            login=by_action.get("login", 0),
            create=by_action.get("create", 0),
            update=by_action.get("update", 0),
            view=by_action.get("view", 0),
        )

    @staticmethod
    def _scope(current_user: UserInDB, user_id: Optional[str]) -> Dict[str, Any]:
        if user_id and not current_user.is_admin:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins can view other users' activity")
        if user_id:
            if not ObjectId.is_valid(user_id):
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid user id")
            return {"user_id": ObjectId(user_id)}
        if current_user.is_admin:
            return {}
        return {"user_id": current_user.id}

    async def list_activities(
        self,
        current_user: UserInDB,
        repo: ActivityRepository,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
        resource: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: int = 50,
    ) -> ActivityListAPI:
        scope = self._scope(current_user, user_id)
        query = dict(scope)
        if action:
            query["action"] = action
        if resource:
            query["resource"] = resource
        if start_date or end_date:
            window: Dict[str, Any] = {}
            if start_date:
                window["$gte"] = start_date.replace(tzinfo=None)
            if end_date:
                window["$lte"] = end_date.replace(tzinfo=None)
            query["timestamp"] = window

        activities = await repo.list_by(query, limit=limit, sort=[("timestamp", -1)])
        return ActivityListAPI(
            activities=[ActivityAPI.model_validate(a) for a in activities],
            stats=await self._summary(repo, scope),
            pagination=PaginationAPI(total=await repo.count(query), limit=limit),
        )

    async def stats(self, current_user: UserInDB, repo: ActivityRepository) -> ActivityStatsAPI:
        scope = self._scope(current_user, None)
        summary = await self._summary(repo, scope)
        return ActivityStatsAPI(
            total=summary.total,
            today=summary.today,
            this_week=summary.this_week,
            by_action=await repo.count_by("action", scope),
            by_resource=await repo.count_by("resource", scope),
        )

    async def delete(self, activity_id: str, repo: ActivityRepository) -> None:
        if not await repo.delete(activity_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Activity not found")
        logger.info(f"Activity {activity_id} deleted")


async def get_activity_logger(repo: ActivityRepository = Depends(get_activity_repository)) -> ActivityLogger:
    return ActivityLogger(repo)


async def get_activity_service() -> ActivityService:
    return ActivityService()
