# bizhub/modules/activity/routers.py
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request, status

from bizhub.core.security import AdminUser, CurrentUser
from bizhub.models.api_common import MessageResponse
from bizhub.websocket.events import push_event
from .models import ActivityAPI, ActivityCreateAPI, ActivityListAPI, ActivityStatsAPI
from .repository import ActivityRepository, get_activity_repository
from .services import ActivityLogger, ActivityService, get_activity_logger, get_activity_service

router = APIRouter()


@router.get("/", response_model=ActivityListAPI, summary="List activity log entries")
async def list_activities(
    current_user: CurrentUser,
    user: Optional[str] = Query(None, description="Filter by user id (admin only)"),
    action: Optional[str] = Query(None),
    resource: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    service: ActivityService = Depends(get_activity_service),
    repo: ActivityRepository = Depends(get_activity_repository),
):
    return await service.list_activities(
        current_user, repo, user_id=user, action=action, resource=resource,
        start_date=start_date, end_date=end_date, limit=limit,
    )


@router.post("/", response_model=ActivityAPI, status_code=status.HTTP_201_CREATED, summary="Log an activity")
async def log_activity(
    payload: ActivityCreateAPI,
    request: Request,
    current_user: CurrentUser,
    activity_logger: ActivityLogger = Depends(get_activity_logger),
):
    activity = await activity_logger.log(
        current_user, payload.action, payload.resource, payload.description, payload.details, request
    )
    if activity is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to log activity")
    activity_api = ActivityAPI.model_validate(activity)
    if current_user.is_admin:
        await push_event("new-activity", activity_api.model_dump())
    return activity_api


@router.get("/stats", response_model=ActivityStatsAPI, summary="Activity statistics")
async def activity_stats(
    current_user: CurrentUser,
    service: ActivityService = Depends(get_activity_service),
    repo: ActivityRepository = Depends(get_activity_repository),
):
    return await service.stats(current_user, repo)


@router.delete("/{activity_id}", response_model=MessageResponse, summary="Delete an activity (admin)")
async def delete_activity(
    admin: AdminUser,
    activity_id: str = Path(...),
    service: ActivityService = Depends(get_activity_service),
    repo: ActivityRepository = Depends(get_activity_repository),
):
    await service.delete(activity_id, repo)
    return MessageResponse(message="Activity deleted successfully")
