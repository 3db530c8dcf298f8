# bizhub/modules/users/routers.py
from typing import List

from fastapi import APIRouter, Depends, File, Path, Request, UploadFile

from bizhub.core.security import AdminUser, CurrentUser
from bizhub.models.api_common import MessageResponse
from bizhub.modules.activity.services import ActivityLogger, get_activity_logger
from .models import PasswordChangeAPI, ProfileUpdateAPI, UserAdminUpdateAPI, UserAPI
from .repository import UserRepository, get_user_repository
from .services import UserService, get_user_service

router = APIRouter()


@router.get("/me", response_model=UserAPI, summary="Current user profile")
async def read_users_me(current_user: CurrentUser):
    return UserAPI.model_validate(current_user)


@router.put("/me", response_model=UserAPI, summary="Update my profile")
async def update_profile(
    profile_in: ProfileUpdateAPI,
    request: Request,
    current_user: CurrentUser,
    service: UserService = Depends(get_user_service),
    repo: UserRepository = Depends(get_user_repository),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
):
    user = await service.update_profile(current_user, profile_in, repo)
    await activity_logger.log(current_user, "update", "profile", "Updated profile", request=request)
    return UserAPI.model_validate(user)


@router.put("/me/password", response_model=MessageResponse, summary="Change my password")
async def change_password(
    change_in: PasswordChangeAPI,
    request: Request,
    current_user: CurrentUser,
    service: UserService = Depends(get_user_service),
    repo: UserRepository = Depends(get_user_repository),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
):
    await service.change_password(current_user, change_in, repo)
    await activity_logger.log(current_user, "update", "profile", "Changed password", request=request)
    return MessageResponse(message="Password updated successfully")


@router.post("/me/avatar", response_model=UserAPI, summary="Upload my avatar")
async def upload_avatar(
    current_user: CurrentUser,
    file: UploadFile = File(...),
    service: UserService = Depends(get_user_service),
    repo: UserRepository = Depends(get_user_repository),
):
    return UserAPI.model_validate(await service.upload_avatar(current_user, file, repo))


@router.get("/", response_model=List[UserAPI], summary="List users (admin)")
async def list_users(
    admin: AdminUser,
    service: UserService = Depends(get_user_service),
    repo: UserRepository = Depends(get_user_repository),
):
    return [UserAPI.model_validate(u) for u in await service.list_users(repo)]


@router.put("/{user_id}", response_model=UserAPI, summary="Change a user's role or status (admin)")
async def admin_update_user(
    update_in: UserAdminUpdateAPI,
    request: Request,
    admin: AdminUser,
    user_id: str = Path(...),
    service: UserService = Depends(get_user_service),
    repo: UserRepository = Depends(get_user_repository),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
):
    user = await service.admin_update(user_id, update_in, repo)
    await activity_logger.log(
        admin, "update", "user", f"Updated user {user.email}", update_in.model_dump(exclude_none=True), request
    )
    return UserAPI.model_validate(user)
