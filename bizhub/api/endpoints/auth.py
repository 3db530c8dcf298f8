# bizhub/api/endpoints/auth.py

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from loguru import logger

from bizhub.core.logging_config import trace_id_var
from bizhub.core.rate_limit import AUTH_ENDPOINT_LIMIT, limiter
from bizhub.models.api_common import MessageResponse
from bizhub.modules.activity.services import ActivityLogger, get_activity_logger
from bizhub.modules.invites.repository import InviteRepository, get_invite_repository
from bizhub.modules.invites.services import InviteService, get_invite_service
from bizhub.modules.notifications.services import NotificationService, get_notification_service
from bizhub.modules.teams.repository import TeamRepository, get_team_repository
from bizhub.modules.teams.services import TeamService, get_team_service
from bizhub.modules.users.models import ForgotPasswordAPI, LoginAPI, RegisterAPI, ResetPasswordAPI, TokenAPI
from bizhub.modules.users.repository import UserRepository, get_user_repository
from bizhub.modules.users.services import UserService, get_user_service
from bizhub.services.email_service import EmailService, get_email_service

router = APIRouter()


@router.post("/register", response_model=TokenAPI, status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_ENDPOINT_LIMIT)
async def register(
    request: Request,
    user_in: RegisterAPI,
    user_service: Annotated[UserService, Depends(get_user_service)],
    user_repo: Annotated[UserRepository, Depends(get_user_repository)],
    invite_repo: Annotated[InviteRepository, Depends(get_invite_repository)],
    team_repo: Annotated[TeamRepository, Depends(get_team_repository)],
    invite_service: Annotated[InviteService, Depends(get_invite_service)],
    team_service: Annotated[TeamService, Depends(get_team_service)],
    notifier: Annotated[NotificationService, Depends(get_notification_service)],
):
    """Creates an account, optionally accepting a collaborator invitation, and returns a token."""
    logger.bind(trace_id=trace_id_var.get(), api_endpoint="/auth/register").info("Registration attempt received.")
    return await user_service.register(
        user_in, user_repo, invite_repo, team_repo, invite_service, team_service, notifier
    )


@router.post("/login", response_model=TokenAPI)
@limiter.limit(AUTH_ENDPOINT_LIMIT)
async def login(
    request: Request,
    credentials: LoginAPI,
    user_service: Annotated[UserService, Depends(get_user_service)],
    user_repo: Annotated[UserRepository, Depends(get_user_repository)],
    activity_logger: Annotated[ActivityLogger, Depends(get_activity_logger)],
):
    return await user_service.login(str(credentials.email), credentials.password, user_repo, activity_logger, request)


@router.post("/token", response_model=TokenAPI)
@limiter.limit(AUTH_ENDPOINT_LIMIT)
async def login_for_access_token(
    request: Request,
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    user_service: Annotated[UserService, Depends(get_user_service)],
    user_repo: Annotated[UserRepository, Depends(get_user_repository)],
    activity_logger: Annotated[ActivityLogger, Depends(get_activity_logger)],
):
    """OAuth2 password flow; the username field carries the email."""
    return await user_service.login(form_data.username, form_data.password, user_repo, activity_logger, request)


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit(AUTH_ENDPOINT_LIMIT)
async def forgot_password(
    request: Request,
    payload: ForgotPasswordAPI,
    user_service: Annotated[UserService, Depends(get_user_service)],
    user_repo: Annotated[UserRepository, Depends(get_user_repository)],
    email_service: Annotated[EmailService, Depends(get_email_service)],
):
    message = await user_service.forgot_password(str(payload.email), user_repo, email_service)
    return MessageResponse(message=message)


@router.post("/reset-password", response_model=MessageResponse)
@limiter.limit(AUTH_ENDPOINT_LIMIT)
async def reset_password(
    request: Request,
    payload: ResetPasswordAPI,
    user_service: Annotated[UserService, Depends(get_user_service)],
    user_repo: Annotated[UserRepository, Depends(get_user_repository)],
    email_service: Annotated[EmailService, Depends(get_email_service)],
):
    await user_service.reset_password(payload, user_repo, email_service)
    return MessageResponse(message="Password has been reset successfully. You can now log in.")
