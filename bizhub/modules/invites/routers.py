# bizhub/modules/invites/routers.py
from fastapi import APIRouter, Depends, Path, Request, status

from bizhub.core.rate_limit import PUBLIC_ENDPOINT_LIMIT, limiter
from bizhub.core.security import CurrentUser
from bizhub.models.api_common import StatusResponse
from bizhub.modules.activity.services import ActivityLogger, get_activity_logger
from bizhub.modules.users.repository import UserRepository, get_user_repository
from bizhub.services.email_service import EmailService, get_email_service
from .models import InviteAPI, InviteCreateAPI, InviteDetailsAPI, InviteListAPI, InviteResultAPI
from .repository import InviteRepository, get_invite_repository
from .services import InviteService, get_invite_service

router = APIRouter()


@router.post("/", response_model=InviteResultAPI, status_code=status.HTTP_201_CREATED, summary="Invite a collaborator")
async def invite_collaborator(
    invite_in: InviteCreateAPI,
    request: Request,
    current_user: CurrentUser,
    service: InviteService = Depends(get_invite_service),
    invite_repo: InviteRepository = Depends(get_invite_repository),
    user_repo: UserRepository = Depends(get_user_repository),
    email_service: EmailService = Depends(get_email_service),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
):
    return await service.invite(invite_in, current_user, invite_repo, user_repo, email_service, activity_logger, request)


@router.get("/", response_model=InviteListAPI, summary="Invitations I have sent")
async def list_invites(
    current_user: CurrentUser,
    service: InviteService = Depends(get_invite_service),
    invite_repo: InviteRepository = Depends(get_invite_repository),
):
    invites = await service.list_mine(current_user, invite_repo)
    return InviteListAPI(invites=[InviteAPI.model_validate(i) for i in invites])


@router.get("/details/{token}", response_model=InviteDetailsAPI, summary="Public invitation lookup")
@limiter.limit(PUBLIC_ENDPOINT_LIMIT)
async def invite_details(
    request: Request,
    token: str = Path(...),
    service: InviteService = Depends(get_invite_service),
    invite_repo: InviteRepository = Depends(get_invite_repository),
    user_repo: UserRepository = Depends(get_user_repository),
):
    return await service.details(token, invite_repo, user_repo)


@router.post("/decline/{token}", response_model=StatusResponse, summary="Decline an invitation")
@limiter.limit(PUBLIC_ENDPOINT_LIMIT)
async def decline_invite(
    request: Request,
    token: str = Path(...),
    service: InviteService = Depends(get_invite_service),
    invite_repo: InviteRepository = Depends(get_invite_repository),
):
    await service.decline(token, invite_repo)
    return StatusResponse(status="ok", message="Invitation declined")


@router.post("/{invite_id}/resend", response_model=InviteResultAPI, summary="Resend an invitation")
async def resend_invite(
    current_user: CurrentUser,
    invite_id: str = Path(...),
    service: InviteService = Depends(get_invite_service),
    invite_repo: InviteRepository = Depends(get_invite_repository),
    email_service: EmailService = Depends(get_email_service),
):
    return await service.resend(invite_id, current_user, invite_repo, email_service)
