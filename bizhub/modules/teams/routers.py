# bizhub/modules/teams/routers.py
from fastapi import APIRouter, Depends, Path, Request, status

from bizhub.core.security import CurrentUser
from bizhub.models.api_common import StatusResponse
from bizhub.modules.activity.services import ActivityLogger, get_activity_logger
from bizhub.modules.messaging.repository import MessageRepository, get_message_repository
from bizhub.modules.products.repository import ProductRepository, get_product_repository
from bizhub.modules.sales.repository import SaleRepository, get_sale_repository
from bizhub.modules.users.repository import UserRepository, get_user_repository
from .models import (
    MemberAddedAPI, MemberCreateAPI, MyTeamAPI, TeamAPI, TeamCreateAPI, TeamCreatedAPI, TeamMemberAPI,
    TeamPerformanceAPI, TeamStatsResponseAPI,
)
from .repository import TeamRepository, get_team_repository
from .services import TeamService, get_team_service

router = APIRouter()


@router.post("/", response_model=TeamCreatedAPI, status_code=status.HTTP_201_CREATED, summary="Create my team")
async def create_team(
    team_in: TeamCreateAPI,
    request: Request,
    current_user: CurrentUser,
    service: TeamService = Depends(get_team_service),
    team_repo: TeamRepository = Depends(get_team_repository),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
):
    team = await service.create_team(team_in, current_user, team_repo)
    await activity_logger.log(current_user, "create", "team", f"Created team '{team.team_name}'", request=request)
    return TeamCreatedAPI(message="Team created successfully", team=TeamAPI.model_validate(team))


@router.get("/my", response_model=MyTeamAPI, summary="Team I own or belong to")
async def my_team(
    current_user: CurrentUser,
    service: TeamService = Depends(get_team_service),
    team_repo: TeamRepository = Depends(get_team_repository),
    sale_repo: SaleRepository = Depends(get_sale_repository),
    product_repo: ProductRepository = Depends(get_product_repository),
):
    return await service.my_team(current_user, team_repo, sale_repo, product_repo)


@router.post("/members", response_model=MemberAddedAPI, summary="Add a member to my team")
async def add_member(
    member_in: MemberCreateAPI,
    current_user: CurrentUser,
    service: TeamService = Depends(get_team_service),
    team_repo: TeamRepository = Depends(get_team_repository),
    user_repo: UserRepository = Depends(get_user_repository),
):
    member = await service.add_member(member_in, current_user, team_repo, user_repo)
    return MemberAddedAPI(message="Team member added successfully", member=TeamMemberAPI.model_validate(member))


@router.delete("/members/{member_id}", response_model=StatusResponse, summary="Remove a member from my team")
async def remove_member(
    current_user: CurrentUser,
    member_id: str = Path(...),
    service: TeamService = Depends(get_team_service),
    team_repo: TeamRepository = Depends(get_team_repository),
):
    await service.remove_member(member_id, current_user, team_repo)
    return StatusResponse(status="ok", message="Team member removed successfully")


@router.get("/stats", response_model=TeamStatsResponseAPI, summary="Team statistics")
async def team_stats(
    current_user: CurrentUser,
    service: TeamService = Depends(get_team_service),
    team_repo: TeamRepository = Depends(get_team_repository),
    sale_repo: SaleRepository = Depends(get_sale_repository),
    product_repo: ProductRepository = Depends(get_product_repository),
):
    return await service.stats(current_user, team_repo, sale_repo, product_repo)


@router.get("/performance", response_model=TeamPerformanceAPI, summary="30 day team leaderboard")
async def team_performance(
    current_user: CurrentUser,
    service: TeamService = Depends(get_team_service),
    user_repo: UserRepository = Depends(get_user_repository),
    sale_repo: SaleRepository = Depends(get_sale_repository),
    message_repo: MessageRepository = Depends(get_message_repository),
):
    return await service.performance(current_user, user_repo, sale_repo, message_repo)


@router.delete("/performance/leaderboard/{user_id}", response_model=StatusResponse, summary="Hide a user from the leaderboard")
async def exclude_from_leaderboard(
    current_user: CurrentUser,
    user_id: str = Path(...),
    service: TeamService = Depends(get_team_service),
    user_repo: UserRepository = Depends(get_user_repository),
):
    await service.exclude_from_leaderboard(user_id, current_user, user_repo)
    return StatusResponse(status="ok", message="User removed from leaderboard")
