# bizhub/modules/teams/services.py
from datetime import timedelta
from typing import List

from fastapi import HTTPException, status
from loguru import logger

from bizhub.core.repository import to_object_id, utc_now
from bizhub.modules.forecast.algorithms import round_half_up
from bizhub.modules.messaging.repository import MessageRepository
from bizhub.modules.products.repository import ProductRepository
from bizhub.modules.sales.repository import SaleRepository
from bizhub.modules.users.models import UserInDB
from bizhub.modules.users.repository import UserRepository
from .models import (
    MemberCreateAPI, MyTeamAPI, PerformanceRowAPI, PerformanceTotalsAPI, TeamAPI, TeamCreateAPI, TeamInDB,
    TeamMember, TeamMemberAPI, TeamPerformanceAPI, TeamStatsAPI, TeamStatsResponseAPI,
)
from .repository import TeamRepository

PERFORMANCE_WINDOW_DAYS = 30


class TeamService:

    async def create_team(self, team_in: TeamCreateAPI, user: UserInDB, team_repo: TeamRepository) -> TeamInDB:
        if await team_repo.get_by_owner(user.id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You already have a team. You can only own one team.",
            )
        owner_member = TeamMember(user_id=user.id, name=user.name, email=user.email, role="manager", status="active")
        try:
            team = await team_repo.create({
                "team_name": team_in.team_name,
                "owner_id": user.id,
                "owner_name": user.name,
                "owner_email": user.email,
                "members": [owner_member.model_dump()],
            })
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You already have a team. You can only own one team.",
            ) from e
        logger.bind(user_id=str(user.id)).success(f"Team '{team.team_name}' created")
        return team

    async def ensure_member(self, owner: UserInDB, member_user: UserInDB, team_repo: TeamRepository) -> TeamInDB:
        """Adds a registered user to the owner's team, creating "{owner}'s Team" when needed."""
        team = await team_repo.get_by_owner(owner.id)
        if team is None:
            team = await team_repo.create({
                "team_name": f"{owner.name}'s Team",
                "owner_id": owner.id,
                "owner_name": owner.name,
                "owner_email": owner.email,
                "members": [TeamMember(
                    user_id=owner.id, name=owner.name, email=owner.email, role="manager"
                ).model_dump()],
            })
        if team.has_member_email(member_user.email):
            return team
        member = TeamMember(user_id=member_user.id, name=member_user.name, email=member_user.email, status="active")
        return await team_repo.add_member(team.id, member)

    async def _with_live_counts(
        self, team: TeamInDB, sale_repo: SaleRepository, product_repo: ProductRepository
    ) -> List[TeamMemberAPI]:
        members = []
        for member in team.members:
            data = TeamMemberAPI.model_validate(member)
            if member.user_id:
                data.sales_count = await sale_repo.count({"sold_by": member.user_id})
                data.products_count = await product_repo.count({"user_id": member.user_id})
            members.append(data)
        return members

    async def my_team(
        self,
        user: UserInDB,
        team_repo: TeamRepository,
        sale_repo: SaleRepository,
        product_repo: ProductRepository,
    ) -> MyTeamAPI:
        team = await team_repo.get_for_user(user.id)
        if team is None:
            return MyTeamAPI(has_team=False)
        team_api = TeamAPI.model_validate(team)
        team_api.members = await self._with_live_counts(team, sale_repo, product_repo)
        return MyTeamAPI(has_team=True, team=team_api, is_owner=team.owner_id == user.id)

    async def add_member(
        self,
        member_in: MemberCreateAPI,
        user: UserInDB,
        team_repo: TeamRepository,
        user_repo: UserRepository,
    ) -> TeamMember:
        team = await team_repo.get_by_owner(user.id)
        if team is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="You need to create a team first")
        email = str(member_in.email).lower()
        if team.has_member_email(email):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Member with this email already exists in the team",
            )
        existing = await user_repo.get_by_email(email)
        member = TeamMember(
            user_id=existing.id if existing else None,
            name=member_in.name.strip(),
            email=email,
            status="active" if existing else "pending",
        )
        await team_repo.add_member(team.id, member)
        logger.bind(team_id=str(team.id)).info(f"Member {email} added ({member.status})")
        return member

    async def remove_member(self, member_id: str, user: UserInDB, team_repo: TeamRepository) -> None:
        team = await team_repo.get_by_owner(user.id)
        if team is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")
        member_oid = to_object_id(member_id)
        if member_oid is None or not any(m.id == member_oid for m in team.members):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team member not found")
        await team_repo.remove_member(team.id, member_oid)

    async def stats(
        self,
        user: UserInDB,
        team_repo: TeamRepository,
        sale_repo: SaleRepository,
        product_repo: ProductRepository,
    ) -> TeamStatsResponseAPI:
        team = await team_repo.get_for_user(user.id)
        if team is None:
            return TeamStatsResponseAPI(has_team=False)

        total_sales = total_products = 0
        for member in team.members:
            if member.user_id:
                total_sales += await sale_repo.count({"sold_by": member.user_id})
                total_products += await product_repo.count({"user_id": member.user_id})
        is_member = any(m.user_id == user.id for m in team.members)
        return TeamStatsResponseAPI(
            has_team=True,
            stats=TeamStatsAPI(
                team_name=team.team_name,
                total_members=len(team.members),
                active_members=sum(1 for m in team.members if m.status == "active"),
                total_sales=total_sales,
                total_products=total_products,
                my_sales=await sale_repo.count({"sold_by": user.id}) if is_member else 0,
                my_products=await product_repo.count({"user_id": user.id}) if is_member else 0,
                is_owner=team.owner_id == user.id,
            ),
        )

    async def performance(
        self,
        user: UserInDB,
        user_repo: UserRepository,
        sale_repo: SaleRepository,
        message_repo: MessageRepository,
    ) -> TeamPerformanceAPI:
        owner_id = user.scope_owner_id
        since = utc_now() - timedelta(days=PERFORMANCE_WINDOW_DAYS)

        users = await user_repo.list_team_users(owner_id, include_excluded=False)
        sales = {
            row["_id"]: row
            for row in await sale_repo.totals_by_seller({"owner_id": owner_id, "created_at": {"$gte": since}})
        }
        messages = await message_repo.counts_by_sender(owner_id, since)

        rows = []
        for member in users:
            seller = sales.get(member.id, {})
            sales_count = seller.get("sales_count", 0)
            messages_sent = messages.get(member.id, 0)
            rows.append(PerformanceRowAPI(
                id=member.id,
                name=member.name,
                sales=round(float(seller.get("total_sales", 0)), 2),
                sales_count=sales_count,
                messages_sent=messages_sent,
                conversion_rate=round_half_up(sales_count / messages_sent * 100) if messages_sent else 0,
            ))

        leaderboard = sorted(rows, key=lambda r: r.sales, reverse=True)
        totals = PerformanceTotalsAPI(
            total_sales=round(sum(r.sales for r in rows), 2),
            total_messages=sum(r.messages_sent for r in rows),
            avg_conversion=round_half_up(sum(r.conversion_rate for r in rows) / len(rows)) if rows else 0,
        )
        return TeamPerformanceAPI(
            leaderboard=leaderboard,
            individual_performance=rows,
            totals=totals,
            current_user_id=user.id,
            current_user_role=user.role,
        )

    async def exclude_from_leaderboard(self, target_user_id: str, user: UserInDB, user_repo: UserRepository) -> None:
        is_owner = user.owner_id is None
        if not user.is_admin and not is_owner:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
        target = await user_repo.get_by_id(target_user_id)
        if target is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        if not user.is_admin and target.scope_owner_id != user.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
        await user_repo.update(target.id, {"exclude_from_leaderboard": True})
        logger.bind(user_id=str(user.id)).info(f"User {target.email} removed from leaderboard")


async def get_team_service() -> TeamService:
    return TeamService()
