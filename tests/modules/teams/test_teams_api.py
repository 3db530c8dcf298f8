# tests/modules/teams/test_teams_api.py
import pytest
from fastapi import status
from httpx import AsyncClient

from bizhub.core.repository import utc_now
from bizhub.modules.teams.repository import TeamRepository
from bizhub.modules.users.repository import UserRepository

pytestmark = pytest.mark.asyncio


async def test_create_team_adds_owner_as_manager(client: AsyncClient, owner, owner_headers):
    response = await client.post("/api/v1/teams/", json={"team_name": "  Corner Store  "}, headers=owner_headers)
    assert response.status_code == status.HTTP_201_CREATED
    team = response.json()["team"]
    assert team["team_name"] == "Corner Store"
    assert [(m["email"], m["role"]) for m in team["members"]] == [(owner.email, "manager")]


async def test_only_one_team_per_owner(client: AsyncClient, owner_headers):
    await client.post("/api/v1/teams/", json={"team_name": "First"}, headers=owner_headers)
    response = await client.post("/api/v1/teams/", json={"team_name": "Second"}, headers=owner_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "You already have a team. You can only own one team."


async def test_my_team_without_team(client: AsyncClient, owner_headers):
    response = await client.get("/api/v1/teams/my", headers=owner_headers)
    assert response.json()["has_team"] is False


async def test_add_member_links_existing_users(client: AsyncClient, owner_headers, make_user):
    await client.post("/api/v1/teams/", json={"team_name": "Shop"}, headers=owner_headers)
    await make_user("Sam Staff", "sam@example.com")

    known = await client.post(
        "/api/v1/teams/members", json={"name": "Sam", "email": "SAM@example.com"}, headers=owner_headers
    )
    assert known.status_code == status.HTTP_200_OK
    assert known.json()["member"]["status"] == "active"

    unknown = await client.post(
        "/api/v1/teams/members", json={"name": "Pat", "email": "pat@example.com"}, headers=owner_headers
    )
    assert unknown.json()["member"]["status"] == "pending"
    assert unknown.json()["member"]["user_id"] is None

    duplicate = await client.post(
        "/api/v1/teams/members", json={"name": "Pat", "email": "pat@example.com"}, headers=owner_headers
    )
    assert duplicate.status_code == status.HTTP_400_BAD_REQUEST


async def test_add_member_requires_team(client: AsyncClient, owner_headers):
    response = await client.post(
        "/api/v1/teams/members", json={"name": "Pat", "email": "pat@example.com"}, headers=owner_headers
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND


async def test_remove_member(client: AsyncClient, owner, owner_headers, db):
    await client.post("/api/v1/teams/", json={"team_name": "Shop"}, headers=owner_headers)
    added = (await client.post(
        "/api/v1/teams/members", json={"name": "Pat", "email": "pat@example.com"}, headers=owner_headers
    )).json()["member"]

    response = await client.delete(f"/api/v1/teams/members/{added['id']}", headers=owner_headers)
    assert response.status_code == status.HTTP_200_OK
    team = await TeamRepository(db).get_by_owner(owner.id)
    assert not team.has_member_email("pat@example.com")

    missing = await client.delete(f"/api/v1/teams/members/{added['id']}", headers=owner_headers)
    assert missing.status_code == status.HTTP_404_NOT_FOUND


async def test_member_sees_team_and_stats(client: AsyncClient, owner, owner_headers, make_user, headers_for, db):
    await client.post("/api/v1/teams/", json={"team_name": "Shop"}, headers=owner_headers)
    staff = await make_user("Sam Staff", "sam@example.com", owner_id=owner.id)
    await client.post("/api/v1/teams/members", json={"name": "Sam", "email": staff.email}, headers=owner_headers)
    await db["products"].insert_one({"user_id": staff.id, "name": "Tea", "category": "Drinks", "price": 5.0, "quantity": 3})

    mine = (await client.get("/api/v1/teams/my", headers=headers_for(staff))).json()
    assert mine["has_team"] is True
    assert mine["is_owner"] is False
    sam = next(m for m in mine["team"]["members"] if m["email"] == staff.email)
    assert sam["products_count"] == 1

    stats = (await client.get("/api/v1/teams/stats", headers=headers_for(staff))).json()["stats"]
    assert stats["total_members"] == 2
    assert stats["active_members"] == 2
    assert stats["total_products"] == 1
    assert stats["my_products"] == 1
    assert stats["is_owner"] is False


async def test_performance_leaderboard(client: AsyncClient, owner, owner_headers, make_user, db):
    staff = await make_user("Sam Staff", "sam@example.com", owner_id=owner.id)
    now = utc_now()
    await db["sales"].insert_many([
        {"owner_id": owner.id, "sold_by": staff.id, "status": "completed", "total_amount": 300.0, "created_at": now},
        {"owner_id": owner.id, "sold_by": owner.id, "status": "completed", "total_amount": 100.0, "created_at": now},
        {"owner_id": owner.id, "sold_by": owner.id, "status": "cancelled", "total_amount": 999.0, "created_at": now},
    ])
    await db["messages"].insert_many([
        {"owner_id": owner.id, "sent_by": owner.id, "channel": "email", "created_at": now} for _ in range(3)
    ])

    response = await client.get("/api/v1/teams/performance", headers=owner_headers)
    data = response.json()
    assert [row["name"] for row in data["leaderboard"]] == ["Sam Staff", "Olivia Owner"]
    olivia = next(r for r in data["individual_performance"] if r["name"] == "Olivia Owner")
    assert olivia["sales_count"] == 1
    assert olivia["messages_sent"] == 3
    assert olivia["conversion_rate"] == 33
    assert data["totals"] == {"total_sales": 400.0, "total_messages": 3, "avg_conversion": 17}


async def test_exclude_from_leaderboard(client: AsyncClient, owner, owner_headers, make_user, headers_for, db):
    staff = await make_user("Sam Staff", "sam@example.com", owner_id=owner.id)
    outsider = await make_user("Other Owner")

    denied = await client.delete(f"/api/v1/teams/performance/leaderboard/{owner.id}", headers=headers_for(staff))
    assert denied.status_code == status.HTTP_403_FORBIDDEN
    foreign = await client.delete(f"/api/v1/teams/performance/leaderboard/{outsider.id}", headers=owner_headers)
    assert foreign.status_code == status.HTTP_403_FORBIDDEN

    response = await client.delete(f"/api/v1/teams/performance/leaderboard/{staff.id}", headers=owner_headers)
    assert response.status_code == status.HTTP_200_OK
    assert (await UserRepository(db).get_by_id(staff.id)).exclude_from_leaderboard is True

    rows = (await client.get("/api/v1/teams/performance", headers=owner_headers)).json()["individual_performance"]
    assert [r["name"] for r in rows] == ["Olivia Owner"]
