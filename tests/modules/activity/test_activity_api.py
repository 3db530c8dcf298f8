# tests/modules/activity/test_activity_api.py
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import status
from httpx import AsyncClient

from bizhub.modules.activity.repository import ActivityRepository
from bizhub.modules.activity.services import ActivityLogger

pytestmark = pytest.mark.asyncio


async def test_log_activity_records_client_details(client: AsyncClient, owner_headers):
    response = await client.post(
        "/api/v1/activity/",
        json={"action": "view", "resource": "dashboard", "description": "Opened dashboard"},
        headers={**owner_headers, "User-Agent": "pytest-agent", "X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
    )
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["ip_address"] == "203.0.113.7"
    assert data["user_agent"] == "pytest-agent"


async def test_invalid_action_rejected(client: AsyncClient, owner_headers):
    response = await client.post(
        "/api/v1/activity/",
        json={"action": "dance", "resource": "dashboard", "description": "Nope"},
        headers=owner_headers,
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


async def test_admin_activity_is_broadcast(client: AsyncClient, admin_headers):
    with patch("bizhub.modules.activity.routers.push_event", new_callable=AsyncMock) as pushed:
        await client.post(
            "/api/v1/activity/",
            json={"action": "export", "resource": "report", "description": "Exported sales"},
            headers=admin_headers,
        )
    pushed.assert_awaited_once()
    assert pushed.await_args.args[0] == "new-activity"


async def test_list_is_scoped_and_filterable(client: AsyncClient, db, owner, owner_headers, admin, admin_headers):
    activity_logger = ActivityLogger(ActivityRepository(db))
    await activity_logger.log(owner, "login", "user", "User logged in")
    await activity_logger.log(owner, "create", "product", "Created product: Rice")
    await activity_logger.log(admin, "login", "user", "User logged in")

    mine = (await client.get("/api/v1/activity/", headers=owner_headers)).json()
    assert mine["pagination"]["total"] == 2
    assert mine["stats"]["login"] == 1
    assert mine["stats"]["create"] == 1

    logins = (await client.get("/api/v1/activity/", params={"action": "login"}, headers=admin_headers)).json()
    assert logins["pagination"]["total"] == 2

    by_user = (await client.get("/api/v1/activity/", params={"user": str(owner.id)}, headers=admin_headers)).json()
    assert {a["user_name"] for a in by_user["activities"]} == {owner.name}

    forbidden = await client.get("/api/v1/activity/", params={"user": str(admin.id)}, headers=owner_headers)
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN


async def test_stats_and_admin_delete(client: AsyncClient, db, owner, owner_headers, admin_headers):
    activity = await ActivityLogger(ActivityRepository(db)).log(owner, "send", "message", "Sent email")

    stats = (await client.get("/api/v1/activity/stats", headers=owner_headers)).json()
    assert stats["by_action"] == {"send": 1}
    assert stats["by_resource"] == {"message": 1}

    denied = await client.delete(f"/api/v1/activity/{activity.id}", headers=owner_headers)
    assert denied.status_code == status.HTTP_403_FORBIDDEN
    deleted = await client.delete(f"/api/v1/activity/{activity.id}", headers=admin_headers)
    assert deleted.status_code == status.HTTP_200_OK
    missing = await client.delete(f"/api/v1/activity/{activity.id}", headers=admin_headers)
    assert missing.status_code == status.HTTP_404_NOT_FOUND


async def test_logger_never_raises(owner):
    repo = AsyncMock()
    repo.create.side_effect = RuntimeError("database down")
    assert await ActivityLogger(repo).log(owner, "login", "user", "User logged in") is None
