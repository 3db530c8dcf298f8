# tests/modules/dashboard/test_dashboard_api.py
from datetime import datetime, timedelta

import pytest
from fastapi import status
from httpx import AsyncClient

from bizhub.core.repository import utc_now
from bizhub.modules.dashboard.services import chart_window
from bizhub.modules.sales.repository import SaleRepository

pytestmark = pytest.mark.asyncio


async def seed_shop(client, db, owner, headers):
    tea = (await client.post(
        "/api/v1/products/",
        json={"name": "Tea", "category": "Drinks", "price": 20.0, "quantity": 30, "min_threshold": 5},
        headers=headers,
    )).json()
    await client.post(
        "/api/v1/products/",
        json={"name": "Soap", "category": "Personal Care", "price": 3.0, "quantity": 2, "min_threshold": 5},
        headers=headers,
    )
    await client.post("/api/v1/sales/", json={"items": [{"product_id": tea["id"], "quantity": 5}]}, headers=headers)
    await SaleRepository(db).create({
        "items": [],
        "total_amount": 40.0,
        "status": "completed",
        "sold_by": owner.id,
        "owner_id": owner.id,
        "created_at": utc_now() - timedelta(days=40),
    })


async def test_stats_for_owner(client: AsyncClient, db, owner, owner_headers, make_user):
    await make_user("Sam Staff", role="employee", owner_id=owner.id)
    await make_user("Stranger")
    await seed_shop(client, db, owner, owner_headers)

    response = await client.get("/api/v1/dashboard/stats", headers=owner_headers)
    assert response.status_code == status.HTTP_200_OK
    stats = response.json()
    assert stats["sales"] == {"total": 2, "monthly": 1, "daily": 1}
    assert stats["revenue"] == {"total": 140.0, "monthly": 100.0, "daily": 100.0}
    assert stats["products"] == {"total": 2, "active": 2, "low_stock": 1}
    assert stats["users"] == {"total": 2, "active": 2}
    assert stats["communication"] == {"total_messages": 0, "recent_messages": 0}
    # one low-stock alert and one new-sale notification
    assert stats["notifications"]["unread"] == 2


async def test_staff_share_owner_numbers(client: AsyncClient, db, owner, owner_headers, make_user, headers_for):
    staff = await make_user("Sam Staff", role="employee", owner_id=owner.id)
    await seed_shop(client, db, owner, owner_headers)

    stats = (await client.get("/api/v1/dashboard/stats", headers=headers_for(staff))).json()
    assert stats["sales"]["total"] == 2
    assert stats["products"]["total"] == 2
    assert stats["notifications"]["unread"] == 0


async def test_admin_sees_everything(client: AsyncClient, db, owner, owner_headers, admin_headers, make_user, headers_for):
    await seed_shop(client, db, owner, owner_headers)
    other = await make_user("Other Shop")
    await client.post(
        "/api/v1/products/",
        json={"name": "Pens", "category": "Stationery", "price": 1.0, "quantity": 100, "min_threshold": 5},
        headers=headers_for(other),
    )

    stats = (await client.get("/api/v1/dashboard/stats", headers=admin_headers)).json()
    assert stats["products"]["total"] == 3
    assert stats["users"]["total"] == 3


async def test_sales_chart_periods(client: AsyncClient, db, owner, owner_headers):
    await seed_shop(client, db, owner, owner_headers)

    month = (await client.get("/api/v1/dashboard/charts/sales", headers=owner_headers)).json()
    assert len(month) == 1
    assert month[0]["count"] == 1
    assert month[0]["revenue"] == 100.0

    year = (await client.get("/api/v1/dashboard/charts/sales", params={"period": "year"}, headers=owner_headers)).json()
    assert sum(b["count"] for b in year) == 2
    assert all(len(b["label"]) == 7 for b in year)

    bad = await client.get("/api/v1/dashboard/charts/sales", params={"period": "decade"}, headers=owner_headers)
    assert bad.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


async def test_products_chart(client: AsyncClient, db, owner, owner_headers):
    await seed_shop(client, db, owner, owner_headers)
    rows = (await client.get("/api/v1/dashboard/charts/products", headers=owner_headers)).json()
    by_category = {r["category"]: r for r in rows}
    assert by_category["Drinks"]["total_quantity"] == 25
    assert by_category["Drinks"]["total_value"] == 500.0
    assert by_category["Personal Care"]["count"] == 1


async def test_chart_window_labels():
    now = datetime(2026, 3, 15, 13, 45)
    start, label = chart_window("day", now)
    assert start == datetime(2026, 3, 15)
    assert label(now) == "13:00"

    start, label = chart_window("week", now)
    assert start == now - timedelta(days=7)
    assert label(now) == "2026-03-15"

    start, label = chart_window("year", now)
    assert start == datetime(2025, 3, 1)
    assert label(now) == "2026-03"

    start, _ = chart_window("month", now)
    assert start == now - timedelta(days=30)
