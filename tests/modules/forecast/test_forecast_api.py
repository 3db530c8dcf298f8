# tests/modules/forecast/test_forecast_api.py
import pytest
from fastapi import status
from httpx import AsyncClient

from bizhub.core.repository import utc_now
from bizhub.modules.forecast.models import OutreachRequestAPI
from bizhub.modules.forecast.services import ForecastService

pytestmark = pytest.mark.asyncio


async def create_product(client, headers, **overrides):
    payload = {"name": "Green Tea", "category": "Drinks", "price": 20.0, "quantity": 30, "min_threshold": 5}
    payload.update(overrides)
    return (await client.post("/api/v1/products/", json=payload, headers=headers)).json()


async def test_sales_forecast_for_selling_product(client: AsyncClient, owner_headers):
    tea = await create_product(client, owner_headers)
    await client.post("/api/v1/sales/", json={"items": [{"product_id": tea["id"], "quantity": 10}]}, headers=owner_headers)

    response = await client.get("/api/v1/ai/forecast/sales", headers=owner_headers)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    forecast = data["forecasts"][0]
    assert forecast["product_name"] == "Green Tea"
    assert forecast["current_stock"] == 20
    assert forecast["historical_data"] == [{"month": f"{utc_now():%Y-%m}", "quantity": 10}]
    assert forecast["sales_forecast"]["forecast"] == 10
    assert forecast["sales_forecast"]["confidence"] == "high"
    assert forecast["sales_forecast"]["moving_average"] == 10
    assert forecast["inventory_forecast"]["recommended_stock"] == 8
    assert forecast["inventory_forecast"]["urgency"] == "low"
    assert [s["type"] for s in data["suggestions"]] == ["promotion"]


async def test_low_stock_product_gets_restock_suggestion(client: AsyncClient, owner_headers):
    jar = await create_product(client, owner_headers, name="Pickle Jar", quantity=3, min_threshold=5)
    await client.post("/api/v1/sales/", json={"items": [{"product_id": jar["id"], "quantity": 1}]}, headers=owner_headers)

    data = (await client.get("/api/v1/ai/forecast/sales", headers=owner_headers)).json()
    assert data["forecasts"][0]["inventory_forecast"]["urgency"] == "medium"
    assert [s["type"] for s in data["suggestions"]] == ["restock", "promotion", "markdown"]
    assert data["suggestions"][0]["message"] == "Reorder 4 units of Pickle Jar"
    assert data["suggestions"][0]["product_id"] == jar["id"]


async def test_product_without_sales_has_no_data_forecast(client: AsyncClient, owner_headers):
    await create_product(client, owner_headers, name="Dusty Jar", quantity=12)

    data = (await client.get("/api/v1/ai/forecast/sales", headers=owner_headers)).json()
    forecast = data["forecasts"][0]
    assert forecast["historical_data"] == []
    assert forecast["sales_forecast"]["method"] == "no_data"
    assert forecast["inventory_forecast"]["days_until_stockout"] is None

    suggestions = (await client.get("/api/v1/ai/forecast/suggestions", headers=owner_headers)).json()
    assert suggestions == [{
        "type": "markdown",
        "priority": "low",
        "message": "Consider discounts for 1 slow-moving products",
        "product_id": None,
        "action": "review",
    }]


async def test_forecast_ignores_other_owners(client: AsyncClient, owner_headers, make_user, headers_for):
    other = await make_user("Other Shop")
    await create_product(client, headers_for(other))
    data = (await client.get("/api/v1/ai/forecast/sales", headers=owner_headers)).json()
    assert data == {"forecasts": [], "suggestions": []}


async def test_insights_with_sales_and_no_messages(client: AsyncClient, owner_headers):
    tea = await create_product(client, owner_headers)
    await client.post("/api/v1/sales/", json={"items": [{"product_id": tea["id"], "quantity": 10}]}, headers=owner_headers)

    response = await client.get("/api/v1/ai/insights", headers=owner_headers)
    data = response.json()
    assert data["summary"]["total_sales"] == 200.0
    assert data["summary"]["total_messages"] == 0
    assert data["summary"]["top_channel"] == "None"
    assert data["summary"]["estimated_revenue"] == 220
    assert data["summary"]["productivity_score"] == 0
    assert data["predictions"]["best_performer"] == "Olivia Owner"
    assert data["recommendations"] == ["Start messaging customers to increase engagement."]
    assert len(data["sales_chart"]) == 7
    assert data["sales_chart"][-1]["sales"] == 200.0
    assert data["sales_chart"][-1]["predicted"] == 220
    assert {c["name"] for c in data["channel_performance"]} == {"Whatsapp", "Email", "Sms", "Web"}


async def test_insights_pick_top_channel(client: AsyncClient, owner_headers, fake_email):
    for _ in range(2):
        await client.post(
            "/api/v1/communication/send-email",
            json={"to": "a@example.com", "subject": "Hi", "content": "Hello"},
            headers=owner_headers,
        )
    data = (await client.get("/api/v1/ai/insights", headers=owner_headers)).json()
    assert data["summary"]["top_channel"] == "Email"
    assert data["predictions"]["recommended_action"] == "Increase outreach on Email"
    email = next(c for c in data["communication_stats"] if c["channel"] == "Email")
    assert email == {"channel": "Email", "sent": 2, "share": 100}
    assert data["activity_trends"][-1]["activity"] == 2
    assert "No sales recorded. Focus on follow-ups." in data["recommendations"]


async def test_generate_outreach(client: AsyncClient, owner_headers):
    response = await client.post(
        "/api/v1/ai/generate-outreach", json={"name": "Priya", "industry": "textiles"}, headers=owner_headers
    )
    assert response.status_code == status.HTTP_200_OK
    assert "Priya" in response.json()["message"]


class FirstTemplate:
    def choice(self, options):
        return options[0]


async def test_outreach_falls_back_to_generic_industry():
    message = ForecastService().generate_outreach(OutreachRequestAPI(name="Priya", industry="  "), rng=FirstTemplate())
    assert message == "Hello Priya, I admire your work in your field."
