# bizhub/modules/forecast/algorithms.py
"""
Small forecasting helpers used by the AI endpoints.

Everything here is a pure function over short in-memory series (monthly unit
counts), so it is unit tested directly without a database.
"""

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Sequence

DEFAULT_ALPHA = 0.3
DEFAULT_PERIOD = 3
DEFAULT_LEAD_TIME_DAYS = 7
DEFAULT_SAFETY_STOCK = 10
DAYS_PER_MONTH = 30
SLOW_MOVER_UNITS = 5
TOP_SELLER_SUGGESTIONS = 3


def round_half_up(value: float, ndigits: int = 0) -> float | int:
    """Rounds .5 away from zero for positives, unlike Python's banker's rounding."""
    quantum = Decimal(1).scaleb(-ndigits)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(rounded) if ndigits == 0 else float(rounded)


def exponential_smoothing(data: Sequence[float], alpha: float = DEFAULT_ALPHA) -> int:
    """Single exponential smoothing seeded with the first observation."""
    if not data:
        return 0
    if len(data) == 1:
        return round_half_up(data[0])
    forecast = float(data[0])
    for value in data[1:]:
        forecast = alpha * value + (1 - alpha) * forecast
    return round_half_up(forecast)


def moving_average(data: Sequence[float], period: int = DEFAULT_PERIOD) -> int:
    """Rounded mean of the last `period` values, or of all of them when the series is shorter."""
    if not data:
        return 0
    recent = list(data)[-period:] if len(data) >= period else list(data)
    return round_half_up(sum(recent) / len(recent))


def _confidence(history: Sequence[float], mean: float) -> str:
    if mean == 0:
        return "low"
    variance = sum((x - mean) ** 2 for x in history) / len(history)
    cv = math.sqrt(variance) / mean
    if cv < 0.2:
        return "high"
    if cv > 0.5:
        return "low"
    return "medium"


def forecast_product_sales(history: Sequence[float]) -> Dict[str, Any]:
    if not history:
        return {"forecast": 0, "confidence": "low", "method": "no_data"}

    forecast = exponential_smoothing(history)
    mean = sum(history) / len(history)
    return {
        "forecast": forecast,
        "confidence": _confidence(history, mean),
        "method": "exponential_smoothing",
        "historical_average": round_half_up(mean),
        "moving_average": moving_average(history),
        "recommendation": f"Expected to sell {forecast} units next month" if forecast > 0 else "No sales expected",
    }


def forecast_inventory(
    current_stock: int,
    min_threshold: Optional[int],
    sales_forecast: float,
    lead_time_days: int = DEFAULT_LEAD_TIME_DAYS,
) -> Dict[str, Any]:
    safety_stock = min_threshold or DEFAULT_SAFETY_STOCK
    daily = sales_forecast / DAYS_PER_MONTH
    needed_during_lead = math.ceil(daily * lead_time_days)
    recommended = needed_during_lead + safety_stock
    reorder = max(0, recommended - current_stock)

    if current_stock <= 0:
        days_until_stockout: Optional[int] = 0
    elif daily == 0:
        days_until_stockout = None
    else:
        days_until_stockout = math.floor(current_stock / daily)

    if reorder > 2 * safety_stock:
        urgency = "high"
    elif reorder > 0:
        urgency = "medium"
    else:
        urgency = "low"

    return {
        "current_stock": current_stock,
        "recommended_stock": recommended,
        "reorder_quantity": reorder,
        "days_until_stockout": days_until_stockout,
        "urgency": urgency,
    }


def generate_suggestions(
    products: Sequence[Dict[str, Any]],
    top_sellers: Sequence[Dict[str, Any]],
    forecasts: Sequence[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """
    Builds restock / promotion / markdown suggestions.

    products: dicts with id, name, low_stock_alert.
    top_sellers: dicts with product_id, product_name, total_quantity, best first.
    forecasts: dicts with product_id, product_name and the forecast_inventory() output under "inventory".
    """
    suggestions: List[Dict[str, Any]] = []

    by_product = {str(f["product_id"]): f["inventory"] for f in forecasts}
    for product in products:
        inventory = by_product.get(str(product["id"]))
        if product.get("low_stock_alert") and inventory and inventory["reorder_quantity"] > 0:
            suggestions.append({
                "type": "restock",
                "priority": "high",
                "message": f"Reorder {inventory['reorder_quantity']} units of {product['name']}",
                "product_id": product["id"],
                "action": "restock",
            })

    for seller in list(top_sellers)[:TOP_SELLER_SUGGESTIONS]:
        suggestions.append({
            "type": "promotion",
            "priority": "medium",
            "message": f"Consider promoting {seller['product_name']} - it's a top seller",
            "product_id": seller["product_id"],
            "action": "promote",
        })

    sold = {str(s["product_id"]): s.get("total_quantity", 0) for s in top_sellers}
    slow = [p for p in products if sold.get(str(p["id"]), 0) < SLOW_MOVER_UNITS]
    if slow:
        suggestions.append({
            "type": "markdown",
            "priority": "low",
            "message": f"Consider discounts for {len(slow)} slow-moving products",
            "product_id": None,
            "action": "review",
        })
    return suggestions
