# bizhub/modules/forecast/routers.py
from typing import List

from fastapi import APIRouter, Depends

from bizhub.core.security import CurrentUser
from bizhub.modules.inbox.repository import CustomerMessageRepository, get_customer_message_repository
from bizhub.modules.messaging.repository import MessageRepository, get_message_repository
from bizhub.modules.products.repository import ProductRepository, get_product_repository
from bizhub.modules.sales.repository import SaleRepository, get_sale_repository
from bizhub.modules.users.repository import UserRepository, get_user_repository
from .models import ForecastOverviewAPI, InsightsAPI, OutreachRequestAPI, OutreachResponseAPI, SuggestionAPI
from .services import ForecastService, get_forecast_service

router = APIRouter()


@router.get("/forecast/sales", response_model=ForecastOverviewAPI, summary="Per-product sales and stock forecast")
async def sales_forecast(
    current_user: CurrentUser,
    service: ForecastService = Depends(get_forecast_service),
    user_repo: UserRepository = Depends(get_user_repository),
    product_repo: ProductRepository = Depends(get_product_repository),
    sale_repo: SaleRepository = Depends(get_sale_repository),
):
    return await service.sales_forecast(current_user, user_repo, product_repo, sale_repo)


@router.get("/forecast/suggestions", response_model=List[SuggestionAPI], summary="Restock, promotion and markdown ideas")
async def forecast_suggestions(
    current_user: CurrentUser,
    service: ForecastService = Depends(get_forecast_service),
    user_repo: UserRepository = Depends(get_user_repository),
    product_repo: ProductRepository = Depends(get_product_repository),
    sale_repo: SaleRepository = Depends(get_sale_repository),
):
    return await service.suggestions(current_user, user_repo, product_repo, sale_repo)


@router.get("/insights", response_model=InsightsAPI, summary="30 day business insights")
async def insights(
    current_user: CurrentUser,
    service: ForecastService = Depends(get_forecast_service),
    sale_repo: SaleRepository = Depends(get_sale_repository),
    message_repo: MessageRepository = Depends(get_message_repository),
    customer_message_repo: CustomerMessageRepository = Depends(get_customer_message_repository),
):
    return await service.insights(current_user, sale_repo, message_repo, customer_message_repo)


@router.post("/generate-outreach", response_model=OutreachResponseAPI, summary="Draft an outreach message")
async def generate_outreach(
    request_in: OutreachRequestAPI,
    current_user: CurrentUser,
    service: ForecastService = Depends(get_forecast_service),
):
    return OutreachResponseAPI(message=service.generate_outreach(request_in))
