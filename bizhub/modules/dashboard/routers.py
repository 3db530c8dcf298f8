# bizhub/modules/dashboard/routers.py
from typing import List

from fastapi import APIRouter, Depends, Query

from bizhub.core.security import CurrentUser
from bizhub.modules.messaging.repository import MessageRepository, get_message_repository
from bizhub.modules.notifications.repository import NotificationRepository, get_notification_repository
from bizhub.modules.products.models import CategoryStatAPI
from bizhub.modules.products.repository import ProductRepository, get_product_repository
from bizhub.modules.sales.repository import SaleRepository, get_sale_repository
from bizhub.modules.users.repository import UserRepository, get_user_repository
from .models import CHART_PERIODS, DashboardStatsAPI, SalesChartBucketAPI
from .services import DashboardService, get_dashboard_service

router = APIRouter()


@router.get("/stats", response_model=DashboardStatsAPI, summary="Dashboard headline statistics")
async def dashboard_stats(
    current_user: CurrentUser,
    service: DashboardService = Depends(get_dashboard_service),
    user_repo: UserRepository = Depends(get_user_repository),
    sale_repo: SaleRepository = Depends(get_sale_repository),
    product_repo: ProductRepository = Depends(get_product_repository),
    message_repo: MessageRepository = Depends(get_message_repository),
    notification_repo: NotificationRepository = Depends(get_notification_repository),
):
    return await service.stats(current_user, user_repo, sale_repo, product_repo, message_repo, notification_repo)


@router.get("/charts/sales", response_model=List[SalesChartBucketAPI], summary="Sales chart series")
async def sales_chart(
    current_user: CurrentUser,
    period: CHART_PERIODS = Query("month"),
    service: DashboardService = Depends(get_dashboard_service),
    user_repo: UserRepository = Depends(get_user_repository),
    sale_repo: SaleRepository = Depends(get_sale_repository),
):
    return await service.sales_chart(period, current_user, user_repo, sale_repo)


@router.get("/charts/products", response_model=List[CategoryStatAPI], summary="Products per category")
async def products_chart(
    current_user: CurrentUser,
    service: DashboardService = Depends(get_dashboard_service),
    user_repo: UserRepository = Depends(get_user_repository),
    product_repo: ProductRepository = Depends(get_product_repository),
):
    return await service.products_chart(current_user, user_repo, product_repo)
