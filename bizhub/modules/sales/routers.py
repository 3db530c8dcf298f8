# bizhub/modules/sales/routers.py
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, Request, status

from bizhub.core.counters import CounterService, get_counter_service
from bizhub.core.security import AdminUser, CurrentUser
from bizhub.modules.activity.services import ActivityLogger, get_activity_logger
from bizhub.modules.notifications.services import NotificationService, get_notification_service
from bizhub.modules.products.repository import ProductRepository, get_product_repository
from .models import (
    SALE_STATUSES, STATS_PERIODS, MySaleAPI, QuickSaleCreateAPI, RevenueStatsAPI, SaleAPI, SaleCreateAPI,
    TeamSalesRowAPI, TopProductAPI,
)
from .repository import SaleRepository, get_sale_repository
from .services import SaleService, get_sale_service

router = APIRouter()


@router.get("/", response_model=List[SaleAPI], summary="List sales")
async def list_sales(
    current_user: CurrentUser,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    status_filter: Optional[SALE_STATUSES] = Query(None, alias="status"),
    service: SaleService = Depends(get_sale_service),
    repo: SaleRepository = Depends(get_sale_repository),
):
    sales = await service.list_sales(current_user, repo, start_date, end_date, status_filter)
    return [SaleAPI.model_validate(s) for s in sales]


@router.get("/my", response_model=List[MySaleAPI], summary="My latest sales")
async def my_sales(
    current_user: CurrentUser,
    service: SaleService = Depends(get_sale_service),
    repo: SaleRepository = Depends(get_sale_repository),
):
    return await service.my_sales(current_user, repo)


@router.get("/team", response_model=List[TeamSalesRowAPI], summary="Completed sales per seller (admin)")
async def team_sales(
    admin: AdminUser,
    service: SaleService = Depends(get_sale_service),
    repo: SaleRepository = Depends(get_sale_repository),
):
    return await service.team_sales(repo)


@router.get("/stats/revenue", response_model=RevenueStatsAPI, summary="Revenue for a period")
async def revenue_stats(
    current_user: CurrentUser,
    period: STATS_PERIODS = Query("month"),
    service: SaleService = Depends(get_sale_service),
    repo: SaleRepository = Depends(get_sale_repository),
):
    return await service.revenue_stats(current_user, repo, period)


@router.get("/stats/top-products", response_model=List[TopProductAPI], summary="Best selling products")
async def top_products(
    current_user: CurrentUser,
    limit: int = Query(10, ge=1, le=100),
    service: SaleService = Depends(get_sale_service),
    repo: SaleRepository = Depends(get_sale_repository),
):
    return await service.top_products(current_user, repo, limit)


@router.get("/{sale_id}", response_model=SaleAPI, summary="Get a sale")
async def get_sale(
    current_user: CurrentUser,
    sale_id: str = Path(...),
    service: SaleService = Depends(get_sale_service),
    repo: SaleRepository = Depends(get_sale_repository),
):
    return SaleAPI.model_validate(await service.get_sale(sale_id, current_user, repo))


@router.post("/", response_model=SaleAPI, status_code=status.HTTP_201_CREATED, summary="Record a sale")
async def create_sale(
    sale_in: SaleCreateAPI,
    request: Request,
    current_user: CurrentUser,
    service: SaleService = Depends(get_sale_service),
    repo: SaleRepository = Depends(get_sale_repository),
    product_repo: ProductRepository = Depends(get_product_repository),
    counter_service: CounterService = Depends(get_counter_service),
    notifier: NotificationService = Depends(get_notification_service),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
):
    sale = await service.create_sale(
        sale_in, current_user, repo, product_repo, counter_service, notifier, activity_logger, request
    )
    return SaleAPI.model_validate(sale)


@router.post("/quick", response_model=SaleAPI, status_code=status.HTTP_201_CREATED, summary="Record a sale without items")
async def create_quick_sale(
    sale_in: QuickSaleCreateAPI,
    request: Request,
    current_user: CurrentUser,
    service: SaleService = Depends(get_sale_service),
    repo: SaleRepository = Depends(get_sale_repository),
    counter_service: CounterService = Depends(get_counter_service),
    notifier: NotificationService = Depends(get_notification_service),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
):
    sale = await service.create_quick_sale(sale_in, current_user, repo, counter_service, notifier, activity_logger, request)
    return SaleAPI.model_validate(sale)


@router.post("/{sale_id}/cancel", response_model=SaleAPI, summary="Cancel a sale and restore stock")
async def cancel_sale(
    request: Request,
    current_user: CurrentUser,
    sale_id: str = Path(...),
    service: SaleService = Depends(get_sale_service),
    repo: SaleRepository = Depends(get_sale_repository),
    product_repo: ProductRepository = Depends(get_product_repository),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
):
    sale = await service.cancel_sale(sale_id, current_user, repo, product_repo, activity_logger, request)
    return SaleAPI.model_validate(sale)
