# bizhub/modules/products/routers.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, Request, status

from bizhub.core.security import AdminUser, CurrentUser
from bizhub.models.api_common import MessageResponse
from bizhub.modules.activity.services import ActivityLogger, get_activity_logger
from bizhub.modules.notifications.services import NotificationService, get_notification_service
from bizhub.modules.users.repository import UserRepository, get_user_repository
from .models import (
    CategoryStatAPI, MigrationResultAPI, ProductAPI, ProductCreateAPI, ProductListAPI,
    ProductQRRequestAPI, ProductQRResponseAPI, ProductUpdateAPI,
)
from .repository import ProductRepository, get_product_repository
from .services import ProductService, get_product_service

router = APIRouter()


@router.get("/", response_model=ProductListAPI, summary="List products")
async def list_products(
    current_user: CurrentUser,
    category: Optional[str] = Query(None),
    brand: Optional[str] = Query(None),
    low_stock: bool = Query(False, description="Only products flagged as low on stock"),
    service: ProductService = Depends(get_product_service),
    repo: ProductRepository = Depends(get_product_repository),
):
    products = await service.list_products(current_user, repo, category=category, brand=brand, low_stock=low_stock)
    return ProductListAPI(products=[ProductAPI.model_validate(p) for p in products], total=len(products))


@router.get("/stats/categories", response_model=List[CategoryStatAPI], summary="Product totals per category")
async def category_stats(
    current_user: CurrentUser,
    service: ProductService = Depends(get_product_service),
    repo: ProductRepository = Depends(get_product_repository),
):
    return await service.category_stats(current_user, repo)


@router.post("/migrate", response_model=MigrationResultAPI, summary="Assign products without owner to the first admin")
async def migrate_products(
    admin: AdminUser,
    service: ProductService = Depends(get_product_service),
    repo: ProductRepository = Depends(get_product_repository),
    user_repo: UserRepository = Depends(get_user_repository),
):
    return await service.migrate_unowned(repo, user_repo)


@router.post("/qr", response_model=ProductQRResponseAPI, summary="Generate a product label QR code")
async def generate_product_qr(
    payload: ProductQRRequestAPI,
    current_user: CurrentUser,
    service: ProductService = Depends(get_product_service),
):
    text, data_url = service.build_qr_label(payload)
    return ProductQRResponseAPI(qr_code=data_url, data=text)


@router.get("/{product_id}", response_model=ProductAPI, summary="Get a product")
async def get_product(
    current_user: CurrentUser,
    product_id: str = Path(...),
    service: ProductService = Depends(get_product_service),
    repo: ProductRepository = Depends(get_product_repository),
):
    return ProductAPI.model_validate(await service.get_product(product_id, current_user, repo))


@router.post("/", response_model=ProductAPI, status_code=status.HTTP_201_CREATED, summary="Create a product")
async def create_product(
    product_in: ProductCreateAPI,
    request: Request,
    current_user: CurrentUser,
    service: ProductService = Depends(get_product_service),
    repo: ProductRepository = Depends(get_product_repository),
    notifier: NotificationService = Depends(get_notification_service),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
):
    product = await service.create_product(product_in, current_user, repo, notifier, activity_logger, request)
    return ProductAPI.model_validate(product)


@router.put("/{product_id}", response_model=ProductAPI, summary="Update a product")
async def update_product(
    product_in: ProductUpdateAPI,
    request: Request,
    current_user: CurrentUser,
    product_id: str = Path(...),
    service: ProductService = Depends(get_product_service),
    repo: ProductRepository = Depends(get_product_repository),
    notifier: NotificationService = Depends(get_notification_service),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
):
    product = await service.update_product(product_id, product_in, current_user, repo, notifier, activity_logger, request)
    return ProductAPI.model_validate(product)


@router.delete("/{product_id}", response_model=MessageResponse, summary="Delete a product")
async def delete_product(
    request: Request,
    current_user: CurrentUser,
    product_id: str = Path(...),
    service: ProductService = Depends(get_product_service),
    repo: ProductRepository = Depends(get_product_repository),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
):
    await service.delete_product(product_id, current_user, repo, activity_logger, request)
    return MessageResponse(message="Product deleted successfully")
