# bizhub/modules/products/services.py
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request, status
from loguru import logger

from bizhub.modules.activity.services import ActivityLogger
from bizhub.modules.notifications.services import NotificationService
from bizhub.modules.users.models import UserInDB
from bizhub.modules.users.repository import UserRepository
from bizhub.services.qr_service import encode_qr_data_url
from bizhub.worker.tasks_alerts import queue_low_stock_email
from .models import (
    CategoryStatAPI, MigrationResultAPI, ProductCreateAPI, ProductInDB, ProductQRRequestAPI,
    ProductUpdateAPI, is_low_stock,
)
from .repository import ProductRepository


async def notify_low_stock(product: ProductInDB, user: UserInDB, notifier: NotificationService) -> None:
    """In-app alert (plus queued email) for a product at or below its threshold."""
    await notifier.notify(
        user.id,
        "low_stock",
        "Low Stock Alert",
        f"{product.name} is running low ({product.quantity} remaining)",
        link=f"/products/{product.id}",
        metadata={"product_id": str(product.id), "quantity": product.quantity, "min_threshold": product.min_threshold},
    )
    queue_low_stock_email(user.email, product.name, product.quantity, product.min_threshold)


class ProductService:
    @staticmethod
    def scope_query(user: UserInDB) -> Dict[str, Any]:
        return {} if user.is_admin else {"user_id": user.id}

    @staticmethod
    def _can_modify(product: ProductInDB, user: UserInDB) -> bool:
        return user.is_admin or product.user_id == user.id

    async def list_products(
        self,
        user: UserInDB,
        product_repo: ProductRepository,
        category: Optional[str] = None,
        brand: Optional[str] = None,
        low_stock: bool = False,
    ) -> List[ProductInDB]:
        query = self.scope_query(user)
        if category:
            query["category"] = category
        if brand:
            query["brand"] = brand
        if low_stock:
            query["low_stock_alert"] = True
        return await product_repo.list_by(query, limit=0, sort=[("created_at", -1)])

    async def get_product(self, product_id: str, user: UserInDB, product_repo: ProductRepository) -> ProductInDB:
        product = await product_repo.get_by_id(product_id)
        if product is None or not (user.is_admin or product.user_id == user.id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
        return product

    async def _get_for_write(self, product_id: str, user: UserInDB, product_repo: ProductRepository, verb: str) -> ProductInDB:
        product = await product_repo.get_by_id(product_id)
        if product is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
        if not self._can_modify(product, user):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Not authorized to {verb} this product")
        return product

    async def create_product(
        self,
        product_in: ProductCreateAPI,
        user: UserInDB,
        product_repo: ProductRepository,
        notifier: NotificationService,
        activity_logger: ActivityLogger,
        request: Optional[Request] = None,
    ) -> ProductInDB:
        log = logger.bind(user_id=str(user.id), product_name=product_in.name)
        data = product_in.model_dump()
        data["user_id"] = user.id
        data["low_stock_alert"] = is_low_stock(product_in.quantity, product_in.min_threshold)

        product = await product_repo.create(data)
        log.success(f"Product created: {product.id}")

        if product.low_stock_alert:
            await notify_low_stock(product, user, notifier)
        await activity_logger.log(
            user, "create", "product", f"Created product: {product.name}",
            {"product_id": str(product.id), "category": product.category}, request,
        )
        return product

    async def update_product(
        self,
        product_id: str,
        product_in: ProductUpdateAPI,
        user: UserInDB,
        product_repo: ProductRepository,
        notifier: NotificationService,
        activity_logger: ActivityLogger,
        request: Optional[Request] = None,
    ) -> ProductInDB:
        existing = await self._get_for_write(product_id, user, product_repo, "update")
        changes = product_in.model_dump(exclude_unset=True)
        for key in ("name", "category", "price", "quantity", "min_threshold", "unit", "is_active"):
            if key in changes and changes[key] is None:
                changes.pop(key)

        quantity = changes.get("quantity", existing.quantity)
        threshold = changes.get("min_threshold", existing.min_threshold)
        now_low = is_low_stock(quantity, threshold)
        changes["low_stock_alert"] = now_low

        product = await product_repo.update(existing.id, changes)
        if product is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

        if now_low and not existing.low_stock_alert:
            await notify_low_stock(product, user, notifier)
        await activity_logger.log(
            user, "update", "product", f"Updated product: {product.name}",
            {"product_id": str(product.id), "fields": sorted(k for k in changes if k != "low_stock_alert")}, request,
        )
        logger.bind(product_id=str(product.id)).success("Product updated")
        return product

    async def delete_product(
        self,
        product_id: str,
        user: UserInDB,
        product_repo: ProductRepository,
        activity_logger: ActivityLogger,
        request: Optional[Request] = None,
    ) -> None:
        product = await self._get_for_write(product_id, user, product_repo, "delete")
        await product_repo.delete(product.id)
        await activity_logger.log(
            user, "delete", "product", f"Deleted product: {product.name}", {"product_id": str(product.id)}, request
        )

    async def category_stats(self, user: UserInDB, product_repo: ProductRepository) -> List[CategoryStatAPI]:
        rows = await product_repo.category_stats(self.scope_query(user))
        return [
            CategoryStatAPI(
                category=row["_id"] or "Uncategorized",
                count=row["count"],
                total_quantity=row["total_quantity"],
                total_value=round(float(row["total_value"]), 2),
            )
            for row in rows
        ]

    async def migrate_unowned(self, product_repo: ProductRepository, user_repo: UserRepository) -> MigrationResultAPI:
        admin = await user_repo.first_admin()
        if admin is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No admin user found to assign products to")
        migrated = await product_repo.assign_unowned(admin.id)
        logger.info(f"Assigned {migrated} unowned products to admin {admin.email}")
        return MigrationResultAPI(
            message=f"Migration completed. {migrated} products assigned to {admin.name}",
            migrated=migrated,
            assigned_to=admin.id,
        )

    def build_qr_label(self, payload: ProductQRRequestAPI) -> tuple[str, str]:
        """Returns (label text, PNG data URL)."""
        lines = [f"Product: {payload.product_name}", f"Company: {payload.company_name}"]
        if payload.manufacturing_date:
            lines.append(f"Manufactured: {payload.manufacturing_date.isoformat()}")
        if payload.expiry_date:
            lines.append(f"Expiry: {payload.expiry_date.isoformat()}")
        lines.append(f"Batch No: {payload.batch_number}")
        text = "\n".join(lines)
        return text, encode_qr_data_url(text)


async def get_product_service() -> ProductService:
    return ProductService()
