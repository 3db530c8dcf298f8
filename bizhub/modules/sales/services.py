# bizhub/modules/sales/services.py
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from fastapi import HTTPException, Request, status
from loguru import logger

from bizhub.core.counters import CounterService
from bizhub.core.repository import to_object_id, utc_now
from bizhub.modules.activity.services import ActivityLogger
from bizhub.modules.notifications.services import NotificationService
from bizhub.modules.products.models import ProductInDB
from bizhub.modules.products.repository import ProductRepository
from bizhub.modules.products.services import notify_low_stock
from bizhub.modules.users.models import UserInDB
from bizhub.websocket.events import push_event
from bizhub.worker.tasks_alerts import queue_sale_email
from .models import (
    MySaleAPI, QuickSaleCreateAPI, RevenueStatsAPI, SaleCreateAPI, SaleInDB, TeamSalesRowAPI, TopProductAPI,
)
from .repository import SaleRepository

SALE_REF_PREFIX = "SAL"


def period_start(period: str, now: Optional[datetime] = None) -> datetime:
    """Start of the reporting window: today, or the last 7/30/365 days."""
    now = now or utc_now()
    if period == "day":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "week":
        return now - timedelta(days=7)
    if period == "year":
        return now - timedelta(days=365)
    return now - timedelta(days=30)


class SaleService:
    @staticmethod
    def scope_query(user: UserInDB) -> Dict[str, Any]:
        return {} if user.is_admin else {"sold_by": user.id}

    async def _load_products(
        self, sale_in: SaleCreateAPI, user: UserInDB, product_repo: ProductRepository
    ) -> Tuple[Dict[ObjectId, ProductInDB], "OrderedDict[ObjectId, int]"]:
        products: Dict[ObjectId, ProductInDB] = {}
        requested: "OrderedDict[ObjectId, int]" = OrderedDict()
        for item in sale_in.items:
            product_oid = to_object_id(item.product_id)
            product = products.get(product_oid) if product_oid else None
            if product is None and product_oid:
                product = await product_repo.get_by_id(product_oid)
            if product is None:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Product {item.product_id} not found")
            if not user.is_admin and product.user_id != user.id:
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Not authorized to sell {product.name}")
            products[product.id] = product
            requested[product.id] = requested.get(product.id, 0) + item.quantity

        for product_id, quantity in requested.items():
            product = products[product_id]
            if product.quantity < quantity:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Insufficient stock for {product.name}. Available: {product.quantity}, Requested: {quantity}",
                )
        return products, requested

    async def create_sale(
        self,
        sale_in: SaleCreateAPI,
        user: UserInDB,
        sale_repo: SaleRepository,
        product_repo: ProductRepository,
        counter_service: CounterService,
        notifier: NotificationService,
        activity_logger: ActivityLogger,
        request: Optional[Request] = None,
    ) -> SaleInDB:
        log = logger.bind(user_id=str(user.id), item_count=len(sale_in.items))
        log.info("Recording sale...")
        products, requested = await self._load_products(sale_in, user, product_repo)

        items = []
        for item in sale_in.items:
            product = products[ObjectId(item.product_id)]
            price = item.price if item.price is not None else product.price
            items.append({
                "product_id": product.id,
                "product_name": product.name,
                "category": product.category,
                "quantity": item.quantity,
                "price": price,
                "subtotal": round(price * item.quantity, 2),
            })
        total_amount = round(sum(i["subtotal"] for i in items), 2)

        reserved: List[Tuple[ObjectId, int]] = []
        updated_products: Dict[ObjectId, ProductInDB] = {}
        try:
            for product_id, quantity in requested.items():
                updated = await product_repo.decrement_stock(product_id, quantity)
                if updated is None:
                    raise HTTPException(
                        status_code=status.HTTP_409_CONFLICT,
                        detail=f"Stock for {products[product_id].name} changed while recording the sale. Please retry.",
                    )
                reserved.append((product_id, quantity))
                updated_products[product_id] = updated

            sale = await sale_repo.create({
                "sale_ref": await counter_service.generate_reference(SALE_REF_PREFIX),
                "items": items,
                "total_amount": total_amount,
                "customer_name": sale_in.customer_name,
                "customer_email": sale_in.customer_email,
                "customer_phone": sale_in.customer_phone,
                "payment_method": sale_in.payment_method,
                "status": sale_in.status,
                "sold_by": user.id,
                "sold_by_name": user.name,
                "owner_id": user.scope_owner_id,
                "notes": sale_in.notes,
            })
        except Exception:
            for product_id, quantity in reserved:
                await product_repo.increment_stock(product_id, quantity)
            log.warning(f"Sale aborted; restored stock for {len(reserved)} product(s)")
            raise

        for product_id, updated in updated_products.items():
            if updated.check_low_stock() and not products[product_id].low_stock_alert:
                await product_repo.set_low_stock_flag(product_id, True)
                await notify_low_stock(updated, user, notifier)

        await self._announce_sale(sale, user, notifier, activity_logger, request)
        log.success(f"Sale {sale.sale_ref} recorded. Total: {total_amount:.2f}")
        return sale

    async def create_quick_sale(
        self,
        sale_in: QuickSaleCreateAPI,
        user: UserInDB,
        sale_repo: SaleRepository,
        counter_service: CounterService,
        notifier: NotificationService,
        activity_logger: ActivityLogger,
        request: Optional[Request] = None,
    ) -> SaleInDB:
        sale = await sale_repo.create({
            "sale_ref": await counter_service.generate_reference(SALE_REF_PREFIX),
            "items": [],
            "total_amount": round(sale_in.amount, 2),
            "customer_name": sale_in.customer_name.strip(),
            "customer_email": sale_in.customer_email,
            "customer_phone": sale_in.customer_phone,
            "payment_method": sale_in.payment_method,
            "status": "completed",
            "sold_by": user.id,
            "sold_by_name": user.name,
            "owner_id": user.scope_owner_id,
            "notes": sale_in.notes,
        })
        await self._announce_sale(sale, user, notifier, activity_logger, request)
        return sale

    async def _announce_sale(
        self,
        sale: SaleInDB,
        user: UserInDB,
        notifier: NotificationService,
        activity_logger: ActivityLogger,
        request: Optional[Request],
    ) -> None:
        await notifier.notify(
            user.id,
            "new_sale",
            "New Sale Recorded",
            f"Sale of ${sale.total_amount:.2f} has been recorded",
            link=f"/sales/{sale.id}",
            metadata={"sale_id": str(sale.id), "sale_ref": sale.sale_ref},
        )
        await activity_logger.log(
            user, "create", "sale", f"Recorded sale {sale.sale_ref} of {sale.total_amount:.2f}",
            {"sale_id": str(sale.id), "total_amount": sale.total_amount, "item_count": len(sale.items)}, request,
        )
        await push_event("new-sale", {
            "sale_id": str(sale.id),
            "sale_ref": sale.sale_ref,
            "total_amount": sale.total_amount,
            "timestamp": sale.created_at,
        })
        queue_sale_email(user.email, sale.sale_ref, sale.total_amount, len(sale.items))

    async def list_sales(
        self,
        user: UserInDB,
        sale_repo: SaleRepository,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        status_filter: Optional[str] = None,
        limit: int = 0,
    ) -> List[SaleInDB]:
        query = self.scope_query(user)
        if start_date or end_date:
            window: Dict[str, Any] = {}
            if start_date:
                window["$gte"] = start_date.replace(tzinfo=None)
            if end_date:
                window["$lte"] = end_date.replace(tzinfo=None)
            query["created_at"] = window
        if status_filter:
            query["status"] = status_filter
        return await sale_repo.list_by(query, limit=limit, sort=[("created_at", -1)])

    async def get_sale(self, sale_id: str, user: UserInDB, sale_repo: SaleRepository) -> SaleInDB:
        sale = await sale_repo.get_by_id(sale_id)
        if sale is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sale not found")
        if not user.is_admin and sale.sold_by != user.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to view this sale")
        return sale

    async def my_sales(self, user: UserInDB, sale_repo: SaleRepository) -> List[MySaleAPI]:
        sales = await sale_repo.list_by({"sold_by": user.id}, limit=100, sort=[("created_at", -1)])
        return [
            MySaleAPI(
                id=s.id,
                sale_ref=s.sale_ref,
                customer_name=s.customer_name or "N/A",
                amount=s.total_amount,
                status=s.status,
                date=s.created_at,
                item_count=len(s.items),
            )
            for s in sales
        ]

    async def team_sales(self, sale_repo: SaleRepository) -> List[TeamSalesRowAPI]:
        rows = await sale_repo.totals_by_seller({})
        return [
            TeamSalesRowAPI(
                user_id=row["_id"],
                user_name=row.get("user_name") or "Unknown",
                total_sales=round(float(row["total_sales"]), 2),
                sales_count=row["sales_count"],
            )
            for row in rows
        ]

    async def cancel_sale(
        self,
        sale_id: str,
        user: UserInDB,
        sale_repo: SaleRepository,
        product_repo: ProductRepository,
        activity_logger: ActivityLogger,
        request: Optional[Request] = None,
    ) -> SaleInDB:
        sale = await self.get_sale(sale_id, user, sale_repo)
        if sale.status == "cancelled":
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Sale is already cancelled")

        for item in sale.items:
            restored = await product_repo.increment_stock(item.product_id, item.quantity)
            if restored is None:
                logger.warning(f"Product {item.product_id} no longer exists; stock not restored")
                continue
            if restored.low_stock_alert and not restored.check_low_stock():
                await product_repo.set_low_stock_flag(restored.id, False)

        cancelled = await sale_repo.update(sale.id, {"status": "cancelled"})
        await activity_logger.log(
            user, "update", "sale", f"Cancelled sale {sale.sale_ref}", {"sale_id": str(sale.id)}, request
        )
        logger.bind(sale_id=str(sale.id)).success("Sale cancelled and stock restored")
        return cancelled

    async def revenue_stats(self, user: UserInDB, sale_repo: SaleRepository, period: str) -> RevenueStatsAPI:
        summary = await sale_repo.revenue_summary(self.scope_query(user), period_start(period))
        total_revenue = round(float(summary.get("total_revenue") or 0), 2)
        total_sales = int(summary.get("total_sales") or 0)
        return RevenueStatsAPI(
            period=period,
            total_revenue=total_revenue,
            total_sales=total_sales,
            average_sale=round(total_revenue / total_sales, 2) if total_sales else 0,
        )

    async def top_products(self, user: UserInDB, sale_repo: SaleRepository, limit: int) -> List[TopProductAPI]:
        rows = await sale_repo.top_products(self.scope_query(user), limit)
        return [
            TopProductAPI(
                product_id=row["_id"],
                product_name=row.get("product_name") or "Unknown",
                category=row.get("category"),
                total_quantity=row["total_quantity"],
                total_revenue=round(float(row["total_revenue"]), 2),
            )
            for row in rows
        ]


async def get_sale_service() -> SaleService:
    return SaleService()
