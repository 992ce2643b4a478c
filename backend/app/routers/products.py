"""
Products API Router
Retail catalog and inventory tracking
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from app.database import get_database
from app.models.common import utc_now, round_money
from app.models.product import (
    Product, ProductCreate, ProductUpdate, ProductResponse,
    InventoryLog, InventoryLogType
)
from app.middleware.auth import BusinessContext, get_business_context
from app.schemas.common import ListResponse, SingleResponse, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _product_not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": "PRODUCT_NOT_FOUND", "message": "Product not found"}
    )


@router.get(
    "",
    response_model=ListResponse[ProductResponse],
    summary="List products"
)
async def list_products(
    search: Optional[str] = None,
    active_only: bool = Query(False),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Products in display order"""
    query = ctx.filter_query({"deleted_at": None})
    if active_only:
        query["is_active"] = True
    if search:
        query["$or"] = [
            {"name": {"$regex": search, "$options": "i"}},
            {"sku": {"$regex": search, "$options": "i"}},
            {"brand": {"$regex": search, "$options": "i"}},
        ]

    docs = await db.products.find(query).sort(
        [("display_order", 1), ("name", 1)]
    ).to_list(length=1000)
    products = [ProductResponse(**doc) for doc in docs]
    return ListResponse(data=products, count=len(products))


@router.get(
    "/metrics",
    summary="Inventory metrics"
)
async def get_product_metrics(
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Stock value, low and out of stock counts, featured products"""
    docs = await db.products.find(
        ctx.filter_query({"is_active": True, "deleted_at": None})
    ).sort("created_at", -1).to_list(length=5000)
    products = [Product(**doc) for doc in docs]

    total_value = sum(
        (p.cost if p.cost is not None else p.price) * p.quantity
        for p in products
    )
    tracked = [p for p in products if p.track_inventory]
    low_stock = [
        p for p in tracked
        if p.low_stock_alert is not None and 0 < p.quantity <= p.low_stock_alert
    ]
    out_of_stock = [p for p in tracked if p.quantity == 0]
    featured = [p for p in products if p.is_featured][:5]

    return {
        "success": True,
        "data": {
            "total_products": len(products),
            "total_value": round_money(total_value),
            "low_stock_count": len(low_stock),
            "out_of_stock_count": len(out_of_stock),
            "top_selling_products": [ProductResponse(**p.model_dump()) for p in featured],
        }
    }


@router.post(
    "",
    response_model=SingleResponse[ProductResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create product"
)
async def create_product(
    data: ProductCreate,
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Add a product; opening stock is logged"""
    product = Product(business_id=ctx.business_id, **data.model_dump())
    await db.products.insert_one(product.model_dump())

    if product.track_inventory and product.quantity > 0:
        log = InventoryLog(
            product_id=product.product_id,
            business_id=ctx.business_id,
            type=InventoryLogType.INITIAL,
            quantity=product.quantity,
            previous_qty=0,
            new_qty=product.quantity,
            reason="Initial stock",
            created_by=ctx.user.user_id
        )
        await db.inventory_logs.insert_one(log.model_dump())

    logger.info(f"Product {product.product_id} created for {ctx.business_id}")
    return SingleResponse(data=ProductResponse(**product.model_dump()))


@router.get(
    "/{product_id}",
    response_model=SingleResponse[ProductResponse],
    summary="Get product"
)
async def get_product(
    product_id: str,
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Get product by ID"""
    doc = await db.products.find_one(ctx.filter_query({
        "product_id": product_id,
        "deleted_at": None
    }))
    if not doc:
        raise _product_not_found()
    return SingleResponse(data=ProductResponse(**doc))


@router.put(
    "/{product_id}",
    response_model=SingleResponse[ProductResponse],
    summary="Update product"
)
async def update_product(
    product_id: str,
    data: ProductUpdate,
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Update a product; a quantity change is logged as an adjustment"""
    existing = await db.products.find_one(ctx.filter_query({
        "product_id": product_id,
        "deleted_at": None
    }))
    if not existing:
        raise _product_not_found()

    update_data = data.model_dump(exclude_unset=True)
    update_data["updated_at"] = utc_now()

    result = await db.products.find_one_and_update(
        {"product_id": product_id},
        {"$set": update_data},
        return_document=True
    )

    previous_qty = existing.get("quantity", 0)
    new_qty = update_data.get("quantity")
    if new_qty is not None and new_qty != previous_qty:
        log = InventoryLog(
            product_id=product_id,
            business_id=ctx.business_id,
            type=InventoryLogType.ADJUSTMENT,
            quantity=new_qty - previous_qty,
            previous_qty=previous_qty,
            new_qty=new_qty,
            reason="Manual adjustment",
            created_by=ctx.user.user_id
        )
        await db.inventory_logs.insert_one(log.model_dump())

    return SingleResponse(data=ProductResponse(**result))


@router.delete(
    "/{product_id}",
    response_model=MessageResponse,
    summary="Delete product"
)
async def delete_product(
    product_id: str,
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Soft delete a product"""
    now = utc_now()
    result = await db.products.update_one(
        ctx.filter_query({"product_id": product_id, "deleted_at": None}),
        {"$set": {"deleted_at": now, "is_active": False, "updated_at": now}}
    )
    if result.modified_count == 0:
        raise _product_not_found()

    return MessageResponse(message="Product deleted successfully")
