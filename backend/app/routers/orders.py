"""
Orders API Router
Customer product orders
"""

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.database import get_database
from app.models.order import OrderCreate, OrderResponse, OrderCheckoutResponse
from app.models.user import User
from app.middleware.auth import require_customer, require_any_authenticated
from app.schemas.common import ListResponse, SingleResponse
from app.services.order_service import OrderService, OrderError
from app.services.promotion_service import PromotionError

router = APIRouter()

ERROR_STATUS = {
    "BUSINESS_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "ORDER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PAYMENT_FAILED": status.HTTP_502_BAD_GATEWAY,
}


def get_order_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> OrderService:
    """Get order service instance"""
    return OrderService(db)


def _http_error(e: OrderError) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS.get(e.code, status.HTTP_400_BAD_REQUEST),
        detail={"code": e.code, "message": e.message}
    )


@router.post(
    "",
    response_model=SingleResponse[OrderCheckoutResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Place order"
)
async def create_order(
    data: OrderCreate,
    current_user: User = Depends(require_customer),
    service: OrderService = Depends(get_order_service)
):
    """
    Order products from a business

    Stock is held as soon as the order is placed; the client confirms the
    card payment with the returned client_secret.
    """
    try:
        result = await service.create_order(current_user, data)
    except OrderError as e:
        raise _http_error(e)
    except PromotionError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": e.code, "message": e.message}
        )

    return SingleResponse(data=OrderCheckoutResponse(**result))


@router.get(
    "",
    response_model=ListResponse[OrderResponse],
    summary="List my orders"
)
async def list_orders(
    current_user: User = Depends(require_customer),
    service: OrderService = Depends(get_order_service)
):
    """Current customer's orders, newest first"""
    orders = await service.list_customer_orders(current_user.user_id)
    data = [OrderResponse(**o.model_dump()) for o in orders]
    return ListResponse(data=data, count=len(data))


@router.get(
    "/{order_id}",
    response_model=SingleResponse[OrderResponse],
    summary="Get order"
)
async def get_order(
    order_id: str,
    current_user: User = Depends(require_any_authenticated),
    service: OrderService = Depends(get_order_service)
):
    """One order, visible to its customer and the selling business"""
    try:
        order = await service.get_order(order_id, current_user)
    except OrderError as e:
        raise _http_error(e)
    return SingleResponse(data=OrderResponse(**order.model_dump()))
