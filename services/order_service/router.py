from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from shared.errors import ErrorCode, http_status_for

from .schemas import NextOrder, OrderDetails, OrderResponse
from .service import OrderService

router = APIRouter()


def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service


# Declared before /{order_id} so "next" is never treated as an id
@router.get("/next", response_model=NextOrder)
async def next_order(service: OrderService = Depends(get_order_service)):
    return await service.next_order()


@router.get("", response_model=list[OrderResponse])
async def list_orders(
    status: str | None = Query(default=None),
    q: str | None = Query(default=None),
    sort: str = Query(default="created_at"),
    dir: str = Query(default="desc"),
    page: int | None = Query(default=None, ge=1),
    page_size: int | None = Query(default=None, alias="pageSize", ge=1),
    service: OrderService = Depends(get_order_service),
):
    return await service.list_orders(
        status=status, q=q, sort=sort, direction=dir, page=page, page_size=page_size
    )


@router.get("/{order_id}", response_model=OrderDetails)
async def get_order(order_id: str, service: OrderService = Depends(get_order_service)):
    details = await service.get_order_details(order_id)
    if not details:
        code = ErrorCode.ORDER_NOT_FOUND
        return JSONResponse(status_code=http_status_for(code), content={"code": code.value})
    return details
