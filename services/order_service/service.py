import random

from shared.config.database import LedgerStore
from shared.money import ZERO, money_context, quantize, to_decimal

from .models import AuthOutcome
from .repository import LedgerRepository
from .schemas import (
    AuthorizationResponse,
    NextOrder,
    OrderDetails,
    OrderResponse,
    SettlementResponse,
)
from .sequence import ORDER_PREFIX, next_order_id, random_amount


class OrderService:
    """Read side for the warehouse and orders-viewer screens."""

    def __init__(self, store: LedgerStore, rng: random.Random | None = None):
        self.store = store
        self.rng = rng

    async def get_order_details(self, order_id: str) -> OrderDetails | None:
        async with self.store.session() as db:
            order = await LedgerRepository.get_order(db, order_id)
            if not order:
                return None

            authorization = await LedgerRepository.get_authorization(db, order_id)
            settlements = await LedgerRepository.list_settlements(db, order_id)
            settled = await LedgerRepository.sum_successful_settlements(db, order_id)

        authorized = ZERO
        if authorization and authorization.outcome == AuthOutcome.SUCCESS.value:
            authorized = quantize(to_decimal(authorization.amount) or ZERO)
        with money_context():
            available = max(ZERO, quantize(authorized - settled))

        return OrderDetails(
            order=OrderResponse.model_validate(order),
            authorization=AuthorizationResponse.model_validate(authorization) if authorization else None,
            settlements=[SettlementResponse.model_validate(s) for s in settlements],
            available_to_settle=available,
        )

    async def list_orders(
        self,
        status: str | None = None,
        q: str | None = None,
        sort: str = "created_at",
        direction: str = "desc",
        page: int | None = None,
        page_size: int | None = None,
    ) -> list[OrderResponse]:
        async with self.store.session() as db:
            orders = await LedgerRepository.list_orders(
                db, status=status, q=q, sort=sort, direction=direction,
                page=page, page_size=page_size,
            )
        return [OrderResponse.model_validate(o) for o in orders]

    async def next_order(self) -> NextOrder:
        async with self.store.session() as db:
            existing = await LedgerRepository.list_order_ids(db, prefix=ORDER_PREFIX)
        return NextOrder(order_id=next_order_id(existing), amount=random_amount(self.rng))
