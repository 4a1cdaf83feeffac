from decimal import Decimal

from sqlalchemy import asc, delete, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.money import ZERO, money_context, quantize, to_decimal

from .models import Authorization, Order, Settlement, SettlementOutcome, utc_now

SORTABLE_COLUMNS = {
    "created_at": Order.created_at,
    "amount": Order.amount,
    "customer_name": Order.customer_name,
    "status": Order.status,
    "order_id": Order.order_id,
}


class LedgerRepository:
    """
    Read/write primitives for the ledger tables.

    Nothing here commits: the calling component owns the transaction, so a
    settlement's reads and writes land (or roll back) together.
    """

    # --- orders ---

    @staticmethod
    async def get_order(db: AsyncSession, order_id: str):
        result = await db.execute(select(Order).where(Order.order_id == order_id))
        return result.scalars().first()

    @staticmethod
    async def get_order_for_update(db: AsyncSession, order_id: str):
        # Row lock on PostgreSQL; SQLite already holds the write lock (BEGIN IMMEDIATE)
        result = await db.execute(
            select(Order).where(Order.order_id == order_id).with_for_update()
        )
        return result.scalars().first()

    @staticmethod
    async def list_orders(
        db: AsyncSession,
        status: str | None = None,
        q: str | None = None,
        sort: str = "created_at",
        direction: str = "desc",
        page: int | None = None,
        page_size: int | None = None,
    ):
        stmt = select(Order)
        if status:
            stmt = stmt.where(func.upper(Order.status) == status.upper())
        if q:
            needle = f"%{q.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Order.order_id).like(needle),
                    func.lower(func.coalesce(Order.customer_name, "")).like(needle),
                )
            )

        column = SORTABLE_COLUMNS.get(sort, Order.created_at)
        if sort in ("customer_name", "status", "order_id"):
            column = func.lower(func.coalesce(column, ""))
        order_fn = asc if str(direction).lower() == "asc" else desc
        stmt = stmt.order_by(order_fn(column), order_fn(Order.order_id))

        if page_size and page_size > 0:
            page = max(1, page or 1)
            stmt = stmt.limit(page_size).offset((page - 1) * page_size)

        result = await db.execute(stmt)
        return result.scalars().all()

    @staticmethod
    async def list_order_ids(db: AsyncSession, prefix: str = ""):
        stmt = select(Order.order_id)
        if prefix:
            stmt = stmt.where(Order.order_id.like(f"{prefix}%"))
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def create_order(db: AsyncSession, order: Order):
        db.add(order)
        await db.flush()
        return order

    @staticmethod
    async def update_order_status(db: AsyncSession, order: Order, status: str):
        order.status = status
        await db.flush()
        return order

    # --- authorizations ---

    @staticmethod
    async def get_authorization(db: AsyncSession, order_id: str):
        result = await db.execute(
            select(Authorization)
            .where(Authorization.order_id == order_id)
            .order_by(Authorization.created_at.desc(), Authorization.id.desc())
        )
        return result.scalars().first()

    @staticmethod
    async def replace_authorization(db: AsyncSession, authorization: Authorization):
        """Drops any prior authorization for the order and stores this one as current."""
        await db.execute(
            delete(Authorization).where(Authorization.order_id == authorization.order_id)
        )
        if authorization.created_at is None:
            authorization.created_at = utc_now()
        db.add(authorization)
        await db.flush()
        return authorization

    # --- settlements ---

    @staticmethod
    async def list_settlements(db: AsyncSession, order_id: str):
        result = await db.execute(
            select(Settlement)
            .where(Settlement.order_id == order_id)
            .order_by(Settlement.created_at, Settlement.id)
        )
        return result.scalars().all()

    @staticmethod
    async def sum_successful_settlements(db: AsyncSession, order_id: str) -> Decimal:
        # Summed in Python so every stored float is read as its shortest decimal form
        result = await db.execute(
            select(Settlement.amount).where(
                Settlement.order_id == order_id,
                Settlement.outcome == SettlementOutcome.SUCCESS.value,
            )
        )
        total = ZERO
        with money_context():
            for amount in result.scalars().all():
                total = quantize(total + (to_decimal(amount) or ZERO))
        return total

    @staticmethod
    async def append_settlement(db: AsyncSession, settlement: Settlement):
        if settlement.created_at is None:
            settlement.created_at = utc_now()
        db.add(settlement)
        await db.flush()
        return settlement
