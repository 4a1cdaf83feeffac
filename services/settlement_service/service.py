"""
Settlement engine: captures money against an order's approved authorization.

Checks run in a fixed order so the error code alone tells the caller what
went wrong:

    1. order id present, amount a finite number     -> BAD_REQUEST
    2. amount > 0                                   -> INVALID_AMOUNT
    3. amount has at most two decimals              -> INVALID_AMOUNT_PRECISION
    4. order exists                                 -> ORDER_NOT_FOUND
    5. current authorization is SUCCESS             -> NO_APPROVED_AUTH
    6. amount <= authorized - settled so far        -> AMOUNT_EXCEEDS_AVAILABLE

Steps 4-6 and the writes that follow share one transaction, and requests for
the same order are serialized in-process as well, so two concurrent
settlements can never both pass step 6 against the same balance.
"""
import asyncio
import weakref
from decimal import Decimal

import structlog
from sqlalchemy.exc import SQLAlchemyError

from services.order_service.models import AuthOutcome, OrderStatus, Settlement, SettlementOutcome
from services.order_service.repository import LedgerRepository
from shared.config.database import LedgerStore
from shared.errors import ErrorCode, LedgerError
from shared.money import ZERO, has_cent_precision, money_context, quantize, to_decimal
from shared.observability import ledger_settlements_total

from .schemas import SettlementAccepted, SettlementRecord, SettlementRejected, SettlementResult

logger = structlog.get_logger(__name__)


def validate_settlement_request(order_id, amount) -> tuple[str, Decimal]:
    order_id = order_id.strip() if isinstance(order_id, str) else ""
    parsed = to_decimal(amount)
    if not order_id or parsed is None or not parsed.is_finite():
        raise LedgerError(ErrorCode.BAD_REQUEST, "order id and a numeric amount are required")
    if parsed <= 0:
        raise LedgerError(ErrorCode.INVALID_AMOUNT, "amount must be greater than zero")
    if not has_cent_precision(parsed):
        raise LedgerError(ErrorCode.INVALID_AMOUNT_PRECISION, "amount must have at most two decimals")
    return order_id, parsed


class SettlementEngine:
    def __init__(self, store: LedgerStore):
        self.store = store
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, order_id: str) -> asyncio.Lock:
        lock = self._locks.get(order_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[order_id] = lock
        return lock

    async def settle(self, order_id, amount) -> SettlementResult:
        try:
            result = await self._settle(order_id, amount)
        except LedgerError as e:
            ledger_settlements_total.labels(result=e.code.value).inc()
            logger.info(
                "settlement_rejected",
                order_id=order_id,
                code=e.code.value,
                available=float(e.available) if e.available is not None else None,
            )
            return SettlementRejected(
                order_id=order_id if isinstance(order_id, str) and order_id.strip() else None,
                code=e.code,
                available_to_settle=e.available,
            )
        except SQLAlchemyError:
            ledger_settlements_total.labels(result=ErrorCode.SERVER_ERROR.value).inc()
            logger.exception("settlement_store_failed", order_id=order_id)
            return SettlementRejected(order_id=order_id if isinstance(order_id, str) else None,
                                      code=ErrorCode.SERVER_ERROR)

        ledger_settlements_total.labels(result=result.status.value).inc()
        logger.info(
            "settlement_recorded",
            order_id=result.order_id,
            amount=float(result.settlement.amount),
            status=result.status.value,
            available=float(result.available_to_settle),
        )
        return result

    async def _settle(self, order_id, amount) -> SettlementAccepted:
        order_id, amount = validate_settlement_request(order_id, amount)

        async with self._lock_for(order_id):
            with money_context():
                return await self._settle_locked(order_id, amount)

    async def _settle_locked(self, order_id: str, amount: Decimal) -> SettlementAccepted:
        async with self.store.transaction() as db:
            order = await LedgerRepository.get_order_for_update(db, order_id)
            if not order:
                raise LedgerError(ErrorCode.ORDER_NOT_FOUND)

            authorization = await LedgerRepository.get_authorization(db, order_id)
            if not authorization or authorization.outcome != AuthOutcome.SUCCESS.value:
                raise LedgerError(ErrorCode.NO_APPROVED_AUTH)

            authorized = quantize(to_decimal(authorization.amount) or ZERO)
            settled_so_far = await LedgerRepository.sum_successful_settlements(db, order_id)
            available = quantize(authorized - settled_so_far)
            # Exact comparison, so an oversized amount never has to be quantized
            if amount > available:
                raise LedgerError(ErrorCode.AMOUNT_EXCEEDS_AVAILABLE, available=available)
            amount = quantize(amount)

            settlement = await LedgerRepository.append_settlement(
                db,
                Settlement(
                    order_id=order_id,
                    amount=float(amount),
                    outcome=SettlementOutcome.SUCCESS.value,
                ),
            )
            remaining = quantize(available - amount)
            new_status = OrderStatus.SETTLED if remaining == ZERO else OrderStatus.AUTHORIZED
            await LedgerRepository.update_order_status(db, order, new_status.value)

        return SettlementAccepted(
            order_id=order_id,
            status=new_status,
            available_to_settle=remaining,
            settlement=SettlementRecord(
                id=settlement.id,
                amount=amount,
                created_at=settlement.created_at,
            ),
        )
