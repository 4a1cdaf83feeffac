import math
from decimal import Decimal
from numbers import Real

import structlog
from sqlalchemy.exc import SQLAlchemyError

from services.order_service.models import Authorization, AuthOutcome, Order, OrderStatus
from services.order_service.repository import LedgerRepository
from shared.config.database import LedgerStore
from shared.errors import ErrorCode, LedgerError
from shared.money import to_money
from shared.observability import ledger_authorizations_total

from .provider import ProviderClient, map_provider_outcome
from .schemas import (
    AuthorizationApproved,
    AuthorizationDeclined,
    AuthorizationRejected,
    AuthorizationResult,
    CardDetails,
    CustomerDetails,
    card_last4,
    masked_card,
)

logger = structlog.get_logger(__name__)

DECLINE_CODES = {
    AuthOutcome.INSUFFICIENT_FUNDS: ErrorCode.INSUFFICIENT_FUNDS,
    AuthOutcome.INCORRECT_DETAILS: ErrorCode.INCORRECT_DETAILS,
}


def _validate_amount(requested_amount) -> Decimal:
    if isinstance(requested_amount, bool) or not isinstance(requested_amount, (Real, Decimal)):
        raise LedgerError(ErrorCode.BAD_REQUEST, "requested amount must be a number")
    if isinstance(requested_amount, Decimal):
        finite = requested_amount.is_finite()
    elif isinstance(requested_amount, float):
        finite = math.isfinite(requested_amount)
    else:
        finite = True
    if not finite or requested_amount <= 0:
        raise LedgerError(ErrorCode.INVALID_AMOUNT, "requested amount must be positive and finite")
    try:
        amount = to_money(requested_amount)
    except ValueError:
        amount = None
    # Must survive the trip through the float columns and the provider payload
    if amount is None or math.isinf(float(amount)):
        raise LedgerError(ErrorCode.INVALID_AMOUNT, "requested amount is out of range")
    return amount


class AuthorizationWorkflow:
    """
    Obtains an authorization outcome from the provider for an order.

    Creates the order on its first attempt, replaces the order's current
    authorization with the new outcome, and moves the order to AUTHORIZED or
    ERROR. Card number and CVV only ever travel in the provider request.
    """

    def __init__(self, store: LedgerStore, provider: ProviderClient, token_prefix: str = "STATIC_TOKEN_"):
        self.store = store
        self.provider = provider
        self.token_prefix = token_prefix

    def token_for(self, order_id: str) -> str:
        return f"{self.token_prefix}{order_id}"

    async def authorize(
        self,
        order_id: str,
        customer: CustomerDetails | None,
        card: CardDetails | None,
        requested_amount,
    ) -> AuthorizationResult:
        try:
            return await self._authorize(order_id, customer, card, requested_amount)
        except LedgerError as e:
            logger.info("authorization_rejected", order_id=order_id, code=e.code.value)
            return AuthorizationRejected(code=e.code)
        except SQLAlchemyError:
            logger.exception("authorization_store_failed", order_id=order_id)
            return AuthorizationRejected(code=ErrorCode.SERVER_ERROR)

    async def _authorize(self, order_id, customer, card, requested_amount) -> AuthorizationResult:
        if not isinstance(order_id, str) or not order_id.strip() or not isinstance(card, CardDetails):
            raise LedgerError(ErrorCode.BAD_REQUEST, "order id and card are required")
        order_id = order_id.strip()
        amount = _validate_amount(requested_amount)

        # 1. Ensure the order exists so the checkout trail starts at PENDING
        async with self.store.transaction() as db:
            order = await LedgerRepository.get_order(db, order_id)
            if not order:
                customer_name = customer.full_name if customer else ""
                order = Order(
                    order_id=order_id,
                    status=OrderStatus.PENDING.value,
                    customer_name=customer_name or card.name.strip(),
                    card_last4=card_last4(card.number),
                    amount=float(amount),
                )
                await LedgerRepository.create_order(db, order)
                logger.info("order_created", order_id=order_id, amount=float(amount))

        # 2. Ask the provider
        payload = {
            "OrderId": order_id,
            "CardDetails": {
                "CardNumber": str(card.number),
                "CardMonth": str(card.exp_month),
                "CardYear": str(card.exp_year),
                "CCV": str(card.cvv),
            },
            "RequestedAmount": float(amount),
        }
        response = await self.provider.authorize(payload)
        outcome = map_provider_outcome(response)

        # 3. Record the outcome and move the order along. The new outcome replaces
        # the old one even when settlements already exist; the auditor reports any
        # settled total left above the new authorization.
        token = self.token_for(order_id)
        new_status = OrderStatus.AUTHORIZED if outcome == AuthOutcome.SUCCESS else OrderStatus.ERROR
        async with self.store.transaction() as db:
            await LedgerRepository.replace_authorization(
                db,
                Authorization(
                    order_id=order_id,
                    provider_token=token,
                    amount=float(amount),
                    outcome=outcome.value,
                ),
            )
            order = await LedgerRepository.get_order_for_update(db, order_id)
            await LedgerRepository.update_order_status(db, order, new_status.value)

        ledger_authorizations_total.labels(outcome=outcome.value).inc()
        logger.info(
            "authorization_recorded",
            order_id=order_id,
            outcome=outcome.value,
            provider_status=response.status_code,
        )

        if outcome == AuthOutcome.SUCCESS:
            return AuthorizationApproved(
                order_id=order_id,
                token=token,
                masked_card=masked_card(card.number),
                amount=amount,
            )
        if outcome in DECLINE_CODES:
            return AuthorizationDeclined(order_id=order_id, status="DECLINED", code=DECLINE_CODES[outcome])
        return AuthorizationDeclined(order_id=order_id, status="ERROR", code=ErrorCode.PROVIDER_ERROR)
