"""
Offline consistency audit over the whole ledger.

Re-derives what the settlement engine enforces at write time and reports
every violation individually; it never repairs anything.
"""
from collections import Counter, defaultdict
from datetime import datetime, timezone

import structlog
from sqlalchemy import select

from services.order_service.models import Authorization, AuthOutcome, Order, OrderStatus, Settlement, SettlementOutcome
from shared.config.database import LedgerStore
from shared.errors import AuditCode
from shared.money import TOLERANCE, ZERO, money_context, stored_has_cent_precision, to_decimal
from shared.observability import ledger_audit_violations_total

from .schemas import AuthorizationRow, LedgerSnapshot, OrderRow, SettlementRow, Violation

logger = structlog.get_logger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _amount(value):
    return to_decimal(value) or ZERO


def _sort_key(row: AuthorizationRow):
    created = row.created_at or _EPOCH
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created, row.id


def check_duplicate_order_ids(snapshot: LedgerSnapshot) -> list[Violation]:
    counts = Counter(o.order_id for o in snapshot.orders)
    return [
        Violation(
            code=AuditCode.DUPLICATE_ORDER_ID,
            order_id=order_id,
            record_type="order",
            message=f"Duplicate order_id in orders: {order_id} (count {count})",
            details={"count": count},
        )
        for order_id, count in counts.items()
        if count > 1
    ]


def check_orphans(snapshot: LedgerSnapshot) -> list[Violation]:
    known = {o.order_id for o in snapshot.orders}
    violations = []
    for record_type, rows in (("authorization", snapshot.authorizations), ("settlement", snapshot.settlements)):
        for row in rows:
            if row.order_id not in known:
                violations.append(Violation(
                    code=AuditCode.ORPHAN_RECORD,
                    order_id=row.order_id,
                    record_type=record_type,
                    record_id=row.id,
                    message=f"{record_type.capitalize()} orphan: order_id={row.order_id} (id {row.id})",
                ))
    return violations


def check_precision(snapshot: LedgerSnapshot) -> list[Violation]:
    violations = []

    def report(record_type, order_id, record_id, amount, reason):
        violations.append(Violation(
            code=AuditCode.PRECISION_VIOLATION,
            order_id=order_id,
            record_type=record_type,
            record_id=record_id,
            message=f"{record_type}s.amount {reason}: {order_id} -> {amount}",
            details={"amount": amount},
        ))

    for o in snapshot.orders:
        if o.amount is not None and not stored_has_cent_precision(o.amount):
            report("order", o.order_id, o.order_id, o.amount, "has more than 2 decimals")
    for a in snapshot.authorizations:
        if a.amount is not None and not stored_has_cent_precision(a.amount):
            report("authorization", a.order_id, a.id, a.amount, "has more than 2 decimals")
    for s in snapshot.settlements:
        if s.amount is None:
            continue
        if not stored_has_cent_precision(s.amount):
            report("settlement", s.order_id, s.id, s.amount, "has more than 2 decimals")
        amount = _amount(s.amount)
        if amount.is_finite() and amount < 0:
            report("settlement", s.order_id, s.id, s.amount, "is negative")
    return violations


def check_settlement_totals(snapshot: LedgerSnapshot) -> list[Violation]:
    latest_success: dict[str, AuthorizationRow] = {}
    for auth in sorted(snapshot.authorizations, key=_sort_key):
        if auth.outcome == AuthOutcome.SUCCESS.value:
            latest_success[auth.order_id] = auth

    settled = defaultdict(lambda: ZERO)
    with money_context():
        for s in snapshot.settlements:
            amount = _amount(s.amount)
            # Non-finite rows are already reported by the precision check
            if s.outcome == SettlementOutcome.SUCCESS.value and amount.is_finite():
                settled[s.order_id] += amount

    violations = []
    for order in snapshot.orders:
        total = settled[order.order_id]
        auth = latest_success.get(order.order_id)

        if auth is None:
            if total > 0:
                violations.append(Violation(
                    code=AuditCode.OVER_SETTLEMENT,
                    order_id=order.order_id,
                    record_type="order",
                    record_id=order.order_id,
                    message=f"Settlements with no successful authorization: {order.order_id} total {total}",
                    details={"settled": float(total), "authorized": 0.0},
                ))
            continue

        authorized = _amount(auth.amount)
        if total > authorized + TOLERANCE:
            violations.append(Violation(
                code=AuditCode.OVER_SETTLEMENT,
                order_id=order.order_id,
                record_type="order",
                record_id=order.order_id,
                message=f"Over-settlement: {order.order_id} settled {total} > authorized {authorized}",
                details={"settled": float(total), "authorized": float(authorized)},
            ))

        if str(order.status).upper() == OrderStatus.SETTLED.value and abs(total - authorized) > TOLERANCE:
            violations.append(Violation(
                code=AuditCode.SETTLEMENT_MISMATCH,
                order_id=order.order_id,
                record_type="order",
                record_id=order.order_id,
                message=f"SETTLED but mismatch: {order.order_id} settled {total} != authorized {authorized}",
                details={"settled": float(total), "authorized": float(authorized)},
            ))
    return violations


CHECKS = (
    check_duplicate_order_ids,
    check_orphans,
    check_precision,
    check_settlement_totals,
)


def audit_snapshot(snapshot: LedgerSnapshot) -> list[Violation]:
    violations = []
    for check in CHECKS:
        violations.extend(check(snapshot))
    return violations


class ConsistencyAuditor:
    def __init__(self, store: LedgerStore):
        self.store = store

    async def load_snapshot(self) -> LedgerSnapshot:
        async with self.store.session() as db:
            orders = (await db.execute(
                select(Order.order_id, Order.status, Order.amount)
            )).all()
            authorizations = (await db.execute(
                select(Authorization.id, Authorization.order_id, Authorization.amount,
                       Authorization.outcome, Authorization.created_at)
            )).all()
            settlements = (await db.execute(
                select(Settlement.id, Settlement.order_id, Settlement.amount, Settlement.outcome)
            )).all()

        return LedgerSnapshot(
            orders=[OrderRow(*row) for row in orders],
            authorizations=[AuthorizationRow(*row) for row in authorizations],
            settlements=[SettlementRow(*row) for row in settlements],
        )

    async def run(self) -> list[Violation]:
        snapshot = await self.load_snapshot()
        violations = audit_snapshot(snapshot)

        for v in violations:
            ledger_audit_violations_total.labels(code=v.code.value).inc()
        logger.info(
            "consistency_audit_finished",
            orders=len(snapshot.orders),
            violations=len(violations),
        )
        return violations
