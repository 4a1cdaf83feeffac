"""
tests/test_audit.py

Consistency auditor: each check against hand-built snapshots, then a full
pass over a real store.
"""
from datetime import datetime, timedelta, timezone

from sqlalchemy import update

from services.audit_service.schemas import AuthorizationRow, LedgerSnapshot, OrderRow, SettlementRow
from services.audit_service.service import ConsistencyAuditor, audit_snapshot
from services.order_service.models import AuthOutcome, Order, OrderStatus, Settlement
from services.settlement_service.service import SettlementEngine
from shared.errors import AuditCode

from conftest import seed_order

T0 = datetime(2025, 10, 1, 10, 0, tzinfo=timezone.utc)


def _codes(violations):
    return sorted(v.code for v in violations)


class TestSnapshotChecks:

    def test_clean_snapshot(self):
        snapshot = LedgerSnapshot(
            orders=[OrderRow("ORD-1", "SETTLED", 100.0), OrderRow("ORD-2", "AUTHORIZED", 45.0)],
            authorizations=[
                AuthorizationRow(1, "ORD-1", 100.0, "SUCCESS", T0),
                AuthorizationRow(2, "ORD-2", 45.0, "SUCCESS", T0),
            ],
            settlements=[
                SettlementRow(1, "ORD-1", 40.0, "SUCCESS"),
                SettlementRow(2, "ORD-1", 60.0, "SUCCESS"),
                SettlementRow(3, "ORD-2", 0.1, "SUCCESS"),
                SettlementRow(4, "ORD-2", 0.2, "SUCCESS"),
            ],
        )
        assert audit_snapshot(snapshot) == []

    def test_settled_order_short_of_authorization(self):
        snapshot = LedgerSnapshot(
            orders=[OrderRow("ORD-1", "SETTLED", 100.0)],
            authorizations=[AuthorizationRow(1, "ORD-1", 100.0, "SUCCESS", T0)],
            settlements=[SettlementRow(1, "ORD-1", 99.99, "SUCCESS")],
        )
        violations = audit_snapshot(snapshot)
        assert _codes(violations) == [AuditCode.SETTLEMENT_MISMATCH]
        assert violations[0].order_id == "ORD-1"
        assert violations[0].details == {"settled": 99.99, "authorized": 100.0}

    def test_over_settlement(self):
        snapshot = LedgerSnapshot(
            orders=[OrderRow("ORD-1", "AUTHORIZED", 50.0)],
            authorizations=[AuthorizationRow(1, "ORD-1", 50.0, "SUCCESS", T0)],
            settlements=[SettlementRow(1, "ORD-1", 30.0, "SUCCESS"), SettlementRow(2, "ORD-1", 20.01, "SUCCESS")],
        )
        assert _codes(audit_snapshot(snapshot)) == [AuditCode.OVER_SETTLEMENT]

    def test_over_settled_and_marked_settled_reports_both(self):
        snapshot = LedgerSnapshot(
            orders=[OrderRow("ORD-1", "SETTLED", 50.0)],
            authorizations=[AuthorizationRow(1, "ORD-1", 50.0, "SUCCESS", T0)],
            settlements=[SettlementRow(1, "ORD-1", 60.0, "SUCCESS")],
        )
        assert _codes(audit_snapshot(snapshot)) == [AuditCode.OVER_SETTLEMENT, AuditCode.SETTLEMENT_MISMATCH]

    def test_settlements_without_successful_authorization(self):
        snapshot = LedgerSnapshot(
            orders=[OrderRow("ORD-1", "ERROR", 50.0)],
            authorizations=[AuthorizationRow(1, "ORD-1", 50.0, "INSUFFICIENT_FUNDS", T0)],
            settlements=[SettlementRow(1, "ORD-1", 5.0, "SUCCESS")],
        )
        violations = audit_snapshot(snapshot)
        assert _codes(violations) == [AuditCode.OVER_SETTLEMENT]
        assert violations[0].details["authorized"] == 0.0

    def test_non_success_settlements_are_ignored(self):
        snapshot = LedgerSnapshot(
            orders=[OrderRow("ORD-1", "AUTHORIZED", 50.0)],
            authorizations=[AuthorizationRow(1, "ORD-1", 50.0, "SUCCESS", T0)],
            settlements=[SettlementRow(1, "ORD-1", 500.0, "EXCEEDS_AUTH")],
        )
        assert audit_snapshot(snapshot) == []

    def test_latest_successful_authorization_wins(self):
        snapshot = LedgerSnapshot(
            orders=[OrderRow("ORD-1", "SETTLED", 80.0)],
            authorizations=[
                AuthorizationRow(2, "ORD-1", 80.0, "SUCCESS", T0 + timedelta(minutes=5)),
                AuthorizationRow(1, "ORD-1", 100.0, "SUCCESS", T0),
            ],
            settlements=[SettlementRow(1, "ORD-1", 80.0, "SUCCESS")],
        )
        assert audit_snapshot(snapshot) == []

    def test_duplicate_order_ids(self):
        snapshot = LedgerSnapshot(
            orders=[OrderRow("ORD-1", "PENDING", 10.0), OrderRow("ORD-1", "PENDING", 10.0)],
        )
        violations = audit_snapshot(snapshot)
        assert _codes(violations) == [AuditCode.DUPLICATE_ORDER_ID]
        assert violations[0].details == {"count": 2}

    def test_orphans(self):
        snapshot = LedgerSnapshot(
            orders=[OrderRow("ORD-1", "PENDING", 10.0)],
            authorizations=[AuthorizationRow(7, "ORD-GONE", 10.0, "SUCCESS", T0)],
            settlements=[SettlementRow(9, "ORD-GONE", 10.0, "SUCCESS")],
        )
        violations = audit_snapshot(snapshot)
        assert _codes(violations) == [AuditCode.ORPHAN_RECORD, AuditCode.ORPHAN_RECORD]
        assert {(v.record_type, v.record_id) for v in violations} == {("authorization", 7), ("settlement", 9)}

    def test_precision_and_negative_amounts(self):
        snapshot = LedgerSnapshot(
            orders=[OrderRow("ORD-1", "AUTHORIZED", 10.001)],
            authorizations=[AuthorizationRow(1, "ORD-1", 10.005, "SUCCESS", T0)],
            settlements=[SettlementRow(1, "ORD-1", -1.0, "REVERSED"), SettlementRow(2, "ORD-1", 0.333, "REVERSED")],
        )
        violations = audit_snapshot(snapshot)
        assert _codes(violations) == [AuditCode.PRECISION_VIOLATION] * 4
        assert {v.record_type for v in violations} == {"order", "authorization", "settlement"}

    def test_negative_over_precise_settlement_reported_twice(self):
        snapshot = LedgerSnapshot(
            orders=[OrderRow("ORD-1", "AUTHORIZED", 10.0)],
            authorizations=[AuthorizationRow(1, "ORD-1", 10.0, "SUCCESS", T0)],
            settlements=[SettlementRow(3, "ORD-1", -0.333, "REVERSED")],
        )
        violations = audit_snapshot(snapshot)

        assert _codes(violations) == [AuditCode.PRECISION_VIOLATION] * 2
        assert {v.record_id for v in violations} == {3}
        messages = sorted(v.message for v in violations)
        assert messages == [
            "settlements.amount has more than 2 decimals: ORD-1 -> -0.333",
            "settlements.amount is negative: ORD-1 -> -0.333",
        ]


class TestAuditorOverStore:

    async def test_clean_store_after_engine_activity(self, store):
        await seed_order(store, "ORD-1", "100.00")
        await seed_order(store, "ORD-2", "50.00", outcome=AuthOutcome.INCORRECT_DETAILS, status=OrderStatus.ERROR)
        engine = SettlementEngine(store)
        await engine.settle("ORD-1", 40)
        await engine.settle("ORD-1", 60)
        await engine.settle("ORD-1", 0.01)

        assert await ConsistencyAuditor(store).run() == []

    async def test_detects_out_of_band_edits(self, store):
        await seed_order(store, "ORD-1", "100.00", settlements=("99.99",))
        async with store.transaction() as db:
            await db.execute(
                update(Order).where(Order.order_id == "ORD-1").values(status=OrderStatus.SETTLED.value)
            )
            db.add(Settlement(order_id="ORD-GHOST", amount=5.0, outcome="SUCCESS", created_at=T0))

        violations = await ConsistencyAuditor(store).run()

        assert _codes(violations) == [AuditCode.ORPHAN_RECORD, AuditCode.SETTLEMENT_MISMATCH]
        mismatch = next(v for v in violations if v.code == AuditCode.SETTLEMENT_MISMATCH)
        assert mismatch.order_id == "ORD-1"

    async def test_audit_is_read_only(self, store):
        await seed_order(store, "ORD-1", "100.00", settlements=("150.00",))
        auditor = ConsistencyAuditor(store)

        before = await auditor.load_snapshot()
        first = await auditor.run()
        after = await auditor.load_snapshot()

        assert _codes(first) == [AuditCode.OVER_SETTLEMENT]
        assert before == after
        assert _codes(await auditor.run()) == _codes(first)
