"""
tests/test_cli.py

Operator commands: seeding, reset and the audit exit codes.
"""
import json
import sqlite3

from click.testing import CliRunner

from services.cli import cli


def _invoke(db_url, *args):
    return CliRunner().invoke(cli, ["--database-url", db_url, *args])


class TestLedgerCli:

    def test_seed_then_audit_clean(self, db_url):
        result = _invoke(db_url, "seed-order", "ORD-DEMO-1", "79.99", "4242")
        assert result.exit_code == 0, result.output
        assert "ORD-DEMO-1" in result.output
        assert "AvailableToSettle:  79.99" in result.output

        result = _invoke(db_url, "audit")
        assert result.exit_code == 0
        assert "All database consistency checks passed." in result.output

    def test_seed_rejects_bad_amount(self, db_url):
        result = _invoke(db_url, "seed-order", "ORD-DEMO-2", "lots")
        assert result.exit_code == 2

    def test_reset_db_seeds_demo_orders(self, db_url, tmp_path):
        result = _invoke(db_url, "reset-db", "--yes")
        assert result.exit_code == 0, result.output

        with sqlite3.connect(tmp_path / "ledger.db") as conn:
            rows = conn.execute("SELECT order_id, status FROM orders ORDER BY order_id").fetchall()
            outcomes = dict(conn.execute("SELECT order_id, outcome FROM authorizations").fetchall())
        assert len(rows) == 7
        assert rows[1] == ("ORD-1002", "ERROR")
        assert outcomes["ORD-1001"] == "SUCCESS"
        assert outcomes["ORD-1002"] == "INCORRECT_DETAILS"

        assert _invoke(db_url, "audit").exit_code == 0

    def test_audit_reports_violations(self, db_url, tmp_path):
        _invoke(db_url, "seed-order", "ORD-DEMO-3", "100.00")
        with sqlite3.connect(tmp_path / "ledger.db") as conn:
            conn.execute(
                "INSERT INTO settlements (order_id, amount, outcome, created_at) "
                "VALUES ('ORD-DEMO-3', 99.99, 'SUCCESS', '2025-10-01 10:00:00')"
            )
            conn.execute("UPDATE orders SET status = 'SETTLED' WHERE order_id = 'ORD-DEMO-3'")

        result = _invoke(db_url, "audit")
        assert result.exit_code == 1
        assert "[SETTLEMENT_MISMATCH]" in result.output

        result = _invoke(db_url, "audit", "--format", "json")
        assert result.exit_code == 1
        report = json.loads(result.output[result.output.index("{\n"):])
        assert report["ok"] is False
        assert report["violations"][0]["code"] == "SETTLEMENT_MISMATCH"
        assert report["violations"][0]["orderId"] == "ORD-DEMO-3"
