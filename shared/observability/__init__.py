from .setup import configure_logging, setup_observability
from .metrics import (
    ledger_authorizations_total,
    ledger_settlements_total,
    ledger_provider_latency_seconds,
    ledger_audit_violations_total
)
