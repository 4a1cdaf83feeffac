from prometheus_client import Counter, Histogram

# Business Metrics
ledger_authorizations_total = Counter(
    "ledger_authorizations_total",
    "Authorization attempts recorded",
    ["outcome"]  # Labels: SUCCESS, INSUFFICIENT_FUNDS, INCORRECT_DETAILS, SERVER_ERROR
)

ledger_settlements_total = Counter(
    "ledger_settlements_total",
    "Settlement requests handled",
    ["result"]  # Labels: new order status on success, error code on rejection
)

ledger_provider_latency_seconds = Histogram(
    "ledger_provider_latency_seconds",
    "Authorization provider round-trip time in seconds"
)

ledger_audit_violations_total = Counter(
    "ledger_audit_violations_total",
    "Consistency audit violations found",
    ["code"]
)
