"""
Prometheus metrics for the shield review service.
"""

from prometheus_client import Counter, Histogram, Gauge


# ── Review Operations ───────────────────────────────────────
review_operations_total = Counter(
    "review_operations_total",
    "Network-backed review operations by outcome",
    ["operation", "outcome"],
)

review_operation_duration_seconds = Histogram(
    "review_operation_duration_seconds",
    "Round-trip time of review operations against the rules backend",
    ["operation"],
    buckets=[0.05, 0.1, 0.5, 1, 2, 5, 10, 30],
)

# ── Session Durability ──────────────────────────────────────
session_store_errors_total = Counter(
    "session_store_errors_total",
    "Swallowed session store failures",
    ["operation"],
)

# ── Zone Conflicts ──────────────────────────────────────────
zone_conflicts_total = Counter(
    "zone_conflicts_total",
    "Shield/zone conflicts found during evaluation",
    ["action_taken"],
)

# ── Sessions ────────────────────────────────────────────────
review_sessions_active = Gauge(
    "review_sessions_active",
    "Number of live case review sessions",
)
