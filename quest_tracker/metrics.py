"""Prometheus metrics for the quest tracker.

All metric objects are defined here so they can be imported from any module.
"""

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# Document store metrics
# ---------------------------------------------------------------------------

STORE_TRANSACTIONS = Counter(
    "quest_store_transactions_total",
    "Total document store transactions",
    ["backend", "outcome"],  # committed, rolled_back
)

STORE_COMMIT_DURATION = Histogram(
    "quest_store_commit_duration_seconds",
    "Duration of document store commits in seconds",
    ["backend"],
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0),
)

# ---------------------------------------------------------------------------
# Manager metrics
# ---------------------------------------------------------------------------

ENTITY_WRITES = Counter(
    "quest_entity_writes_total",
    "Field writes issued by the quest manager",
    ["kind", "operation"],  # field, batch, create, list
)

REJECTED_FIELDS = Counter(
    "quest_rejected_fields_total",
    "Fields dropped from a write by validation",
    ["kind", "field"],
)

KNOWN_QUESTS = Gauge(
    "quest_known_quests",
    "Number of quests in the document store at the last listing",
)
