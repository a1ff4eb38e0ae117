"""Prometheus metrics for the Story Notes server.

All metric objects are defined here so they can be imported from any module.
"""

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# Tool metrics
# ---------------------------------------------------------------------------

NOTE_OPERATIONS = Counter(
    "story_notes_operations_total",
    "Total number of note tree operations",
    ["operation", "status"],
)

# ---------------------------------------------------------------------------
# Tree metrics
# ---------------------------------------------------------------------------

NOTE_ITEMS = Gauge(
    "story_notes_items",
    "Number of stored note items",
    ["kind"],  # folder, file
)

CASCADE_SIZE = Histogram(
    "story_notes_cascade_size",
    "Number of items removed by a single deletion",
    buckets=(1, 2, 5, 10, 25, 50, 100, 250),
)
