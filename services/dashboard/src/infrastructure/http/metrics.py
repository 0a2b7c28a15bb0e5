from shared.metrics import get_counter, get_gauge, get_histogram

SERVICE = "dashboard"

# Upstream fetches
UPSTREAM_FETCH_TOTAL = get_counter(
    "upstream_fetch_total",
    "Upstream metrics fetches by outcome (ok|empty|error).",
    SERVICE,
    labelnames=("outcome",),
)
UPSTREAM_FETCH_LATENCY_SECONDS = get_histogram(
    "upstream_fetch_latency_seconds",
    "Latency of upstream metrics fetches.",
    SERVICE,
)
UPSTREAM_FETCH_RETRIES_TOTAL = get_counter(
    "upstream_fetch_retries_total",
    "Upstream metrics fetch attempts retried after a transient failure.",
    SERVICE,
)

# Window cache
WINDOW_POINTS_MERGED_TOTAL = get_counter(
    "window_points_merged_total",
    "Snapshots added to metrics windows (after dedup).",
    SERVICE,
)
WINDOW_RESETS_TOTAL = get_counter(
    "window_resets_total",
    "Metrics window resets caused by identity changes.",
    SERVICE,
)
TRACKED_QUERIES = get_gauge(
    "tracked_queries",
    "Metrics query identities currently cached and refreshed.",
    SERVICE,
)