"""Prometheus metrics for the media cache."""

from prometheus_client import Counter, Gauge

# Listing metrics
LISTING_REFRESHES = Counter(
    "media_listing_refreshes_total",
    "Total number of remote listing refreshes",
    ["status"],  # success, failed
)

# Reconciliation metrics
RECONCILE_CYCLES = Counter(
    "media_reconcile_cycles_total",
    "Total number of reconciliation cycles",
    ["status"],  # completed, skipped, failed
)

EVICTIONS = Counter(
    "media_evictions_total",
    "Total number of cache entries evicted",
)

# Pipeline metrics
TRANSCODE_TASKS = Counter(
    "media_transcode_tasks_total",
    "Total number of fetch/transcode tasks",
    ["kind", "status"],  # status: ready, failed
)

TRANSCODES_IN_FLIGHT = Gauge(
    "media_transcodes_in_flight",
    "Number of fetch/transcode tasks currently running",
)

# Serving metrics
CACHE_LOOKUPS = Counter(
    "media_cache_lookups_total",
    "Total number of cache lookups by the artifact server",
    ["kind", "result"],  # result: hit, miss, wait
)

CACHE_ENTRIES = Gauge(
    "media_cache_entries",
    "Number of ready entries in the cache store",
)

CACHE_BYTES = Gauge(
    "media_cache_bytes",
    "Total bytes held by ready cache entries",
)
