from prometheus_client import Counter, Histogram

# Labels stay low-cardinality: operation names only, never object keys
STORAGE_OPERATIONS = Counter(
    "storage_operations_total",
    "Total object storage operations",
    ["operation", "outcome"],
)

STORAGE_LATENCY = Histogram(
    "storage_operation_duration_seconds",
    "Object storage operation latency in seconds",
    ["operation"],
)
