from prometheus_client import Counter, Histogram, REGISTRY


# Reuse already-registered collectors so module reloads and test runs do not fail.
def get_or_create_metric(name, documentation, metric_type, **kwargs):
    try:
        return metric_type(name, documentation, **kwargs)
    except ValueError:
        return REGISTRY._names_to_collectors[name]


REQUESTS_TOTAL = get_or_create_metric(
    "planner_requests_total",
    "Total requests",
    Counter,
    labelnames=["endpoint", "status"],
)

REQUEST_LATENCY_SECONDS = get_or_create_metric(
    "planner_request_latency_seconds",
    "Request latency",
    Histogram,
    labelnames=["endpoint"],
)

COMMANDS_TOTAL = get_or_create_metric(
    "planner_commands_total",
    "Natural-language commands by intent and outcome",
    Counter,
    labelnames=["intent", "outcome"],
)

COMMAND_CONFIDENCE = get_or_create_metric(
    "planner_command_confidence",
    "Classifier confidence of parsed commands",
    Histogram,
    buckets=(0.3, 0.5, 0.6, 0.7, 0.75, 0.8, 0.85, 0.9, 1.0),
)
