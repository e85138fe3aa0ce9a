from prometheus_client import Counter, Gauge

request_counter = Counter(
    "prbuilder_num_req", "Total number of requests", labelnames=["path"]
)
webhook_counter = Counter(
    "prbuilder_num_webhook",
    "Total number of webhooks",
    labelnames=["event", "action"],
)
webhook_skipped_counter = Counter(
    "prbuilder_num_webhook_skipped",
    "Total number of webhooks without a subscribed project",
    labelnames=["event"],
)

poll_counter = Counter(
    "prbuilder_num_poll",
    "Number of poll passes over open pull requests",
    labelnames=["result"],
)

build_dispatch_counter = Counter(
    "prbuilder_num_build_dispatch",
    "Number of build dispatch attempts",
    labelnames=["result"],
)

build_cancel_counter = Counter(
    "prbuilder_num_build_cancel",
    "Number of in-flight builds cancelled to make room for a newer one",
)

status_publish_counter = Counter(
    "prbuilder_num_status_publish",
    "Number of commit status publications",
    labelnames=["result"],
)

error_counter = Counter(
    "prbuilder_error_counter", "Total number of errors", labelnames=["context"]
)

api_call_count = Counter(
    "prbuilder_num_api_calls",
    "Total number of GitHub API calls",
    labelnames=["endpoint"],
)

tracked_pull_requests = Gauge(
    "prbuilder_tracked_pull_requests",
    "Number of pull requests tracked per subscriber",
    labelnames=["subscriber"],
)

tracked_builds = Gauge(
    "prbuilder_tracked_builds",
    "Number of in-flight builds per subscriber",
    labelnames=["subscriber"],
)


def record_api_call(endpoint: str) -> None:
    api_call_count.labels(endpoint=endpoint).inc()
