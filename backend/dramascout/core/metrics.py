from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
)

# ---------------------------------------------------------------------------
# Task / run counters
# ---------------------------------------------------------------------------
crawl_tasks_total = Counter(
    "crawl_tasks_total",
    "Total crawl tasks by kind and final status",
    ["kind", "status"],
)
platform_runs_total = Counter(
    "platform_runs_total",
    "Total adapter executions by platform and outcome",
    ["platform", "status"],
)
platform_run_duration_seconds = Histogram(
    "platform_run_duration_seconds",
    "Duration of a single adapter execution in seconds",
    ["platform"],
    buckets=[1, 5, 10, 30, 60, 120, 300, 600],
)

# ---------------------------------------------------------------------------
# Anti-bot / navigation / extraction
# ---------------------------------------------------------------------------
anti_bot_signals_total = Counter(
    "anti_bot_signals_total",
    "Blocking signals observed by the anti-bot detector",
    ["platform", "kind"],
)
navigation_retries_total = Counter(
    "navigation_retries_total",
    "Failed navigation or request attempts that were retried",
    ["platform"],
)
extraction_failures_total = Counter(
    "extraction_failures_total",
    "Extraction calls where no locator yielded a valid record",
    ["platform"],
)

# ---------------------------------------------------------------------------
# Gauges
# ---------------------------------------------------------------------------
active_browser_sessions = Gauge(
    "active_browser_sessions",
    "Number of currently open browser sessions",
)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def write_metrics(path: str):
    """Dump the registry in text exposition format, for a node_exporter textfile collector."""
    with open(path, "wb") as f:
        f.write(get_metrics())
