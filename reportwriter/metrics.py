from prometheus_client import Counter, Histogram

REPORT_REQUESTS = Counter(
    "report_requests_total",
    "Report renders by outcome",
    ["report", "outcome"],
)
REPORT_OVERRUN_RETRIES = Counter(
    "report_overrun_retries_total",
    "Corrective re-queries issued after a page overrun",
    ["report"],
)
REPORT_QUERY_ATTEMPTS = Histogram(
    "report_query_attempts",
    "Data query attempts needed per report render",
    ["report"],
    buckets=(1, 2, 3),
)


def observe_report(report_key: str, outcome: str, attempts: int) -> None:
    REPORT_REQUESTS.labels(report=report_key, outcome=outcome).inc()
    REPORT_QUERY_ATTEMPTS.labels(report=report_key).observe(attempts)


def observe_overrun_retry(report_key: str) -> None:
    REPORT_OVERRUN_RETRIES.labels(report=report_key).inc()
