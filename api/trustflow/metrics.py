from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Push admission
push_admissions = Counter(
    "trustflow_push_admissions_total",
    "Push submissions by admission outcome",
    ["kind", "outcome"],  # outcome: accepted | rejected | invalid
)

# Score recompute
recompute_duration = Histogram(
    "trustflow_recompute_duration_seconds",
    "Time to recompute one user's Trust Flow",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

contributions_archived = Counter(
    "trustflow_contributions_archived_total",
    "Contribution records written to the archive",
)

cache_writes = Counter(
    "trustflow_cache_writes_total",
    "Trust Flow cache writes",
    ["result"],  # applied | superseded
)

recompute_outcomes = Counter(
    "trustflow_recompute_outcomes_total",
    "Retried recompute results",
    ["outcome"],  # fresh | fallback
)

retry_attempts = Counter(
    "trustflow_retry_attempts_total",
    "Failed attempts inside the retry combinator",
    ["cause"],  # error | rejected
)

# HTTP request metrics (from middleware)
http_requests = Counter(
    "trustflow_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)

http_request_duration = Histogram(
    "trustflow_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "path"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)


async def metrics_endpoint():
    """FastAPI endpoint handler that returns Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
