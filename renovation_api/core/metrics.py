import time
from contextlib import contextmanager
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQ_COUNT = Counter("http_requests_total", "Total HTTP requests", ["route","method","code"])
REQ_LATENCY = Histogram("http_request_duration_seconds", "Request latency", ["route","method"])

ESTIMATES = Counter("estimates_total", "Estimation calls by workflow and outcome", ["workflow","outcome"])
ORACLE_LATENCY = Histogram(
    "oracle_duration_seconds",
    "Time until the property oracle completed",
    ["provider","outcome"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60),
)

@contextmanager
def oracle_timer(provider: str):
    """
    Times one oracle run. The caller sets `outcome["label"]` once it knows
    what came back; anything left unset is recorded as an error.
    """
    outcome = {"label": "error"}
    start = time.perf_counter()
    try:
        yield outcome
    finally:
        ORACLE_LATENCY.labels(provider=provider, outcome=outcome["label"]).observe(time.perf_counter() - start)

class PromMiddleware(BaseHTTPMiddleware):
    """Counts requests and latency, labelled by route template where one matched."""
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed = time.perf_counter() - start

        route = request.scope.get("route")
        path = getattr(route, "path", None) or request.url.path
        REQ_COUNT.labels(route=path, method=request.method, code=str(response.status_code)).inc()
        REQ_LATENCY.labels(route=path, method=request.method).observe(elapsed)
        return response

async def metrics_endpoint(request: Request):
    """GET /v1/metrics, scraped by Prometheus."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
