from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Routers
from .routers.estimate import router as estimate_router

# Core modules
from .core.config import settings
from .core.errors import EstimationError
from .core.logging import configure_logging, CorrelationIdMiddleware
from .core.metrics import PromMiddleware, metrics_endpoint

async def estimation_error_handler(request: Request, exc: EstimationError) -> JSONResponse:
    """Every workflow failure leaves as {"error": code, "detail": message}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.detail},
    )

def create_app() -> FastAPI:
    """
    App factory so tests and ASGI servers can instantiate cleanly.
    """
    configure_logging()  # Set up JSON logs + correlation-id filter

    app = FastAPI(
        title="Renovation Allowance Estimator",
        version="1.0.0",
        description="Estimates current value, after-renovated value and renovation allowance for an address.",
    )

    # CORS: allow the front-end to call the API.
    allow_origins = [o.strip() for o in settings.ALLOW_ORIGINS.split(",")] if settings.ALLOW_ORIGINS else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-Id"],
    )

    # Observability middlewares
    app.add_middleware(CorrelationIdMiddleware)  # Adds/propagates X-Request-Id
    if settings.PROMETHEUS_ENABLED:
        app.add_middleware(PromMiddleware)       # Records req/latency metrics

    app.add_exception_handler(EstimationError, estimation_error_handler)

    # Meta routes
    @app.get("/v1/health", tags=["meta"])
    def health():
        return {"status": "ok", "oracle": settings.ORACLE_PROVIDER}

    @app.get("/v1/ping", tags=["meta"])
    def ping():
        return {"pong": True}

    if settings.PROMETHEUS_ENABLED:
        # Standard Prometheus scrape endpoint
        app.add_route("/v1/metrics", metrics_endpoint, methods=["GET"])

    # Business routes
    app.include_router(estimate_router, prefix="/v1", tags=["estimate"])

    return app

app = create_app()
