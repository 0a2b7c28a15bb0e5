import asyncio
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from src.api.router import api_router
from src.core.config import settings
from src.core.logger import configure_logging, get_logger
from src.infrastructure.http.client import MetricsApiClient
from src.services.metrics_cache import MetricsCacheRegistry

# Configure logging once and get service logger
configure_logging()
logger = get_logger("dashboard.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("dashboard_service_starting", extra={"api": settings.api_base_url})
    app.state.http = httpx.AsyncClient(timeout=settings.api_timeout_seconds)
    app.state.api_client = MetricsApiClient(
        app.state.http,
        settings.api_base_url,
        token=settings.api_token,
        max_attempts=settings.api_max_attempts,
        base_delay=settings.api_retry_base_delay_seconds,
        max_delay=settings.api_retry_max_delay_seconds,
    )
    app.state.registry = MetricsCacheRegistry(
        app.state.api_client,
        max_queries=settings.metrics_max_tracked_queries,
        refresh_interval=settings.metrics_refresh_interval_seconds,
        capacity=settings.metrics_window_capacity,
    )
    app.state.registry.start()
    app.state.ready_event = asyncio.Event()
    app.state.ready_event.set()
    try:
        yield
    finally:
        logger.info("dashboard_service_stopping")
        app.state.ready_event.clear()
        await app.state.registry.stop()
        await app.state.http.aclose()


app = FastAPI(title="Bons de Commande Dashboard", version="0.1.0", lifespan=lifespan)
app.include_router(api_router)


@app.get("/metrics")
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
