from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI

from trustflow import __version__
from trustflow.config import settings
from trustflow.logging_config import configure_logging
from trustflow.metrics import metrics_endpoint
from trustflow.middleware.logging_middleware import RequestLoggingMiddleware
from trustflow.routers import admin, auth, pushes, trust_flow


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()

    app.state.redis = aioredis.from_url(
        settings.redis_url, encoding="utf-8", decode_responses=True
    )
    try:
        yield
    finally:
        await app.state.redis.aclose()


app = FastAPI(title="Trust Flow API", version=__version__, lifespan=lifespan)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(auth.router)
app.include_router(pushes.router)
app.include_router(trust_flow.router)
app.include_router(admin.router)

# Prometheus metrics endpoint
app.get("/metrics")(metrics_endpoint)


@app.get("/health")
async def health_check():
    return {"status": "ok"}
