"""FastAPI application entrypoint."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from redis.exceptions import RedisError

from blog_api.config import Settings
from blog_api.metrics import store_errors_total
from blog_api.post_store import PostStore, create_post_store
from blog_api.posts import router as posts_router
from blog_api.telemetry import (
    add_trace_context,
    emit_to_otel_logs,
    init_telemetry,
    shutdown_telemetry,
)

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_trace_context,  # type: ignore[list-item]
        emit_to_otel_logs,  # type: ignore[list-item]
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer(),
    ],
)

log = structlog.get_logger()


async def run_server(app: FastAPI, settings: Settings) -> PostStore:
    """Open the post store and attach it to *app*. Must precede any request."""
    if getattr(app.state, "post_store", None) is not None:
        raise RuntimeError("server is already running")
    store = create_post_store(
        settings.store_backend,
        settings.redis_url,
        key_prefix=settings.redis_key_prefix,
        index_key=settings.redis_index_key,
    )
    app.state.settings = settings
    app.state.post_store = store
    await log.ainfo("post_store_opened", backend=settings.store_backend)
    return store


async def close_server(app: FastAPI) -> None:
    """Detach and close the post store opened by run_server."""
    store: PostStore | None = getattr(app.state, "post_store", None)
    if store is None:
        raise RuntimeError("server is not running")
    app.state.post_store = None
    await store.aclose()
    await log.ainfo("post_store_closed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    init_telemetry()
    settings = Settings()
    await run_server(app, settings)
    await log.ainfo("service started", store_backend=settings.store_backend)
    yield

    try:
        await close_server(app)
        await log.ainfo("service stopped")
    finally:
        shutdown_telemetry()


app = FastAPI(title="Blog Post API", lifespan=lifespan)
app.include_router(posts_router)
FastAPIInstrumentor.instrument_app(app)


async def store_failure(request: Request, exc: Exception) -> JSONResponse:
    store_errors_total.add(1, {"route": f"{request.method} {request.url.path}"})
    await log.aexception("store_error", method=request.method, path=request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Connection resets and timeouts can surface as OSError below redis-py
for _store_exc in (RedisError, OSError):
    app.add_exception_handler(_store_exc, store_failure)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
