from __future__ import annotations

import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from stockdesk.app.api.deps import client_key
from stockdesk.app.api.v1.router import router as v1_router
from stockdesk.app.core.config import Settings, get_settings
from stockdesk.app.core.logging_config import get_logger, setup_logging
from stockdesk.app.core.rate_limit import RateLimiter, RateLimitExceeded
from stockdesk.services.errors import OrderError

log = get_logger(__name__)


def _too_many_requests(exc: RateLimitExceeded, request_id: str | None) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"detail": exc.message, "code": "too_many_requests", "request_id": request_id},
        headers={"Retry-After": str(exc.retry_after)},
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    app = FastAPI(title="STOCKDESK API", version="0.1.0")
    app.state.settings = settings
    app.state.rate_limiter = RateLimiter(settings)

    @app.middleware("http")
    async def request_id_and_access_log(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()

        # preflight jamais limité
        if request.method != "OPTIONS":
            try:
                request.app.state.rate_limiter.hit_api(client_key(request))
            except RateLimitExceeded as exc:
                log.warning("rate limited %s %s client=%s", request.method, request.url.path, client_key(request))
                response = _too_many_requests(exc, request_id)
                response.headers["X-Request-Id"] = request_id
                return response

        response = await call_next(request)

        response.headers["X-Request-Id"] = request_id
        log.info(
            "%s %s %s %.1fms rid=%s",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
            request_id,
        )
        return response

    # ajoutés après : enveloppent le middleware ci-dessus
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Request-Id"],
        expose_headers=["Content-Length", "X-Request-Id", "Retry-After"],
    )

    @app.exception_handler(OrderError)
    async def order_error_handler(request: Request, exc: OrderError):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.message,
                "code": exc.code,
                "request_id": getattr(request.state, "request_id", None),
            },
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        log.warning("login rate limited client=%s", client_key(request))
        return _too_many_requests(exc, getattr(request.state, "request_id", None))

    app.include_router(v1_router, prefix="/v1")
    return app


app = create_app()
