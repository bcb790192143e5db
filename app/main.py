import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.requests import Request

from app.config import settings
from app.dependencies import get_context_resolver
from app.middleware import RequestContextMiddleware, get_request_id
from app.rate_limit import limiter
from app.routers import extract, health
from app.schemas.extract import ErrorResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.validate_production()

    diagnostics_task = None
    if settings.startup_diagnostics:
        from app.services.diagnostics import log_runtime_diagnostics

        diagnostics_task = asyncio.create_task(
            log_runtime_diagnostics(settings, get_context_resolver())
        )

    yield

    if diagnostics_task is not None:
        diagnostics_task.cancel()
        try:
            await diagnostics_task
        except asyncio.CancelledError:
            pass


app = FastAPI(
    title="Social Extractor API",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None if settings.environment == "production" else "/docs",
    redoc_url=None if settings.environment == "production" else "/redoc",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Middleware order (Starlette LIFO): CORSMiddleware → RequestContext → SlowAPI
# Added in reverse order so CORS runs outermost
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Accept", "Authorization"],
    expose_headers=["X-Request-ID"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    request_id = get_request_id(request)
    details = [
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    ]
    missing_url = any(
        err.get("type") == "missing" and tuple(err.get("loc", ()))[-1:] == ("url",)
        for err in exc.errors()
    )
    logger.warning("[social-extract] req=%s validation_failed %s", request_id, details)
    error = ErrorResponse(
        error="url is required" if missing_url else "Invalid request body",
        details=details,
        request_id=request_id,
    )
    return JSONResponse(
        status_code=400, content=error.model_dump(by_alias=True, exclude_none=True)
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(health.router)
app.include_router(extract.router)
