from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from starlette.requests import Request

from app.dependencies import get_context_resolver
from app.rate_limit import limiter
from app.schemas.health import HealthResponse, StatusResponse
from app.services.execution_context import ExecutionContextResolver

router = APIRouter(tags=["health"])


@router.get("/", response_model=StatusResponse)
async def service_status():
    return StatusResponse(
        status="ok",
        service="social-extractor",
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/health", response_model=HealthResponse)
@limiter.limit("60/minute")
async def health_check(
    request: Request,
    resolver: ExecutionContextResolver = Depends(get_context_resolver),
):
    """Report whether cookies and a proxy would be used right now."""
    return HealthResponse(
        status="ok",
        has_cookies_file=resolver.cookies_file() is not None,
        has_proxy_config=resolver.proxy_url() is not None,
        timestamp=datetime.now(timezone.utc),
    )
