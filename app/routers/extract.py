import logging

from fastapi import APIRouter, Depends, Security
from fastapi.responses import JSONResponse
from starlette.requests import Request

from app.dependencies import get_context_resolver, get_extractors, verify_bearer_token
from app.middleware import get_request_id
from app.rate_limit import limiter
from app.schemas.extract import ErrorResponse, ExtractRequest, ExtractResponse
from app.services.execution_context import ExecutionContextResolver
from app.services.extraction_service import (
    ExtractionExhaustedError,
    UnsupportedPlatformError,
    extract_social_media,
    resolve_platform,
)
from app.services.extractors import Extractor, log_prefix

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["extract"])


def error_response(status_code: int, error: ErrorResponse) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error.model_dump(by_alias=True, exclude_none=True),
    )


@router.post(
    "/extract-social-post",
    response_model=ExtractResponse,
    responses={400: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
@limiter.limit("30/minute")
async def extract_social_post(
    request: Request,
    data: ExtractRequest,
    resolver: ExecutionContextResolver = Depends(get_context_resolver),
    extractors: list[Extractor] = Depends(get_extractors),
    _token: str = Security(verify_bearer_token),
):
    """Return the media URLs of a social post via gallery-dl, then yt-dlp.

    422 means both extractors ran and neither produced media.
    """
    request_id = get_request_id(request)
    prefix = log_prefix(request_id)

    try:
        platform = resolve_platform(data.url, data.platform)
    except UnsupportedPlatformError as exc:
        logger.warning("%s unsupported_platform resolved=%s", prefix, exc.platform)
        return error_response(
            400,
            ErrorResponse(
                error="Unsupported platform for extractor endpoint",
                details=str(exc),
                request_id=request_id,
            ),
        )

    context = resolver.resolve(data.session_id)
    logger.info(
        "%s start platform=%s session=%s proxy=%s cookies=%s",
        prefix,
        platform,
        data.session_id or "none",
        "yes" if context.proxy_url else "no",
        "yes" if context.cookies_file else "no",
    )

    try:
        result = await extract_social_media(
            data.url,
            platform,
            context,
            extractors=extractors,
            request_id=request_id,
        )
    except ExtractionExhaustedError as exc:
        return error_response(
            422,
            ErrorResponse(
                error="Failed to extract media from social post",
                details=exc.reasons,
                request_id=request_id,
            ),
        )

    return ExtractResponse(**result.model_dump(), request_id=request_id)
