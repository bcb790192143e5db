import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from app.config import Settings
from app.schemas.extract import ExtractionResult
from app.services.execution_context import ExecutionContext
from app.services.extractors import (
    Extractor,
    GalleryDlExtractor,
    Runner,
    YtDlpExtractor,
    log_prefix,
)
from app.services.normalizer import ExtractorOutputError
from app.services.subprocess_runner import (
    ExecFailure,
    format_exec_failure,
    run_command,
)

logger = logging.getLogger(__name__)

SUPPORTED_PLATFORMS = ("instagram", "tiktok")

# Checked in order; the first matching domain wins.
_PLATFORM_DOMAINS = (
    ("instagram", ("instagram.com",)),
    ("tiktok", ("tiktok.com",)),
    ("youtube", ("youtube.com", "youtu.be")),
    ("twitter", ("twitter.com", "x.com")),
)


@dataclass(frozen=True)
class ExtractionFailure:
    source: str
    reason: str


class UnsupportedPlatformError(ValueError):
    """Raised before orchestration when the platform is not accepted."""

    def __init__(self, platform: str):
        super().__init__(f"resolved platform: {platform}")
        self.platform = platform


class ExtractionExhaustedError(Exception):
    """Raised when every extractor failed or returned no media."""

    def __init__(self, failures: Sequence[ExtractionFailure]):
        super().__init__(f"{len(failures)} extractor(s) failed")
        self.failures = list(failures)

    @property
    def reasons(self) -> list[str]:
        return [failure.reason for failure in self.failures]


def extract_platform(url: str) -> str:
    normalized = str(url).lower()
    for platform, domains in _PLATFORM_DOMAINS:
        if any(domain in normalized for domain in domains):
            return platform
    return "unknown"


def resolve_platform(url: str, platform: Optional[str] = None) -> str:
    """Pick the explicit platform or derive it from the URL.

    Raises:
        UnsupportedPlatformError: Resolved platform is not one we extract.
    """
    resolved = platform.lower() if platform else extract_platform(url)
    if resolved not in SUPPORTED_PLATFORMS:
        raise UnsupportedPlatformError(resolved)
    return resolved


def build_extractors(settings: Settings) -> list[Extractor]:
    """gallery-dl first, yt-dlp as the fallback."""
    limits = {
        "timeout": settings.extractor_timeout_seconds,
        "max_output_bytes": settings.extractor_max_output_bytes,
    }
    return [
        GalleryDlExtractor(settings.gallery_dl_path, **limits),
        YtDlpExtractor(
            settings.yt_dlp_path,
            session_cookie=settings.instagram_sessionid or None,
            **limits,
        ),
    ]


async def extract_social_media(
    url: str,
    platform: str,
    context: ExecutionContext,
    *,
    extractors: Sequence[Extractor],
    runner: Optional[Runner] = None,
    request_id: str = "-",
) -> ExtractionResult:
    """Try each extractor in order and return the first non-empty result.

    Extractors run strictly one after another; a failing extractor never
    aborts the request, its reason is recorded and the next one is tried.

    Raises:
        ExtractionExhaustedError: No extractor produced media. Reasons keep
            extractor order.
    """
    runner = runner or run_command
    prefix = log_prefix(request_id)
    failures: list[ExtractionFailure] = []

    for extractor in extractors:
        try:
            media = await extractor.run(url, platform, context, runner, request_id)
        except (ExecFailure, ExtractorOutputError) as exc:
            message = format_exec_failure(exc)
            logger.error("%s %s error message=%s", prefix, extractor.name, message)
            failures.append(ExtractionFailure(extractor.name, f"{extractor.name}: {message}"))
            continue

        if not media.media_urls:
            failures.append(
                ExtractionFailure(extractor.name, f"{extractor.name} returned no media")
            )
            continue

        logger.info(
            "%s success extractor=%s media=%d",
            prefix,
            extractor.name,
            len(media.media_urls),
        )
        return ExtractionResult(
            title=media.title,
            description=media.description,
            media_urls=media.media_urls,
            extractor=extractor.name,
            attempts=1,
        )

    logger.error("%s failed all_extractors errors=%d", prefix, len(failures))
    raise ExtractionExhaustedError(failures)
