"""gallery-dl and yt-dlp invocation strategies."""

import logging
import time
from typing import Awaitable, Callable, Optional, Sequence

from app.services.execution_context import ExecutionContext
from app.services.normalizer import (
    ExtractedMedia,
    parse_gallery_output,
    parse_general_output,
)
from app.services.subprocess_runner import (
    DEFAULT_MAX_OUTPUT_BYTES,
    DEFAULT_TIMEOUT_SECONDS,
    CommandOutput,
    format_exec_failure,
)

logger = logging.getLogger(__name__)

# The only platform that needs an authenticated session to serve media.
COOKIE_PLATFORM = "instagram"

Runner = Callable[..., Awaitable[CommandOutput]]


def log_prefix(request_id: str) -> str:
    return f"[social-extract] req={request_id}"


class Extractor:
    """One external extraction tool: argument building plus output parsing."""

    name: str = ""

    def __init__(
        self,
        binary: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
    ):
        self.binary = binary
        self.timeout = timeout
        self.max_output_bytes = max_output_bytes

    def build_args(
        self, url: str, platform: str, context: ExecutionContext
    ) -> list[str]:
        raise NotImplementedError

    def parse(self, stdout: str) -> ExtractedMedia:
        raise NotImplementedError

    def _context_args(self, platform: str, context: ExecutionContext) -> list[str]:
        args = []
        if context.proxy_url:
            args += ["--proxy", context.proxy_url]
        if context.cookies_file and platform == COOKIE_PLATFORM:
            args += ["--cookies", context.cookies_file]
        return args

    async def run(
        self,
        url: str,
        platform: str,
        context: ExecutionContext,
        runner: Runner,
        request_id: str,
    ) -> ExtractedMedia:
        """Invoke the tool once and normalize its stdout.

        Raises:
            ExecFailure: The subprocess failed.
            ExtractorOutputError: The output could not be decoded.
        """
        prefix = log_prefix(request_id)
        args = self.build_args(url, platform, context)
        started_at = time.monotonic()
        logger.info(
            "%s %s start binary=%s proxy=%s cookies=%s session=%s",
            prefix,
            self.name,
            self.binary,
            "yes" if context.proxy_url else "no",
            "yes" if context.cookies_file else "no",
            context.session_id or "none",
        )

        try:
            output = await runner(
                self.binary,
                args,
                timeout=self.timeout,
                max_output_bytes=self.max_output_bytes,
            )
            media = self.parse(output.stdout)
        except Exception as exc:
            logger.error(
                "%s %s failed elapsedMs=%d %s",
                prefix,
                self.name,
                _elapsed_ms(started_at),
                format_exec_failure(exc),
            )
            raise

        logger.info(
            "%s %s success elapsedMs=%d media=%d",
            prefix,
            self.name,
            _elapsed_ms(started_at),
            len(media.media_urls),
        )
        return media


class GalleryDlExtractor(Extractor):
    name = "gallery-dl"

    def build_args(
        self, url: str, platform: str, context: ExecutionContext
    ) -> list[str]:
        # -g prints media URLs without downloading anything.
        return [*self._context_args(platform, context), "-g", url]

    def parse(self, stdout: str) -> ExtractedMedia:
        return parse_gallery_output(stdout)


class YtDlpExtractor(Extractor):
    name = "yt-dlp"
    BASE_ARGS: Sequence[str] = (
        "--dump-single-json",
        "--skip-download",
        "--no-warnings",
        "--ignore-errors",
    )

    def __init__(self, binary: str, *, session_cookie: Optional[str] = None, **kwargs):
        super().__init__(binary, **kwargs)
        self.session_cookie = session_cookie

    def build_args(
        self, url: str, platform: str, context: ExecutionContext
    ) -> list[str]:
        args = [*self.BASE_ARGS, *self._context_args(platform, context)]
        if self.session_cookie and platform == COOKIE_PLATFORM:
            args += ["--add-header", f"Cookie: sessionid={self.session_cookie}"]
        args.append(url)
        return args

    def parse(self, stdout: str) -> ExtractedMedia:
        return parse_general_output(stdout)


def _elapsed_ms(started_at: float) -> int:
    return int((time.monotonic() - started_at) * 1000)
