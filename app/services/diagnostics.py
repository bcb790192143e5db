"""Startup check: log which extractor binaries are installed."""

import logging
import os

from app.config import Settings
from app.services.execution_context import ExecutionContextResolver
from app.services.subprocess_runner import (
    ExecFailure,
    format_exec_failure,
    run_command,
    to_single_line,
)

logger = logging.getLogger(__name__)

DIAGNOSTIC_TIMEOUT_SECONDS = 15
DIAGNOSTIC_MAX_OUTPUT_BYTES = 1024 * 1024
LOG_PREFIX = "[extractor-runtime]"


def runtime_checks(settings: Settings) -> list[tuple[str, str]]:
    return [
        ("yt-dlp", settings.yt_dlp_path),
        ("gallery-dl", settings.gallery_dl_path),
        ("python3", "python3"),
    ]


async def log_runtime_diagnostics(
    settings: Settings, resolver: ExecutionContextResolver
) -> None:
    """Log the working dir, config state and each tool's ``--version``.

    Started from lifespan as a background task. Missing tools are logged as
    warnings; the service still starts.
    """
    logger.info(
        "%s cwd=%s cookies=%s proxy=%s",
        LOG_PREFIX,
        os.getcwd(),
        "yes" if resolver.cookies_file() else "no",
        "yes" if resolver.proxy_url() else "no",
    )

    for label, binary in runtime_checks(settings):
        try:
            output = await run_command(
                binary,
                ["--version"],
                timeout=DIAGNOSTIC_TIMEOUT_SECONDS,
                max_output_bytes=DIAGNOSTIC_MAX_OUTPUT_BYTES,
            )
        except ExecFailure as exc:
            logger.warning(
                "%s %s: missing %s", LOG_PREFIX, label, format_exec_failure(exc)
            )
            continue
        version = to_single_line(output.stdout or output.stderr or "ok")
        logger.info("%s %s: ok %s", LOG_PREFIX, label, version)
