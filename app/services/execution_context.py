"""Per-request proxy and cookie settings for extractor subprocesses."""

import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import quote

from app.config import Settings

logger = logging.getLogger(__name__)

SESSION_MARKER = "session-"
COOKIE_FILE_MODE = 0o600


@dataclass(frozen=True)
class ExecutionContext:
    proxy_url: Optional[str] = None
    cookies_file: Optional[str] = None
    session_id: Optional[str] = None


def write_private_file(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` readable by the owner only."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, COOKIE_FILE_MODE)
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        fh.write(content)
    # O_CREAT mode is ignored when the file already exists.
    os.chmod(path, COOKIE_FILE_MODE)


class CookieFileCell:
    """Process-wide slot for the cookie file materialized from inline config.

    Written at most once while the file stays on disk. Safe to share between
    concurrent requests.
    """

    def __init__(
        self,
        path: str | Path,
        writer: Callable[[Path, str], None] = write_private_file,
    ):
        self._path = Path(path)
        self._writer = writer
        self._materialized: Optional[Path] = None
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def current(self) -> Optional[Path]:
        """The materialized file, if it still exists."""
        materialized = self._materialized
        if materialized is not None and materialized.exists():
            return materialized
        return None

    def materialize(self, content: str) -> Path:
        with self._lock:
            existing = self.current()
            if existing is not None:
                return existing
            self._writer(self._path, content)
            self._materialized = self._path
            logger.info("Materialized cookie file at %s", self._path)
            return self._path


def with_optional_session(
    username: str, session_id: Optional[str], enabled: bool
) -> str:
    """Bind the proxy username to a sticky session.

    Usernames that already carry a session marker are returned unchanged.
    """
    if not session_id or not enabled:
        return username
    if SESSION_MARKER in username:
        return username
    return f"{username}-session-{session_id}"


class ExecutionContextResolver:
    """Resolve proxy and cookie material from settings and the cookie cell.

    Never raises: a missing proxy or cookie source just resolves to None.
    """

    def __init__(
        self,
        settings: Settings,
        cookie_cell: CookieFileCell,
        working_dir: Optional[str | Path] = None,
    ):
        self.settings = settings
        self.cookie_cell = cookie_cell
        self.working_dir = Path(working_dir) if working_dir is not None else None

    def proxy_url(self, session_id: Optional[str] = None) -> Optional[str]:
        s = self.settings
        if s.proxy_url:
            return s.proxy_url

        if not (s.proxy_host and s.proxy_port and s.proxy_username and s.proxy_password):
            return None

        username = with_optional_session(
            s.proxy_username, session_id, s.proxy_use_session
        )
        return (
            f"{s.proxy_scheme}://{quote(username, safe='')}:"
            f"{quote(s.proxy_password, safe='')}@{s.proxy_host}:{s.proxy_port}"
        )

    def cookies_file(self) -> Optional[Path]:
        cached = self.cookie_cell.current()
        if cached is not None:
            return cached

        working_dir = self.working_dir or Path.cwd()
        local_file = working_dir / self.settings.cookies_file_name
        if local_file.exists():
            return local_file

        inline = self.settings.instagram_cookies_content
        if inline and inline.strip():
            try:
                return self.cookie_cell.materialize(inline)
            except OSError:
                logger.exception(
                    "Could not write cookie file %s", self.cookie_cell.path
                )
                return None

        return None

    def resolve(self, session_id: Optional[str] = None) -> ExecutionContext:
        cookies = self.cookies_file()
        return ExecutionContext(
            proxy_url=self.proxy_url(session_id),
            cookies_file=str(cookies) if cookies is not None else None,
            session_id=session_id,
        )
