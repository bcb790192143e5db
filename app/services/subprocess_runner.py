"""Run external CLI tools with a wall-clock timeout and bounded output."""

import asyncio
import re
import signal
from dataclasses import dataclass
from typing import Optional, Sequence

DEFAULT_TIMEOUT_SECONDS = 120.0
DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024
MAX_FIELD_CHARS = 500
_READ_CHUNK_BYTES = 64 * 1024


@dataclass(frozen=True)
class CommandOutput:
    stdout: str
    stderr: str


class ExecFailure(Exception):
    """Raised when a subprocess cannot start, exits non-zero, or is killed."""

    def __init__(
        self,
        message: str,
        *,
        exit_code: Optional[int] = None,
        signal: Optional[str] = None,
        stderr: str = "",
        stdout: str = "",
        timed_out: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code
        self.signal = signal
        self.stderr = stderr
        self.stdout = stdout
        self.timed_out = timed_out


class _OutputLimitExceeded(Exception):
    def __init__(self, stream_name: str):
        super().__init__(stream_name)
        self.stream_name = stream_name


def to_single_line(value: object) -> str:
    return re.sub(r"\s+", " ", str(value or "")).strip()


def truncate(value: str, max_chars: int = MAX_FIELD_CHARS) -> str:
    if len(value) <= max_chars:
        return value
    return f"{value[:max_chars]}..."


def format_exec_failure(exc: BaseException) -> str:
    """One-line diagnostic used for both logs and client-facing reasons."""
    if not isinstance(exc, ExecFailure):
        return truncate(to_single_line(exc)) or type(exc).__name__

    parts = [truncate(to_single_line(exc.message))]
    if exc.exit_code is not None:
        parts.append(f"code={exc.exit_code}")
    if exc.signal:
        parts.append(f"signal={exc.signal}")
    if exc.stderr:
        parts.append(f"stderr={truncate(to_single_line(exc.stderr))}")
    if exc.stdout:
        parts.append(f"stdout={truncate(to_single_line(exc.stdout))}")
    return " | ".join(parts)


def _signal_name(returncode: int) -> Optional[str]:
    if returncode >= 0:
        return None
    try:
        return signal.Signals(-returncode).name
    except ValueError:
        return f"SIG{-returncode}"


async def _pump(
    stream: asyncio.StreamReader, buffer: bytearray, limit: int, name: str
) -> None:
    while True:
        chunk = await stream.read(_READ_CHUNK_BYTES)
        if not chunk:
            return
        buffer.extend(chunk)
        if len(buffer) > limit:
            raise _OutputLimitExceeded(name)


def _decode(buffer: bytearray) -> str:
    return bytes(buffer).decode("utf-8", errors="replace")


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()


async def run_command(
    binary: str,
    args: Sequence[str],
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
) -> CommandOutput:
    """Run ``binary`` with ``args`` and capture stdout/stderr.

    The argument vector is never echoed into failure messages since it may
    carry proxy credentials.

    Raises:
        ExecFailure: Spawn error, timeout, output overflow, or non-zero exit.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            binary,
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise ExecFailure(
            f"{binary} could not be started: {exc.strerror or exc}"
        ) from exc

    stdout_buf = bytearray()
    stderr_buf = bytearray()

    async def collect() -> int:
        await asyncio.gather(
            _pump(proc.stdout, stdout_buf, max_output_bytes, "stdout"),
            _pump(proc.stderr, stderr_buf, max_output_bytes, "stderr"),
        )
        return await proc.wait()

    try:
        returncode = await asyncio.wait_for(collect(), timeout=timeout)
    except asyncio.TimeoutError:
        await _kill(proc)
        raise ExecFailure(
            f"{binary} timed out after {timeout:g}s",
            signal="SIGKILL",
            stderr=_decode(stderr_buf),
            stdout=_decode(stdout_buf),
            timed_out=True,
        )
    except _OutputLimitExceeded as exc:
        await _kill(proc)
        raise ExecFailure(
            f"{binary} {exc.stream_name} exceeded {max_output_bytes} bytes",
            signal="SIGKILL",
            stderr=_decode(stderr_buf),
        )

    stdout = _decode(stdout_buf)
    stderr = _decode(stderr_buf)
    if returncode != 0:
        sig = _signal_name(returncode)
        raise ExecFailure(
            f"{binary} exited with status {returncode}"
            if sig is None
            else f"{binary} was terminated by {sig}",
            exit_code=returncode if sig is None else None,
            signal=sig,
            stderr=stderr,
            stdout=stdout,
        )

    return CommandOutput(stdout=stdout, stderr=stderr)
