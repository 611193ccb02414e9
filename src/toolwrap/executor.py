"""Subprocess executor: shell=False, timeout, bounded output capture.

Produces the RawResult every parser consumes. A run that exceeds the
output ceiling is cut short and marked truncated; a run that exceeds its
timeout raises ExecutionTimeoutError.
"""

from __future__ import annotations

import subprocess
import threading
import time
from collections.abc import Mapping, Sequence

from toolwrap.config import DEFAULT_CONFIG, CoreConfig
from toolwrap.exceptions import ExecutionError, ExecutionTimeoutError
from toolwrap.logging import get_logger
from toolwrap.models import RawResult
from toolwrap.windowing import sanitize_error_output, strip_ansi

logger = get_logger(__name__)


def _read_pipe(pipe, chunks: list[bytes], limit: int, total: list[int], lock: threading.Lock) -> None:
    """Read from a pipe incrementally, respecting the shared byte limit."""
    while True:
        with lock:
            remaining = limit - total[0]
        if remaining <= 0:
            break
        data = pipe.read1(min(65536, remaining))
        if not data:
            break
        with lock:
            allowed = max(0, limit - total[0])
            chunks.append(data[:allowed])
            total[0] += len(data[:allowed])


def _write_stdin(pipe, data: bytes) -> None:
    try:
        pipe.write(data)
    except (BrokenPipeError, OSError) as e:
        logger.debug("stdin closed early: %s", e)
    finally:
        try:
            pipe.close()
        except OSError as e:
            logger.debug("stdin close failed: %s", e)


def _terminate(proc: subprocess.Popen, sig: int, grace: float) -> None:
    """Send sig, then SIGKILL if the child outlives the grace period."""
    try:
        proc.send_signal(sig)
    except ProcessLookupError:
        return
    try:
        proc.wait(timeout=grace)
    except subprocess.TimeoutExpired:
        logger.warning("Process %d ignored signal %d, killing", proc.pid, sig)
        proc.kill()
        proc.wait(timeout=5)


def execute(
    argv: Sequence[str],
    *,
    timeout: float | None = None,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    stdin: str | None = None,
    config: CoreConfig = DEFAULT_CONFIG,
) -> RawResult:
    """Execute a command as a subprocess (shell=False).

    Both pipes are read on threads with a shared byte counter bounded by
    config.max_buffer, so a runaway child cannot exhaust memory.

    Args:
        argv: Command and arguments. Parameters must already be guarded.
        timeout: Seconds before the child is signalled. Defaults to config.
        cwd: Working directory.
        env: Full environment for the child. Defaults to the parent's.
        stdin: Text written to the child's stdin, which is then closed.
        config: Limits for this call.

    Returns:
        RawResult with ANSI-stripped output and path-sanitized stderr.

    Raises:
        ExecutionTimeoutError: the child ran longer than timeout.
        ExecutionError: the binary is missing or could not be started.
    """
    cmd_list = list(argv)
    if not cmd_list:
        raise ExecutionError("Empty command")
    timeout = timeout or config.default_timeout
    max_bytes = config.max_buffer

    start = time.monotonic()
    truncated = False
    logger.debug("Executing %s", cmd_list[0], extra={"argc": len(cmd_list)})
    try:
        proc = subprocess.Popen(
            cmd_list,
            stdin=subprocess.PIPE if stdin is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=dict(env) if env is not None else None,
        )
    except FileNotFoundError as exc:
        raise ExecutionError(f"Binary not found: {cmd_list[0]}") from exc
    except PermissionError as exc:
        raise ExecutionError(f"Permission denied: {cmd_list[0]}") from exc
    except OSError as e:
        raise ExecutionError(f"OS error executing {cmd_list[0]}: {e}") from e

    stdout_chunks: list[bytes] = []
    stderr_chunks: list[bytes] = []
    total = [0]  # shared across both pipes
    lock = threading.Lock()

    threads = [
        threading.Thread(
            target=_read_pipe,
            args=(proc.stdout, stdout_chunks, max_bytes, total, lock),
            daemon=True,
        ),
        threading.Thread(
            target=_read_pipe,
            args=(proc.stderr, stderr_chunks, max_bytes, total, lock),
            daemon=True,
        ),
    ]
    if stdin is not None:
        threads.append(
            threading.Thread(
                target=_write_stdin,
                args=(proc.stdin, stdin.encode("utf-8")),
                daemon=True,
            )
        )
    for t in threads:
        t.start()

    deadline = start + timeout
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.warning("Command timed out after %ss: %s", timeout, cmd_list[0])
            _terminate(proc, config.kill_signal, config.kill_grace)
            for t in threads:
                t.join(timeout=1)
            raise ExecutionTimeoutError(
                f"Command timed out after {timeout}s: {' '.join(cmd_list)}",
                timeout=timeout,
                command=cmd_list,
            )
        if total[0] >= max_bytes:
            truncated = True
            logger.info("Output exceeded %d bytes, stopping %s", max_bytes, cmd_list[0])
            _terminate(proc, config.kill_signal, config.kill_grace)
            break
        try:
            proc.wait(timeout=min(0.1, remaining))
            break
        except subprocess.TimeoutExpired:
            continue

    for t in threads:
        t.join(timeout=5)

    # The child may have exited before the loop saw the limit
    if total[0] >= max_bytes:
        truncated = True

    elapsed_ms = int((time.monotonic() - start) * 1000)
    stdout = b"".join(stdout_chunks).decode("utf-8", errors="replace")
    stderr = b"".join(stderr_chunks).decode("utf-8", errors="replace")

    return RawResult(
        stdout=strip_ansi(stdout),
        stderr=sanitize_error_output(strip_ansi(stderr), all_paths=config.sanitize_all_paths),
        exit_code=proc.returncode if proc.returncode is not None else -1,
        duration_ms=elapsed_ms,
        truncated=truncated,
        command=tuple(cmd_list),
    )
