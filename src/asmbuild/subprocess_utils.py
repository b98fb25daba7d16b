"""Subprocess utilities for platform-safe, cancellable tool execution.

This module wraps the subprocess module so that every external tool
(assembler, linker, C compiler, objdump, objcopy, test binaries) is started
the same way:

- CREATE_NO_WINDOW on Windows (prevents console window flashing)
- stdin=DEVNULL (child processes cannot steal terminal input)
- cancellation: while waiting, the runner polls a CancellationToken and
  terminates the whole process tree when it is set
"""

import logging
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence

import psutil

from .cancellation import CancellationToken
from .errors import OperationCancelledException, ToolInvocationError

logger = logging.getLogger(__name__)

# How often a waiting runner re-checks its cancellation token
_POLL_INTERVAL = 0.1
# Grace period between terminate() and kill() for a cancelled tree
_TERMINATE_TIMEOUT = 3.0


def get_subprocess_creation_flags() -> int:
    """Get platform-specific subprocess creation flags.

    Returns:
        - Windows: subprocess.CREATE_NO_WINDOW (prevents console window)
        - Other platforms: 0 (no special flags)
    """
    if sys.platform == "win32":
        return subprocess.CREATE_NO_WINDOW
    return 0


def _apply_platform_defaults(kwargs: dict[str, Any]) -> dict[str, Any]:
    default_flags = get_subprocess_creation_flags()

    if "creationflags" in kwargs:
        kwargs["creationflags"] = kwargs["creationflags"] | default_flags
    elif default_flags:
        kwargs["creationflags"] = default_flags

    if "stdin" not in kwargs:
        kwargs["stdin"] = subprocess.DEVNULL
    return kwargs


def safe_popen(cmd: list[str], **kwargs: Any) -> subprocess.Popen:
    """Execute subprocess.Popen with platform-specific flags.

    Args:
        cmd: Command and arguments (same as subprocess.Popen)
        **kwargs: Additional arguments passed to subprocess.Popen

    Note:
        A caller-supplied 'creationflags' is OR'd with the platform default.
        A caller-supplied 'stdin' is used as-is; otherwise stdin is DEVNULL.
    """
    return subprocess.Popen(cmd, **_apply_platform_defaults(kwargs))


def terminate_process_tree(pid: int, timeout: float = _TERMINATE_TIMEOUT) -> None:
    """Terminate a process and all of its descendants.

    Children are terminated before the parent; anything still alive after
    ``timeout`` seconds is killed.
    """
    try:
        root = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return

    try:
        children = root.children(recursive=True)
    except psutil.NoSuchProcess:
        children = []

    procs = list(reversed(children)) + [root]
    for proc in procs:
        try:
            proc.terminate()
        except psutil.NoSuchProcess:
            pass

    _gone, alive = psutil.wait_procs(procs, timeout=timeout)
    for proc in alive:
        logger.debug(f"Force killing process {proc.pid}")
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            pass


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one external tool invocation."""

    command: tuple[str, ...]
    returncode: int
    output: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


def run_tool(
    cmd: Sequence[str],
    *,
    cwd: Optional[Path] = None,
    cancel_token: Optional[CancellationToken] = None,
    capture_output: bool = True,
    check: bool = True,
    description: Optional[str] = None,
    interactive: bool = False,
) -> ToolResult:
    """Run an external tool to completion, honoring cancellation.

    There is no timeout: the call blocks until the tool exits or the token
    is cancelled.

    Args:
        cmd: Command and arguments
        cwd: Working directory for the tool
        cancel_token: Token polled while waiting for the process
        capture_output: Capture stdout+stderr (merged) instead of inheriting
        check: Raise ToolInvocationError on a non-zero exit code
        description: Human name for error messages (defaults to cmd[0])
        interactive: Inherit the terminal (stdin and output), e.g. for a debugger

    Returns:
        ToolResult with exit code and captured output ("" if not captured)

    Raises:
        ToolInvocationError: Tool missing, not executable, or failed with check=True
        OperationCancelledException: The token was cancelled while waiting
    """
    command = [str(part) for part in cmd]
    name = description or command[0]
    logger.debug(f"Running: {' '.join(command)}")

    if cancel_token is not None:
        cancel_token.raise_if_cancelled(name)

    pipe_kwargs: dict[str, Any] = {}
    if interactive:
        pipe_kwargs = {"stdin": None}
    elif capture_output:
        pipe_kwargs = {
            "stdout": subprocess.PIPE,
            "stderr": subprocess.STDOUT,
            "text": True,
            "encoding": "utf-8",
            "errors": "replace",
        }

    try:
        proc = safe_popen(command, cwd=str(cwd) if cwd else None, **pipe_kwargs)
    except FileNotFoundError as e:
        raise ToolInvocationError(f"Tool not found: {command[0]}", command) from e
    except PermissionError as e:
        raise ToolInvocationError(f"Tool is not executable: {command[0]}", command) from e

    output = ""
    try:
        while True:
            try:
                stdout, _ = proc.communicate(timeout=_POLL_INTERVAL)
                output = stdout or ""
                break
            except subprocess.TimeoutExpired:
                if cancel_token is not None and cancel_token.is_cancelled:
                    logger.info(f"Cancelling {name} (pid {proc.pid})")
                    terminate_process_tree(proc.pid)
                    proc.communicate()
                    raise OperationCancelledException(f"{name} cancelled")
    except KeyboardInterrupt:
        terminate_process_tree(proc.pid)
        raise

    result = ToolResult(command=tuple(command), returncode=proc.returncode, output=output)
    logger.debug(f"{name} exited with code {result.returncode}")

    if check and not result.success:
        raise ToolInvocationError(
            f"{name} failed with exit code {result.returncode}",
            command,
            result.returncode,
            output,
        )
    return result
