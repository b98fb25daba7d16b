"""
Centralized user-facing output for asmbuild.

Every line is prefixed with the elapsed time since program launch in
MM:SS.cc format and colored by severity, so a glance at the terminal shows
which pipeline step ran, how long it took, and whether it failed.

Example output:
    00:00.01 asmbuild v0.3.0
    00:00.02 [1/5] Ensuring project layout...
    00:00.03 [2/5] Discovering sources...
    00:00.03       network: 2 files
    00:00.41 ✓ Built build/output

Usage:
    from asmbuild.output import log, log_phase, log_detail, log_success

    log_phase(1, 5, "Ensuring project layout...")
    log_detail("network: 2 files")
    log_success("Built build/output")

Diagnostics that are only useful when debugging asmbuild itself go through
the standard ``logging`` module instead.
"""

import time
from types import TracebackType
from typing import Optional

from rich.console import Console
from rich.text import Text

# Global state for the timer
_start_time: Optional[float] = None
_console: Console = Console(highlight=False)
_verbose: bool = True

STYLE_STEP = "blue"
STYLE_SUCCESS = "green"
STYLE_WARNING = "bold yellow"
STYLE_ERROR = "red"


def init_timer(console: Optional[Console] = None) -> None:
    """
    Initialize the program timer.

    Args:
        console: Optional rich Console to write to (defaults to stdout)
    """
    global _start_time, _console
    _start_time = time.time()
    if console is not None:
        _console = console


def set_console(console: Console) -> None:
    """Redirect all output to the given rich Console."""
    global _console
    _console = console


def get_console() -> Console:
    """Return the Console currently receiving output."""
    return _console


def set_verbose(verbose: bool) -> None:
    """
    Set verbose mode.

    Args:
        verbose: If False, messages logged with verbose_only=True are dropped.
    """
    global _verbose
    _verbose = verbose


def get_elapsed() -> float:
    """Seconds since the timer was initialized."""
    if _start_time is None:
        init_timer()
    return time.time() - _start_time  # type: ignore


def format_timestamp() -> str:
    """
    Format the current elapsed time as MM:SS.cc.

    Returns:
        Formatted timestamp string
    """
    elapsed = get_elapsed()
    minutes = int(elapsed // 60)
    seconds = elapsed % 60
    return f"{minutes:02d}:{seconds:05.2f}"


def _print(message: str, style: Optional[str] = None) -> None:
    line = Text(f"{format_timestamp()} ")
    line.append(message, style=style)
    _console.print(line, soft_wrap=True)


def log(message: str, verbose_only: bool = False, style: Optional[str] = None) -> None:
    """
    Log a message with timestamp.

    Args:
        message: Message to log
        verbose_only: If True, only print if verbose mode is enabled
        style: Optional rich style for the message body
    """
    if verbose_only and not _verbose:
        return
    _print(message, style)


def log_phase(phase: int, total: int, message: str, verbose_only: bool = False) -> None:
    """
    Log a pipeline phase message.

    Format: [N/M] message
    """
    if verbose_only and not _verbose:
        return
    _print(f"[{phase}/{total}] {message}", STYLE_STEP)


def log_step(message: str, verbose_only: bool = False) -> None:
    """Log the start of a step (blue)."""
    if verbose_only and not _verbose:
        return
    _print(message, STYLE_STEP)


def log_detail(message: str, indent: int = 6, verbose_only: bool = False) -> None:
    """
    Log a detail message (indented).

    Args:
        message: Detail message
        indent: Number of spaces to indent (default 6)
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(f"{' ' * indent}{message}")


def log_file(kind: str, filename: str, cached: bool = False, verbose_only: bool = True) -> None:
    """
    Log a per-file action.

    Format: [kind] filename (cached)
    """
    if verbose_only and not _verbose:
        return
    suffix = " (cached)" if cached else ""
    _print(f"      [{kind}] {filename}{suffix}")


def log_header(title: str, version: str) -> None:
    """Log the program banner."""
    _print(f"{title} v{version}", "bold")


def log_section(title: str) -> None:
    """Log a section title (yellow), used by listing commands."""
    _print(title, STYLE_WARNING)


def log_build_complete(build_time: float, verbose_only: bool = False) -> None:
    """Log build completion time."""
    if verbose_only and not _verbose:
        return
    _print(f"Build time: {build_time:.2f}s")


def log_error(message: str) -> None:
    """Log an error message (red)."""
    _print(f"✗ {message}", STYLE_ERROR)


def log_warning(message: str) -> None:
    """Log a warning message (yellow)."""
    _print(f"⚠ {message}", STYLE_WARNING)


def log_success(message: str) -> None:
    """Log a success message (green)."""
    _print(f"✓ {message}", STYLE_SUCCESS)


def log_raw(text: str) -> None:
    """Write tool output verbatim, without timestamp or markup."""
    _console.print(Text(text), soft_wrap=True, end="" if text.endswith("\n") else "\n")


class TimedLogger:
    """
    Context manager for logging with elapsed time tracking.

    Usage:
        with TimedLogger("Linking", phase=(5, 5)) as step:
            step.detail("3 objects")
        # Automatically logs completion time
    """

    def __init__(self, operation: str, phase: Optional[tuple[int, int]] = None, verbose_only: bool = False):
        self.operation = operation
        self.phase = phase
        self.verbose_only = verbose_only
        self.start_time = 0.0

    def __enter__(self) -> "TimedLogger":
        self.start_time = time.time()
        if self.phase:
            log_phase(self.phase[0], self.phase[1], f"{self.operation}...", self.verbose_only)
        else:
            log_step(f"{self.operation}...", self.verbose_only)
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        del exc_val, exc_tb  # Unused
        elapsed = time.time() - self.start_time
        if exc_type is None:
            log_detail(f"Done ({elapsed:.2f}s)", verbose_only=self.verbose_only)
        elif not self.verbose_only or _verbose:
            _print(f"      Failed after {elapsed:.2f}s", STYLE_ERROR)
        return None

    def detail(self, message: str) -> None:
        """Log a detail message within this operation."""
        log_detail(message, verbose_only=self.verbose_only)
