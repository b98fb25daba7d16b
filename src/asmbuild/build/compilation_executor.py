"""
Compilation executor - per-file assembly for SEPARATE mode.

Units are independent (distinct outputs, no shared state), so with more than
one worker they are assembled on a thread pool. Whatever the worker count,
failures are reported deterministically: all jobs are allowed to finish,
failures are sorted by (category, file name) and the first one is raised.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence

from ..cancellation import CancellationToken
from ..errors import OperationCancelledException, ToolInvocationError
from ..interrupt_utils import handle_keyboard_interrupt_properly
from ..output import log_file
from .assembler import Assembler
from .build_utils import is_stale
from .source_scanner import SourceFile

logger = logging.getLogger(__name__)


class JobState(Enum):
    """State of a compilation job."""

    PENDING = "pending"
    SKIPPED = "skipped"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class CompilationJob:
    """Single assembly job."""

    source: SourceFile
    output_path: Path
    state: JobState = JobState.PENDING
    error: Optional[ToolInvocationError] = None
    start_time: Optional[float] = None
    end_time: Optional[float] = None

    @property
    def sort_key(self) -> tuple[str, str]:
        return (self.source.category, self.source.name)

    def duration(self) -> Optional[float]:
        if self.start_time is not None and self.end_time is not None:
            return self.end_time - self.start_time
        return None


class CompilationExecutor:
    """Assembles a batch of units sequentially or on a worker pool."""

    def __init__(self, assembler: Assembler, jobs: int = 1, cancel_token: Optional[CancellationToken] = None):
        self.assembler = assembler
        self.num_workers = max(1, jobs)
        self.cancel_token = cancel_token

    def _execute(self, job: CompilationJob, force: bool) -> CompilationJob:
        if self.cancel_token is not None and self.cancel_token.is_cancelled:
            job.state = JobState.CANCELLED
            return job

        if not force and not is_stale(job.output_path, [job.source.path]):
            job.state = JobState.SKIPPED
            log_file(job.source.category, job.source.name, cached=True)
            return job

        log_file(job.source.category, job.source.name)
        job.start_time = time.time()
        try:
            self.assembler.assemble(job.source.path, job.output_path)
            job.state = JobState.COMPLETED
        except ToolInvocationError as e:
            job.state = JobState.FAILED
            job.error = e
            logger.debug(f"Assembly failed for {job.source.relative_path}: {e}")
        except OperationCancelledException:
            job.state = JobState.CANCELLED
        except KeyboardInterrupt as ke:
            handle_keyboard_interrupt_properly(ke)
        finally:
            job.end_time = time.time()
        if job.state is JobState.COMPLETED:
            logger.debug(f"Assembled {job.source.relative_path} in {job.duration():.2f}s")
        return job

    def run(self, units: Sequence[tuple[SourceFile, Path]], force: bool = False) -> list[CompilationJob]:
        """Assemble every unit.

        Args:
            units: (source, object path) pairs
            force: Reassemble even if the object is up to date

        Returns:
            Jobs in input order

        Raises:
            ToolInvocationError: The first failure in (category, file name) order
            OperationCancelledException: If cancellation was requested
        """
        jobs = [CompilationJob(source=src, output_path=obj) for src, obj in units]
        if not jobs:
            return jobs

        if self.num_workers == 1 or len(jobs) == 1:
            for job in jobs:
                self._execute(job, force)
                # Sequential mode is fail-fast
                if job.state is JobState.FAILED:
                    break
        else:
            logger.debug(f"Assembling {len(jobs)} units on {self.num_workers} workers")
            with ThreadPoolExecutor(max_workers=self.num_workers, thread_name_prefix="assemble") as pool:
                futures = [pool.submit(self._execute, job, force) for job in jobs]
                for future in futures:
                    future.result()

        failures = sorted((j for j in jobs if j.state is JobState.FAILED), key=lambda j: j.sort_key)
        if failures:
            first = failures[0]
            assert first.error is not None
            if len(failures) > 1:
                others = ", ".join(str(j.source.relative_path) for j in failures[1:])
                logger.error(f"{len(failures) - 1} more unit(s) failed: {others}")
                raise ToolInvocationError(
                    f"{first.error} (and {len(failures) - 1} more failure(s))",
                    first.error.command,
                    first.error.returncode,
                    first.error.output,
                )
            raise first.error

        if any(j.state is JobState.CANCELLED for j in jobs):
            raise OperationCancelledException("Assembly cancelled")
        return jobs
