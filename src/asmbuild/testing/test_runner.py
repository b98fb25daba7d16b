"""C test runner.

Step 1 compiles every tests/**/*.c into an executable next to its source:

    cc <test>.c -o <test> -Iinclude

Step 2 runs the executables grouped by containing directory, directories in
sorted order, skipping the tests root itself. Inside a directory every
executable non-.c file runs in sorted order.

A compilation failure is always fatal. A failing test binary stops the run
unless continue_on_failure is set, in which case every remaining binary in
the current and later directories still runs; the report fails either way.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..cancellation import CancellationToken, check_and_raise_if_cancelled
from ..config import BuildConfig
from ..errors import TestFailure, ToolInvocationError
from ..output import log_error, log_section, log_step, log_success, log_warning
from ..subprocess_utils import run_tool

logger = logging.getLogger(__name__)

TEST_SOURCE_SUFFIX = ".c"


@dataclass(frozen=True)
class TestOutcome:
    """Result of running one test binary."""

    __test__ = False  # not a pytest test class

    path: Path
    returncode: int

    @property
    def passed(self) -> bool:
        return self.returncode == 0


@dataclass
class TestReport:
    """Ordered outcomes of one test run."""

    __test__ = False  # not a pytest test class

    outcomes: list[TestOutcome] = field(default_factory=list)
    stopped_early: bool = False

    @property
    def passed(self) -> list[TestOutcome]:
        return [o for o in self.outcomes if o.passed]

    @property
    def failed(self) -> list[TestOutcome]:
        return [o for o in self.outcomes if not o.passed]

    @property
    def success(self) -> bool:
        return not self.failed

    def raise_for_failure(self) -> None:
        """Raise TestFailure for the first failing test, if any."""
        if self.failed:
            first = self.failed[0]
            raise TestFailure(
                f"{len(self.failed)} test(s) failed (first: {first.path})",
                first.path,
                first.returncode,
            )


class TestRunner:
    """Compiles and runs C tests under the project's tests/ directory."""

    __test__ = False  # not a pytest test class

    def __init__(
        self,
        config: BuildConfig,
        cancel_token: Optional[CancellationToken] = None,
        continue_on_failure: Optional[bool] = None,
    ):
        """
        Args:
            config: Build configuration (compiler, layout, failure policy)
            cancel_token: Token checked between tests
            continue_on_failure: Overrides config.continue_on_test_failure
        """
        self.config = config
        self.cancel_token = cancel_token
        self.continue_on_failure = (
            config.continue_on_test_failure if continue_on_failure is None else continue_on_failure
        )
        self.tests_dir = config.layout.tests_dir

    def discover_sources(self) -> list[Path]:
        if not self.tests_dir.is_dir():
            return []
        return sorted(p for p in self.tests_dir.rglob(f"*{TEST_SOURCE_SUFFIX}") if p.is_file())

    @staticmethod
    def binary_for(source: Path) -> Path:
        return source.with_suffix("")

    def compile_all(self) -> list[Path]:
        """Compile every test source.

        Raises:
            ToolInvocationError: On the first compilation failure
        """
        log_section("Step 1: Compiling all test sources...")
        include_flag = f"-I{self.config.layout.include_dir.name}"
        binaries = []
        for source in self.discover_sources():
            check_and_raise_if_cancelled(self.cancel_token, "test compilation")
            binary = self.binary_for(source)
            log_step(f"  Compiling {self._display(source)} -> {self._display(binary)}")
            try:
                run_tool(
                    [self.config.toolchain.cc, str(source), "-o", str(binary), include_flag],
                    cwd=self.config.layout.project_dir,
                    cancel_token=self.cancel_token,
                    description=self.config.toolchain.cc,
                )
            except ToolInvocationError as e:
                log_error(f"Compilation failed: {self._display(source)}")
                if e.output:
                    logger.error(e.output.rstrip())
                raise
            binaries.append(binary)
        log_success("All tests compiled successfully")
        return binaries

    def test_groups(self) -> list[tuple[Path, list[Path]]]:
        """Directories under tests/ (sorted, root excluded) with their test binaries."""
        if not self.tests_dir.is_dir():
            return []
        directories = sorted(p for p in self.tests_dir.rglob("*") if p.is_dir())
        return [(directory, self._binaries_in(directory)) for directory in directories]

    @staticmethod
    def _binaries_in(directory: Path) -> list[Path]:
        return sorted(
            p
            for p in directory.iterdir()
            if p.is_file() and p.suffix != TEST_SOURCE_SUFFIX and os.access(p, os.X_OK)
        )

    def run_tests(self) -> TestReport:
        """Run the compiled binaries, honoring the continuation policy."""
        log_section("Step 2: Running tests grouped by directory...")
        report = TestReport()
        for directory, binaries in self.test_groups():
            log_step(f">>> Running tests in {self._display(directory)}")
            for binary in binaries:
                check_and_raise_if_cancelled(self.cancel_token, "test run")
                log_step(f"Running {self._display(binary)}...")
                result = run_tool(
                    [str(binary)],
                    cwd=self.config.layout.project_dir,
                    cancel_token=self.cancel_token,
                    capture_output=False,
                    check=False,
                )
                outcome = TestOutcome(path=binary, returncode=result.returncode)
                report.outcomes.append(outcome)
                if outcome.passed:
                    log_success(f"Passed {self._display(binary)}")
                    continue

                log_error(f"Test failed: {self._display(binary)} (exit code {result.returncode})")
                if not self.continue_on_failure:
                    report.stopped_early = True
                    return report
                log_warning("Continuing despite failure (CONTINUE_ON_TEST_FAILURE=1)")
        return report

    def run(self) -> TestReport:
        """Compile, then run; returns the report (see TestReport.raise_for_failure)."""
        self.compile_all()
        report = self.run_tests()
        self.print_summary(report)
        return report

    def print_summary(self, report: TestReport) -> None:
        log_section("Test summary:")
        for outcome in report.outcomes:
            status = "PASS" if outcome.passed else f"FAIL ({outcome.returncode})"
            logger.debug(f"{outcome.path}: {status}")
            if outcome.passed:
                log_success(f"{status}  {self._display(outcome.path)}")
            else:
                log_error(f"{status}  {self._display(outcome.path)}")
        if report.stopped_early:
            log_warning("Stopped at the first failing test (set CONTINUE_ON_TEST_FAILURE=1 to run all)")
        if report.success:
            log_success(f"All tests finished successfully ({len(report.outcomes)} run)")
        else:
            log_error(f"{len(report.failed)} of {len(report.outcomes)} test(s) failed")

    def _display(self, path: Path) -> str:
        try:
            return path.relative_to(self.config.layout.project_dir).as_posix()
        except ValueError:
            return str(path)
