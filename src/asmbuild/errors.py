"""Exception types shared by the asmbuild pipeline.

Fatal errors (BuildIOError, ToolInvocationError) abort the build and map to
a non-zero exit code in the CLI. PathResolutionError is handled locally by
the header generator. TestFailure is raised or accumulated depending on the
test runner's continuation policy.
"""

from typing import Optional, Sequence


class AsmBuildError(Exception):
    """Base class for all asmbuild errors."""


class BuildIOError(AsmBuildError, OSError):
    """A directory or file could not be created, written or removed."""

    def __init__(self, message: str, path: Optional[object] = None):
        super().__init__(message)
        self.path = path

    def __str__(self) -> str:
        return self.args[0]


class ToolInvocationError(AsmBuildError):
    """An external tool exited non-zero or could not be started."""

    def __init__(
        self,
        message: str,
        command: Sequence[str] = (),
        returncode: Optional[int] = None,
        output: str = "",
    ):
        super().__init__(message)
        self.command = list(command)
        self.returncode = returncode
        self.output = output

    def format_command(self) -> str:
        return " ".join(self.command)


class PathResolutionError(AsmBuildError):
    """A source path cannot be expressed relative to the include root."""


class TestFailure(AsmBuildError):
    """A compiled test binary exited with a non-zero status."""

    __test__ = False  # not a pytest test class

    def __init__(self, message: str, test_path: Optional[object] = None, returncode: Optional[int] = None):
        super().__init__(message)
        self.test_path = test_path
        self.returncode = returncode


class OperationCancelledException(AsmBuildError):
    """The running operation was cancelled before it completed."""
