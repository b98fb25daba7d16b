"""Pytest configuration and fixtures for asmbuild tests.

Output from asmbuild.output is redirected into an in-memory rich Console for
every test, so assertions can inspect what the user would have seen.
"""

import sys
import warnings
from io import StringIO
from pathlib import Path

import pytest
from rich.console import Console

from asmbuild import output
from asmbuild.config import BuildConfig

# Suppress ResourceWarnings from file cleanup in Python 3.13
if sys.version_info >= (3, 13):
    warnings.filterwarnings("ignore", category=ResourceWarning)


@pytest.fixture(autouse=True)
def captured_output():
    """Send asmbuild output to a StringIO and return the buffer."""
    buffer = StringIO()
    previous = output.get_console()
    output.set_console(Console(file=buffer, highlight=False, width=200, color_system=None))
    output.set_verbose(True)
    yield buffer
    output.set_console(previous)


@pytest.fixture(autouse=True)
def _restore_stdio():  # noqa: PT004
    """Ensure stdout/stderr are always restored after each test."""
    yield

    if sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if sys.stderr.closed:
        sys.stderr = sys.__stderr__


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A project with the entry point and two network modules."""
    root = tmp_path / "project"
    (root / "src" / "network").mkdir(parents=True)
    (root / "src" / "utils").mkdir(parents=True)
    (root / "include").mkdir()
    (root / "src" / "main.asm").write_text("section .text\nglobal _start\n_start:\n")
    (root / "src" / "network" / "socket.asm").write_text("; socket\n")
    (root / "src" / "network" / "connect.asm").write_text("; connect\n")
    return root


@pytest.fixture
def config(project_dir: Path) -> BuildConfig:
    return BuildConfig.for_project(project_dir)
