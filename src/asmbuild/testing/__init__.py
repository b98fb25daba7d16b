"""Test compilation and execution for asmbuild projects."""

from .test_runner import TestOutcome, TestReport, TestRunner

__all__ = ["TestOutcome", "TestReport", "TestRunner"]
