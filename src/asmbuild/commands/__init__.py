"""Command implementations for the asmbuild CLI.

This package contains implementations of asmbuild commands that are too
involved to fit in the main cli.py file.
"""

from asmbuild.commands.clean import CleanResult, clean_outputs, full_clean_outputs

__all__ = ["CleanResult", "clean_outputs", "full_clean_outputs"]
