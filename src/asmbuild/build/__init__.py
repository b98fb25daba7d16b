"""
Build system components for asmbuild.

This package provides:
- Source discovery (source_scanner)
- Aggregate header generation (header_generator)
- Build mode selection (build_modes)
- Assembling and linking wrappers (assembler, linker)
- Build orchestration (orchestrator)

The orchestrator is imported from asmbuild.build.orchestrator directly; it
depends on asmbuild.config, which in turn depends on build_modes.
"""

from .build_modes import BuildMode, CompilePlan, select_link_set
from .header_generator import AggregateHeader, HeaderGenerator, IncludeEntry
from .source_scanner import SourceCollection, SourceFile, SourceScanner

__all__ = [
    "AggregateHeader",
    "BuildMode",
    "CompilePlan",
    "HeaderGenerator",
    "IncludeEntry",
    "SourceCollection",
    "SourceFile",
    "SourceScanner",
    "select_link_set",
]
