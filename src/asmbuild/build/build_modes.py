"""Build Mode Selection.

This module decides, from a single BuildMode value, which objects take part
in the link step and which sources are assembled individually.

Design:
    INCLUDE  - one compilation unit. main.asm pulls every module in through
               the generated manifests, so only the entry object is linked.
    SEPARATE - every discovered source is assembled on its own and linked
               next to the entry object with dead-code elimination.

    The selector is pure: it returns plain data (CompilePlan) that the
    orchestrator consumes uniformly, instead of branching on the mode at
    every call site.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from .source_scanner import SourceCollection, SourceFile


class BuildMode(Enum):
    """Build mode enum for type-safe mode selection."""

    INCLUDE = "include"
    SEPARATE = "separate"

    def __str__(self) -> str:
        """Return the string value for display and manifest comments."""
        return self.value

    @classmethod
    def parse(cls, value: str) -> "BuildMode":
        """Parse a mode name case-insensitively.

        Raises:
            ValueError: If value is not a known mode
        """
        normalized = value.strip().lower()
        for mode in cls:
            if mode.value == normalized:
                return mode
        choices = ", ".join(m.value for m in cls)
        raise ValueError(f"Unknown build mode '{value}' (expected one of: {choices})")


@dataclass(frozen=True)
class ModeFlags:
    """Per-mode defaults.

    Attributes:
        name: Mode identifier (matches BuildMode value)
        description: Human-readable description
        link_flags: Default linker flags for this mode
        compiles_sources: Whether module sources are assembled individually
    """

    name: str
    description: str
    link_flags: tuple[str, ...]
    compiles_sources: bool


MODES: dict[BuildMode, ModeFlags] = {
    BuildMode.INCLUDE: ModeFlags(
        name="include",
        description="Single compilation unit via generated manifests (default)",
        link_flags=("-nostdlib",),
        compiles_sources=False,
    ),
    BuildMode.SEPARATE: ModeFlags(
        name="separate",
        description="Per-file assembly with dead-code eliminating link",
        link_flags=("-nostdlib", "--gc-sections"),
        compiles_sources=True,
    ),
}


def get_mode_flags(mode: BuildMode) -> ModeFlags:
    """Get the default flags for a mode."""
    return MODES[mode]


@dataclass(frozen=True)
class CompilePlan:
    """What the orchestrator must assemble and link for one invocation.

    Attributes:
        mode: Mode the plan was computed for
        entry_object: Object produced from the entry point
        compile_units: (source, object) pairs to assemble individually
        link_set: Ordered objects passed to the linker
    """

    mode: BuildMode
    entry_object: Path
    compile_units: tuple[tuple[SourceFile, Path], ...]
    link_set: tuple[Path, ...]


ObjectPathFn = Callable[[SourceFile], Path]


def object_path_for(source: SourceFile, build_dir: Path) -> Path:
    """Map src/<category>/<name>.asm to build/<category>/<name>.o."""
    return build_dir / source.relative_path.with_suffix(".o")


def should_compile(mode: BuildMode, source: SourceFile) -> bool:
    """Whether ``source`` is assembled on its own in ``mode``.

    In INCLUDE mode the file is skipped: its contents reach the binary
    through the manifest included by the entry point.
    """
    del source  # the decision depends on the mode only
    return MODES[mode].compiles_sources


def select_link_set(
    mode: BuildMode,
    collection: SourceCollection,
    entry_object: Path,
    object_for: ObjectPathFn,
) -> tuple[Path, ...]:
    """Compute the ordered LinkSet.

    INCLUDE  -> (entry_object,)
    SEPARATE -> (entry_object, one object per discovered source)
    """
    if not MODES[mode].compiles_sources:
        return (entry_object,)
    return (entry_object,) + tuple(object_for(src) for src in collection.all_sources())


def plan(
    mode: BuildMode,
    collection: SourceCollection,
    entry_object: Path,
    object_for: ObjectPathFn,
) -> CompilePlan:
    """Build the full CompilePlan for ``mode``."""
    units = tuple((src, object_for(src)) for src in collection.all_sources() if should_compile(mode, src))
    return CompilePlan(
        mode=mode,
        entry_object=entry_object,
        compile_units=units,
        link_set=select_link_set(mode, collection, entry_object, object_for),
    )


def format_mode_banner(mode: BuildMode, assembler: Optional[str] = None) -> str:
    """Format a build mode banner for display, e.g. ``MODE=separate ASM=nasm``."""
    parts = [f"MODE={mode.value}"]
    if assembler:
        parts.append(f"ASM={assembler}")
    return " ".join(parts)
