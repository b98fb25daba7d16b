"""Build configuration.

BuildConfig is constructed once at startup (from the environment, then CLI
overrides) and passed explicitly to every component. Nothing below the CLI
reads os.environ.

Recognized environment variables mirror the classic makefile knobs:

    BUILD_MODE                 include | separate (default include)
    CONTINUE_ON_TEST_FAILURE   1/true/yes/on to keep running tests after a failure
    ASM LD CC OBJDUMP OBJCOPY NM GDB
                               tool names or paths
    ASMFLAGS DBG_FLAGS         assembler flags, debug flags
    LDFLAGS LDFLAGS_SEPARATE   linker flags for include / separate mode
    ASMBUILD_JOBS              parallel assembly workers in separate mode
    ASMBUILD_CATEGORIES        comma-separated module categories
"""

import os
import shlex
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from ..build.build_modes import BuildMode, get_mode_flags

DEFAULT_CATEGORIES: tuple[str, ...] = ("network", "process", "utils", "stealth", "persistence", "features")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def parse_bool(value: str) -> bool:
    """Parse an environment-style boolean.

    Raises:
        ValueError: If the value is not a recognized boolean
    """
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"Not a boolean value: '{value}'")


@dataclass(frozen=True)
class ToolchainConfig:
    """External tool identities (names on PATH or explicit paths)."""

    asm: str = "nasm"
    ld: str = "ld"
    cc: str = "gcc"
    objdump: str = "objdump"
    objcopy: str = "objcopy"
    nm: str = "nm"
    gdb: str = "gdb"


@dataclass(frozen=True)
class ProjectLayout:
    """On-disk layout of an asmbuild project."""

    project_dir: Path
    src_dir: Path
    include_dir: Path
    generated_dir: Path
    build_dir: Path
    docs_dir: Path
    tests_dir: Path
    entry_source: Path
    binary_path: Path

    @classmethod
    def for_project(cls, project_dir: Path) -> "ProjectLayout":
        root = project_dir.absolute()
        build_dir = root / "build"
        return cls(
            project_dir=root,
            src_dir=root / "src",
            include_dir=root / "include",
            generated_dir=root / "include" / "auto",
            build_dir=build_dir,
            docs_dir=root / "docs",
            tests_dir=root / "tests",
            entry_source=root / "src" / "main.asm",
            binary_path=build_dir / "output",
        )

    @property
    def debug_binary_path(self) -> Path:
        return self.binary_path.with_name(self.binary_path.name + "-dbg")

    @property
    def entry_object(self) -> Path:
        return self.build_dir / "main.o"

    @property
    def shellcode_path(self) -> Path:
        return self.build_dir / "shellcode" / "shellcode.bin"


@dataclass(frozen=True)
class BuildConfig:
    """Complete configuration for one asmbuild invocation.

    Attributes:
        layout: Project directory layout
        toolchain: External tool names/paths
        mode: Active build mode
        categories: Module categories, in report/link order
        source_extension: Suffix of module sources
        asm_flags: Assembler flags
        dbg_flags: Extra assembler flags for debug builds
        ld_flags: Linker flags in INCLUDE mode
        ld_flags_separate: Linker flags in SEPARATE mode
        continue_on_test_failure: Keep running tests after a failing one
        jobs: Parallel assembly workers for SEPARATE mode (1 = sequential)
        verbose: Verbose output
    """

    layout: ProjectLayout
    toolchain: ToolchainConfig = field(default_factory=ToolchainConfig)
    mode: BuildMode = BuildMode.INCLUDE
    categories: tuple[str, ...] = DEFAULT_CATEGORIES
    source_extension: str = ".asm"
    asm_flags: tuple[str, ...] = ("-f", "elf64", "-I", "include/")
    dbg_flags: tuple[str, ...] = ("-g", "-F", "dwarf")
    ld_flags: tuple[str, ...] = get_mode_flags(BuildMode.INCLUDE).link_flags
    ld_flags_separate: tuple[str, ...] = get_mode_flags(BuildMode.SEPARATE).link_flags
    continue_on_test_failure: bool = False
    jobs: int = 1
    verbose: bool = False

    @classmethod
    def for_project(cls, project_dir: Path, **overrides: Any) -> "BuildConfig":
        """Default configuration for ``project_dir`` with optional overrides."""
        return cls(layout=ProjectLayout.for_project(project_dir), **overrides)

    @classmethod
    def from_env(cls, project_dir: Path, environ: Optional[Mapping[str, str]] = None) -> "BuildConfig":
        """Read configuration from environment variables.

        Args:
            project_dir: Project root directory
            environ: Environment mapping (defaults to os.environ)

        Raises:
            ValueError: If a variable holds an invalid value
        """
        env = os.environ if environ is None else environ
        defaults = cls.for_project(project_dir)

        toolchain = ToolchainConfig(
            asm=env.get("ASM", defaults.toolchain.asm),
            ld=env.get("LD", defaults.toolchain.ld),
            cc=env.get("CC", defaults.toolchain.cc),
            objdump=env.get("OBJDUMP", defaults.toolchain.objdump),
            objcopy=env.get("OBJCOPY", defaults.toolchain.objcopy),
            nm=env.get("NM", defaults.toolchain.nm),
            gdb=env.get("GDB", defaults.toolchain.gdb),
        )

        def flags(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
            value = env.get(name)
            return default if value is None else tuple(shlex.split(value))

        categories = defaults.categories
        if env.get("ASMBUILD_CATEGORIES"):
            categories = parse_categories(env["ASMBUILD_CATEGORIES"])

        jobs = defaults.jobs
        if env.get("ASMBUILD_JOBS"):
            jobs = parse_jobs(env["ASMBUILD_JOBS"])

        return replace(
            defaults,
            toolchain=toolchain,
            mode=BuildMode.parse(env["BUILD_MODE"]) if env.get("BUILD_MODE") else defaults.mode,
            categories=categories,
            asm_flags=flags("ASMFLAGS", defaults.asm_flags),
            dbg_flags=flags("DBG_FLAGS", defaults.dbg_flags),
            ld_flags=flags("LDFLAGS", defaults.ld_flags),
            ld_flags_separate=flags("LDFLAGS_SEPARATE", defaults.ld_flags_separate),
            continue_on_test_failure=parse_bool(env.get("CONTINUE_ON_TEST_FAILURE", "0")),
            jobs=jobs,
        )

    def with_overrides(self, **changes: Any) -> "BuildConfig":
        """Copy with the given fields replaced; None values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def link_flags(self, mode: Optional[BuildMode] = None) -> tuple[str, ...]:
        """Linker flags for ``mode`` (defaults to the active mode)."""
        active = mode or self.mode
        return self.ld_flags_separate if active is BuildMode.SEPARATE else self.ld_flags


def parse_categories(value: str) -> tuple[str, ...]:
    """Parse a comma-separated category list, dropping blanks and duplicates."""
    seen: list[str] = []
    for part in value.split(","):
        name = part.strip()
        if not name:
            continue
        if "/" in name or "\\" in name or name in (".", ".."):
            raise ValueError(f"Invalid category name: '{name}'")
        if name not in seen:
            seen.append(name)
    if not seen:
        raise ValueError("At least one module category is required")
    return tuple(seen)


def parse_jobs(value: str) -> int:
    try:
        jobs = int(value)
    except ValueError as e:
        raise ValueError(f"Invalid job count: '{value}'") from e
    if jobs < 1:
        raise ValueError(f"Job count must be at least 1, got {jobs}")
    return jobs
