"""
Build orchestration for asmbuild projects.

Sequences the pipeline, each step gated on the previous one:

    1. Ensure the directory layout exists
    2. Discover sources per module category
    3. Regenerate every category manifest (both modes)
    4. Assemble the entry point, plus every source in SEPARATE mode
    5. Link the LinkSet chosen by the build mode (a stamp next to the binary
       records mode, link flags and LinkSet of the last link)

Any assembly or link failure aborts the remaining pipeline. The whole run
holds the project build lock.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Sequence

from ..cancellation import CancellationToken, check_and_raise_if_cancelled
from ..commands.clean import CleanResult, clean_outputs, full_clean_outputs
from ..config import BuildConfig
from ..errors import BuildIOError
from ..output import TimedLogger, log_detail, log_file, log_success
from .assembler import Assembler
from .build_lock import BuildLock
from .build_modes import BuildMode, CompilePlan, format_mode_banner, object_path_for, plan
from .build_utils import ensure_dir, is_stale, read_stamp, stamp_path_for, write_stamp
from .compilation_executor import CompilationExecutor, JobState
from .header_generator import GeneratedHeader, HeaderGenerator
from .linker import Linker
from .source_scanner import SourceCollection, SourceScanner

logger = logging.getLogger(__name__)

TOTAL_PHASES = 5


@dataclass
class BuildResult:
    """Result of a build operation."""

    success: bool
    binary_path: Optional[Path]
    mode: BuildMode
    link_set: tuple[Path, ...]
    compiled: int
    linked: bool
    build_time: float
    message: str


class BuildOrchestrator:
    """
    Orchestrates discovery, manifest generation, assembly and linking.

    All configuration comes from the BuildConfig passed in; the orchestrator
    keeps no state between invocations beyond the files it writes.
    """

    def __init__(self, config: BuildConfig, cancel_token: Optional[CancellationToken] = None):
        """
        Args:
            config: Build configuration for this invocation
            cancel_token: Optional token checked between steps and by tool runs
        """
        self.config = config
        self.cancel_token = cancel_token
        self.layout = config.layout
        self._lock = BuildLock(config.layout.project_dir)

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """Hold the build lock, unless this orchestrator already holds it."""
        if self._lock.is_held:
            yield
            return
        with self._lock:
            yield

    # ------------------------------------------------------------------
    # Layout and discovery
    # ------------------------------------------------------------------

    def layout_directories(self) -> list[Path]:
        layout = self.layout
        return [
            layout.build_dir,
            *(layout.src_dir / category for category in self.config.categories),
            layout.include_dir,
            layout.generated_dir,
            layout.docs_dir,
            layout.tests_dir / "unit",
            layout.tests_dir / "integration",
        ]

    def setup_layout(self) -> list[Path]:
        """Create the project skeleton (idempotent) and touch the entry point.

        Returns:
            Directories and files that did not exist before
        """
        created = []
        for directory in self.layout_directories():
            if not directory.is_dir():
                created.append(directory)
            ensure_dir(directory)

        entry = self.layout.entry_source
        if not entry.exists():
            created.append(entry)
        try:
            entry.touch(exist_ok=True)
        except OSError as e:
            raise BuildIOError(f"Cannot create entry point {entry}: {e}", entry) from e
        return created

    def scanner(self) -> SourceScanner:
        return SourceScanner(self.layout.src_dir, self.config.categories, self.config.source_extension)

    def discover(self) -> SourceCollection:
        return self.scanner().scan()

    def list_sources(self) -> SourceCollection:
        """Discover sources without touching the build outputs."""
        return self.discover()

    def header_generator(self, mode: Optional[BuildMode] = None) -> HeaderGenerator:
        return HeaderGenerator(
            include_root=self.layout.project_dir,
            output_dir=self.layout.generated_dir,
            mode=mode or self.config.mode,
        )

    def generate_headers(self, collection: Optional[SourceCollection] = None) -> list[GeneratedHeader]:
        """Regenerate every category manifest."""
        with self._exclusive():
            sources = collection if collection is not None else self.discover()
            return self.header_generator().generate_all(sources)

    def compile_plan(self, collection: SourceCollection) -> CompilePlan:
        build_dir = self.layout.build_dir
        return plan(
            self.config.mode,
            collection,
            self.layout.entry_object,
            lambda src: object_path_for(src, build_dir),
        )

    # ------------------------------------------------------------------
    # Build pipeline
    # ------------------------------------------------------------------

    def _hand_written_includes(self) -> list[Path]:
        include_dir = self.layout.include_dir
        if not include_dir.is_dir():
            return []
        generated = self.layout.generated_dir
        return [p for p in include_dir.rglob("*") if p.is_file() and generated not in p.parents]

    def _entry_inputs(self, collection: SourceCollection) -> list[Path]:
        inputs = [self.layout.entry_source, *self._hand_written_includes()]
        if self.config.mode is BuildMode.INCLUDE:
            inputs.extend(src.path for src in collection.all_sources())
        return inputs

    def _link_signature(self, compile_plan: CompilePlan) -> str:
        """Mode, link flags and LinkSet of a link; a different value forces a relink."""
        lines = [
            f"mode={compile_plan.mode.value}",
            f"flags={' '.join(self.config.link_flags(compile_plan.mode))}",
            *(str(obj) for obj in compile_plan.link_set),
        ]
        return "\n".join(lines) + "\n"

    def build(
        self,
        force: bool = False,
        binary_path: Optional[Path] = None,
        extra_asm_flags: Sequence[str] = (),
    ) -> BuildResult:
        """Run the full build pipeline.

        Args:
            force: Reassemble and relink even if outputs look up to date
            binary_path: Output binary (defaults to build/output)
            extra_asm_flags: Flags appended to ASMFLAGS for every unit

        Returns:
            BuildResult describing what was done

        Raises:
            ToolInvocationError: Assembly or link failed (pipeline aborted)
            BuildIOError: A directory or generated file could not be written
            OperationCancelledException: Cancellation was requested
        """
        start_time = time.time()
        output = binary_path or self.layout.binary_path
        mode = self.config.mode

        with self._exclusive():
            log_detail(format_mode_banner(mode, self.config.toolchain.asm), indent=0)

            with TimedLogger("Ensuring project layout", phase=(1, TOTAL_PHASES)):
                for directory in (self.layout.build_dir, self.layout.generated_dir):
                    ensure_dir(directory)
                if not self.layout.entry_source.is_file():
                    raise BuildIOError(
                        f"Entry point not found: {self.layout.entry_source} (run 'asmbuild setup-layout')",
                        self.layout.entry_source,
                    )
            check_and_raise_if_cancelled(self.cancel_token, "build")

            with TimedLogger("Discovering sources", phase=(2, TOTAL_PHASES)) as step:
                collection = self.discover()
                for category, sources in collection:
                    step.detail(f"{category}: {len(sources)} file(s)")
            check_and_raise_if_cancelled(self.cancel_token, "build")

            with TimedLogger("Generating aggregate headers", phase=(3, TOTAL_PHASES)) as step:
                headers = self.header_generator(mode).generate_all(collection)
                changed = [h for h in headers if h.changed]
                step.detail(f"{len(headers)} manifest(s) written, {len(changed)} with changed includes")
            check_and_raise_if_cancelled(self.cancel_token, "build")

            compile_plan = self.compile_plan(collection)
            assembler = Assembler(self.config, self.cancel_token, extra_asm_flags)
            compiled = 0

            with TimedLogger("Assembling", phase=(4, TOTAL_PHASES)) as step:
                entry_object = compile_plan.entry_object
                entry_stale = force or bool(changed) or is_stale(entry_object, self._entry_inputs(collection))
                if entry_stale:
                    log_file("entry", self.layout.entry_source.name, verbose_only=False)
                    assembler.assemble(self.layout.entry_source, entry_object)
                    compiled += 1
                else:
                    log_file("entry", self.layout.entry_source.name, cached=True)

                if compile_plan.compile_units:
                    executor = CompilationExecutor(assembler, self.config.jobs, self.cancel_token)
                    jobs = executor.run(compile_plan.compile_units, force=force)
                    compiled += sum(1 for job in jobs if job.state is JobState.COMPLETED)
                step.detail(f"{compiled} unit(s) assembled")
            check_and_raise_if_cancelled(self.cancel_token, "build")

            linked = False
            with TimedLogger("Linking", phase=(5, TOTAL_PHASES)) as step:
                stamp = stamp_path_for(output)
                signature = self._link_signature(compile_plan)
                relink = force or bool(compiled) or is_stale(output, compile_plan.link_set)
                if not relink and read_stamp(stamp) != signature:
                    logger.debug(f"Link inputs of {output.name} changed since the last link")
                    relink = True
                if relink:
                    Linker(self.config, self.cancel_token).link(compile_plan.link_set, output, mode)
                    write_stamp(stamp, signature)
                    linked = True
                    step.detail(f"{len(compile_plan.link_set)} object(s) -> {self._display(output)}")
                else:
                    step.detail(f"{self._display(output)} is up to date")

        build_time = time.time() - start_time
        log_success(f"Built {self._display(output)}")
        return BuildResult(
            success=True,
            binary_path=output,
            mode=mode,
            link_set=compile_plan.link_set,
            compiled=compiled,
            linked=linked,
            build_time=build_time,
            message=f"Built {output}",
        )

    def rebuild(self, binary_path: Optional[Path] = None, extra_asm_flags: Sequence[str] = ()) -> BuildResult:
        """Clean, then build from scratch."""
        with self._exclusive():
            self.clean()
            return self.build(force=True, binary_path=binary_path, extra_asm_flags=extra_asm_flags)

    def debug_build(self) -> BuildResult:
        """Rebuild into <binary>-dbg with DBG_FLAGS appended to ASMFLAGS."""
        return self.rebuild(binary_path=self.layout.debug_binary_path, extra_asm_flags=self.config.dbg_flags)

    # ------------------------------------------------------------------
    # Cleaning
    # ------------------------------------------------------------------

    def clean(self) -> CleanResult:
        """Remove build outputs and generated manifests, keep directories."""
        with self._exclusive():
            return clean_outputs(self.layout)

    def full_clean(self) -> CleanResult:
        """Remove build/ and include/auto/ entirely."""
        with self._exclusive():
            return full_clean_outputs(self.layout)

    def _display(self, path: Path) -> str:
        try:
            return path.relative_to(self.layout.project_dir).as_posix()
        except ValueError:
            return str(path)
