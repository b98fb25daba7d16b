"""
Command-line interface for asmbuild.

This module provides the `asmbuild` CLI tool for building modular assembly
projects, inspecting the resulting binary and running C tests.
"""

import argparse
import logging
import shlex
import signal
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Mapping, Optional

from asmbuild import __version__
from asmbuild.analysis import BinaryInspector
from asmbuild.build.build_modes import MODES, BuildMode
from asmbuild.build.orchestrator import BuildOrchestrator
from asmbuild.cancellation import CancellationReason, CancellationToken
from asmbuild.config import BuildConfig
from asmbuild.config.build_config import parse_categories
from asmbuild.errors import (
    AsmBuildError,
    BuildIOError,
    OperationCancelledException,
    TestFailure,
    ToolInvocationError,
)
from asmbuild.output import (
    init_timer,
    log_build_complete,
    log_detail,
    log_error,
    log_header,
    log_raw,
    log_section,
    log_step,
    log_success,
    log_warning,
    set_verbose,
)
from asmbuild.subprocess_utils import run_tool
from asmbuild.testing import TestRunner

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(funcName)s:%(lineno)d] - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130  # Standard exit code for SIGINT


@dataclass
class CommandArgs:
    """Parsed arguments shared by all commands."""

    command: str
    project_dir: Path
    mode: Optional[str] = None
    jobs: Optional[int] = None
    categories: Optional[str] = None
    verbose: bool = False
    force: bool = False
    continue_on_test_failure: bool = False
    no_debugger: bool = False
    no_build: bool = False


@dataclass
class CommandContext:
    """Everything a command handler needs, built once per invocation."""

    args: CommandArgs
    config: BuildConfig
    orchestrator: BuildOrchestrator
    cancel_token: CancellationToken


def setup_logging(verbose: bool) -> None:
    """Route diagnostics to stderr; DEBUG when verbose, warnings otherwise."""
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(getattr(h, "_asmbuild", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
        handler._asmbuild = True  # type: ignore[attr-defined]
        logger.addHandler(handler)


def load_config(args: CommandArgs, environ: Optional[Mapping[str, str]] = None) -> BuildConfig:
    """Environment first, then CLI flags.

    Raises:
        ValueError: If an environment variable or flag holds an invalid value
    """
    if args.jobs is not None and args.jobs < 1:
        raise ValueError(f"Job count must be at least 1, got {args.jobs}")
    config = BuildConfig.from_env(args.project_dir, environ)
    return config.with_overrides(
        mode=BuildMode.parse(args.mode) if args.mode else None,
        jobs=args.jobs,
        categories=parse_categories(args.categories) if args.categories else None,
        continue_on_test_failure=True if args.continue_on_test_failure else None,
        verbose=args.verbose,
    )


def _display(path: Path, config: BuildConfig) -> str:
    try:
        return path.relative_to(config.layout.project_dir).as_posix()
    except ValueError:
        return str(path)


@contextmanager
def _sigint_left_to_child() -> Iterator[None]:
    """Let an interactive child handle Ctrl-C while asmbuild waits for it.

    A no-op Python handler is installed rather than SIG_IGN: handlers are
    reset to the default on exec, while an ignored SIGINT would be inherited
    by the child.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _ignore(signum: int, frame: object) -> None:
        del signum, frame  # Unused

    previous = signal.signal(signal.SIGINT, _ignore)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


# ----------------------------------------------------------------------
# Command handlers
# ----------------------------------------------------------------------


def build_command(ctx: CommandContext) -> int:
    """Build the binary (incremental unless --force)."""
    result = ctx.orchestrator.build(force=ctx.args.force)
    log_build_complete(result.build_time)
    return EXIT_OK


def rebuild_command(ctx: CommandContext) -> int:
    """Clean and rebuild the project."""
    result = ctx.orchestrator.rebuild()
    log_build_complete(result.build_time)
    return EXIT_OK


def generate_headers_command(ctx: CommandContext) -> int:
    """Regenerate include/auto/<category>.inc without building."""
    log_step("Generating aggregate headers...")
    for generated in ctx.orchestrator.generate_headers():
        state = "updated" if generated.changed else "unchanged"
        log_detail(f"{_display(generated.path, ctx.config)} ({len(generated.header.entries)} includes, {state})")
    log_success("Aggregate headers generated")
    return EXIT_OK


def debug_build_command(ctx: CommandContext) -> int:
    """Rebuild with debug info into <binary>-dbg, then start the debugger."""
    binary = ctx.config.layout.debug_binary_path
    log_step(f"Building debug binary: {_display(binary, ctx.config)}")
    ctx.orchestrator.debug_build()
    log_success(f"Debug build complete: {_display(binary, ctx.config)} (contains DWARF info)")
    if ctx.args.no_debugger:
        return EXIT_OK

    # The debugger owns the terminal (and Ctrl-C) until it exits
    with _sigint_left_to_child():
        result = run_tool(
            [ctx.config.toolchain.gdb, str(binary)],
            cwd=ctx.config.layout.project_dir,
            check=False,
            interactive=True,
            description=ctx.config.toolchain.gdb,
        )
    return EXIT_OK if result.success else EXIT_FAILURE


def run_tests_command(ctx: CommandContext) -> int:
    """Rebuild, then compile and run C tests from tests/."""
    if not ctx.args.no_build:
        ctx.orchestrator.rebuild()
        log_success(f"Build complete: {_display(ctx.config.layout.binary_path, ctx.config)}")

    log_step(f"Compiling and running C tests under {_display(ctx.config.layout.tests_dir, ctx.config)}/...")
    runner = TestRunner(ctx.config, ctx.cancel_token)
    report = runner.run()
    report.raise_for_failure()
    return EXIT_OK


def disassemble_command(ctx: CommandContext) -> int:
    """Disassemble the .text section of the binary (builds first if needed)."""
    ctx.orchestrator.build()
    binary = ctx.config.layout.binary_path
    log_section(f"Disassembly of {_display(binary, ctx.config)} (.text):")
    lines = BinaryInspector(ctx.config, ctx.cancel_token).disassemble(binary)
    log_raw("\n".join(lines))
    return EXIT_OK


def extract_shellcode_command(ctx: CommandContext) -> int:
    """Extract the raw .text section to build/shellcode/shellcode.bin."""
    log_step("Extracting shellcode...")
    result = BinaryInspector(ctx.config, ctx.cancel_token).extract_shellcode()
    log_success(f"Shellcode saved to: {_display(result.path, ctx.config)}")
    log_step(f"Size: {result.size} bytes")
    log_step("Hex dump (first 160 bytes):")
    log_raw("\n".join(result.preview))
    return EXIT_OK


def analyze_binary_command(ctx: CommandContext) -> int:
    """Check the binary for null bytes."""
    binary = ctx.config.layout.binary_path
    log_section(f"Analyzing {_display(binary, ctx.config)} for null bytes...")
    report = BinaryInspector(ctx.config, ctx.cancel_token).analyze_null_bytes(binary)
    if report.clean:
        log_success("No null bytes detected")
    else:
        log_error(f"Found {report.null_count} null bytes:")
        log_raw("\n".join(report.sample_lines))
    return EXIT_OK


def list_sources_command(ctx: CommandContext) -> int:
    """List discovered source files by category."""
    collection = ctx.orchestrator.list_sources()
    for category, sources in collection:
        log_section(f"{category.capitalize()} Sources:")
        for source in sources:
            log_detail(_display(source.path, ctx.config), indent=2)
        if not sources:
            log_detail("(none)", indent=2)
    return EXIT_OK


def show_config_command(ctx: CommandContext) -> int:
    """Show build configuration and source file counts."""
    config = ctx.config
    tools = config.toolchain
    log_section("Build Configuration:")
    rows = [
        ("ASM", tools.asm),
        ("LD", tools.ld),
        ("CC", tools.cc),
        ("OBJDUMP", tools.objdump),
        ("OBJCOPY", tools.objcopy),
        ("NM", tools.nm),
        ("GDB", tools.gdb),
        ("ASMFLAGS", shlex.join(config.asm_flags)),
        ("DBG_FLAGS", shlex.join(config.dbg_flags)),
        ("LDFLAGS", shlex.join(config.ld_flags)),
        ("LDFLAGS_SEPARATE", shlex.join(config.ld_flags_separate)),
        ("BUILD_MODE", f"{config.mode.value} - {MODES[config.mode].description}"),
        ("CONTINUE_ON_TEST_FAILURE", "1" if config.continue_on_test_failure else "0"),
        ("JOBS", str(config.jobs)),
        ("BINARY", _display(config.layout.binary_path, config)),
    ]
    for name, value in rows:
        log_detail(f"{name + ':':<26}{value}", indent=2)

    log_section("Source Files:")
    collection = ctx.orchestrator.list_sources()
    for category, sources in collection:
        log_detail(f"{category.capitalize() + ':':<14}{len(sources)} files", indent=2)
    log_detail(f"{'Total:':<14}{collection.total} files", indent=2)
    return EXIT_OK


def setup_layout_command(ctx: CommandContext) -> int:
    """Create all project directories and the entry point."""
    created = ctx.orchestrator.setup_layout()
    for path in created:
        log_detail(f"created {_display(path, ctx.config)}", indent=2)
    log_success("Project layout ensured (src/, include/, tests/, build/, docs/)")
    return EXIT_OK


def clean_command(ctx: CommandContext) -> int:
    """Remove built files and generated manifests."""
    ctx.orchestrator.clean()
    return EXIT_OK


def full_clean_command(ctx: CommandContext) -> int:
    """Remove build/ and include/auto/ entirely."""
    ctx.orchestrator.full_clean()
    return EXIT_OK


HELP_GROUPS: list[tuple[str, list[tuple[str, str]]]] = [
    ("Initial Setup:", [("setup-layout", "Create all the directories and src/main.asm")]),
    (
        "Build Commands:",
        [
            ("build", "Build the target binary (build/output)"),
            ("rebuild", "Clean and rebuild the project"),
            ("generate-headers", "Regenerate include/auto/<category>.inc"),
            ("debug-build", "Rebuild with DBG_FLAGS into build/output-dbg and start gdb"),
            ("run-tests", "Rebuild, then compile and run C tests from tests/"),
        ],
    ),
    (
        "Information & Analysis:",
        [
            ("show-config", "Show build configuration and source file counts"),
            ("list-sources", "List discovered source files by category"),
            ("disassemble", "Disassemble the .text section"),
            ("extract-shellcode", "Extract the .text section as a raw binary"),
            ("analyze-binary", "Check the binary for null bytes"),
        ],
    ),
    (
        "Cleaning:",
        [
            ("clean", "Remove all built files and generated manifests"),
            ("full-clean", "Remove build/ and include/auto/ entirely"),
            ("help", "Show this help menu"),
        ],
    ),
]


def help_command(ctx: Optional[CommandContext] = None) -> int:
    """Show the grouped command overview."""
    del ctx  # Unused
    log_header("asmbuild - Assembly Project Build", __version__)
    for title, commands in HELP_GROUPS:
        log_section(title)
        for name, description in commands:
            log_detail(f"asmbuild {name:<18} - {description}", indent=2)
    log_section("Environment:")
    log_detail("BUILD_MODE=include|separate, CONTINUE_ON_TEST_FAILURE=1,", indent=2)
    log_detail("ASM, LD, CC, OBJDUMP, OBJCOPY, NM, GDB, ASMFLAGS, DBG_FLAGS, LDFLAGS, LDFLAGS_SEPARATE", indent=2)
    return EXIT_OK


COMMANDS: dict[str, tuple[Callable[[CommandContext], int], str]] = {
    "build": (build_command, "Build the target binary"),
    "rebuild": (rebuild_command, "Clean and rebuild the project"),
    "generate-headers": (generate_headers_command, "Regenerate aggregate headers"),
    "debug-build": (debug_build_command, "Rebuild with debug info and start the debugger"),
    "run-tests": (run_tests_command, "Rebuild, then compile and run C tests"),
    "disassemble": (disassemble_command, "Disassemble the .text section"),
    "extract-shellcode": (extract_shellcode_command, "Extract the .text section as a raw binary"),
    "analyze-binary": (analyze_binary_command, "Check the binary for null bytes"),
    "list-sources": (list_sources_command, "List discovered source files by category"),
    "show-config": (show_config_command, "Show build configuration"),
    "setup-layout": (setup_layout_command, "Create the project directories"),
    "clean": (clean_command, "Remove built files and generated manifests"),
    "full-clean": (full_clean_command, "Remove build/ and include/auto/ entirely"),
    "help": (help_command, "Show the command overview"),
}


def _add_common_arguments(parser: argparse.ArgumentParser, subcommand: bool = False) -> None:
    """Options accepted before the command and after it.

    Subcommand copies default to SUPPRESS so they only override what was
    given before the command name.
    """

    def default(value):
        return argparse.SUPPRESS if subcommand else value

    parser.add_argument(
        "-C",
        "--project-dir",
        type=Path,
        default=default(Path.cwd()),
        help="Project directory (default: current directory)",
    )
    parser.add_argument(
        "-m",
        "--mode",
        default=default(None),
        help="Build mode: include or separate (default: $BUILD_MODE or include)",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=default(None),
        help="Parallel assembly workers in separate mode (default: 1)",
    )
    parser.add_argument(
        "--categories",
        default=default(None),
        help="Comma-separated module categories (default: network,process,utils,stealth,persistence,features)",
    )
    parser.add_argument(
        "--continue-on-test-failure",
        action="store_true",
        default=default(False),
        help="Keep running tests after a failure (default: $CONTINUE_ON_TEST_FAILURE or stop)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=default(False),
        help="Show verbose output and debug logging",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="asmbuild",
        description="asmbuild - build orchestrator for modular assembly projects",
    )
    parser.add_argument("--version", action="version", version=f"asmbuild {__version__}")
    _add_common_arguments(parser)
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    for name, (_handler, help_text) in COMMANDS.items():
        sub = subparsers.add_parser(name, help=help_text)
        _add_common_arguments(sub, subcommand=True)
        if name == "build":
            sub.add_argument("-f", "--force", action="store_true", help="Reassemble and relink everything")
        elif name == "debug-build":
            sub.add_argument("--no-debugger", action="store_true", help="Do not start the debugger afterwards")
        elif name == "run-tests":
            sub.add_argument("--no-build", action="store_true", help="Skip the rebuild before running tests")
    return parser


def _parse_args(parser: argparse.ArgumentParser, argv: Optional[list[str]]) -> Optional[CommandArgs]:
    parsed = parser.parse_args(argv)
    if not parsed.command:
        return None
    return CommandArgs(
        command=parsed.command,
        project_dir=parsed.project_dir,
        mode=parsed.mode,
        jobs=parsed.jobs,
        categories=parsed.categories,
        verbose=parsed.verbose,
        force=getattr(parsed, "force", False),
        continue_on_test_failure=parsed.continue_on_test_failure,
        no_debugger=getattr(parsed, "no_debugger", False),
        no_build=getattr(parsed, "no_build", False),
    )


def _report_tool_error(e: ToolInvocationError) -> None:
    log_error(str(e))
    if e.command:
        log_detail(f"Command: {e.format_command()}")
    if e.output.strip():
        log_raw(e.output)


def run(argv: Optional[list[str]] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    """Parse arguments, run one command and return its exit code."""
    parser = build_parser()
    args = _parse_args(parser, argv)
    if args is None or args.command == "help":
        return help_command()

    if not args.project_dir.exists():
        log_error(f"Path does not exist: {args.project_dir}")
        return EXIT_USAGE
    if not args.project_dir.is_dir():
        log_error(f"Path is not a directory: {args.project_dir}")
        return EXIT_USAGE

    setup_logging(args.verbose)
    set_verbose(args.verbose)
    init_timer()

    try:
        config = load_config(args, environ)
    except ValueError as e:
        log_error(f"Invalid configuration: {e}")
        return EXIT_USAGE

    cancel_token = CancellationToken()
    ctx = CommandContext(
        args=args,
        config=config,
        orchestrator=BuildOrchestrator(config, cancel_token),
        cancel_token=cancel_token,
    )
    handler, _help = COMMANDS[args.command]

    previous_handler = None
    if threading.current_thread() is threading.main_thread():

        def _on_sigint(signum: int, frame: object) -> None:
            del signum, frame  # Unused
            cancel_token.cancel(CancellationReason.USER_INTERRUPT)
            # A second Ctrl-C interrupts immediately
            signal.signal(signal.SIGINT, signal.default_int_handler)

        previous_handler = signal.signal(signal.SIGINT, _on_sigint)

    try:
        return handler(ctx)

    except ToolInvocationError as e:
        _report_tool_error(e)
        return EXIT_FAILURE

    except BuildIOError as e:
        log_error(f"I/O error: {e}")
        return EXIT_FAILURE

    except TestFailure as e:
        log_error(str(e))
        return EXIT_FAILURE

    except (OperationCancelledException, KeyboardInterrupt):
        log_warning("Interrupted")
        return EXIT_INTERRUPTED

    except AsmBuildError as e:
        log_error(str(e))
        return EXIT_FAILURE

    except Exception as e:
        log_error(f"Unexpected error: {type(e).__name__}: {e}")
        if args.verbose:
            import traceback

            log_raw(traceback.format_exc())
        return EXIT_FAILURE

    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)


def main() -> None:
    """asmbuild - build orchestrator for modular assembly projects."""
    sys.exit(run())


if __name__ == "__main__":
    main()
