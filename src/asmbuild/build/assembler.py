"""Assembler wrapper.

Builds the assembler command line for one source file and runs it through
the cancellable tool runner:

    nasm <ASMFLAGS> [extra flags] <source> -o <object>

The assembler runs with the project root as working directory, so
``-I include/`` and the manifest include paths resolve against it.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence

from ..cancellation import CancellationToken
from ..config import BuildConfig
from ..errors import ToolInvocationError
from ..subprocess_utils import run_tool
from .build_utils import ensure_dir

logger = logging.getLogger(__name__)


class Assembler:
    """Assembles .asm sources into object files."""

    def __init__(
        self,
        config: BuildConfig,
        cancel_token: Optional[CancellationToken] = None,
        extra_flags: Sequence[str] = (),
    ):
        """
        Args:
            config: Build configuration (tool name, flags, layout)
            cancel_token: Token checked while the assembler runs
            extra_flags: Flags appended after ASMFLAGS (e.g. debug flags)
        """
        self.config = config
        self.cancel_token = cancel_token
        self.extra_flags = tuple(extra_flags)

    def build_command(self, source: Path, output: Path) -> list[str]:
        return [
            self.config.toolchain.asm,
            *self.config.asm_flags,
            *self.extra_flags,
            str(source),
            "-o",
            str(output),
        ]

    def assemble(self, source: Path, output: Path) -> Path:
        """Assemble ``source`` into ``output``.

        Raises:
            ToolInvocationError: If the assembler is missing or fails
            BuildIOError: If the output directory cannot be created
        """
        ensure_dir(output.parent)
        cmd = self.build_command(source, output)
        try:
            result = run_tool(
                cmd,
                cwd=self.config.layout.project_dir,
                cancel_token=self.cancel_token,
                description=self.config.toolchain.asm,
            )
        except ToolInvocationError as e:
            raise ToolInvocationError(
                f"Assembling {self._display(source)} failed: {e}",
                e.command,
                e.returncode,
                e.output,
            ) from e

        if result.output.strip():
            logger.info(f"{self.config.toolchain.asm} output for {source.name}:\n{result.output.rstrip()}")
        return output

    def _display(self, path: Path) -> str:
        try:
            return path.relative_to(self.config.layout.project_dir).as_posix()
        except ValueError:
            return str(path)
