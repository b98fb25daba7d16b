"""Linker wrapper.

Links the LinkSet into the final binary:

    ld <mode link flags> -o <binary> <objects...>
"""

import logging
from pathlib import Path
from typing import Optional, Sequence

from ..cancellation import CancellationToken
from ..config import BuildConfig
from ..errors import ToolInvocationError
from ..subprocess_utils import run_tool
from .build_modes import BuildMode
from .build_utils import ensure_dir

logger = logging.getLogger(__name__)


class Linker:
    """Links object files with the configured linker."""

    def __init__(self, config: BuildConfig, cancel_token: Optional[CancellationToken] = None):
        self.config = config
        self.cancel_token = cancel_token

    def build_command(self, objects: Sequence[Path], output: Path, mode: BuildMode) -> list[str]:
        return [
            self.config.toolchain.ld,
            *self.config.link_flags(mode),
            "-o",
            str(output),
            *(str(obj) for obj in objects),
        ]

    def link(self, objects: Sequence[Path], output: Path, mode: Optional[BuildMode] = None) -> Path:
        """Link ``objects`` into ``output``.

        Raises:
            ToolInvocationError: If there is nothing to link or the linker fails
            BuildIOError: If the output directory cannot be created
        """
        if not objects:
            raise ToolInvocationError("No object files provided for linking")

        active = mode or self.config.mode
        ensure_dir(output.parent)
        cmd = self.build_command(objects, output, active)
        result = run_tool(
            cmd,
            cwd=self.config.layout.project_dir,
            cancel_token=self.cancel_token,
            description=self.config.toolchain.ld,
        )
        if result.output.strip():
            logger.info(f"{self.config.toolchain.ld} output:\n{result.output.rstrip()}")

        if not output.exists():
            raise ToolInvocationError(f"Linker reported success but {output} was not created", cmd, 0, result.output)
        return output
