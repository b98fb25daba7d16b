"""Binary inspection: disassembly, raw .text extraction, null-byte analysis.

Each operation is independent and re-entrant; they read the linked binary
and write only under build/shellcode/.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..build.build_utils import ensure_dir
from ..cancellation import CancellationToken
from ..config import BuildConfig
from ..errors import BuildIOError, ToolInvocationError
from ..subprocess_utils import run_tool
from .hexdump import format_line, hexdump_lines, iter_rows

logger = logging.getLogger(__name__)

DISASSEMBLY_LINE_LIMIT = 200
SHELLCODE_PREVIEW_BYTES = 160
NULL_BYTE_SAMPLE_LINES = 10


@dataclass(frozen=True)
class ShellcodeResult:
    """Raw .text bytes extracted from the binary."""

    path: Path
    size: int
    preview: list[str]


@dataclass(frozen=True)
class NullByteReport:
    """Null-byte analysis of a binary."""

    binary: Path
    size: int
    null_count: int
    offsets: list[int]
    sample_lines: list[str]

    @property
    def clean(self) -> bool:
        return self.null_count == 0


class BinaryInspector:
    """Runs the binary inspection tools against a linked binary."""

    def __init__(self, config: BuildConfig, cancel_token: Optional[CancellationToken] = None):
        self.config = config
        self.cancel_token = cancel_token

    def _require_binary(self, binary: Path) -> None:
        if not binary.is_file():
            raise ToolInvocationError(f"Binary not built: {binary}. Run 'asmbuild build' first.")

    def disassemble(self, binary: Optional[Path] = None, limit: int = DISASSEMBLY_LINE_LIMIT) -> list[str]:
        """Disassemble the .text section (Intel syntax).

        Returns:
            At most ``limit`` lines of objdump output
        """
        target = binary or self.config.layout.binary_path
        self._require_binary(target)
        result = run_tool(
            [self.config.toolchain.objdump, "-D", "-M", "intel", "-j", ".text", str(target)],
            cwd=self.config.layout.project_dir,
            cancel_token=self.cancel_token,
            description=self.config.toolchain.objdump,
        )
        return result.output.splitlines()[:limit]

    def extract_shellcode(self, binary: Optional[Path] = None, output: Optional[Path] = None) -> ShellcodeResult:
        """Copy the raw .text section to build/shellcode/shellcode.bin."""
        target = binary or self.config.layout.binary_path
        self._require_binary(target)
        destination = output or self.config.layout.shellcode_path
        ensure_dir(destination.parent)

        run_tool(
            [self.config.toolchain.objcopy, "-O", "binary", "-j", ".text", str(target), str(destination)],
            cwd=self.config.layout.project_dir,
            cancel_token=self.cancel_token,
            description=self.config.toolchain.objcopy,
        )
        try:
            data = destination.read_bytes()
        except OSError as e:
            raise BuildIOError(f"Cannot read extracted shellcode {destination}: {e}", destination) from e

        logger.debug(f"Extracted {len(data)} bytes of .text to {destination}")
        return ShellcodeResult(
            path=destination,
            size=len(data),
            preview=hexdump_lines(data[:SHELLCODE_PREVIEW_BYTES]),
        )

    def analyze_null_bytes(self, binary: Optional[Path] = None) -> NullByteReport:
        """Count null bytes in the binary and sample the rows containing them."""
        target = binary or self.config.layout.binary_path
        self._require_binary(target)
        try:
            data = target.read_bytes()
        except OSError as e:
            raise BuildIOError(f"Cannot read {target}: {e}", target) from e

        offsets = [i for i, byte in enumerate(data) if byte == 0]
        samples = [format_line(offset, chunk) for offset, chunk in iter_rows(data) if 0 in chunk]
        samples = samples[:NULL_BYTE_SAMPLE_LINES]
        return NullByteReport(
            binary=target,
            size=len(data),
            null_count=len(offsets),
            offsets=offsets,
            sample_lines=samples,
        )
