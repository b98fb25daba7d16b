"""Binary analysis helpers for asmbuild."""

from .hexdump import hexdump_lines
from .inspector import BinaryInspector, NullByteReport, ShellcodeResult

__all__ = ["BinaryInspector", "NullByteReport", "ShellcodeResult", "hexdump_lines"]
