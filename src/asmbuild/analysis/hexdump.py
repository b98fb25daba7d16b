"""Canonical hex+ASCII dump, in the layout of ``hexdump -C``.

    00000000  7f 45 4c 46 02 01 01 00  00 00 00 00 00 00 00 00  |.ELF............|
    *
    00000040  ...
    000000a0

With ``squeeze`` enabled, runs of identical 16-byte rows collapse into a
single ``*`` line, like hexdump does by default.
"""

from typing import Iterator, Optional

BYTES_PER_LINE = 16


def _printable(byte: int) -> str:
    return chr(byte) if 0x20 <= byte < 0x7F else "."


def format_line(offset: int, chunk: bytes) -> str:
    """Format one row of up to 16 bytes."""
    cells = []
    for i in range(BYTES_PER_LINE):
        cells.append(f"{chunk[i]:02x} " if i < len(chunk) else "   ")
        if i == 7:
            cells.append(" ")
    ascii_part = "".join(_printable(b) for b in chunk)
    return f"{offset:08x}  {''.join(cells)} |{ascii_part}|"


def iter_rows(data: bytes) -> Iterator[tuple[int, bytes]]:
    for offset in range(0, len(data), BYTES_PER_LINE):
        yield offset, data[offset : offset + BYTES_PER_LINE]


def hexdump_lines(data: bytes, squeeze: bool = True) -> list[str]:
    """Dump ``data`` as hexdump -C lines, including the final length line."""
    lines: list[str] = []
    previous: Optional[bytes] = None
    squeezing = False
    for offset, chunk in iter_rows(data):
        if squeeze and chunk == previous and len(chunk) == BYTES_PER_LINE:
            if not squeezing:
                lines.append("*")
                squeezing = True
            continue
        squeezing = False
        previous = chunk
        lines.append(format_line(offset, chunk))
    if data:
        lines.append(f"{len(data):08x}")
    return lines
