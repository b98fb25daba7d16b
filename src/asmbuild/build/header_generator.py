"""Aggregate header (manifest) generation.

For every module category, asmbuild writes include/auto/<category>.inc
listing one ``%include`` directive per discovered source. The entry point
includes these manifests, which is how INCLUDE mode pulls every module into a
single compilation unit. Manifests are regenerated on every build in both
modes so they always reflect the current tree.

Manifests are built as records first (AggregateHeader / IncludeEntry) and
rendered to text afterwards; only the timestamp line differs between two
renders of unchanged inputs.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from ..errors import BuildIOError, PathResolutionError
from .build_modes import BuildMode
from .source_scanner import SourceCollection, SourceFile

logger = logging.getLogger(__name__)

MANIFEST_SUFFIX = ".inc"
DIRECTIVE_PREFIX = "%include"
_RULE = "; " + "=" * 70


@dataclass(frozen=True)
class IncludeEntry:
    """One include directive in a manifest.

    Attributes:
        source: The source file being included
        include_path: Path written into the directive (forward slashes)
        absolute: True if the relative path could not be computed
    """

    source: SourceFile
    include_path: str
    absolute: bool = False

    def render(self) -> str:
        return f'{DIRECTIVE_PREFIX} "{self.include_path}"'


@dataclass(frozen=True)
class AggregateHeader:
    """A manifest for one category, ready to render."""

    category: str
    target_path: Path
    entries: tuple[IncludeEntry, ...]
    generated_at: datetime
    mode: BuildMode

    def directives(self) -> list[str]:
        """Include directive lines only, in discovery order."""
        return [entry.render() for entry in self.entries]

    def render(self) -> str:
        lines = [
            _RULE,
            f"; Aggregate header for module category: {self.category}",
            f"; Generated: {self.generated_at.isoformat(timespec='seconds')}",
            f"; Build mode: {self.mode.value} (informational)",
            f"; Sources: {len(self.entries)}",
            "; Auto-generated by asmbuild. Do not edit; regenerated on every build.",
            _RULE,
            "",
        ]
        lines.extend(self.directives())
        return "\n".join(lines) + "\n"


@dataclass(frozen=True)
class GeneratedHeader:
    """Result of writing one manifest."""

    header: AggregateHeader
    changed: bool

    @property
    def path(self) -> Path:
        return self.header.target_path


def read_directives(manifest_path: Path) -> Optional[list[str]]:
    """Read the include directives of an existing manifest, or None if absent."""
    try:
        content = manifest_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.debug(f"Could not read previous manifest {manifest_path}: {e}")
        return None
    return [line for line in content.splitlines() if line.startswith(DIRECTIVE_PREFIX)]


def resolve_include_path(source: Path, include_root: Path) -> str:
    """Express ``source`` relative to ``include_root`` with forward slashes.

    Raises:
        PathResolutionError: If no relative path exists (e.g. another drive)
    """
    try:
        relative = os.path.relpath(source, include_root)
    except ValueError as e:
        raise PathResolutionError(f"Cannot express {source} relative to {include_root}: {e}") from e
    return Path(relative).as_posix()


class HeaderGenerator:
    """Builds, renders and writes per-category manifests."""

    def __init__(self, include_root: Path, output_dir: Path, mode: BuildMode):
        """
        Args:
            include_root: Directory include paths are made relative to (the
                directory the assembler runs in)
            output_dir: Directory receiving <category>.inc files
            mode: Active build mode, recorded as a comment only
        """
        self.include_root = include_root
        self.output_dir = output_dir
        self.mode = mode

    def manifest_path(self, category: str) -> Path:
        return self.output_dir / f"{category}{MANIFEST_SUFFIX}"

    def _entry_for(self, source: SourceFile) -> IncludeEntry:
        try:
            return IncludeEntry(source=source, include_path=resolve_include_path(source.path, self.include_root))
        except PathResolutionError as e:
            logger.warning(f"{e}; using absolute path")
            return IncludeEntry(source=source, include_path=source.path.absolute().as_posix(), absolute=True)

    def build_header(
        self,
        category: str,
        sources: Sequence[SourceFile],
        timestamp: Optional[datetime] = None,
    ) -> AggregateHeader:
        """Build the manifest record for one category (no I/O)."""
        return AggregateHeader(
            category=category,
            target_path=self.manifest_path(category),
            entries=tuple(self._entry_for(src) for src in sources),
            generated_at=timestamp or datetime.now(),
            mode=self.mode,
        )

    def write(self, header: AggregateHeader) -> bool:
        """Overwrite the manifest on disk.

        Returns:
            True if the include directives differ from the previous manifest
            (or there was none)

        Raises:
            BuildIOError: If the directory or file cannot be written
        """
        target = header.target_path
        previous = read_directives(target)

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BuildIOError(f"Cannot create manifest directory {target.parent}: {e}", target.parent) from e

        temp_file = target.with_suffix(target.suffix + ".tmp")
        try:
            temp_file.write_text(header.render(), encoding="utf-8")
            temp_file.replace(target)
        except OSError as e:
            try:
                temp_file.unlink(missing_ok=True)
            except OSError as cleanup_error:
                logger.debug(f"Could not remove {temp_file}: {cleanup_error}")
            raise BuildIOError(f"Cannot write manifest {target}: {e}", target) from e

        changed = previous != header.directives()
        logger.debug(f"Wrote {target} ({len(header.entries)} entries, changed={changed})")
        return changed

    def generate(self, category: str, sources: Sequence[SourceFile]) -> GeneratedHeader:
        header = self.build_header(category, sources)
        return GeneratedHeader(header=header, changed=self.write(header))

    def generate_all(self, collection: SourceCollection) -> list[GeneratedHeader]:
        """Write one manifest per category, including empty categories."""
        timestamp = datetime.now()
        results = []
        for category, sources in collection:
            header = self.build_header(category, sources, timestamp)
            results.append(GeneratedHeader(header=header, changed=self.write(header)))
        return results
