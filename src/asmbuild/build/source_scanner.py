"""
Source file discovery for asmbuild.

Scans the fixed set of module category directories (src/<category>/) for
assembly sources. Discovery is non-recursive and sorted by file name so that
generated manifests and link order are stable across runs, independent of
the order the file system lists entries in.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Sequence

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".asm"


@dataclass(frozen=True)
class SourceFile:
    """One discovered module source.

    Attributes:
        category: Module category the file belongs to
        path: Absolute path to the file
        relative_path: Path relative to the project's src/ directory
    """

    category: str
    path: Path
    relative_path: Path

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def mtime(self) -> float:
        """Modification time, read on demand."""
        return self.path.stat().st_mtime


@dataclass
class SourceCollection:
    """Discovered sources keyed by category, in configured category order."""

    by_category: dict[str, tuple[SourceFile, ...]] = field(default_factory=dict)

    @property
    def categories(self) -> list[str]:
        return list(self.by_category)

    def get(self, category: str) -> tuple[SourceFile, ...]:
        return self.by_category.get(category, ())

    def count(self, category: str) -> int:
        return len(self.get(category))

    @property
    def total(self) -> int:
        return sum(len(files) for files in self.by_category.values())

    def all_sources(self) -> list[SourceFile]:
        """All sources flattened, category order then file name."""
        return [src for files in self.by_category.values() for src in files]

    def __iter__(self) -> Iterator[tuple[str, tuple[SourceFile, ...]]]:
        return iter(self.by_category.items())


class SourceScanner:
    """Scans src/<category>/ directories for module sources."""

    def __init__(self, src_dir: Path, categories: Sequence[str], extension: str = DEFAULT_EXTENSION):
        """
        Args:
            src_dir: Root source directory (project/src)
            categories: Category names, in the order they should be reported
            extension: Source file suffix including the dot
        """
        self.src_dir = src_dir
        self.categories = tuple(categories)
        self.extension = extension

    def scan_category(self, category: str) -> tuple[SourceFile, ...]:
        """List the sources directly inside src/<category>/.

        A missing directory yields an empty tuple.
        """
        category_dir = self.src_dir / category
        if not category_dir.is_dir():
            logger.debug(f"Category directory missing, treating as empty: {category_dir}")
            return ()

        files = sorted(
            (p for p in category_dir.iterdir() if p.is_file() and p.suffix == self.extension),
            key=lambda p: p.name,
        )
        sources = tuple(
            SourceFile(category=category, path=p.absolute(), relative_path=Path(category) / p.name) for p in files
        )
        logger.debug(f"Discovered {len(sources)} source(s) in {category_dir}")
        return sources

    def scan(self) -> SourceCollection:
        """Scan every configured category."""
        return SourceCollection(by_category={cat: self.scan_category(cat) for cat in self.categories})
