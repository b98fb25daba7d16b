"""Clean and full-clean implementations.

clean removes every file under build/ plus the generated manifests in
include/auto/, leaving the directory skeleton, hand-written includes and
sources in place. full-clean additionally removes build/ and include/auto/
themselves.

Callers are expected to hold the project build lock (the orchestrator does).
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from ..build.build_utils import safe_rmtree
from ..build.header_generator import MANIFEST_SUFFIX
from ..config import ProjectLayout
from ..errors import BuildIOError
from ..output import log_detail, log_step, log_success, log_warning

logger = logging.getLogger(__name__)


@dataclass
class CleanResult:
    """What a clean operation removed."""

    removed_files: list[Path] = field(default_factory=list)
    removed_dirs: list[Path] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.removed_files) + len(self.removed_dirs)


def _display(path: Path, layout: ProjectLayout) -> str:
    try:
        return path.relative_to(layout.project_dir).as_posix()
    except ValueError:
        return str(path)


def _unlink(path: Path, result: CleanResult, layout: ProjectLayout) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError as e:
        raise BuildIOError(f"Cannot remove {path}: {e}", path) from e
    result.removed_files.append(path)
    log_detail(_display(path, layout), indent=2, verbose_only=True)


def clean_outputs(layout: ProjectLayout) -> CleanResult:
    """Remove build artifacts and generated manifests, keep directories.

    Raises:
        BuildIOError: If a file cannot be removed
    """
    result = CleanResult()
    log_step("Cleaning build artifacts...")

    if layout.build_dir.is_dir():
        for path in sorted(layout.build_dir.rglob("*")):
            if path.is_file() or path.is_symlink():
                _unlink(path, result, layout)
    else:
        log_warning(f"Nothing to clean ({_display(layout.build_dir, layout)} missing)")

    if layout.generated_dir.is_dir():
        for manifest in sorted(layout.generated_dir.glob(f"*{MANIFEST_SUFFIX}")):
            if manifest.is_file():
                _unlink(manifest, result, layout)

    logger.debug(f"clean removed {len(result.removed_files)} file(s)")
    log_success(f"Removed {len(result.removed_files)} file(s)")
    return result


def full_clean_outputs(layout: ProjectLayout) -> CleanResult:
    """clean, then remove build/ and include/auto/ entirely.

    Raises:
        BuildIOError: If a file or directory cannot be removed
    """
    result = clean_outputs(layout)
    for directory in (layout.build_dir, layout.generated_dir):
        if directory.exists():
            log_step(f"Removing {_display(directory, layout)} directory...")
            safe_rmtree(directory)
            result.removed_dirs.append(directory)
    log_success("Full clean complete")
    return result
