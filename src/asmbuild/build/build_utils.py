"""Small filesystem helpers shared by the build pipeline."""

import logging
import shutil
from pathlib import Path
from typing import Iterable, Optional

from ..errors import BuildIOError

logger = logging.getLogger(__name__)


def is_stale(target: Path, inputs: Iterable[Path]) -> bool:
    """Return True if ``target`` is missing or older than any existing input.

    Inputs that do not exist are ignored; only modification times are
    compared.
    """
    try:
        target_mtime = target.stat().st_mtime
    except FileNotFoundError:
        return True

    for path in inputs:
        try:
            if path.stat().st_mtime > target_mtime:
                logger.debug(f"{target.name} is older than {path}")
                return True
        except FileNotFoundError:
            continue
    return False


def ensure_dir(path: Path) -> Path:
    """Create ``path`` (and parents) if missing.

    Raises:
        BuildIOError: If the directory cannot be created
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise BuildIOError(f"Cannot create directory {path}: {e}", path) from e
    return path


def safe_rmtree(path: Path) -> None:
    """Remove a directory tree if it exists.

    Raises:
        BuildIOError: If the tree cannot be removed
    """
    if not path.exists():
        return
    try:
        shutil.rmtree(path)
    except OSError as e:
        raise BuildIOError(f"Cannot remove {path}: {e}", path) from e


def stamp_path_for(output: Path) -> Path:
    """Hidden stamp file next to ``output`` (build/output -> build/.output.link)."""
    return output.with_name(f".{output.name}.link")


def read_stamp(path: Path) -> Optional[str]:
    """Stamp content, or None if there is no readable stamp."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.debug(f"Could not read stamp {path}: {e}")
        return None


def write_stamp(path: Path, content: str) -> None:
    """
    Raises:
        BuildIOError: If the stamp cannot be written
    """
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise BuildIOError(f"Cannot write stamp {path}: {e}", path) from e
