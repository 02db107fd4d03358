"""File writer for generated output."""
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from typegen.core.errors import WriteError
from typegen.generators.types import GeneratedFile

log = logging.getLogger(__name__)

# subdirectories of an output root that belong to the generator
OWNED_DIRS = ("generated", "client")


def _atomic_write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
        os.replace(tmp, path)
    except OSError:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def write_files(files: List[GeneratedFile], out_dir: Path) -> List[str]:
    """
    Write generated files under ``out_dir`` as one unit.

    Each file goes through a temp file and ``os.replace``. If any write
    fails, files already written in this call are restored to their previous
    contents (or removed when they did not exist) and ``WriteError`` is
    raised, so a target never ends up half-written.

    Returns the written paths relative to ``out_dir``.
    """
    backups: Dict[Path, Optional[bytes]] = {}
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        for file in files:
            file_path = out_dir / file.path
            if file_path not in backups:
                backups[file_path] = file_path.read_bytes() if file_path.exists() else None
            _atomic_write(file_path, file.content)
    except OSError as e:
        failed = getattr(e, "filename", None)
        _rollback(backups)
        raise WriteError(f"Could not write generated files: {e}", path=str(failed) if failed else None) from e
    return [f.path for f in files]


def _rollback(backups: Dict[Path, Optional[bytes]]) -> None:
    for path, previous in backups.items():
        try:
            if previous is None:
                if path.exists():
                    path.unlink()
            else:
                path.write_bytes(previous)
        except OSError as e:
            log.error("Could not restore %s after a failed write: %s", path, e)


def pending_overrides(files: List[GeneratedFile], out_dir: Path, reset: bool = False) -> List[GeneratedFile]:
    """User-owned files still to be created; existing ones are kept unless ``reset``."""
    return [f for f in files if reset or not (out_dir / f.path).exists()]


def clear_owned_dirs(out_dir: Path) -> None:
    """Empty the generator-owned subdirectories, leaving everything else alone."""
    for name in OWNED_DIRS:
        target = out_dir / name
        if not target.is_dir():
            continue
        log.info("Clearing %s", target)
        try:
            for child in target.iterdir():
                if child.is_dir() and not child.is_symlink():
                    shutil.rmtree(child)
                else:
                    child.unlink()
        except OSError as e:
            raise WriteError(f"Could not clear {target}: {e}", path=str(target)) from e
