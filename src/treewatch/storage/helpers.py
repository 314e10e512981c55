"""Small filesystem helpers built on ``os`` and ``shutil``."""

from __future__ import annotations

import errno
import os
import shutil
import stat as stat_module

from treewatch.logging import get_logger
from treewatch.pathutil import StrPath

log = get_logger("storage")


def _lstat_or_none(path: StrPath) -> os.stat_result | None:
    try:
        return os.lstat(path)
    except (FileNotFoundError, NotADirectoryError):
        return None


def is_file(path: StrPath) -> bool:
    """True if ``path`` exists and is a regular file (symlinks are not followed)."""
    st = _lstat_or_none(path)
    return st is not None and stat_module.S_ISREG(st.st_mode)


def is_directory(path: StrPath) -> bool:
    """True if ``path`` exists and is a directory (symlinks are not followed)."""
    st = _lstat_or_none(path)
    return st is not None and stat_module.S_ISDIR(st.st_mode)


def file_id(path: StrPath) -> str | None:
    """Stable identifier for a file: hex inode followed by hex device.

    Two paths that are hard links to the same file share an id. Returns None
    if ``path`` does not exist.
    """
    try:
        st = os.stat(path)
    except (FileNotFoundError, NotADirectoryError):
        return None
    return f"{st.st_ino:x}{st.st_dev:x}"


def ensure_dir(path: StrPath) -> None:
    """Create ``path`` and any missing parents. No-op if it already exists."""
    if not os.path.exists(path):
        os.makedirs(path, exist_ok=True)


def move(source: StrPath, destination: StrPath) -> None:
    """Rename ``source`` to ``destination``.

    Falls back to copy-then-delete when the two paths are on different
    filesystems. Any other error propagates.
    """
    try:
        os.rename(source, destination)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        log.debug("Cross-device move %s -> %s, copying", source, destination)
        if os.path.isdir(source) and not os.path.islink(source):
            shutil.copytree(source, destination, symlinks=True, dirs_exist_ok=True)
            shutil.rmtree(source)
        else:
            shutil.copy2(source, destination, follow_symlinks=False)
            os.unlink(source)
