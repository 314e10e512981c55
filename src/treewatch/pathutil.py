"""Path string helpers.

Thin wrappers over ``os.path`` that the watcher uses to resolve children
against their parent directory, plus a few conveniences for ``file://`` URLs.
Nothing here touches the filesystem.
"""

from __future__ import annotations

import os
from urllib.parse import urlparse
from urllib.request import url2pathname

StrPath = str | os.PathLike[str]


def resolve(*paths: StrPath) -> str:
    """Join ``paths`` right to left until an absolute path is formed.

    The result is normalized but symlinks are not resolved. With no
    arguments the current working directory is returned.
    """
    return os.path.abspath(os.path.join(os.getcwd(), *(os.fspath(p) for p in paths)))


def resolve_child(parent: StrPath, name: str) -> str:
    """Resolve a directory entry name against its parent directory."""
    return resolve(parent, name)


def normalize(path: StrPath) -> str:
    return os.path.normpath(os.fspath(path))


def is_absolute(path: StrPath) -> bool:
    return os.path.isabs(os.fspath(path))


def basename(path: StrPath, suffix: str | None = None) -> str:
    """Last path component, ignoring trailing separators.

    If ``suffix`` is given and the name ends with it (and is not equal to
    it), the suffix is stripped.
    """
    raw = os.fspath(path)
    stripped = raw.rstrip(os.sep + (os.altsep or ""))
    name = os.path.basename(stripped)
    if suffix and name != suffix and name.endswith(suffix):
        name = name[: -len(suffix)]
    return name


def extname(path: StrPath) -> str:
    """Extension of the last component including the dot.

    Returns ``""`` for names without an extension and for dotfiles such as
    ``.bashrc``.
    """
    return os.path.splitext(basename(path))[1]


def filename(url: str) -> str:
    """Convert a ``file://`` URL to a local filesystem path.

    Raises:
        ValueError: If ``url`` is not a ``file`` URL or names a remote host.
    """
    parsed = urlparse(url)
    if parsed.scheme != "file":
        raise ValueError(f"Not a file URL: {url!r}")
    if parsed.netloc not in ("", "localhost"):
        raise ValueError(f"File URL host must be empty or localhost: {url!r}")
    return url2pathname(parsed.path)


def dirname(path: StrPath) -> str:
    """Directory portion of a path or ``file://`` URL."""
    raw = os.fspath(path)
    if "://" in raw:
        raw = filename(raw)
    return os.path.dirname(raw.rstrip(os.sep) or raw) or "."


def contains(path: StrPath, segment: str) -> bool:
    """True if ``segment`` is one of the separator-delimited parts of ``path``."""
    return segment in os.fspath(path).split(os.sep)
