from __future__ import annotations

import difflib
import fnmatch
import os
import pathlib
import re
import tempfile
from typing import Iterable, List, Optional, Tuple

from .logging import sync_logger as logger

# Directory names never worth scanning for call-sites
IGNORED_DIR_RE = re.compile(r"^(dist|node_modules|img|image|css|asset|\.)", re.I)


# ── Filesystem ops (atomic, reporting, ignore) ────────────────────────────────

def is_ignored(base: pathlib.Path, path: pathlib.Path, ignore_globs: List[str]) -> bool:
    try:
        rel = str(path.relative_to(base)).replace("\\", "/")
    except ValueError:
        return True
    return any(fnmatch.fnmatch(rel, pat) for pat in ignore_globs)


def is_file_too_large(path: pathlib.Path, max_file_size: Optional[int]) -> bool:
    if not max_file_size:
        return False
    try:
        return path.stat().st_size > max_file_size
    except OSError:
        return True


def detect_eol(text: str) -> str:
    crlf = text.count("\r\n")
    lf = text.count("\n") - crlf
    return "\r\n" if crlf > lf else "\n"


def read_text(path: pathlib.Path) -> str:
    """Read a text file keeping its newlines untouched."""
    with open(path, "r", encoding="utf-8", newline="") as fh:
        return fh.read()


def atomic_write(path: pathlib.Path, data: str) -> None:
    """Atomically write ``data`` to ``path``.

    This function writes to a temporary file in the same directory, fsyncs,
    then replaces the target. If the target exists, its permissions are
    preserved when possible.
    """
    tmp_dir = path.parent
    tmp_dir.mkdir(parents=True, exist_ok=True)
    orig_mode = None
    try:
        orig_mode = path.stat().st_mode & 0o777
    except OSError:
        pass

    tmp_name = None
    try:
        with tempfile.NamedTemporaryFile("w", delete=False, dir=tmp_dir, encoding="utf-8", newline="") as tf:
            tmp_name = tf.name
            tf.write(data)
            tf.flush()
            os.fsync(tf.fileno())
        os.replace(tmp_name, str(path))
        tmp_name = None
        if orig_mode is not None:
            try:
                os.chmod(str(path), orig_mode)
            except OSError:
                logger.debug("Failed to chmod %s", path)
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)


def unified_diff(a: str, b: str, path: pathlib.Path) -> str:
    return "".join(
        difflib.unified_diff(
            a.splitlines(keepends=True),
            b.splitlines(keepends=True),
            fromfile=f"a/{path}",
            tofile=f"b/{path}",
        )
    )


def discover_files(
    base: pathlib.Path,
    include_exts: Tuple[str, ...],
    ignore_globs: Optional[List[str]] = None,
    skip_dirs: Iterable[pathlib.Path] = (),
) -> List[pathlib.Path]:
    """Walk ``base`` pruning ignored directories; returns files sorted by path."""
    exts = {e.lower().lstrip(".") for e in include_exts}
    skip = {p.resolve() for p in skip_dirs}
    globs = ignore_globs or []
    found: List[pathlib.Path] = []
    for root, dirs, files in os.walk(base):
        root_path = pathlib.Path(root)
        dirs[:] = sorted(
            d for d in dirs
            if not IGNORED_DIR_RE.match(d)
            and (root_path / d).resolve() not in skip
            and not is_ignored(base, root_path / d / "_", globs)
        )
        for name in sorted(files):
            p = root_path / name
            if p.suffix.lower().lstrip(".") not in exts:
                continue
            if is_ignored(base, p, globs):
                continue
            found.append(p)
    return found
