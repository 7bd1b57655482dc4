"""Usage census: reconcile call-sites in the source tree against the dictionary."""
from __future__ import annotations

import dataclasses
import pathlib
from typing import Dict, Iterable, List, Optional, Tuple

from langsync.context import DictEntry
from langsync.entry_scanner import TEntry, scan
from langsync.key_tree import KeyTree
from langsync.utils.fs import discover_files, is_file_too_large, read_text
from langsync.utils.logging import sync_logger as LOG
from langsync.utils.strings import unescape_segment

Span = Tuple[int, int]


@dataclasses.dataclass
class CensusResult:
    used: Dict[str, Dict[str, List[Span]]] = dataclasses.field(default_factory=dict)
    used_keys: List[str] = dataclasses.field(default_factory=list)
    unused: List[str] = dataclasses.field(default_factory=list)
    undefined: List[TEntry] = dataclasses.field(default_factory=list)
    undefined_map: Dict[str, Dict[str, List[Span]]] = dataclasses.field(default_factory=dict)
    scanned_files: int = 0


def _record(bucket: Dict[str, Dict[str, List[Span]]], name: str, path: str, span: Span) -> None:
    spans = bucket.setdefault(name, {}).setdefault(path, [])
    if span not in spans:
        spans.append(span)


def match_entries(entry: TEntry, key_tree: KeyTree, candidates: List[Tuple[str, str, List[str]]]) -> List[str]:
    """Key ids a single call-site refers to."""
    info = entry.name_info
    if info.vars and not info.bound_name:
        regex = info.regex
        return [
            key_id for key_id, display, values in candidates
            if regex.match(display) or any(regex.match(v) for v in values)
        ]
    key_id = key_tree.resolve(info.name)
    return [key_id] if key_id is not None else []


def census(
    root: str | pathlib.Path,
    key_tree: KeyTree,
    dictionary: Dict[str, DictEntry],
    *,
    function_names: Iterable[str] = ("t",),
    file_extensions: Iterable[str] = ("js", "ts", "vue"),
    ignore_globs: Optional[List[str]] = None,
    max_file_size: Optional[int] = None,
    skip_dirs: Iterable[str | pathlib.Path] = (),
    marked_used: Iterable[str] = (),
    ignored_undefined: Iterable[str] = (),
) -> CensusResult:
    """Scan every eligible file below ``root`` and partition the dictionary.

    File paths in the result are relative to ``root`` with forward slashes.
    """
    base = pathlib.Path(root).resolve()
    result = CensusResult()
    names = tuple(function_names)
    ignored = set(ignored_undefined)
    candidates = [
        (key_id, unescape_segment(key_id), list(entry.value.values()))
        for key_id, entry in dictionary.items()
    ]
    seen_keys: Dict[str, None] = {}

    files = discover_files(
        base,
        tuple(file_extensions),
        ignore_globs=ignore_globs,
        skip_dirs=[pathlib.Path(d) for d in skip_dirs],
    )
    for path in files:
        if is_file_too_large(path, max_file_size):
            LOG.warning(f"census: skipping {path} (larger than {max_file_size} bytes)")
            continue
        try:
            text = read_text(path)
        except (OSError, UnicodeDecodeError) as e:
            LOG.warning(f"census: skipping unreadable {path}: {e}")
            continue
        result.scanned_files += 1
        rel = path.relative_to(base).as_posix()
        for entry in scan(text, names):
            entry.path = rel
            hits = match_entries(entry, key_tree, candidates)
            if not hits:
                if entry.name_info.text in ignored:
                    continue
                result.undefined.append(entry)
                _record(result.undefined_map, entry.name_info.text, rel, entry.span)
                continue
            for key_id in hits:
                _record(result.used, key_id, rel, entry.span)
                seen_keys.setdefault(key_id)

    for spans_by_file in result.used.values():
        for spans in spans_by_file.values():
            spans.sort()

    for name in marked_used:
        key_id = name if name in dictionary else key_tree.resolve(name)
        if key_id is None:
            LOG.debug(f"census: manually marked entry {name!r} is not in the dictionary")
            continue
        result.used.setdefault(key_id, {})
        seen_keys.setdefault(key_id)

    result.used_keys = list(seen_keys)
    result.unused = [key_id for key_id in dictionary if key_id not in result.used]
    LOG.info(
        f"census: files={result.scanned_files} used={len(result.used)} "
        f"unused={len(result.unused)} undefined={len(result.undefined)}"
    )
    return result
