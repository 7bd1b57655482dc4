"""Applying staged changes: language files, source patches, sorting, trimming, edits."""
from __future__ import annotations

import dataclasses
import pathlib
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from langsync.context import PAYLOAD_DELETE, PAYLOAD_EDIT, DictEntry, FileExtraInfo, LangContext, PatchedEntryId, UpdatePayload, ValueChange
from langsync.entry_scanner import excluded_ranges
from langsync.key_tree import slice_by_scope
from langsync.lang_files import format_object_to_string, lang_file_path, parse_lang_file
from langsync.result import ExecutionResult, ResultCode, fix_counters
from langsync.translator import TranslateResult
from langsync.utils.fs import atomic_write, read_text
from langsync.utils.logging import sync_logger as LOG
from langsync.utils.strings import join_segments, path_segments

SORT_MODES = ("none", "key", "position")


@dataclasses.dataclass
class RewriteReport:
    # path -> (content before, content after); before is "" for a new file
    changes: Dict[str, Tuple[str, str]] = dataclasses.field(default_factory=dict)
    written: List[str] = dataclasses.field(default_factory=list)
    failed: List[Tuple[str, str]] = dataclasses.field(default_factory=list)


# ── Payloads ────────────────────────────────────────────────────────────────

def apply_payloads(ctx: LangContext) -> Set[Tuple[str, str]]:
    """Fold staged payloads into the Dictionary, language maps and KeyTree.

    Returns the (lang, file scope) pairs whose files must be rewritten.
    """
    touched: Set[Tuple[str, str]] = set()
    for payload in ctx.update_payloads:
        key = payload.key
        entry = ctx.dictionary.get(key)
        if payload.type == PAYLOAD_DELETE:
            if entry is None:
                continue
            for lang in list(entry.value):
                ctx.lang_maps.get(lang, {}).pop(key, None)
                touched.add((lang, entry.file_scope))
            del ctx.dictionary[key]
            if ctx.key_tree is not None:
                ctx.key_tree.delete(key)
            continue
        if entry is None:
            entry = ctx.dictionary[key] = DictEntry(full_path=key)
        for lang, change in payload.changes.items():
            if change.after is None:
                entry.value.pop(lang, None)
                ctx.lang_maps.get(lang, {}).pop(key, None)
            else:
                entry.value[lang] = change.after
                ctx.lang_maps.setdefault(lang, {})[key] = change.after
            touched.add((lang, entry.file_scope))
        if ctx.key_tree is not None and entry.value:
            ctx.key_tree.set(key)
    ctx.update_payloads.clear()
    return touched


def _file_info(ctx: LangContext, lang: str, scope: str) -> FileExtraInfo:
    location = join_segments([lang] + (path_segments(scope) if scope else []))
    info = ctx.file_extra_info.get(location)
    if info is not None:
        return info
    # a file this language does not have yet copies the reference language's layout
    ref = join_segments([ctx.referred_lang] + (path_segments(scope) if scope else []))
    template = ctx.file_extra_info.get(ref) or FileExtraInfo()
    return dataclasses.replace(template, inner_vars=[], layout=None)


def _key_order(ctx: LangContext, lang: str) -> List[str]:
    if ctx.sort_order is not None:
        return ctx.sort_order
    return list(ctx.lang_maps.get(lang, {}))


def render_lang_file(ctx: LangContext, lang: str, scope: str, *, quote_keys: bool = False) -> Tuple[pathlib.Path, str]:
    """Path and new content of one physical language file."""
    path = lang_file_path(ctx.lang_dir, lang, scope, ctx.lang_file_type)
    tree = slice_by_scope(ctx.dictionary, _key_order(ctx, lang), scope)
    values = ctx.lang_maps.get(lang, {})
    content = format_object_to_string(tree, values, ctx.lang_file_type, _file_info(ctx, lang, scope), quote_keys=quote_keys)
    return path, content


def _write(path: pathlib.Path, content: str, report: RewriteReport, dry_run: bool) -> bool:
    if dry_run:
        return True
    try:
        atomic_write(path, content)
    except OSError as e:
        LOG.error(f"rewrite: failed to write {path}: {e}")
        report.failed.append((str(path), str(e)))
        return False
    report.written.append(str(path))
    return True


def write_lang_files(
    ctx: LangContext,
    targets: Iterable[Tuple[str, str]],
    report: RewriteReport,
    *,
    quote_keys: bool = False,
    dry_run: bool = False,
) -> None:
    for lang, scope in sorted(set(targets)):
        if lang in ctx.ignored_langs:
            continue
        location = join_segments([lang] + (path_segments(scope) if scope else []))
        path, content = render_lang_file(ctx, lang, scope, quote_keys=quote_keys)
        before = ctx.file_sources.get(location, "")
        if content == before:
            continue
        report.changes[str(path)] = (before, content)
        if _write(path, content, report, dry_run) and not dry_run:
            ctx.file_sources[location] = content
            parsed = parse_lang_file(content, ctx.lang_file_type)
            ctx.file_extra_info[location] = parsed[1] if parsed is not None else _file_info(ctx, lang, scope)


def _free_occurrences(content: str, raw: str) -> Iterator[Tuple[int, int]]:
    """Spans of ``raw`` outside comments, script strings and disabled regions."""
    ranges = excluded_ranges(content)
    pos = content.find(raw)
    while pos != -1:
        if not any(s <= pos < e for s, e in ranges):
            yield pos, pos + len(raw)
        pos = content.find(raw, pos + len(raw))


def patch_source(content: str, items: Iterable[PatchedEntryId]) -> str:
    """Apply call-site patches at their scanned offsets.

    A patch whose span no longer holds ``raw`` is skipped with a warning. Patches
    without a span fall back to every copy of ``raw`` the scanner would report.
    A call nested in the arguments of another patched call is patched inside the
    outer call's new text.
    """
    edits: List[Tuple[int, int, str, str]] = []
    for item in items:
        if item.span is None:
            edits.extend((s, e, item.raw, item.fixed_raw) for s, e in _free_occurrences(content, item.raw))
            continue
        start, end = item.span
        if content[start:end] != item.raw:
            LOG.warning(f"rewrite: {item.raw!r} is no longer at {start}; left unpatched")
            continue
        edits.append((start, end, item.raw, item.fixed_raw))
    edits.sort(key=lambda e: (e[0], -e[1]))

    pieces: List[str] = []
    pos = 0
    for start, end, raw, fixed in edits:
        if start < pos:
            if end <= pos and pieces:
                pieces[-1] = pieces[-1].replace(raw, fixed, 1)
            continue
        pieces.append(content[pos:start])
        pieces.append(fixed)
        pos = end
    pieces.append(content[pos:])
    return "".join(pieces)


def apply_source_patches(ctx: LangContext, report: RewriteReport, *, dry_run: bool = False) -> int:
    """Apply the staged call-site patches of every file; returns files changed."""
    base = pathlib.Path(ctx.project_root)
    changed = 0
    for rel_path, items in ctx.patched_entries.items():
        path = base / rel_path
        try:
            before = read_text(path)
        except (OSError, UnicodeDecodeError) as e:
            LOG.error(f"rewrite: cannot read {path} for patching: {e}")
            report.failed.append((str(path), str(e)))
            continue
        content = patch_source(before, items)
        if content == before:
            continue
        report.changes[str(path)] = (before, content)
        if _write(path, content, report, dry_run):
            changed += 1
            LOG.info(f"rewrite: {rel_path}: " + ", ".join(f"{i.text!r} -> {i.fixed_key!r}" for i in items))
    ctx.patched_entries.clear()
    return changed


def all_lang_files(ctx: LangContext) -> Set[Tuple[str, str]]:
    targets: Set[Tuple[str, str]] = set()
    for location in ctx.file_extra_info:
        segs = path_segments(location)
        targets.add((segs[0], join_segments(segs[1:])))
    return targets


def rewrite(
    ctx: LangContext,
    *,
    quote_keys: bool = False,
    dry_run: bool = False,
    rewrite_all: bool = False,
    report: Optional[RewriteReport] = None,
) -> ExecutionResult:
    """Apply staged payloads, rewrite touched language files, then patch sources."""
    report = report if report is not None else RewriteReport()
    touched = apply_payloads(ctx)
    if rewrite_all:
        touched |= all_lang_files(ctx)
    write_lang_files(ctx, touched, report, quote_keys=quote_keys, dry_run=dry_run)
    patched = apply_source_patches(ctx, report, dry_run=dry_run)
    data = {"written": len(report.written), "failed": len(report.failed), "patched_files": patched, "changed": len(report.changes)}
    LOG.info(f"rewrite: changed={len(report.changes)} written={len(report.written)} failed={len(report.failed)} dry_run={dry_run}")
    if report.failed:
        failed = ", ".join(path for path, _ in report.failed)
        return ExecutionResult.fail(f"Failed to write {failed}", ResultCode.UnknownRewriteError, data)
    return ExecutionResult.ok("", ResultCode.Success, data)


# ── Sort ────────────────────────────────────────────────────────────────────

def sorted_keys(ctx: LangContext, mode: str) -> List[str]:
    if mode == "key":
        return sorted(ctx.dictionary, key=lambda k: (k.lower(), k))
    if mode == "position":
        used = [k for k in ctx.used_keys if k in ctx.dictionary]
        seen = set(used)
        return used + [k for k in ctx.dictionary if k not in seen]
    return list(ctx.dictionary)


def sort(ctx: LangContext, mode: str, **kwargs) -> ExecutionResult:
    """Rewrite every language file with keys in ``mode`` order."""
    if mode not in SORT_MODES:
        raise ValueError(f"Unknown sort mode {mode!r}")
    if mode == "none":
        return ExecutionResult.fail("Sorting is disabled (sorting_write_mode is none)", ResultCode.NoSortingApplied)
    order = sorted_keys(ctx, mode)
    for lang, lang_map in ctx.lang_maps.items():
        ctx.lang_maps[lang] = {k: lang_map[k] for k in order if k in lang_map}
    if mode == "key" and ctx.key_tree is not None:
        ctx.key_tree = ctx.key_tree.sorted()
    ctx.sort_order = order
    try:
        return rewrite(ctx, rewrite_all=True, **kwargs)
    finally:
        ctx.sort_order = None


# ── Trim ────────────────────────────────────────────────────────────────────

def trim(ctx: LangContext, keys: Optional[List[str]] = None, **kwargs) -> ExecutionResult:
    """Delete ``keys`` (default: every unused key) from all languages."""
    keys = list(ctx.unused_keys) if keys is None else [k for k in keys if k in ctx.dictionary]
    if not keys:
        return ExecutionResult.ok("No unused entries to trim", ResultCode.NoTrimEntries)
    for key in keys:
        changes = {lang: ValueChange(before=value) for lang, value in ctx.dictionary[key].value.items() if value}
        ctx.update_payloads.append(UpdatePayload(type=PAYLOAD_DELETE, key=key, changes=changes))
    LOG.info(f"trim: deleting {len(keys)} key(s)")
    return rewrite(ctx, **kwargs)


# ── Modify ──────────────────────────────────────────────────────────────────

def edit_value(ctx: LangContext, key: str, lang: str, value: str, **kwargs) -> ExecutionResult:
    if key not in ctx.dictionary or lang not in ctx.lang_maps:
        return ExecutionResult.fail(f"Unknown entry {key!r} or language {lang!r}", ResultCode.InvalidEntryName)
    before = ctx.lang_maps[lang].get(key)
    ctx.update_payloads.append(UpdatePayload(type=PAYLOAD_EDIT, key=key, changes={lang: ValueChange(before, value)}))
    return rewrite(ctx, **kwargs)


def rewrite_entry(
    ctx: LangContext,
    key: str,
    value: str,
    translate: Callable[[str, str, List[str]], TranslateResult],
    **kwargs,
) -> ExecutionResult:
    """Set the reference value of ``key`` and re-translate every other language."""
    referred = ctx.referred_lang
    if key not in ctx.dictionary or referred not in ctx.lang_maps:
        return ExecutionResult.fail(f"Unknown entry {key!r}", ResultCode.InvalidEntryName)
    payload = UpdatePayload(
        type=PAYLOAD_EDIT,
        key=key,
        changes={referred: ValueChange(ctx.lang_maps[referred].get(key), value)},
    )
    success = failed = 0
    for lang in ctx.langs:
        if lang == referred:
            continue
        res = translate(referred, lang, [value])
        if res.success and res.data:
            success += 1
            payload.changes[lang] = ValueChange(ctx.lang_maps[lang].get(key), res.data[0])
        else:
            failed += 1
            LOG.error(f"modify: translating {key!r} to {lang} failed: {res.message}")
    ctx.update_payloads.append(payload)
    written = rewrite(ctx, **kwargs)
    if not written.success:
        return written
    counters = fix_counters(success, failed, success)
    if failed == 0:
        return ExecutionResult.ok(f"Updated {key!r} in {success + 1} language(s)", ResultCode.Success, counters)
    if success > 0:
        return ExecutionResult.ok(f"{failed} language(s) could not be translated", ResultCode.TranslatorPartialFailed, counters)
    return ExecutionResult.fail("Translation failed for every language", ResultCode.TranslatorFailed, counters)
