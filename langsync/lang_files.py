"""Reading and format-preserving writing of language files.

Supported layouts under the language directory::

    en.json, zh-CN.json                      (flat: one file per language)
    en/common.json, en/home/index-page.json  (nested: one directory per language)

JSON files go through :mod:`json`; JS/TS modules (``export default {...}``) have
their object literal parsed with :mod:`json5`. Every file remembers the layout
details needed to write it back unchanged.
"""
from __future__ import annotations

import dataclasses
import json
import os
import pathlib
import re
from typing import Dict, List, Optional, Tuple

import json5

from langsync.context import EntrySlot, FileExtraInfo, FileNode, ObjectLayout
from langsync.utils.fs import IGNORED_DIR_RE, detect_eol, is_ignored, read_text
from langsync.utils.lang_codes import resolve_lang
from langsync.utils.logging import sync_logger as LOG
from langsync.utils.strings import format_for_file, is_identifier, join_segments, path_segments

LANG_FILE_EXTS = ("json", "js", "ts", "json5", "mjs", "cjs")
NAMESPACE_STRATEGIES = ("full", "file", "none")

_OBJECT_RE = re.compile(r"(.*?)(\{.*\})(.*)", re.S)
_SPREAD_RE = re.compile(r"^[ \t]*(\.\.\.[\w$.]+)[ \t]*,?[ \t]*\r?\n", re.M)
_INDENT_RE = re.compile(r"\{[ \t]*\r?\n([ \t]+)\S")
_FIRST_KEY_RE = re.compile(
    r"^\{\s*(?:(\")(?:[^\"\\]|\\.)*\"|(')(?:[^'\\]|\\.)*'|[A-Za-z_$][\w$]*)([ \t]*:[ \t]*)(\"|'|`)?",
    re.S,
)
_TRAILING_COMMA_RE = re.compile(r",\s*\}")
_COMMENT_RE = re.compile(r"//[^\n]*|/\*.*?\*/", re.S)
_BARE_KEY_RE = re.compile(r"[\w$]+")
_SPREAD_NAME_RE = re.compile(r"\.\.\.[\w$.]+")


@dataclasses.dataclass
class LangDirData:
    file_type: str
    # lang -> file scope ("" for a flat file) -> nested tree of raw keys
    lang_files: Dict[str, Dict[str, dict]]
    extra_info: Dict[str, FileExtraInfo]
    sources: Dict[str, str]
    structure: FileNode
    multi_file: bool


# ── Reading ─────────────────────────────────────────────────────────────────

def _only_strings(node: dict) -> bool:
    for value in node.values():
        if isinstance(value, dict):
            if not _only_strings(value):
                return False
        elif not isinstance(value, str):
            return False
    return True


def _detect_format(body: str, ext: str, eol: str) -> FileExtraInfo:
    info = FileExtraInfo(eol=eol)
    m = _INDENT_RE.search(body)
    if m:
        info.indent = m.group(1)
    plain = _COMMENT_RE.sub("", body) if ext != "json" else body
    m = _FIRST_KEY_RE.match(plain)
    if m:
        info.key_quote = m.group(1) or m.group(2) or ""
        info.colon = m.group(3)
        if m.group(4) in ('"', "'"):
            info.value_quote = m.group(4)
    elif ext != "json":
        info.key_quote = ""
    if ext == "json":
        info.key_quote = '"'
        info.value_quote = '"'
    info.trailing_comma = bool(_TRAILING_COMMA_RE.search(plain))
    return info


# ── Entry layout ────────────────────────────────────────────────────────────

class _LayoutScanner:
    """Walks an object literal, keeping the text around every entry."""

    def __init__(self, text: str, ext: str) -> None:
        self.text = text
        self.pos = 0
        self.comments = ext != "json"
        self.decode = json.loads if ext == "json" else json5.loads

    def fail(self, what: str) -> None:
        raise ValueError(f"{what} at offset {self.pos}")

    def at(self, token: str) -> bool:
        return self.text.startswith(token, self.pos)

    def trivia(self) -> str:
        text, start = self.text, self.pos
        while self.pos < len(text):
            if text[self.pos].isspace():
                self.pos += 1
            elif self.comments and self.at("//"):
                end = text.find("\n", self.pos)
                self.pos = len(text) if end == -1 else end
            elif self.comments and self.at("/*"):
                end = text.find("*/", self.pos + 2)
                if end == -1:
                    self.fail("unterminated comment")
                self.pos = end + 2
            else:
                break
        return text[start:self.pos]

    def string(self) -> str:
        text = self.text
        quote = text[self.pos]
        i = self.pos + 1
        while i < len(text) and text[i] != quote:
            if text[i] == "\n":
                self.fail("unterminated string")
            i += 2 if text[i] == "\\" else 1
        if i >= len(text):
            self.fail("unterminated string")
        raw = text[self.pos:i + 1]
        self.pos = i + 1
        return raw

    def key(self) -> Tuple[str, str]:
        if self.text[self.pos:self.pos + 1] in ('"', "'"):
            raw = self.string()
            return raw, self.decode(raw)
        m = _BARE_KEY_RE.match(self.text, self.pos)
        if not m:
            self.fail("expected a key")
        self.pos = m.end()
        return m.group(), m.group()

    def obj(self) -> ObjectLayout:
        if not self.at("{"):
            self.fail("expected '{'")
        self.pos += 1
        layout = ObjectLayout()
        pending: List[EntrySlot] = []
        while True:
            lead = self.trivia()
            if self.at("}"):
                self.pos += 1
                layout.tail = lead
                break
            if self.at("..."):
                m = _SPREAD_NAME_RE.match(self.text, self.pos)
                if not m:
                    self.fail("malformed spread")
                self.pos = m.end()
                slot = EntrySlot(lead=lead, key_raw=m.group())
                pending.append(slot)
                layout.spreads.append(slot)
            else:
                key_raw, name = self.key()
                mid = self.trivia()
                if not self.at(":"):
                    self.fail("expected ':'")
                self.pos += 1
                slot = EntrySlot(name=name, lead=lead, key_raw=key_raw, mid=mid + ":" + self.trivia())
                start = self.pos
                if self.at("{"):
                    slot.child = self.obj()
                elif self.text[start:start + 1] in ('"', "'"):
                    slot.value = self.decode(self.string())
                else:
                    self.fail("expected a string or an object")
                slot.value_raw = self.text[start:self.pos]
                for spread in pending:
                    spread.anchor = name
                pending = []
                layout.slots[name] = slot
            slot.after = self.trivia()
            if self.at(","):
                self.pos += 1
                layout.trailing_comma = True
            elif self.at("}"):
                self.pos += 1
                layout.tail, slot.after = slot.after, ""
                layout.trailing_comma = False
                break
            else:
                self.fail("expected ',' or '}'")
        return layout


def scan_layout(body: str, ext: str) -> Optional[ObjectLayout]:
    """Entry-by-entry layout of an object literal; None when it cannot be followed."""
    scanner = _LayoutScanner(body, ext)
    try:
        layout = scanner.obj()
        scanner.trivia()
    except ValueError as e:
        LOG.debug(f"scan_layout: falling back to regenerated output: {e}")
        return None
    if scanner.pos != len(body):
        LOG.debug(f"scan_layout: unexpected text at offset {scanner.pos}")
        return None
    return layout


def parse_lang_file(text: str, ext: str) -> Optional[Tuple[dict, FileExtraInfo]]:
    """Parse one language file body; None when it is not a plain string table."""
    m = _OBJECT_RE.match(text)
    if not m:
        return None
    prefix, body, suffix = m.groups()
    spreads: List[str] = []
    if ext != "json":
        spreads = _SPREAD_RE.findall(body)
        if spreads:
            body_for_parse = _SPREAD_RE.sub("", body)
        else:
            body_for_parse = body
    else:
        body_for_parse = body
    try:
        data = json.loads(body_for_parse) if ext == "json" else json5.loads(body_for_parse)
    except ValueError as e:
        LOG.warning(f"parse_lang_file: cannot parse {ext} object: {e}")
        return None
    if not isinstance(data, dict) or not _only_strings(data):
        return None
    info = _detect_format(body_for_parse, ext, detect_eol(text))
    info.prefix = prefix
    info.suffix = suffix
    info.inner_vars = spreads
    info.is_flat = all(isinstance(v, str) for v in data.values())
    if not data and not spreads:
        info.empty_body = body
    info.layout = scan_layout(body, ext)
    return data, info


def read_lang_dir(lang_dir: str | pathlib.Path, ignored_langs: Tuple[str, ...] = ()) -> Optional[LangDirData]:
    """Read every language file below ``lang_dir``; None when nothing usable is found."""
    base = pathlib.Path(lang_dir)
    if not base.is_dir():
        LOG.warning(f"read_lang_dir: {base} is not a directory")
        return None

    file_type = ""
    lang_files: Dict[str, Dict[str, dict]] = {}
    extra_info: Dict[str, FileExtraInfo] = {}
    sources: Dict[str, str] = {}
    structure = FileNode(children={})
    multi_file = False

    def add_file(lang: str, scope_segs: List[str], path: pathlib.Path) -> None:
        nonlocal file_type
        stem, ext = path.stem, path.suffix.lstrip(".").lower()
        if ext not in LANG_FILE_EXTS or stem == "index" or (file_type and ext != file_type):
            return
        try:
            text = read_text(path)
        except (OSError, UnicodeDecodeError) as e:
            LOG.warning(f"read_lang_dir: skipping unreadable {path}: {e}")
            return
        parsed = parse_lang_file(text, ext)
        if parsed is None:
            LOG.warning(f"read_lang_dir: skipping {path} (not a string table)")
            return
        file_type = file_type or ext
        data, info = parsed
        scope = join_segments(scope_segs)
        lang_files.setdefault(lang, {})[scope] = data
        location = join_segments([lang] + scope_segs)
        extra_info[location] = info
        sources[location] = text
        node = structure
        for seg in scope_segs[:-1]:
            node = node.children.setdefault(seg, FileNode(children={}))
        if scope_segs:
            node.children[scope_segs[-1]] = FileNode(ext=ext)

    def walk_lang_dir(lang: str, directory: pathlib.Path, segs: List[str]) -> None:
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            if entry.is_dir():
                if not IGNORED_DIR_RE.match(entry.name):
                    walk_lang_dir(lang, entry, segs + [entry.name])
            elif entry.is_file():
                add_file(lang, segs + [entry.stem], entry)

    for entry in sorted(base.iterdir(), key=lambda p: p.name):
        if entry.name.startswith("."):
            continue
        if entry.is_file():
            lang = entry.stem
            if lang in ignored_langs:
                continue
            add_file(lang, [], entry)
        elif entry.is_dir():
            lang = entry.name
            if lang in ignored_langs:
                continue
            multi_file = True
            walk_lang_dir(lang, entry, [])

    if not lang_files:
        return None
    return LangDirData(
        file_type=file_type,
        lang_files=lang_files,
        extra_info=extra_info,
        sources=sources,
        structure=structure,
        multi_file=multi_file,
    )


def _deep_merge(dst: dict, src: dict) -> None:
    for key, value in src.items():
        if isinstance(value, dict) and isinstance(dst.get(key), dict):
            _deep_merge(dst[key], value)
        else:
            dst[key] = value


def apply_namespace(
    lang_files: Dict[str, Dict[str, dict]],
    strategy: str = "full",
) -> Tuple[Dict[str, dict], Optional[Dict[str, Tuple[str, str]]]]:
    """Merge each language's files into one tree according to ``strategy``.

    Returns (lang -> tree, key id -> (full path, file scope)); the second item is
    None for a flat layout where ids and full paths coincide.
    """
    if all(set(files) == {""} for files in lang_files.values()):
        return {lang: files[""] for lang, files in lang_files.items()}, None

    trees: Dict[str, dict] = {}
    key_paths: Dict[str, Tuple[str, str]] = {}

    def collect(node: dict, inner: List[str], scope_segs: List[str], ns: List[str], scope: str) -> None:
        for key, value in node.items():
            here = inner + [key]
            if isinstance(value, dict):
                collect(value, here, scope_segs, ns, scope)
            else:
                key_paths.setdefault(join_segments(ns + here), (join_segments(scope_segs + here), scope))

    for lang, files in lang_files.items():
        merged: dict = {}
        for scope, tree in files.items():
            scope_segs = path_segments(scope) if scope else []
            if strategy == "full":
                ns = scope_segs
            elif strategy == "file":
                ns = scope_segs[-1:]
            else:
                ns = []
            node = merged
            for seg in ns:
                nxt = node.get(seg)
                if not isinstance(nxt, dict):
                    nxt = node[seg] = {}
                node = nxt
            _deep_merge(node, tree)
            collect(tree, [], scope_segs, ns, scope)
        trees[lang] = merged
    return trees, key_paths


def detect_lang_dir(project_root: str | pathlib.Path, ignore_globs: Optional[List[str]] = None) -> Optional[pathlib.Path]:
    """Best directory below ``project_root`` whose children are named after languages."""
    base = pathlib.Path(project_root)
    best: Optional[pathlib.Path] = None
    best_hits = 0
    for root, dirs, files in os.walk(base):
        root_path = pathlib.Path(root)
        dirs[:] = sorted(d for d in dirs if not IGNORED_DIR_RE.match(d) and not is_ignored(base, root_path / d / "_", ignore_globs or []))
        names = [pathlib.Path(f).stem for f in files if pathlib.Path(f).suffix.lstrip(".") in LANG_FILE_EXTS]
        names += dirs
        hits = len({resolve_lang(n) for n in names if resolve_lang(n)})
        if hits > best_hits:
            best, best_hits = root_path, hits
    if best is not None:
        LOG.info(f"detect_lang_dir: using {best} ({best_hits} languages)")
    return best


# ── Writing ─────────────────────────────────────────────────────────────────

def lang_file_path(lang_dir: str | pathlib.Path, lang: str, scope: str, file_type: str) -> pathlib.Path:
    if not scope:
        return pathlib.Path(lang_dir) / f"{lang}.{file_type}"
    segs = path_segments(scope)
    return pathlib.Path(lang_dir, lang, *segs[:-1]) / f"{segs[-1]}.{file_type}"


def format_object_to_string(
    tree: dict,
    values: Dict[str, str],
    file_type: str,
    info: FileExtraInfo,
    *,
    quote_keys: bool = False,
) -> str:
    """Serialize an EntryTree slice (leaves are key ids looked up in ``values``).

    Entries the file already had are written back from their original text when
    their value is unchanged, comments and quoting included; only new or edited
    values are formatted, following the file's detected style.
    """
    eol = info.eol
    indent = info.indent
    is_json = file_type == "json"
    value_quote = '"' if is_json else info.value_quote

    def key_str(key: str) -> str:
        if is_json or quote_keys or info.key_quote or not is_identifier(key):
            return format_for_file(key, '"' if is_json else (info.key_quote or '"'))
        return key

    def slot_key(slot: EntrySlot) -> str:
        if quote_keys and slot.key_raw[:1] not in ('"', "'"):
            return format_for_file(slot.name, '"')
        return slot.key_raw

    def value_str(text: str, slot: Optional[EntrySlot]) -> str:
        if slot is None:
            return format_for_file(text, value_quote)
        if slot.value == text:
            return slot.value_raw
        return format_for_file(text, slot.value_raw[0])

    def fmt(obj: dict, layout: Optional[ObjectLayout], level: int) -> Optional[str]:
        pad = eol + indent * level
        slots = layout.slots if layout is not None else {}
        colon = next((s.mid for s in slots.values()), info.colon)
        spreads = list(layout.spreads) if layout is not None else []
        parts: List[str] = []
        if layout is None and level == 1 and not is_json:
            parts += [pad + spread for spread in info.inner_vars]
        first = next(iter(slots), None)
        for spread in [s for s in spreads if s.anchor is not None and s.anchor == first]:
            parts.append(spread.lead + spread.key_raw + spread.after)
            spreads.remove(spread)
        for key, value in obj.items():
            slot = slots.get(key)
            if slot is not None and (slot.child is not None) != isinstance(value, dict):
                slot = None
            if isinstance(value, dict):
                inner = fmt(value, slot.child if slot is not None else None, level + 1)
                if inner is None:
                    continue
                text = "{" + inner + "}"
            elif value in values:
                text = value_str(values[value], slot)
            else:
                continue
            for spread in [s for s in spreads if s.anchor == key]:
                parts.append(spread.lead + spread.key_raw + spread.after)
                spreads.remove(spread)
            if slot is None:
                parts.append(pad + key_str(key) + colon + text)
            else:
                parts.append(slot.lead + slot_key(slot) + slot.mid + text + slot.after)
        parts += [spread.lead + spread.key_raw + spread.after for spread in spreads]
        if not parts:
            return None
        if layout is not None and (layout.slots or layout.spreads):
            comma, tail = layout.trailing_comma, layout.tail
        else:
            comma, tail = info.trailing_comma, eol + indent * (level - 1)
        return ",".join(parts) + ("," if comma else "") + tail

    body = fmt(tree, info.layout, 1)
    if body is None:
        return f"{info.prefix}{info.empty_body}{info.suffix}"
    return f"{info.prefix}{{{body}}}{info.suffix}"
