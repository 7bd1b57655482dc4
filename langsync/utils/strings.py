"""String helpers shared by the scanner, the key tree and the key generator.

Key ids are dotted paths where a literal dot inside a segment is written ``\\.``
and a literal backslash ``\\\\``.
"""
from __future__ import annotations

import re
from typing import Iterable, List

KEY_STYLES = ("camelCase", "pascalCase", "snake", "kebab", "raw")

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")
_FILE_NAME_PART_RE = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|\d+")
_WORD_RE = re.compile(r"[a-z0-9]+")
_DEDUP_STRIP_RE = re.compile(r"[\s\\]")


# ── Escaping ────────────────────────────────────────────────────────────────

def escape_segment(s: str) -> str:
    return s.replace("\\", "\\\\").replace(".", "\\.")


def unescape_segment(s: str) -> str:
    out: List[str] = []
    i = 0
    while i < len(s):
        ch = s[i]
        if ch == "\\" and i + 1 < len(s):
            out.append(s[i + 1])
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def split_escaped_path(path: str) -> List[str]:
    """Split ``path`` on unescaped dots, unescaping each segment.

    Raises ValueError when the path ends in a dangling backslash.
    """
    result: List[str] = []
    current: List[str] = []
    escaping = False
    for ch in path:
        if escaping:
            current.append(ch)
            escaping = False
        elif ch == "\\":
            escaping = True
        elif ch == ".":
            result.append("".join(current))
            current = []
        else:
            current.append(ch)
    if escaping:
        raise ValueError(f"Invalid escape sequence at end of {path!r}")
    if current:
        result.append("".join(current))
    return result


def path_segments(key_id: str) -> List[str]:
    """Segments of a key id; empty segments are dropped."""
    return [seg for seg in split_escaped_path(key_id) if seg != ""]


def join_segments(segments: Iterable[str]) -> str:
    return ".".join(escape_segment(s) for s in segments)


def escape_regexp(s: str) -> str:
    return re.escape(s)


# ── Key generation ──────────────────────────────────────────────────────────

def generate_key(parts: List[str], style: str = "camelCase") -> str:
    parts = [p for p in parts if p]
    if not parts:
        return ""
    if style == "camelCase":
        head, *tail = parts
        return head[0].lower() + head[1:] + "".join(p[0].upper() + p[1:] for p in tail)
    if style == "pascalCase":
        return "".join(p[0].upper() + p[1:] for p in parts)
    if style == "snake":
        return "_".join(parts)
    if style == "kebab":
        return "-".join(parts)
    return "".join(parts)


def split_file_name(name: str) -> List[str]:
    """HelloWorld_file-name -> ["hello", "world", "file", "name"]"""
    return [p.lower() for p in _FILE_NAME_PART_RE.findall(name)]


def gen_key_from_text(text: str, style: str = "camelCase", stop_words: Iterable[str] = ()) -> str:
    stop = {w.lower() for w in stop_words}
    words = [w for w in _WORD_RE.findall(text.lower()) if w not in stop]
    return generate_key(words, style)


def normalize_text(text: str) -> str:
    """Dedup id of a translatable text: case-folded, whitespace and backslashes removed."""
    return _DEDUP_STRIP_RE.sub("", text.casefold())


def is_identifier(key: str) -> bool:
    return bool(_IDENTIFIER_RE.match(key))


# ── File output ─────────────────────────────────────────────────────────────

def format_for_file(value: str, quote: str = '"') -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace(quote, "\\" + quote)
        .replace("\r", "\\r")
        .replace("\n", "\\n")
        .replace("\t", "\\t")
    )
    return f"{quote}{escaped}{quote}"
