"""Translation call-site scanner.

Finds ``t("...")``-style calls in JS/TS/Vue/HTML text with a small character
automaton (not a grammar parser) and turns the name argument of every call into
a :class:`NameInfo`. Malformed call-sites are skipped; :func:`scan` never raises.
"""
from __future__ import annotations

import bisect
import dataclasses
import enum
import re
from typing import Dict, Iterable, List, Optional, Pattern, Tuple, Union

DISABLE_MARKER = "langsync-disable"
ENABLE_MARKER = "langsync-enable"

_PAIRS = {"(": ")", "[": "]", "{": "}"}
_SIMPLE_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}
_BOUND_NAME_RE = re.compile(r"^%([^%\s]+)%")
_BOUND_CLASS_RE = re.compile(r"^#([^#\s]+)#")
# characters that may precede a script string literal
_STRING_LEADS = "=(,:[?+{!&|;"
_ATTR_NAME_END_RE = re.compile(r"[\w\-\])]")


class ArgKind(enum.Enum):
    TEXT = "text"
    TEMPLATE_TEXT = "template"
    VAR = "var"
    OBJ = "obj"
    ARR = "arr"


@dataclasses.dataclass
class ArgPart:
    kind: ArgKind
    start: int
    end: int
    # literal chunks (str) and placeholders (None) for TEXT / TEMPLATE_TEXT
    pieces: List[Optional[str]] = dataclasses.field(default_factory=list)
    exprs: List[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class NameInfo:
    text: str
    vars: List[str]
    regex: Pattern
    bound_name: str = ""
    bound_class: str = ""

    @property
    def name(self) -> str:
        """Key name a call-site asks for."""
        return self.bound_name or self.text


@dataclasses.dataclass
class TEntry:
    raw: str
    span: Tuple[int, int]
    name_info: NameInfo
    func_name: str
    quote: str
    args: List[str] = dataclasses.field(default_factory=list)
    path: str = ""
    # offsets of the first literal of the name argument, quotes included
    text_span: Tuple[int, int] = (0, 0)

    @property
    def offset(self) -> int:
        return self.span[0]


# ── Low level matchers ──────────────────────────────────────────────────────

def _match_quote(text: str, i: int) -> Optional[int]:
    """Index of the unescaped quote closing the ``'``/``"`` literal at ``i``."""
    q = text[i]
    j = i + 1
    n = len(text)
    while j < n:
        c = text[j]
        if c == "\\":
            j += 2
            continue
        if c == q:
            return j
        if c == "\n":
            return None
        j += 1
    return None


def _match_template(text: str, i: int) -> Optional[Tuple[int, List[Optional[str]], List[str]]]:
    """Scan the backtick literal at ``i``.

    Returns (closing index, pieces, exprs) where pieces holds raw literal chunks and
    ``None`` where a ``${...}`` expression sat.
    """
    j = i + 1
    n = len(text)
    pieces: List[Optional[str]] = []
    exprs: List[str] = []
    chunk_start = j
    while j < n:
        c = text[j]
        if c == "\\":
            j += 2
            continue
        if c == "`":
            pieces.append(text[chunk_start:j])
            return j, pieces, exprs
        if c == "$" and j + 1 < n and text[j + 1] == "{":
            close = _find_closing(text, j + 1)
            if close is None:
                return None
            pieces.append(text[chunk_start:j])
            pieces.append(None)
            exprs.append(text[j + 2:close].strip())
            j = close + 1
            chunk_start = j
            continue
        j += 1
    return None


def _find_closing(text: str, i: int) -> Optional[int]:
    """Depth-counted match for the bracket at ``i``; strings are skipped whole."""
    stack = [_PAIRS[text[i]]]
    j = i + 1
    n = len(text)
    while j < n:
        c = text[j]
        if c in "'\"":
            end = _match_quote(text, j)
            if end is None:
                return None
            j = end + 1
            continue
        if c == "`":
            tpl = _match_template(text, j)
            if tpl is None:
                return None
            j = tpl[0] + 1
            continue
        if c in _PAIRS:
            stack.append(_PAIRS[c])
        elif c in ")]}":
            if c != stack[-1]:
                return None
            stack.pop()
            if not stack:
                return j
        j += 1
    return None


def _consume_var(text: str, i: int) -> int:
    """End (exclusive) of a bare expression starting at ``i``.

    Stops at a top-level ``,`` ``)`` or ``+``; nested brackets and strings are skipped.
    Returns ``-1`` when a bracket or string never closes.
    """
    j = i
    n = len(text)
    while j < n:
        c = text[j]
        if c in ",)+":
            return j
        if c in "'\"":
            end = _match_quote(text, j)
            if end is None:
                return -1
            j = end + 1
            continue
        if c == "`":
            tpl = _match_template(text, j)
            if tpl is None:
                return -1
            j = tpl[0] + 1
            continue
        if c in _PAIRS:
            end = _find_closing(text, j)
            if end is None:
                return -1
            j = end + 1
            continue
        if c in "]}":
            return j
        j += 1
    return -1


def decode_literal(s: str) -> str:
    """Resolve JS escape sequences inside a literal body."""
    if "\\" not in s:
        return s
    out: List[str] = []
    i = 0
    n = len(s)
    while i < n:
        c = s[i]
        if c != "\\" or i + 1 >= n:
            out.append(c)
            i += 1
            continue
        nxt = s[i + 1]
        if nxt == "u" and re.fullmatch(r"[0-9a-fA-F]{4}", s[i + 2:i + 6]):
            out.append(chr(int(s[i + 2:i + 6], 16)))
            i += 6
            continue
        if nxt == "\n":
            i += 2
            continue
        out.append(_SIMPLE_ESCAPES.get(nxt, nxt))
        i += 2
    return "".join(out)


# ── Comment / disabled regions ──────────────────────────────────────────────

def _is_script_string(text: str, i: int) -> bool:
    """True when the quote at ``i`` opens a script string literal.

    Markup attribute values (``:title="t('x')"``, no space around ``=``) and
    apostrophes in template prose do not count.
    """
    j = i - 1
    while j >= 0 and text[j].isspace():
        j -= 1
    if j < 0:
        return False
    lead = text[j]
    if lead == "=" and j == i - 1 and j > 0 and _ATTR_NAME_END_RE.match(text[j - 1]):
        return False
    return lead in _STRING_LEADS or text.endswith("return", 0, j + 1)


def excluded_ranges(text: str) -> List[Tuple[int, int]]:
    """Sorted (start, end) ranges covered by comments, script string literals or
    disable/enable regions.

    String literals are skipped so ``"http://x"`` is not a comment; a quote that
    does not close on its line is treated as plain text.
    """
    ranges: List[Tuple[int, int]] = []
    i = 0
    n = len(text)
    while i < n:
        c = text[i]
        if c in "'\"":
            end = _match_quote(text, i)
            if end is None:
                i += 1
                continue
            if _is_script_string(text, i):
                ranges.append((i, end + 1))
            i = end + 1
            continue
        if c == "`":
            tpl = _match_template(text, i)
            i = i + 1 if tpl is None else tpl[0] + 1
            continue
        if text.startswith("//", i):
            end = text.find("\n", i)
            end = n if end == -1 else end
            ranges.append((i, end))
            i = end
            continue
        if text.startswith("/*", i):
            end = text.find("*/", i + 2)
            end = n if end == -1 else end + 2
            ranges.append((i, end))
            i = end
            continue
        if text.startswith("<!--", i):
            end = text.find("-->", i + 4)
            end = n if end == -1 else end + 3
            ranges.append((i, end))
            i = end
            continue
        i += 1

    pos = 0
    while True:
        start = text.find(DISABLE_MARKER, pos)
        if start == -1:
            break
        end = text.find(ENABLE_MARKER, start + len(DISABLE_MARKER))
        end = n if end == -1 else end + len(ENABLE_MARKER)
        ranges.append((start, end))
        pos = end
    ranges.sort()

    merged: List[Tuple[int, int]] = []
    for s, e in ranges:
        if merged and s <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], e))
        else:
            merged.append((s, e))
    return merged


def _in_ranges(ranges: List[Tuple[int, int]], starts: List[int], pos: int) -> bool:
    idx = bisect.bisect_right(starts, pos) - 1
    return idx >= 0 and pos < ranges[idx][1]


# ── Call parsing ────────────────────────────────────────────────────────────

def _parse_args(text: str, i: int) -> Optional[Tuple[List[List[ArgPart]], int]]:
    """Consume arguments after ``(``; returns (arguments, index of closing paren)."""
    n = len(text)
    args: List[List[ArgPart]] = []
    current: List[ArgPart] = []
    while True:
        while i < n and text[i].isspace():
            i += 1
        if i >= n:
            return None
        ch = text[i]
        if ch == ")":
            if current:
                args.append(current)
            return args, i
        if ch == ",":
            if current:
                args.append(current)
            current = []
            i += 1
            continue
        if ch == "+":
            i += 1
            continue
        if ch in "'\"":
            end = _match_quote(text, i)
            if end is None:
                return None
            current.append(ArgPart(ArgKind.TEXT, i, end + 1, pieces=[text[i + 1:end]]))
            i = end + 1
        elif ch == "`":
            tpl = _match_template(text, i)
            if tpl is None:
                return None
            end, pieces, exprs = tpl
            current.append(ArgPart(ArgKind.TEMPLATE_TEXT, i, end + 1, pieces=pieces, exprs=exprs))
            i = end + 1
        elif ch in "{[":
            end = _find_closing(text, i)
            if end is None:
                return None
            kind = ArgKind.OBJ if ch == "{" else ArgKind.ARR
            current.append(ArgPart(kind, i, end + 1))
            i = end + 1
        else:
            end = _consume_var(text, i)
            if end == -1 or end == i:
                return None
            current.append(ArgPart(ArgKind.VAR, i, end))
            i = end


def _build_name_info(text: str, parts: List[ArgPart]) -> Optional[NameInfo]:
    if not any(p.kind in (ArgKind.TEXT, ArgKind.TEMPLATE_TEXT) for p in parts):
        return None
    segments: List[Union[str, int]] = []
    variables: List[str] = []
    for part in parts:
        if part.kind in (ArgKind.TEXT, ArgKind.TEMPLATE_TEXT):
            expr_iter = iter(part.exprs)
            for piece in part.pieces:
                if piece is None:
                    segments.append(len(variables))
                    variables.append(next(expr_iter))
                elif piece:
                    segments.append(decode_literal(piece))
        else:
            segments.append(len(variables))
            variables.append(text[part.start:part.end].strip())

    # merge adjacent literal chunks so sigils and regex see one string
    merged: List[Union[str, int]] = []
    for seg in segments:
        if isinstance(seg, str) and merged and isinstance(merged[-1], str):
            merged[-1] += seg
        else:
            merged.append(seg)

    bound_name = bound_class = ""
    if merged and isinstance(merged[0], str):
        head = merged[0]
        m = _BOUND_NAME_RE.match(head)
        if m:
            bound_name = m.group(1)
            head = head[m.end():]
        m = _BOUND_CLASS_RE.match(head)
        if m:
            bound_class = m.group(1)
            head = head[m.end():]
        merged[0] = head

    text_out = "".join(s if isinstance(s, str) else "{%d}" % s for s in merged)
    pattern = "".join(re.escape(s) if isinstance(s, str) else ".*" for s in merged)
    return NameInfo(
        text=text_out,
        vars=variables,
        regex=re.compile(f"^{pattern}$", re.S),
        bound_name=bound_name,
        bound_class=bound_class,
    )


def _call_regex(function_names: Iterable[str]) -> Pattern:
    names = sorted({n for n in function_names if n}, key=len, reverse=True)
    alt = "|".join(re.escape(n) for n in names)
    return re.compile(rf"(?<![A-Za-z0-9_])({alt})\s*\(")


_CALL_RE_CACHE: Dict[Tuple[str, ...], Pattern] = {}


def scan(text: str, function_names: Iterable[str] = ("t",)) -> List[TEntry]:
    """Return every translation call-site in ``text`` in source order."""
    key = tuple(function_names)
    call_re = _CALL_RE_CACHE.get(key)
    if call_re is None:
        call_re = _CALL_RE_CACHE[key] = _call_regex(key)

    ranges = excluded_ranges(text)
    starts = [s for s, _ in ranges]
    entries: List[TEntry] = []
    for m in call_re.finditer(text):
        start = m.start()
        if _in_ranges(ranges, starts, start):
            continue
        parsed = _parse_args(text, m.end())
        if parsed is None:
            continue
        args, close = parsed
        if not args:
            continue
        info = _build_name_info(text, args[0])
        if info is None:
            continue
        first_literal = next(p for p in args[0] if p.kind in (ArgKind.TEXT, ArgKind.TEMPLATE_TEXT))
        extra = [text[a[0].start:a[-1].end].strip() for a in args[1:]]
        entries.append(
            TEntry(
                raw=text[start:close + 1],
                span=(start, close + 1),
                name_info=info,
                func_name=m.group(1),
                quote=text[first_literal.start],
                args=extra,
                text_span=(first_literal.start, first_literal.end),
            )
        )
    return entries
