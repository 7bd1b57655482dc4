"""Ambiguous dotted-key tree.

An EntryTree maps unescaped segment names to nested trees, with leaves holding the
escaped key id. Because literal key text may itself contain dots, a dotted path
written in source code can map onto the tree in several ways; :func:`resolve`
tries every contiguous grouping of the dot-separated tokens.
"""
from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from langsync.context import DictEntry
from langsync.utils.logging import sync_logger as LOG
from langsync.utils.strings import join_segments, path_segments, unescape_segment

EntryTree = Dict[str, Union[str, "EntryTree"]]

DEFAULT_MAX_TOKENS = 12


def _build_split(parts: List[str], mask: int) -> List[str]:
    split: List[str] = []
    current = parts[0]
    for j in range(len(parts) - 1):
        if mask & (1 << j):
            current += "." + parts[j + 1]
        else:
            split.append(current)
            current = parts[j + 1]
    split.append(current)
    return split


def _access(tree: EntryTree, split: List[str]) -> Optional[str]:
    node: Union[str, EntryTree] = tree
    for seg in split:
        if not isinstance(node, dict):
            return None
        if seg in node:
            node = node[seg]
            continue
        plain = unescape_segment(seg)
        if plain != seg and plain in node:
            node = node[plain]
            continue
        return None
    return node if isinstance(node, str) else None


def resolve(tree: EntryTree, path: str, max_tokens: int = DEFAULT_MAX_TOKENS) -> Optional[str]:
    """Key id bound to ``path`` or None.

    Enumerates the 2^(N-1) groupings of the N dot tokens, finest split first.
    Paths with more than ``max_tokens`` tokens are refused.
    """
    if not isinstance(tree, dict) or not path:
        return None
    parts = path.split(".")
    if len(parts) > max_tokens:
        LOG.debug(f"resolve: {len(parts)} tokens > {max_tokens}; refusing {path[:80]!r}")
        return None
    for mask in range(1 << (len(parts) - 1)):
        value = _access(tree, _build_split(parts, mask))
        if value is not None:
            return value
    return None


class KeyTree:
    """EntryTree with a memoized resolver; any mutation drops the memo."""

    def __init__(self, root: Optional[EntryTree] = None, *, max_tokens: int = DEFAULT_MAX_TOKENS) -> None:
        self.root: EntryTree = root if root is not None else {}
        self.max_tokens = max_tokens
        self._memo: Dict[str, Optional[str]] = {}

    def resolve(self, path: str) -> Optional[str]:
        if path not in self._memo:
            self._memo[path] = resolve(self.root, path, self.max_tokens)
        return self._memo[path]

    def __contains__(self, path: str) -> bool:
        return self.resolve(path) is not None

    def set(self, key_id: str, value: Optional[str] = None) -> None:
        """Bind ``key_id`` (escaped) to a leaf; the leaf value defaults to the id."""
        segs = path_segments(key_id)
        if not segs:
            return
        node = self.root
        for seg in segs[:-1]:
            nxt = node.get(seg)
            if not isinstance(nxt, dict):
                nxt = node[seg] = {}
            node = nxt
        node[segs[-1]] = key_id if value is None else value
        self._memo.clear()

    def delete(self, key_id: str) -> None:
        segs = path_segments(key_id)
        if not segs:
            return
        trail: List[Tuple[EntryTree, str]] = []
        node = self.root
        for seg in segs[:-1]:
            nxt = node.get(seg)
            if not isinstance(nxt, dict):
                return
            trail.append((node, seg))
            node = nxt
        if isinstance(node.get(segs[-1]), str):
            del node[segs[-1]]
        # prune branches left empty
        for parent, seg in reversed(trail):
            if parent[seg]:
                break
            del parent[seg]
        self._memo.clear()

    def occupied(self, key_id: str) -> bool:
        """True when binding ``key_id`` would replace a leaf or a whole subtree.

        Covers the exact path, a subtree sitting at the path and a leaf sitting at
        any leading part of it.
        """
        segs = path_segments(key_id)
        if not segs:
            return False
        node: Union[str, EntryTree] = self.root
        for seg in segs:
            if not isinstance(node, dict):
                return True
            if seg not in node:
                return False
            node = node[seg]
        return True

    def content_at(self, location: str) -> Optional[EntryTree]:
        """Subtree at an escaped location such as ``home.sub``."""
        node: Union[str, EntryTree] = self.root
        for seg in path_segments(location):
            if not isinstance(node, dict) or seg not in node:
                return None
            node = node[seg]
        return node if isinstance(node, dict) else None

    def leaves(self) -> Iterator[str]:
        yield from _iter_leaves(self.root)

    def keys(self) -> List[str]:
        return list(self.leaves())

    def slice_by_scope(self, dictionary: Dict[str, DictEntry], file_scope: str) -> EntryTree:
        return slice_by_scope(dictionary, self.leaves(), file_scope)

    def sorted(self) -> "KeyTree":
        return KeyTree(_sorted_tree(self.root), max_tokens=self.max_tokens)


def _iter_leaves(tree: EntryTree) -> Iterator[str]:
    for value in tree.values():
        if isinstance(value, dict):
            yield from _iter_leaves(value)
        else:
            yield value


def _sorted_tree(tree: EntryTree) -> EntryTree:
    out: EntryTree = {}
    for key in sorted(tree, key=str.lower):
        value = tree[key]
        out[key] = _sorted_tree(value) if isinstance(value, dict) else value
    return out


# ── Dictionary building ────────────────────────────────────────────────────

def build_dictionary(
    lang_trees: Dict[str, dict],
    key_paths: Optional[Dict[str, Tuple[str, str]]] = None,
    ignored_langs: Iterable[str] = (),
    *,
    max_tokens: int = DEFAULT_MAX_TOKENS,
) -> Tuple[KeyTree, Dict[str, DictEntry], Dict[str, Dict[str, str]]]:
    """Walk every language tree once.

    Returns the shared KeyTree, the Dictionary (id -> DictEntry) and the ordered
    per-language maps (lang -> id -> text). ``key_paths`` maps an id to its
    (full_path, file_scope) when files are nested.
    """
    tree = KeyTree(max_tokens=max_tokens)
    dictionary: Dict[str, DictEntry] = {}
    lang_maps: Dict[str, Dict[str, str]] = {}
    ignored = set(ignored_langs)

    def walk(node: dict, segs: List[str], lang: str) -> None:
        for key, value in node.items():
            here = segs + [key]
            if isinstance(value, dict):
                walk(value, here, lang)
                continue
            key_id = join_segments(here)
            tree.set(key_id)
            entry = dictionary.get(key_id)
            if entry is None:
                full_path, scope = (key_paths or {}).get(key_id, (key_id, ""))
                entry = dictionary[key_id] = DictEntry(full_path=full_path, file_scope=scope)
            entry.value[lang] = value
            lang_maps[lang][key_id] = value

    for lang, lang_tree in lang_trees.items():
        if lang in ignored:
            continue
        lang_maps[lang] = {}
        walk(lang_tree, [], lang)
    return tree, dictionary, lang_maps


def slice_by_scope(dictionary: Dict[str, DictEntry], keys: Iterable[str], file_scope: str) -> EntryTree:
    """EntryTree of the keys that live in the physical file ``file_scope``.

    Segments are taken from each key's full path below the scope, in ``keys`` order,
    so every dictionary key lands in exactly one file.
    """
    depth = len(path_segments(file_scope)) if file_scope else 0
    out: EntryTree = {}
    for key_id in keys:
        entry = dictionary.get(key_id)
        if entry is None or entry.file_scope != file_scope:
            continue
        segs = path_segments(entry.full_path)[depth:]
        if not segs:
            continue
        node = out
        for seg in segs[:-1]:
            nxt = node.get(seg)
            if not isinstance(nxt, dict):
                nxt = node[seg] = {}
            node = nxt
        node[segs[-1]] = key_id
    return out


def sort_tree_like(tree: EntryTree, order: List[str]) -> EntryTree:
    """Reorder ``tree`` so leaves follow ``order``; groups follow their first leaf."""
    rank = {key: i for i, key in enumerate(order)}

    def first_rank(value: Union[str, EntryTree]) -> int:
        if isinstance(value, dict):
            return min((first_rank(v) for v in value.values()), default=len(rank))
        return rank.get(value, len(rank))

    out: EntryTree = {}
    for key in sorted(tree, key=lambda k: first_rank(tree[k])):
        value = tree[key]
        out[key] = sort_tree_like(value, order) if isinstance(value, dict) else value
    return out
