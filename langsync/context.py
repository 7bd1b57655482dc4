from __future__ import annotations

import copy
import dataclasses
import threading
from typing import Any, Dict, List, Optional, Set, Tuple

# Update payload kinds staged by fix/trim/modify and applied by rewrite
PAYLOAD_ADD = "add"
PAYLOAD_FILL = "fill"
PAYLOAD_EDIT = "edit"
PAYLOAD_DELETE = "delete"


@dataclasses.dataclass
class DictEntry:
    full_path: str
    file_scope: str = ""
    value: Dict[str, str] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass
class ValueChange:
    before: Optional[str] = None
    after: Optional[str] = None


@dataclasses.dataclass
class UpdatePayload:
    type: str
    key: str
    changes: Dict[str, ValueChange] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass
class PatchedEntryId:
    id: str
    raw: str
    fixed_raw: str
    fixed_key: str
    text: str = ""
    # offsets of raw in the source file as scanned
    span: Optional[Tuple[int, int]] = None


@dataclasses.dataclass
class FileNode:
    """Language directory layout; ``children`` is set on directories, ``ext`` on files."""

    ext: str = ""
    children: Optional[Dict[str, "FileNode"]] = None

    @property
    def is_file(self) -> bool:
        return self.children is None


@dataclasses.dataclass
class EntrySlot:
    """Original text of one object entry: ``lead key_raw mid value_raw after``.

    ``lead`` holds everything between the previous comma (or the opening brace)
    and the key, comments included. Spreads keep ``...name`` in ``key_raw`` and
    the key they were written in front of in ``anchor`` (None at the end).
    """

    name: str = ""
    lead: str = ""
    key_raw: str = ""
    mid: str = ""
    value_raw: str = ""
    after: str = ""
    value: Optional[str] = None
    child: Optional["ObjectLayout"] = None
    anchor: Optional[str] = None


@dataclasses.dataclass
class ObjectLayout:
    slots: Dict[str, EntrySlot] = dataclasses.field(default_factory=dict)
    spreads: List[EntrySlot] = dataclasses.field(default_factory=list)
    trailing_comma: bool = False
    # text between the last entry (or its comma) and the closing brace
    tail: str = ""


@dataclasses.dataclass
class FileExtraInfo:
    indent: str = "  "
    prefix: str = ""
    suffix: str = ""
    inner_vars: List[str] = dataclasses.field(default_factory=list)
    key_quote: str = '"'
    value_quote: str = '"'
    colon: str = ": "
    eol: str = "\n"
    trailing_comma: bool = False
    is_flat: bool = True
    empty_body: str = "{}"
    layout: Optional[ObjectLayout] = None


class CancelToken:
    """Cooperative cancellation flag polled between phases."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def reset(self) -> None:
        self._event.clear()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


@dataclasses.dataclass
class LangContext:
    """State owned by one session for the duration of a run."""

    project_root: str = ""
    lang_dir: str = ""
    referred_lang: str = "en"
    ignored_langs: List[str] = dataclasses.field(default_factory=list)
    namespace_strategy: str = "full"
    lang_file_type: str = ""
    multi_file: bool = False
    file_structure: Optional[FileNode] = None
    file_extra_info: Dict[str, FileExtraInfo] = dataclasses.field(default_factory=dict)
    # source text of every language file as last read or written, keyed by location
    file_sources: Dict[str, str] = dataclasses.field(default_factory=dict)

    key_tree: Any = None
    dictionary: Dict[str, DictEntry] = dataclasses.field(default_factory=dict)
    lang_maps: Dict[str, Dict[str, str]] = dataclasses.field(default_factory=dict)

    used: Dict[str, Dict[str, List[Tuple[int, int]]]] = dataclasses.field(default_factory=dict)
    used_keys: List[str] = dataclasses.field(default_factory=list)
    unused_keys: List[str] = dataclasses.field(default_factory=list)
    undefined_entries: List[Any] = dataclasses.field(default_factory=list)
    undefined_map: Dict[str, Dict[str, List[Tuple[int, int]]]] = dataclasses.field(default_factory=dict)

    lack: Dict[str, List[str]] = dataclasses.field(default_factory=dict)
    extra: Dict[str, List[str]] = dataclasses.field(default_factory=dict)
    null: Dict[str, List[str]] = dataclasses.field(default_factory=dict)

    update_payloads: List[UpdatePayload] = dataclasses.field(default_factory=list)
    patched_entries: Dict[str, List[PatchedEntryId]] = dataclasses.field(default_factory=dict)
    sort_order: Optional[List[str]] = None

    @property
    def langs(self) -> List[str]:
        return [lang for lang in self.lang_maps if lang not in self.ignored_langs]

    def snapshot(self) -> Dict[str, Any]:
        """Read-only view handed to outer layers."""
        return {
            "dictionary": {k: dataclasses.replace(v, value=dict(v.value)) for k, v in self.dictionary.items()},
            "entry_tree": copy.deepcopy(self.key_tree.root) if self.key_tree is not None else {},
            "used": {k: {p: list(o) for p, o in v.items()} for k, v in self.used.items()},
            "unused": list(self.unused_keys),
            "undefined": {t: {p: list(o) for p, o in v.items()} for t, v in self.undefined_map.items()},
            "lack": {k: list(v) for k, v in self.lack.items()},
            "extra": {k: list(v) for k, v in self.extra.items()},
        }

    def known_keys(self) -> Set[str]:
        return set(self.dictionary)
