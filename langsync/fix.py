"""Key generation for undefined call-sites and filling of missing translations.

The handler works in two passes over a :class:`LangContext` that already went
through census and check:

1. every undefined call-site is bound to a key, reusing an existing key with the
   same text when allowed, otherwise minting a new collision-free one; each
   call-site gets a source patch and new keys get an ``add`` payload;
2. keys missing in other languages are translated from the reference language
   and staged as ``fill`` payloads.

Nothing touches the disk here; :mod:`langsync.rewrite` applies the staged work.
"""
from __future__ import annotations

import dataclasses
import pathlib
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from langsync.context import PAYLOAD_ADD, PAYLOAD_FILL, CancelToken, DictEntry, LangContext, PatchedEntryId, UpdatePayload, ValueChange
from langsync.entry_scanner import TEntry
from langsync.key_tree import EntryTree, KeyTree
from langsync.result import ExecutionResult, ResultCode, fix_counters
from langsync.translator import TranslateResult
from langsync.utils.lang_codes import find_lang, is_english
from langsync.utils.logging import sync_logger as LOG
from langsync.utils.strings import (
    escape_segment,
    format_for_file,
    gen_key_from_text,
    generate_key,
    join_segments,
    normalize_text,
    path_segments,
    split_file_name,
    unescape_segment,
)

TranslateFn = Callable[[str, str, List[str]], TranslateResult]

INTERPOLATION_STYLES = ("object", "array", "args")
KEY_STRATEGIES = ("english", "default")


@dataclasses.dataclass
class FixOptions:
    match_existing_key: bool = True
    key_style: str = "camelCase"
    key_strategy: str = "english"
    # "none", "auto-popular", "auto-path" or a literal prefix
    key_prefix: str = "none"
    stop_words: List[str] = dataclasses.field(default_factory=list)
    stop_prefixes: List[str] = dataclasses.field(default_factory=list)
    max_key_length: int = 40
    name_separator: str = "."
    interpolation_style: str = "object"
    # True: every undefined text; False: none; list: only these texts
    entries_to_gen: Union[bool, List[str]] = True
    # relative source paths allowed to receive keys
    gen_scope: Optional[List[str]] = None
    # True: every lacking key; False: none; list: only these keys
    entries_to_fill: Union[bool, List[str]] = True
    fill_scope: Optional[List[str]] = None
    fill_with_original: bool = False
    auto_translate_empty_key: bool = False
    # "minimal" fills only the reference and English values of generated keys
    key_generation_fill_scope: str = "minimal"
    missing_entry_file: Optional[str] = None

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], **overrides: Any) -> "FixOptions":
        names = {f.name for f in dataclasses.fields(cls)}
        values = {k: v for k, v in cfg.items() if k in names and v is not None}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclasses.dataclass
class _Pending:
    entry: TEntry
    key: str = ""
    fixed_raw: str = ""


class FixHandler:
    def __init__(
        self,
        ctx: LangContext,
        options: FixOptions,
        translate: TranslateFn,
        cancel: Optional[CancelToken] = None,
    ) -> None:
        self.ctx = ctx
        # entries_to_fill / fill_scope get narrowed while keys are generated
        self.options = dataclasses.replace(
            options,
            entries_to_fill=list(options.entries_to_fill) if isinstance(options.entries_to_fill, list) else options.entries_to_fill,
        )
        self.translate = translate
        self.cancel = cancel or CancelToken()
        self.lack_from_undefined: Dict[str, List[str]] = {}
        self.staged_keys: List[str] = []
        self.need_fix = False
        self.patched_num = 0
        self._payload_mark = 0
        self._patch_marks: Dict[str, int] = {}
        self._new_ids = KeyTree()

    # ── Entry point ──────────────────────────────────────────────────────────

    def run(self) -> ExecutionResult:
        self.need_fix = False
        self.patched_num = 0
        ctx = self.ctx
        self._payload_mark = len(ctx.update_payloads)
        self._patch_marks = {path: len(items) for path, items in ctx.patched_entries.items()}
        if not ctx.referred_lang or ctx.referred_lang not in ctx.lang_maps:
            return ExecutionResult.fail(f"Reference language {ctx.referred_lang!r} not found", ResultCode.NoReferredLang)
        try:
            if ctx.undefined_entries and self.options.entries_to_gen is not False:
                res = self.process_undefined_entries()
                if not res.success:
                    return res
            if self.options.entries_to_fill is not False:
                return self.fill_missing_translations()
            code = ResultCode.Success if self.need_fix else ResultCode.NoLackEntries
            return ExecutionResult.ok("", code, fix_counters(patched=self.patched_num))
        except Exception as e:
            LOG.exception(f"fix: unexpected failure: {e}")
            return ExecutionResult.fail(f"Fix failed: {e}", ResultCode.UnknownFixError)

    # ── Undefined call-sites ─────────────────────────────────────────────────

    def process_undefined_entries(self) -> ExecutionResult:
        ctx, opts = self.ctx, self.options
        self.lack_from_undefined = {}
        self.staged_keys = []
        referred_map = ctx.lang_maps[ctx.referred_lang]
        value_key_map = {normalize_text(text): key for key, text in referred_map.items()}

        pending: List[_Pending] = []
        to_mint: List[_Pending] = []
        seen_ids = set()
        for entry in ctx.undefined_entries:
            info = entry.name_info
            entry_id = normalize_text(info.text)
            if opts.entries_to_gen is not True:
                if opts.gen_scope is not None and entry.path not in opts.gen_scope:
                    continue
                if isinstance(opts.entries_to_gen, list) and info.text not in opts.entries_to_gen:
                    continue
            if opts.match_existing_key and entry_id in value_key_map and not info.bound_name:
                self.need_fix = True
                key = value_key_map[entry_id]
                pending.append(_Pending(entry, key, self.get_fixed_raw(entry, key)))
            elif entry_id in seen_ids:
                pending.append(_Pending(entry))
            else:
                seen_ids.add(entry_id)
                item = _Pending(entry)
                pending.append(item)
                to_mint.append(item)

        gen_names = [p.entry.name_info.text for p in to_mint]
        failure: Optional[str] = None
        if gen_names and opts.key_strategy == "english" and not is_english(ctx.referred_lang) and not opts.fill_with_original:
            res = self.translate(ctx.referred_lang, "en", gen_names)
            if res.success and len(res.data) == len(gen_names):
                gen_names = res.data
            else:
                failure = res.message or "No translation service available"
                LOG.error(f"fix: cannot derive English key names: {failure}")
                gen_names = [""] * len(to_mint)

        name_prefix = self._name_prefix()
        ns_prefix, scope = self._namespace()
        new_ids = self._new_ids = KeyTree()

        def exists(key: str) -> bool:
            if key in ctx.dictionary or new_ids.occupied(key):
                return True
            return ctx.key_tree is not None and (key in ctx.key_tree or ctx.key_tree.occupied(key))

        en_lang = find_lang(ctx.langs, "en") if opts.key_strategy == "english" else None
        for item, gen_name in zip(to_mint, gen_names):
            info = item.entry.name_info
            if info.bound_name:
                key = info.bound_name
                if ns_prefix and not key.startswith(ns_prefix):
                    key = ns_prefix + key
                if key not in ctx.dictionary and exists(key):
                    LOG.warning(f"fix: bound key {key!r} would overwrite existing keys; skipping {item.entry.path}")
                    continue
            elif gen_name == "":
                continue
            else:
                key = self._mint_key(item.entry, gen_name, name_prefix, ns_prefix, exists)
            new_ids.set(key)
            item.key = key
            item.fixed_raw = self.get_fixed_raw(item.entry, key)
            self.need_fix = True
            self._stage_addition(key, info.text, gen_name or info.text, ns_prefix, scope, en_lang)

        # call-sites sharing a text with a minted twin get the twin's key
        keys_by_id = {normalize_text(p.entry.name_info.text): p.key for p in pending if p.fixed_raw}
        for item in pending:
            if not item.fixed_raw:
                twin_key = keys_by_id.get(normalize_text(item.entry.name_info.text))
                if twin_key is None:
                    continue
                item.key = twin_key
                item.fixed_raw = self.get_fixed_raw(item.entry, twin_key)
            ctx.patched_entries.setdefault(item.entry.path, []).append(
                PatchedEntryId(
                    id=normalize_text(item.entry.name_info.text),
                    raw=item.entry.raw,
                    fixed_raw=item.fixed_raw,
                    fixed_key=item.key,
                    text=item.entry.name_info.text,
                    span=item.entry.span,
                )
            )
            self.patched_num += 1

        if self.patched_num:
            LOG.info(f"fix: patched {self.patched_num} call-site(s), staged {len(self.staged_keys)} new key(s)")
        counters = fix_counters(patched=self.patched_num)
        if failure is not None:
            return ExecutionResult.fail(failure, ResultCode.TranslatorFailed, counters)
        return ExecutionResult.ok("", ResultCode.Success, counters)

    def _mint_key(self, entry: TEntry, gen_name: str, name_prefix: str, ns_prefix: str, exists: Callable[[str], bool]) -> str:
        opts = self.options
        sep = opts.name_separator
        base = entry.name_info.bound_class or (self._path_prefix(entry) if opts.key_prefix == "auto-path" else name_prefix)
        if base and not base.endswith(sep) and not base.endswith("."):
            base += sep
        if base.endswith(".") and self._leaf_at_or_above(ns_prefix + base[:-1]):
            LOG.warning(f"fix: prefix {base[:-1]!r} is already a key; minting {gen_name!r} without it")
            base = ""
        key_id = gen_key_from_text(gen_name, opts.key_style, opts.stop_words)
        key = ns_prefix + base + key_id
        if key_id and len(key_id) <= opts.max_key_length and not exists(key):
            return key

        if key_id and exists(key):
            parts = [key_id]
        else:
            stem = pathlib.PurePosixPath(entry.path).stem if entry.path else "unknown"
            stop = {w.lower() for w in opts.stop_words}
            parts = [p for p in split_file_name(stem) if p not in stop] + ["text"]
        budget = max(8, opts.max_key_length - len(base))
        index = 1
        while True:
            tail = generate_key(parts + [f"{index:02d}"], opts.key_style)[-budget:]
            key = ns_prefix + base + tail
            if not exists(key):
                return key
            index += 1

    def _leaf_at_or_above(self, path: str) -> bool:
        for tree in (self.ctx.key_tree, self._new_ids):
            if tree is not None and tree.occupied(path) and tree.content_at(path) is None:
                return True
        return False

    def _stage_addition(self, key: str, text: str, gen_name: str, ns_prefix: str, scope: str, en_lang: Optional[str]) -> None:
        ctx, opts = self.ctx, self.options
        referred = ctx.referred_lang
        inner = key[len(ns_prefix):] if ns_prefix and key.startswith(ns_prefix) else key
        full_path = f"{scope}.{inner}" if scope else key
        if key not in ctx.dictionary:
            ctx.dictionary[key] = DictEntry(full_path=full_path, file_scope=scope, value={referred: text})
            self.staged_keys.append(key)
        ctx.lang_maps[referred][key] = text

        filled = [referred]
        if en_lang and en_lang != referred:
            filled.append(en_lang)
        if opts.entries_to_fill is False:
            opts.entries_to_fill = [key]
            if opts.key_generation_fill_scope == "minimal":
                opts.fill_scope = filled
        elif isinstance(opts.entries_to_fill, list) and key not in opts.entries_to_fill:
            opts.entries_to_fill.append(key)

        payload = UpdatePayload(type=PAYLOAD_ADD, key=key)
        for lang in ctx.langs:
            if lang in filled:
                payload.changes[lang] = ValueChange(after=text if lang == referred else gen_name)
            else:
                self.lack_from_undefined.setdefault(lang, []).append(key)
        ctx.update_payloads.append(payload)

    def get_fixed_raw(self, entry: TEntry, key: str) -> str:
        """Call text with the name argument replaced by ``key``."""
        display = unescape_segment(key)
        var_str = ""
        if entry.args:
            var_str = ", " + ", ".join(entry.args)
        elif entry.name_info.vars:
            names = entry.name_info.vars
            style = self.options.interpolation_style
            if style == "array":
                var_str = ", [" + ", ".join(names) + "]"
            elif style == "args":
                var_str = ", " + ", ".join(names)
            else:
                var_str = ", { " + ", ".join(f"{i}: {v}" for i, v in enumerate(names)) + " }"
        quote = entry.quote or '"'
        return f"{entry.func_name}({format_for_file(display, quote)}{var_str})"

    # ── Prefixes ─────────────────────────────────────────────────────────────

    def _namespace(self) -> Tuple[str, str]:
        """(key prefix implied by the namespace strategy, file scope) for new keys."""
        ctx = self.ctx
        if not ctx.multi_file:
            return "", ""
        scope = self.options.missing_entry_file or self._default_scope()
        if not scope:
            return "", ""
        if ctx.namespace_strategy == "full":
            return scope + ".", scope
        if ctx.namespace_strategy == "file":
            return join_segments(path_segments(scope)[-1:]) + ".", scope
        return "", scope

    def _default_scope(self) -> str:
        for location in self.ctx.file_extra_info:
            segs = path_segments(location)
            if len(segs) > 1 and segs[0] == self.ctx.referred_lang:
                return join_segments(segs[1:])
        return ""

    def _name_prefix(self) -> str:
        prefix = self.options.key_prefix
        if prefix == "auto-popular":
            popular = self.popular_classes()
            return popular[0] if popular else ""
        if prefix in ("none", "auto-path", ""):
            return ""
        return prefix

    def _path_prefix(self, entry: TEntry) -> str:
        sep = self.options.name_separator
        parts = [
            p for p in pathlib.PurePosixPath(entry.path).with_suffix("").parts
            if p and p not in self.options.stop_prefixes
        ]
        return sep.join(parts) + sep if parts else ""

    def popular_classes(self) -> List[str]:
        """Namespaces under the target file ordered by how many children they hold."""
        ctx = self.ctx
        if ctx.key_tree is None:
            return []
        ns_prefix, _ = self._namespace()
        tree = ctx.key_tree.content_at(ns_prefix[:-1]) if ns_prefix else ctx.key_tree.root
        counts: Dict[str, int] = {}

        def walk(node: EntryTree, prefix: str) -> None:
            for name, value in node.items():
                if isinstance(value, dict):
                    item = prefix + escape_segment(name) + self.options.name_separator
                    counts[item] = len(value)
                    walk(value, item)

        walk(tree or {}, "")
        return sorted(counts, key=lambda k: -counts[k])

    # ── Missing translations ─────────────────────────────────────────────────

    def fill_missing_translations(self) -> ExecutionResult:
        ctx, opts = self.ctx, self.options
        lack_info: Dict[str, List[str]] = {lang: list(keys) for lang, keys in self.lack_from_undefined.items()}
        sources = [ctx.lack]
        if opts.auto_translate_empty_key:
            sources.append(ctx.null)
        for source in sources:
            for lang, keys in source.items():
                merged = lack_info.setdefault(lang, [])
                merged.extend(k for k in keys if k not in merged)

        referred_map = ctx.lang_maps.get(ctx.referred_lang, {})
        fill_scope = opts.fill_scope if opts.fill_scope is not None else list(lack_info)
        success_count = fail_count = added_count = 0
        for lang, keys in lack_info.items():
            if lang not in fill_scope:
                continue
            if self.cancel.is_cancelled:
                self.restore_lack_info()
                return ExecutionResult.fail("Cancelled", ResultCode.Cancelled)
            lack_keys = [
                key for key in keys
                if (not isinstance(opts.entries_to_fill, list) or key in opts.entries_to_fill)
                and referred_map.get(key, "").strip()
                and lang != ctx.referred_lang
            ]
            if not lack_keys:
                continue
            self.need_fix = True
            texts = [referred_map[key] for key in lack_keys]
            if opts.fill_with_original:
                values = texts
            else:
                res = self.translate(ctx.referred_lang, lang, texts)
                if not res.success or len(res.data) != len(texts):
                    fail_count += 1
                    LOG.error(f"fix: translating {len(texts)} entries to {lang} failed: {res.message}")
                    continue
                success_count += 1
                values = res.data
                LOG.info(f"fix: translated {len(texts)} entries to {lang} via {res.api or 'translator'}")
            for key, value in zip(lack_keys, values):
                added_count += 1
                ctx.update_payloads.append(UpdatePayload(type=PAYLOAD_FILL, key=key, changes={lang: ValueChange(after=value)}))

        counters = fix_counters(success_count, fail_count, added_count, self.patched_num)
        if not self.need_fix:
            return ExecutionResult.ok("Nothing to fix", ResultCode.NoLackEntries, counters)
        if fail_count == 0:
            return ExecutionResult.ok(f"Filled {added_count} entries in {success_count} language(s)", ResultCode.Success, counters)
        if success_count > 0:
            return ExecutionResult.ok(
                f"{success_count} of {success_count + fail_count} languages translated, {added_count} entries filled",
                ResultCode.TranslatorPartialFailed,
                counters,
            )
        return ExecutionResult.fail(f"Translation failed for {fail_count} language(s)", ResultCode.TranslatorFailed, counters)

    def restore_lack_info(self) -> None:
        """Drop everything this run staged but has not written yet."""
        ctx = self.ctx
        staged = set(self.staged_keys)
        for key in staged:
            ctx.dictionary.pop(key, None)
            for lang_map in ctx.lang_maps.values():
                lang_map.pop(key, None)
        del ctx.update_payloads[self._payload_mark:]
        for path in list(ctx.patched_entries):
            keep = self._patch_marks.get(path, 0)
            if keep:
                del ctx.patched_entries[path][keep:]
            else:
                del ctx.patched_entries[path]
        self.lack_from_undefined = {}
        self.staged_keys = []
        LOG.info(f"fix: cancelled, reverted {len(staged)} staged key(s)")


def fix(ctx: LangContext, options: FixOptions, translate: TranslateFn, cancel: Optional[CancelToken] = None) -> ExecutionResult:
    return FixHandler(ctx, options, translate, cancel).run()
