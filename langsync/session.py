"""One synchronization session over a project.

A :class:`LangSession` owns a :class:`LangContext` and exposes the pipeline as
separate phases. Only one phase runs at a time per session; an overlapping call
returns ``Processing`` instead of waiting.
"""
from __future__ import annotations

import functools
import pathlib
import threading
from typing import Any, Dict, List, Optional

from langsync.census import CensusResult
from langsync.census import census as scan_project
from langsync.check import check as check_langs
from langsync.context import CancelToken, LangContext
from langsync.fix import FixHandler, FixOptions
from langsync.key_tree import DEFAULT_MAX_TOKENS, build_dictionary
from langsync.lang_files import NAMESPACE_STRATEGIES, apply_namespace, detect_lang_dir, read_lang_dir
from langsync.result import ExecutionResult, ResultCode
from langsync import rewrite as rewriter
from langsync.translator import Translator
from langsync.utils.config import load_config
from langsync.utils.lang_codes import find_lang
from langsync.utils.logging import sync_logger as LOG


def phase(error_code: ResultCode = ResultCode.UnknownError):
    """Run a session method under the busy lock, turning exceptions into results."""

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(self: "LangSession", *args, **kwargs) -> ExecutionResult:
            if not self._busy.acquire(blocking=False):
                LOG.warning(f"{fn.__name__}: another phase is still running")
                return ExecutionResult.fail("Still processing", ResultCode.Processing)
            try:
                if self.cancel_token.is_cancelled:
                    self._discard_staged()
                    return ExecutionResult.fail("Cancelled", ResultCode.Cancelled)
                return fn(self, *args, **kwargs)
            except Exception as e:
                LOG.exception(f"{fn.__name__}: {e}")
                return ExecutionResult.fail(f"{fn.__name__} failed: {e}", error_code)
            finally:
                self._busy.release()

        return wrapper

    return decorator


class LangSession:
    def __init__(
        self,
        project_root: str | pathlib.Path,
        config: Optional[Dict[str, Any]] = None,
        *,
        translator: Optional[Translator] = None,
    ) -> None:
        self.project_root = pathlib.Path(project_root).resolve()
        self.config = config if config is not None else load_config(self.project_root)
        self.ctx = LangContext(project_root=str(self.project_root))
        self.cancel_token = CancelToken()
        self.translator = translator if translator is not None else Translator(self.config)
        self.last_census: Optional[CensusResult] = None
        self.last_report: Optional[rewriter.RewriteReport] = None
        self._busy = threading.Lock()
        self._lang_files: Dict[str, Dict[str, dict]] = {}
        self._fix_handler: Optional[FixHandler] = None

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    def cancel(self) -> None:
        self.cancel_token.cancel()

    # ── Read ─────────────────────────────────────────────────────────────────

    @phase()
    def read(self) -> ExecutionResult:
        cfg, ctx = self.config, self.ctx
        ignore_globs = list(cfg.get("ignore_globs") or [])
        if cfg.get("lang_dir"):
            lang_dir: Optional[pathlib.Path] = self.project_root / cfg["lang_dir"]
        else:
            lang_dir = detect_lang_dir(self.project_root, ignore_globs)
        if lang_dir is None or not lang_dir.is_dir():
            return ExecutionResult.fail("No language directory found", ResultCode.NoLangPathDetected)

        ignored = tuple(cfg.get("ignored_langs") or ())
        data = read_lang_dir(lang_dir, ignored)
        if data is None:
            return ExecutionResult.fail(f"No language files found in {lang_dir}", ResultCode.NoLangPathDetected)

        ctx.lang_dir = str(lang_dir)
        ctx.ignored_langs = list(ignored)
        ctx.lang_file_type = data.file_type
        ctx.multi_file = data.multi_file
        ctx.file_structure = data.structure
        ctx.file_extra_info = data.extra_info
        ctx.file_sources = data.sources
        ctx.update_payloads.clear()
        ctx.patched_entries.clear()
        self._lang_files = data.lang_files
        wanted = cfg.get("referred_lang") or "en"
        ctx.referred_lang = find_lang(list(data.lang_files), wanted) or wanted

        strategy = cfg.get("namespace_strategy") or "auto"
        self._build(NAMESPACE_STRATEGIES[0] if strategy == "auto" else strategy)
        LOG.info(
            f"read: {lang_dir} type={data.file_type} langs={len(ctx.lang_maps)} "
            f"keys={len(ctx.dictionary)} multi_file={data.multi_file}"
        )
        if ctx.referred_lang not in ctx.lang_maps:
            LOG.warning(f"read: reference language {wanted!r} has no language file")
        return ExecutionResult.ok(data={"langs": ctx.langs, "keys": len(ctx.dictionary)})

    def _build(self, strategy: str) -> None:
        ctx = self.ctx
        trees, key_paths = apply_namespace(self._lang_files, strategy)
        ctx.namespace_strategy = strategy
        ctx.key_tree, ctx.dictionary, ctx.lang_maps = build_dictionary(
            trees,
            key_paths,
            ctx.ignored_langs,
            max_tokens=int(self.config.get("max_resolve_tokens") or DEFAULT_MAX_TOKENS),
        )

    # ── Census / check ───────────────────────────────────────────────────────

    def _run_census(self) -> CensusResult:
        cfg, ctx = self.config, self.ctx
        return scan_project(
            self.project_root,
            ctx.key_tree,
            ctx.dictionary,
            function_names=cfg.get("function_names") or ("t",),
            file_extensions=cfg.get("file_extensions") or ("js", "ts", "vue"),
            ignore_globs=list(cfg.get("ignore_globs") or []),
            max_file_size=cfg.get("max_file_size"),
            skip_dirs=[ctx.lang_dir] if ctx.lang_dir else [],
            marked_used=cfg.get("manually_marked_used_entries") or (),
            ignored_undefined=cfg.get("ignored_undefined_entries") or (),
        )

    @phase()
    def census(self) -> ExecutionResult:
        ctx = self.ctx
        if not ctx.lang_dir:
            return ExecutionResult.fail("Nothing read yet", ResultCode.NoLangPathDetected)
        strategies: List[str] = [ctx.namespace_strategy]
        if self.config.get("namespace_strategy", "auto") == "auto" and ctx.multi_file:
            strategies = list(NAMESPACE_STRATEGIES)

        result: Optional[CensusResult] = None
        for strategy in strategies:
            if strategy != ctx.namespace_strategy:
                self._build(strategy)
            result = self._run_census()
            if result.used_keys:
                break
        else:
            if len(strategies) > 1:
                # no strategy matched anything; fall back to the first one
                self._build(strategies[0])
                result = self._run_census()
        if len(strategies) > 1:
            LOG.info(f"census: namespace strategy {ctx.namespace_strategy!r}")

        self.last_census = result
        ctx.used = result.used
        ctx.used_keys = result.used_keys
        ctx.unused_keys = result.unused
        ctx.undefined_entries = result.undefined
        ctx.undefined_map = result.undefined_map
        return ExecutionResult.ok(
            data={
                "used": len(result.used),
                "unused": len(result.unused),
                "undefined": len(result.undefined),
                "files": result.scanned_files,
            }
        )

    @phase()
    def check(self) -> ExecutionResult:
        lack, null, extra = check_langs(self.ctx, bool(self.config.get("sync_based_on_referred_entries", True)))
        return ExecutionResult.ok(
            data={
                "lack": sum(len(v) for v in lack.values()),
                "null": sum(len(v) for v in null.values()),
                "extra": sum(len(v) for v in extra.values()),
            }
        )

    # ── Fix / rewrite ────────────────────────────────────────────────────────

    @phase(ResultCode.UnknownFixError)
    def fix(self, **overrides: Any) -> ExecutionResult:
        options = FixOptions.from_config(self.config, **overrides)
        self._fix_handler = FixHandler(self.ctx, options, self.translator.translate, self.cancel_token)
        return self._fix_handler.run()

    @phase(ResultCode.UnknownRewriteError)
    def rewrite(self, *, dry_run: bool = False) -> ExecutionResult:
        self.last_report = rewriter.RewriteReport()
        res = rewriter.rewrite(self.ctx, quote_keys=bool(self.config.get("quote_keys")), dry_run=dry_run, report=self.last_report)
        self._fix_handler = None
        return res

    @phase(ResultCode.UnknownRewriteError)
    def sort(self, mode: Optional[str] = None, *, dry_run: bool = False) -> ExecutionResult:
        mode = mode or self.config.get("sorting_write_mode") or "none"
        self.last_report = rewriter.RewriteReport()
        return rewriter.sort(
            self.ctx,
            mode,
            quote_keys=bool(self.config.get("quote_keys")),
            dry_run=dry_run,
            report=self.last_report,
        )

    @phase(ResultCode.UnknownRewriteError)
    def trim(self, keys: Optional[List[str]] = None, *, dry_run: bool = False) -> ExecutionResult:
        self.last_report = rewriter.RewriteReport()
        return rewriter.trim(
            self.ctx,
            keys,
            quote_keys=bool(self.config.get("quote_keys")),
            dry_run=dry_run,
            report=self.last_report,
        )

    @phase(ResultCode.UnknownRewriteError)
    def modify(self, key: str, value: str, lang: Optional[str] = None, *, dry_run: bool = False) -> ExecutionResult:
        """Edit one value, or with no ``lang`` rewrite the reference text and re-translate."""
        self.last_report = rewriter.RewriteReport()
        kwargs = dict(quote_keys=bool(self.config.get("quote_keys")), dry_run=dry_run, report=self.last_report)
        if lang is not None and lang != self.ctx.referred_lang:
            return rewriter.edit_value(self.ctx, key, lang, value, **kwargs)
        return rewriter.rewrite_entry(self.ctx, key, value, self.translator.translate, **kwargs)

    def _discard_staged(self) -> None:
        if self._fix_handler is not None:
            self._fix_handler.restore_lack_info()
            self._fix_handler = None
        self.ctx.update_payloads.clear()
        self.ctx.patched_entries.clear()
        self.cancel_token.reset()

    # ── Views ────────────────────────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        return self.ctx.snapshot()
