#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
langsync: keep translation dictionaries in sync with the t("...") calls in a source tree.

Commands
--------
check   report used / unused / undefined keys and missing translations (no writes)
fix     give undefined call-sites a key, fill missing translations, write everything back
sort    rewrite every language file with keys ordered by key or by usage position
trim    delete unused keys (or the ones given with --key) from every language
init    create or complete langsync.json in the project root

Usage Examples
--------------

1. See what is out of sync:
   langsync --root ./my-app check

2. Preview a fix without touching files:
   langsync --root ./my-app fix --dry-run

3. Copy reference texts instead of calling a translation API:
   langsync fix --no-translate

Exit code is 0 on success and 1 when a phase fails (or, with check --strict,
when anything is out of sync).
"""
from __future__ import annotations

import argparse
import logging
import pathlib
import sys
from typing import Any, Dict, List

from langsync.result import ExecutionResult, ResultCode
from langsync.session import LangSession
from langsync.utils.config import CONFIG_FILE_NAME, ensure_config, load_config
from langsync.utils.fs import unified_diff
from langsync.utils.logging import configure_from, temporarily

# codes that report "nothing to do" rather than a failure
BENIGN_CODES = (ResultCode.NoLackEntries, ResultCode.NoTrimEntries, ResultCode.NoSortingApplied)


def _ok(res: ExecutionResult) -> bool:
	return res.success or res.code in BENIGN_CODES


def _report(name: str, res: ExecutionResult) -> None:
	status = "ok" if _ok(res) else "FAILED"
	msg = f" {res.message}" if res.message else ""
	print(f"[{name}] {status} ({int(res.code)} {res.code.name}){msg}")


def _print_diffs(session: LangSession) -> None:
	report = session.last_report
	if report is None:
		return
	for path, (before, after) in sorted(report.changes.items()):
		rel = pathlib.Path(path)
		try:
			rel = rel.relative_to(session.project_root)
		except ValueError:
			pass
		sys.stdout.write(unified_diff(before, after, rel))


def _prepare(session: LangSession) -> ExecutionResult:
	for name in ("read", "census", "check"):
		res = getattr(session, name)()
		if not res.success:
			_report(name, res)
			return res
	return ExecutionResult.ok()


def _print_check(session: LangSession, verbose: bool) -> int:
	ctx = session.ctx
	issues = 0
	print(f"Language directory: {ctx.lang_dir} ({ctx.lang_file_type}, namespace={ctx.namespace_strategy})")
	print(f"Languages: {', '.join(ctx.langs)} (reference: {ctx.referred_lang})")
	print(f"Keys: {len(ctx.dictionary)}  used: {len(ctx.used)}  unused: {len(ctx.unused_keys)}")
	if ctx.undefined_map:
		issues += len(ctx.undefined_map)
		print(f"Undefined ({len(ctx.undefined_map)}):")
		for text, files in ctx.undefined_map.items():
			print(f"  {text!r}  " + ", ".join(sorted(files)))
	for lang in ctx.langs:
		lack = ctx.lack.get(lang, [])
		null = ctx.null.get(lang, [])
		extra = ctx.extra.get(lang, [])
		if not (lack or null or extra):
			continue
		issues += len(lack) + len(null)
		print(f"{lang}: missing={len(lack)} empty={len(null)} extra={len(extra)}")
		if verbose:
			for key in lack:
				print(f"  - {key}")
	if verbose and ctx.unused_keys:
		print("Unused:")
		for key in ctx.unused_keys:
			print(f"  {key}")
	return issues


def _fix_overrides(args: argparse.Namespace) -> Dict[str, Any]:
	overrides: Dict[str, Any] = {}
	if args.no_translate:
		overrides["fill_with_original"] = True
	if args.no_fill:
		overrides["entries_to_fill"] = False
	if args.no_gen:
		overrides["entries_to_gen"] = False
	if args.key_style:
		overrides["key_style"] = args.key_style
	if args.key_prefix:
		overrides["key_prefix"] = args.key_prefix
	if args.file:
		overrides["missing_entry_file"] = args.file
	return overrides


def run(args: argparse.Namespace) -> int:
	root = pathlib.Path(args.root).resolve()
	if not root.is_dir():
		print(f"Project root not found: {root}")
		return 1

	if args.command == "init":
		written = ensure_config(root)
		print(f"{'Wrote' if written else 'Up to date:'} {root / CONFIG_FILE_NAME}")
		return 0

	overrides: Dict[str, Any] = {}
	if args.lang_dir:
		overrides["lang_dir"] = args.lang_dir
	if args.referred_lang:
		overrides["referred_lang"] = args.referred_lang
	cfg = load_config(root, overrides)
	configure_from(cfg)
	session = LangSession(root, cfg)

	res = _prepare(session)
	if not res.success:
		return 1

	if args.command == "check":
		issues = _print_check(session, args.verbose > 0)
		return 1 if args.strict and issues else 0

	if args.command == "fix":
		res = session.fix(**_fix_overrides(args))
		_report("fix", res)
		if res.data:
			d = res.data
			print(f"  patched={d['patched']} generated={d['generated']} languages ok={d['success']} failed={d['failed']}")
		if not res.success and res.code != ResultCode.TranslatorFailed:
			return 1
		written = session.rewrite(dry_run=args.dry_run)
		_report("rewrite", written)
		if args.dry_run:
			_print_diffs(session)
		return 0 if res.success and written.success else 1

	if args.command == "sort":
		res = session.sort(args.mode, dry_run=args.dry_run)
	else:  # trim
		res = session.trim(args.key or None, dry_run=args.dry_run)
	_report(args.command, res)
	if args.dry_run:
		_print_diffs(session)
	return 0 if _ok(res) else 1


def build_arg_parser() -> argparse.ArgumentParser:
	ap = argparse.ArgumentParser(prog="langsync", description="Sync i18n dictionaries with translation call-sites")
	ap.add_argument("--root", default=".", help="Project root (where langsync.json lives)")
	ap.add_argument("--lang-dir", help="Language directory relative to the root (default: config or auto-detect)")
	ap.add_argument("--referred-lang", help="Reference language (default: config, then en)")
	ap.add_argument("-v", "--verbose", action="count", default=0, help="More output; -vv also enables debug logging")

	sub = ap.add_subparsers(dest="command", required=True)

	p = sub.add_parser("check", help="Report sync status; no writes")
	p.add_argument("--strict", action="store_true", help="Exit 1 when anything is missing or undefined")

	p = sub.add_parser("fix", help="Generate keys for undefined texts and fill missing translations")
	p.add_argument("--dry-run", action="store_true", help="Print unified diffs; no writes")
	p.add_argument("--no-translate", action="store_true", help="Fill missing values with the reference text")
	p.add_argument("--no-fill", action="store_true", help="Only generate keys for undefined texts")
	p.add_argument("--no-gen", action="store_true", help="Only fill missing translations")
	p.add_argument("--key-style", choices=["camelCase", "pascalCase", "snake", "kebab", "raw"], help="Style of generated keys")
	p.add_argument("--key-prefix", help="none, auto-popular, auto-path or a literal prefix")
	p.add_argument("--file", help="Language file scope (e.g. home.index) that receives new keys")

	p = sub.add_parser("sort", help="Rewrite language files in sorted key order")
	p.add_argument("--mode", choices=["none", "key", "position"], help="Sort mode (default: sorting_write_mode)")
	p.add_argument("--dry-run", action="store_true", help="Print unified diffs; no writes")

	p = sub.add_parser("trim", help="Delete unused keys")
	p.add_argument("--key", action="append", default=[], help="Key to delete (repeatable; default: every unused key)")
	p.add_argument("--dry-run", action="store_true", help="Print unified diffs; no writes")

	sub.add_parser("init", help=f"Create or complete {CONFIG_FILE_NAME}")
	return ap


def main(argv: List[str] | None = None):
	args = build_arg_parser().parse_args(argv)
	level = {0: None, 1: logging.INFO}.get(args.verbose, logging.DEBUG)
	if level is None:
		sys.exit(run(args))
	with temporarily(level):
		sys.exit(run(args))


if __name__ == "__main__":
	main()
