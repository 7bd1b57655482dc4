from __future__ import annotations

from typing import Dict, List, Tuple

from langsync.context import LangContext


def check(ctx: LangContext, sync_based_on_referred_entries: bool = True) -> Tuple[Dict[str, List[str]], Dict[str, List[str]], Dict[str, List[str]]]:
    """Compute (lack, null, extra) per language and store them on ``ctx``.

    lack: pivot keys the language does not have; null: pivot keys present but blank;
    extra: keys the reference language does not have.
    """
    referred_map = ctx.lang_maps.get(ctx.referred_lang, {})
    use_referred = sync_based_on_referred_entries and bool(referred_map)
    pivot = list(referred_map) if use_referred else list(ctx.dictionary)
    lack: Dict[str, List[str]] = {}
    null: Dict[str, List[str]] = {}
    extra: Dict[str, List[str]] = {}
    for lang in ctx.langs:
        translation = ctx.lang_maps.get(lang, {})
        lack[lang] = [key for key in pivot if key not in translation]
        null[lang] = [key for key in pivot if key in translation and translation[key].strip() == ""]
        extra[lang] = [key for key in translation if key not in referred_map] if use_referred else []
    ctx.lack, ctx.null, ctx.extra = lack, null, extra
    return lack, null, extra
