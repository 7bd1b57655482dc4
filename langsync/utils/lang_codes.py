"""Language identifiers and their per-platform translator codes."""
from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional

# canonical key -> platform codes (None when the platform lacks the language)
LANG_CODE_MAPPINGS: Dict[str, Dict[str, Optional[str]]] = {
    "en": {"google": "en", "deepl": "EN"},
    "zh-cn": {"google": "zh-CN", "deepl": "ZH"},
    "zh-tw": {"google": "zh-TW", "deepl": "ZH-HANT"},
    "ja": {"google": "ja", "deepl": "JA"},
    "ko": {"google": "ko", "deepl": "KO"},
    "fr": {"google": "fr", "deepl": "FR"},
    "de": {"google": "de", "deepl": "DE"},
    "es": {"google": "es", "deepl": "ES"},
    "it": {"google": "it", "deepl": "IT"},
    "pt": {"google": "pt", "deepl": "PT-PT"},
    "pt-br": {"google": "pt", "deepl": "PT-BR"},
    "ru": {"google": "ru", "deepl": "RU"},
    "uk": {"google": "uk", "deepl": "UK"},
    "pl": {"google": "pl", "deepl": "PL"},
    "nl": {"google": "nl", "deepl": "NL"},
    "sv": {"google": "sv", "deepl": "SV"},
    "tr": {"google": "tr", "deepl": "TR"},
    "ar": {"google": "ar", "deepl": "AR"},
    "th": {"google": "th", "deepl": None},
    "vi": {"google": "vi", "deepl": None},
    "id": {"google": "id", "deepl": "ID"},
    "hi": {"google": "hi", "deepl": None},
}

DEFAULT_LANG_ALIAS_MAP: Dict[str, List[str]] = {
    "en": ["en-us", "en-gb", "english", "eng"],
    "zh-cn": ["zh", "cn", "zh-hans", "chinese", "zh-sg"],
    "zh-tw": ["tw", "zh-hant", "zh-hk", "hk"],
    "ja": ["jp", "ja-jp", "japanese"],
    "ko": ["kr", "ko-kr", "korean"],
    "fr": ["fr-fr", "french"],
    "de": ["de-de", "german"],
    "es": ["es-es", "es-419", "es-mx", "spanish"],
    "it": ["it-it", "italian"],
    "pt": ["pt-pt", "portuguese"],
    "pt-br": ["br"],
    "ru": ["ru-ru", "russian"],
    "uk": ["ua", "uk-ua"],
    "ar": ["ar-sa", "arabic"],
    "vi": ["vn", "vi-vn"],
    "id": ["in", "id-id"],
}


def _standardize(name: str) -> str:
    return name.strip().lower().replace("_", "-")


def _reverse_map() -> Dict[str, str]:
    reverse: Dict[str, str] = {}
    for key, codes in LANG_CODE_MAPPINGS.items():
        reverse[key] = key
        for code in codes.values():
            if code:
                reverse.setdefault(_standardize(code), key)
    for key, aliases in DEFAULT_LANG_ALIAS_MAP.items():
        for alias in aliases:
            reverse[_standardize(alias)] = key
    return reverse


_REVERSE = _reverse_map()


def resolve_lang(name: str) -> Optional[str]:
    """Canonical language key for a file/dir name such as ``zh_CN`` or ``en-US``.

    Falls back to the part before the region (``fr-CA`` -> ``fr``) and to name
    fragments (``messages.de`` -> ``de``).
    """
    base = _standardize(name)
    if base in _REVERSE:
        return _REVERSE[base]
    head = base.split("-")[0]
    if head in _REVERSE and len(head) >= 2:
        return _REVERSE[head]
    for frag in re.findall(r"[a-z]+(?:-[a-z]+)?", base):
        if frag in _REVERSE and frag != base:
            return _REVERSE[frag]
    return None


def get_lang_code(name: str, platform: str = "google") -> Optional[str]:
    key = resolve_lang(name)
    if key is None:
        return None
    return LANG_CODE_MAPPINGS[key].get(platform)


def is_english(name: str) -> bool:
    return resolve_lang(name) == "en"


def find_lang(names: Iterable[str], wanted: str) -> Optional[str]:
    """First name in ``names`` that denotes the same language as ``wanted``."""
    key = resolve_lang(wanted)
    for name in names:
        if name == wanted or (key is not None and resolve_lang(name) == key):
            return name
    return None
