import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from .logging import sync_logger

CONFIG_FILE_NAME = "langsync.json"

DEFAULTS: Dict[str, Any] = {
    "lang_dir": "",
    "referred_lang": "en",
    "ignored_langs": [],
    "function_names": ["t", "$t", "i18n.t"],
    "file_extensions": ["js", "ts", "jsx", "tsx", "vue", "mjs", "cjs", "html", "svelte"],
    "ignore_globs": [
        "**/node_modules/**",
        "**/dist/**",
        "**/.git/**",
        "**/.cache/**",
        "**/coverage/**",
        "**/build/**",
    ],
    "max_file_size": 2 * 1024 * 1024,
    "namespace_strategy": "auto",
    "manually_marked_used_entries": [],
    "ignored_undefined_entries": [],
    "sync_based_on_referred_entries": True,
    "match_existing_key": True,
    "key_style": "camelCase",
    "key_strategy": "english",
    "key_prefix": "none",
    "stop_words": ["the", "a", "an", "of", "to", "in", "and", "or", "is", "for"],
    "stop_prefixes": ["src", "views", "app"],
    "max_key_length": 40,
    "interpolation_style": "object",
    "auto_translate_empty_key": False,
    "sorting_write_mode": "none",
    "quote_keys": False,
    "max_resolve_tokens": 12,
    "translate_api_priority": ["google", "deepl"],
    "deepl_version": "free",
    "log_level": "",
    "log_file": "",
    "log_file_count": 5,
}

# Secrets are never written by ensure_config; they come from the file or the environment.
SECRET_KEYS = ("google_api_key", "deepl_api_key")


def config_path(project_root: str | Path) -> Path:
    return Path(project_root) / CONFIG_FILE_NAME


def _coerce(raw: str, default: Any) -> Any:
    """Convert an environment string to the type of the default value."""
    if isinstance(default, bool):
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, list):
        return [p.strip() for p in raw.split(",") if p.strip()]
    return raw


def _env_overrides(keys: List[str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key in keys:
        raw = os.getenv(f"LANGSYNC_{key.upper()}")
        if raw is None:
            continue
        try:
            out[key] = _coerce(raw, DEFAULTS.get(key, ""))
        except ValueError:
            sync_logger.warning(f"config: ignoring LANGSYNC_{key.upper()}={raw!r} (bad value)")
    return out


def load_config(project_root: str | Path, overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Load langsync.json from ``project_root`` merged over DEFAULTS.

    Precedence: explicit ``overrides`` > LANGSYNC_* environment > file > DEFAULTS.
    A missing file is not an error; an unreadable one is logged and ignored.
    """
    cfg: Dict[str, Any] = dict(DEFAULTS)
    path = config_path(project_root)
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8") or "{}")
            if isinstance(data, dict):
                cfg.update(data)
            else:
                sync_logger.error(f"config: {path} does not hold a JSON object; using defaults")
        except (OSError, ValueError) as e:
            sync_logger.error(f"config: failed to read/parse {path}: {e}")
    cfg.update(_env_overrides(list(DEFAULTS.keys()) + list(SECRET_KEYS)))
    if overrides:
        cfg.update({k: v for k, v in overrides.items() if v is not None})
    cfg["project_root"] = str(Path(project_root).resolve())
    sync_logger.debug(f"config: lang_dir={cfg['lang_dir']!r} referred_lang={cfg['referred_lang']!r}")
    return cfg


def ensure_config(project_root: str | Path) -> bool:
    """Ensure langsync.json exists and carries every default key.

    Idempotent: existing keys are never overwritten, only missing ones are added.
    Returns True when the file was written.
    """
    path = config_path(project_root)
    data: Dict[str, Any] = {}
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError):
            sync_logger.error(f"Failed to read/parse {path}")
            return False

    changed = False
    for key, value in DEFAULTS.items():
        if key.startswith("log_"):
            continue
        if key not in data:
            data[key] = value
            changed = True

    if not changed:
        sync_logger.debug(f"No {CONFIG_FILE_NAME} changes needed in {project_root}")
        return False

    tmp_path = path.with_suffix(".json.tmp")
    try:
        tmp_path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        os.replace(tmp_path, path)
        sync_logger.info(f"Updated {path}")
        return True
    except OSError:
        sync_logger.exception(f"Failed to update {path}")
        if tmp_path.exists():
            tmp_path.unlink()
        return False
