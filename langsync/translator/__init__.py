"""Machine translation with fallback across the configured backends.

``translate_api_priority`` orders the backends; those without an API key are
skipped. A backend that fails is passed over by later calls, except when it
merely lacks the requested language, in which case the next one is tried for
that call only. Once every remaining backend has failed, the next call starts
over from the first one.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from langsync.translator.client import (
    TranslateResult,
    TranslatorClient,
    TranslatorConfigError,
    TranslatorContractError,
    TranslatorError,
    TranslatorRequestError,
    batch_translate,
)
from langsync.translator.deepl import DeepLTranslator
from langsync.translator.google import GoogleTranslator
from langsync.utils.logging import sync_logger as LOG

BACKENDS = {
    GoogleTranslator.name: GoogleTranslator,
    DeepLTranslator.name: DeepLTranslator,
}

__all__ = [
    "BACKENDS",
    "DeepLTranslator",
    "GoogleTranslator",
    "TranslateResult",
    "Translator",
    "TranslatorClient",
    "TranslatorConfigError",
    "TranslatorContractError",
    "TranslatorError",
    "TranslatorRequestError",
    "batch_translate",
    "translate",
]


class Translator:
    """Backends in priority order plus the index of the one currently in use."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, clients: Optional[List[TranslatorClient]] = None) -> None:
        config = config or {}
        if clients is None:
            clients = []
            for name in config.get("translate_api_priority") or list(BACKENDS):
                cls = BACKENDS.get(name)
                if cls is None:
                    LOG.warning(f"translator: unknown backend {name!r} in translate_api_priority")
                    continue
                clients.append(cls(config=config))
        self.clients = [c for c in clients if c.available]
        self.current = 0

    def translate(self, source: str, target: str, texts: List[str]) -> TranslateResult:
        if not texts:
            return TranslateResult(True)
        idx = self.current
        failures: List[str] = []
        while idx < len(self.clients):
            client = self.clients[idx]
            res = client.translate(source, target, texts)
            if res.success:
                return res
            failures.append(f"{client.name}: {res.message}")
            LOG.error(f"translator: {client.name} failed: {res.message}")
            if not res.lang_unsupported:
                self.current = idx + 1
            idx += 1
            if idx < len(self.clients):
                LOG.info(f"translator: falling back to {self.clients[idx].name}")
        if not self.clients:
            return TranslateResult(False, message="No translation service configured")
        self.current = 0
        return TranslateResult(False, message="; ".join(failures) or "All translation services have failed")


def translate(source: str, target: str, texts: List[str], config: Optional[Dict[str, Any]] = None) -> TranslateResult:
    """One-shot translation with a fresh backend list built from ``config``."""
    return Translator(config).translate(source, target, texts)
