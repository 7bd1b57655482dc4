"""DeepL backend; the free and pro plans use different hosts."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List

from langsync.translator.client import TranslatorClient, TranslatorContractError

FREE_URL = "https://api-free.deepl.com/v2/translate"
PRO_URL = "https://api.deepl.com/v2/translate"


@dataclass
class DeepLTranslator(TranslatorClient):
    name = "deepl"
    api_key_setting = "deepl_api_key"
    max_len = 2000
    batch_size = 10
    interval = 1.0

    @property
    def url(self) -> str:
        return PRO_URL if self.config.get("deepl_version") == "pro" else FREE_URL

    def send(self, source: str, target: str, texts: List[str]) -> List[str]:
        form = [("auth_key", self.api_key), ("source_lang", source), ("target_lang", target)]
        form += [("text", text) for text in texts]
        body = self._post(self.url, data=form)
        try:
            return [str(item["text"]) for item in body["translations"]]
        except (KeyError, TypeError) as e:
            raise TranslatorContractError(f"Unexpected response shape: {e}", payload=body)
