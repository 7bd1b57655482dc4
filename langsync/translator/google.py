"""Google Cloud Translation (v2 REST) backend."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List

from langsync.translator.client import TranslatorClient, TranslatorContractError

BASE_URL = "https://translation.googleapis.com/language/translate/v2"


@dataclass
class GoogleTranslator(TranslatorClient):
    name = "google"
    api_key_setting = "google_api_key"
    max_len = 3000
    batch_size = 40
    interval = 0.7

    def send(self, source: str, target: str, texts: List[str]) -> List[str]:
        body = self._post(
            BASE_URL,
            params={"key": self.api_key},
            json_body={"q": texts, "source": source, "target": target, "format": "text"},
        )
        try:
            translations = body["data"]["translations"]
            lines = [str(item["translatedText"]).strip() for item in translations]
        except (KeyError, TypeError) as e:
            raise TranslatorContractError(f"Unexpected response shape: {e}", payload=body)
        if len(lines) != len(texts):
            return lines
        # an empty translation keeps the source text
        return [line or src for line, src in zip(lines, texts)]
