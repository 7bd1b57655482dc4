# -*- coding: utf-8 -*-
"""Shared machinery for the machine-translation backends.

Every backend is a small ``requests``-based dataclass client:

- API key resolved from the loaded langsync config or the environment
  (``LANGSYNC_GOOGLE_API_KEY``, ``LANGSYNC_DEEPL_API_KEY``)
- transport retries with exponential backoff on timeouts and connection errors
- HTTP errors and malformed bodies surface as ``TranslatorError`` subclasses
- ``translate()`` packs texts with :func:`batch_translate` and never raises;
  failures come back as ``TranslateResult(success=False, message=...)``
"""
from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, List, Optional

import requests

from langsync.utils.lang_codes import get_lang_code
from langsync.utils.logging import compact_json as _compact
from langsync.utils.logging import log_http_request, log_http_response
from langsync.utils.logging import mask_token as _mask_token
from langsync.utils.logging import sync_logger as LOG

__all__ = [
    "TranslateResult",
    "TranslatorClient",
    "TranslatorError",
    "TranslatorConfigError",
    "TranslatorRequestError",
    "TranslatorContractError",
    "batch_translate",
]


# -------------------------
# Exceptions
# -------------------------
class TranslatorError(Exception):
    """Base exception for translation backends."""


class TranslatorConfigError(TranslatorError):
    """Raised when an API key is missing or a setting is invalid."""


class TranslatorRequestError(TranslatorError):
    """Raised on HTTP-level or transport-level failures."""

    def __init__(self, message: str, status: Optional[int] = None, payload: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.status = status
        self.payload = payload or {}


class TranslatorContractError(TranslatorError):
    """Raised when a 2xx body does not have the documented shape."""

    def __init__(self, message: str, status: Optional[int] = None, payload: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.status = status
        self.payload = payload or {}


@dataclass
class TranslateResult:
    success: bool
    data: List[str] = field(default_factory=list)
    message: str = ""
    api: str = ""
    # the backend does not know the source or target language
    lang_unsupported: bool = False


# -------------------------
# Batching
# -------------------------
SendFn = Callable[[str, str, List[str]], TranslateResult]


def batch_translate(
    source: str,
    target: str,
    texts: List[str],
    send: SendFn,
    *,
    max_len: int,
    batch_size: int,
    interval: float,
    sleep: Callable[[float], None] = time.sleep,
) -> TranslateResult:
    """Pack ``texts`` into requests of at most ``max_len`` characters and send them.

    ``batch_size`` packs go out back to back, then the loop sleeps ``interval``
    seconds. Output order matches input order; the first failing pack fails all.
    """
    packs: List[List[str]] = []
    pack: List[str] = []
    total = 0
    for text in texts:
        if len(text) > max_len:
            return TranslateResult(False, message=f"Text longer than {max_len} characters: {text[:40]!r}...")
        total += len(text)
        if total > max_len and pack:
            packs.append(pack)
            pack = []
            total = len(text)
        pack.append(text)
    if pack:
        packs.append(pack)

    out: List[str] = []
    for i in range(0, len(packs), batch_size):
        for chunk in packs[i:i + batch_size]:
            res = send(source, target, chunk)
            if not res.success:
                return res
            out.extend(res.data)
        if i + batch_size < len(packs):
            sleep(interval)
    return TranslateResult(True, data=out)


# -------------------------
# Client
# -------------------------
@dataclass
class TranslatorClient:
    """Base for one translation API; subclasses fill in ``name``, limits and ``send``."""

    name: ClassVar[str] = ""
    api_key_setting: ClassVar[str] = ""
    max_len: ClassVar[int] = 2000
    batch_size: ClassVar[int] = 10
    interval: ClassVar[float] = 1.0

    api_key: str | None = None
    config: Dict[str, Any] = field(default_factory=dict)
    timeout_seconds: int = 30
    user_agent: str = "langsync/1.0"
    retry_count: int = 2
    retry_backoff_seconds: float = 1.0

    def __post_init__(self) -> None:
        if not self.api_key:
            self.api_key = self.config.get(self.api_key_setting) or os.getenv(f"LANGSYNC_{self.api_key_setting.upper()}")
        LOG.debug(f"{type(self).__name__}.init: key={_mask_token(self.api_key)} timeout={self.timeout_seconds}s")

    @property
    def available(self) -> bool:
        return isinstance(self.api_key, str) and self.api_key.strip() != ""

    # ---------------------
    # Public API
    # ---------------------
    def translate(self, source: str, target: str, texts: List[str]) -> TranslateResult:
        if not self.available:
            return TranslateResult(False, message=f"{self.name}: no API key configured")
        source_code = get_lang_code(source, self.name)
        target_code = get_lang_code(target, self.name)
        if source_code is None or target_code is None:
            missing = source if source_code is None else target
            return TranslateResult(False, message=f"{self.name} does not support {missing}", lang_unsupported=True)
        LOG.info(f"{self.name}: {source_code} -> {target_code} texts={len(texts)}")
        res = batch_translate(
            source_code,
            target_code,
            texts,
            self._send_safe,
            max_len=self.max_len,
            batch_size=self.batch_size,
            interval=self.interval,
        )
        res.api = self.name
        return res

    def send(self, source: str, target: str, texts: List[str]) -> List[str]:
        raise NotImplementedError

    # ---------------------
    # Internals
    # ---------------------
    def _send_safe(self, source: str, target: str, texts: List[str]) -> TranslateResult:
        try:
            data = self.send(source, target, texts)
        except TranslatorError as e:
            return TranslateResult(False, message=str(e))
        if len(data) != len(texts):
            LOG.error(f"{self.name}: expected {len(texts)} lines, got {len(data)}")
            return TranslateResult(False, message=f"{self.name}: line count mismatch ({' | '.join(data)})")
        return TranslateResult(True, data=data)

    def _headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }

    def _post(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        data: Any = None,
    ) -> Dict[str, Any]:
        log_http_request(LOG, method="POST", url=url, params=params)

        attempt = 0
        last_exc: Optional[Exception] = None
        while attempt <= self.retry_count:
            try:
                resp = requests.post(
                    url,
                    headers=self._headers(),
                    params=params,
                    json=json_body,
                    data=data,
                    timeout=self.timeout_seconds,
                )
                return self._handle_response(url, resp)
            except (requests.Timeout, requests.ConnectionError) as e:
                last_exc = e
                LOG.warning(f"network error on POST {url} attempt={attempt}/{self.retry_count}: {e}")
                if attempt == self.retry_count:
                    raise TranslatorRequestError(f"Network error: {e}") from e
                time.sleep(self.retry_backoff_seconds * (2 ** attempt))
                attempt += 1

        raise TranslatorRequestError(f"Unreachable after retries: {last_exc}")

    def _handle_response(self, url: str, resp: requests.Response) -> Dict[str, Any]:
        status = resp.status_code
        content_type = resp.headers.get("Content-Type", "")
        text = resp.text or ""

        if status >= 400:
            payload: Dict[str, Any]
            try:
                payload = resp.json() if "json" in content_type else {"raw": text}
            except ValueError:
                payload = {"raw": text}
            message = self._extract_error_message(payload) or f"HTTP {status}"
            log_http_response(LOG, url=url, status=status, body=payload)
            raise TranslatorRequestError(message, status=status, payload=payload)

        try:
            body = resp.json()
        except ValueError as e:
            LOG.error(f"invalid_json: {e}; raw={_compact(text)}")
            raise TranslatorContractError(f"Invalid JSON response: {e}", status=status, payload={"raw": text})
        log_http_response(LOG, url=url, status=status, body=body)
        if not isinstance(body, dict):
            raise TranslatorContractError("Response body is not an object", status=status, payload={"raw": text})
        return body

    @staticmethod
    def _extract_error_message(payload: Dict[str, Any]) -> Optional[str]:
        # Google: {"error": {"code": 400, "message": "..."}}; DeepL: {"message": "..."}
        if not isinstance(payload, dict):
            return None
        err = payload.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if payload.get("message"):
            return str(payload["message"])
        return None
