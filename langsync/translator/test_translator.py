# -*- coding: utf-8 -*-
"""
Test suite for the translator package.

HTTP goes through unittest.mock; nothing here touches the network.
"""
from __future__ import annotations

import unittest
from typing import List
from unittest import mock

import requests

from langsync.translator import (
    DeepLTranslator,
    GoogleTranslator,
    TranslateResult,
    Translator,
    TranslatorClient,
    TranslatorRequestError,
    batch_translate,
)
from langsync.translator.deepl import FREE_URL, PRO_URL
from langsync.translator.google import BASE_URL


def fake_response(status: int = 200, body=None, content_type: str = "application/json") -> mock.Mock:
    resp = mock.Mock(spec=requests.Response)
    resp.status_code = status
    resp.headers = {"Content-Type": content_type}
    resp.text = "" if body is None else str(body)
    resp.json.return_value = body
    return resp


class StubClient(TranslatorClient):
    """Backend whose send() is scripted per test."""

    name = "google"
    api_key_setting = "google_api_key"

    def __init__(self, replies: List, name: str = "google") -> None:
        super().__init__(api_key="stub-key")
        self.replies = list(replies)
        self.calls: List[List[str]] = []
        self.name = name

    def send(self, source, target, texts):
        self.calls.append(list(texts))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class TestBatchTranslate(unittest.TestCase):
    """Packing texts under a character budget."""

    def test_packs_respect_max_len_and_keep_order(self):
        """Texts are split into packs whose total length stays within max_len."""
        sent = []

        def send(source, target, texts):
            sent.append(list(texts))
            return TranslateResult(True, data=[t.upper() for t in texts])

        res = batch_translate("en", "fr", ["aaaa", "bbbb", "cc", "d"], send, max_len=6, batch_size=10, interval=0)
        self.assertTrue(res.success)
        self.assertEqual(res.data, ["AAAA", "BBBB", "CC", "D"])
        self.assertEqual(sent, [["aaaa"], ["bbbb", "cc"], ["d"]])

    def test_sleeps_between_batches(self):
        """The interval is observed between groups of batch_size packs, not after the last."""
        sleeps = []

        def send(source, target, texts):
            return TranslateResult(True, data=list(texts))

        batch_translate("en", "fr", ["ab", "cd", "ef"], send, max_len=2, batch_size=2, interval=0.5, sleep=sleeps.append)
        self.assertEqual(sleeps, [0.5])

    def test_overlong_text_fails_whole_batch(self):
        """A single text above the budget fails without sending anything."""
        send = mock.Mock()
        res = batch_translate("en", "fr", ["ok", "x" * 10], send, max_len=5, batch_size=1, interval=0)
        self.assertFalse(res.success)
        send.assert_not_called()

    def test_first_failure_is_returned(self):
        """A failing pack stops the loop and its result is passed through."""
        replies = [TranslateResult(True, data=["A"]), TranslateResult(False, message="quota")]
        res = batch_translate("en", "fr", ["a", "b"], lambda s, t, x: replies.pop(0), max_len=1, batch_size=5, interval=0)
        self.assertFalse(res.success)
        self.assertEqual(res.message, "quota")


class TestGoogleTranslator(unittest.TestCase):
    """Google v2 REST request/response handling."""

    def test_request_shape_and_result(self):
        """The key is a query parameter; the texts go in a JSON body."""
        body = {"data": {"translations": [{"translatedText": "Bonjour "}, {"translatedText": ""}]}}
        with mock.patch("langsync.translator.client.requests.post", return_value=fake_response(body=body)) as post:
            res = GoogleTranslator(api_key="g-key").translate("en", "fr", ["Hello", "World"])
        self.assertTrue(res.success)
        self.assertEqual(res.data, ["Bonjour", "World"])
        self.assertEqual(res.api, "google")
        args, kwargs = post.call_args
        self.assertEqual(args[0], BASE_URL)
        self.assertEqual(kwargs["params"], {"key": "g-key"})
        self.assertEqual(kwargs["json"], {"q": ["Hello", "World"], "source": "en", "target": "fr", "format": "text"})

    def test_http_error_becomes_failed_result(self):
        """A 403 is reported with the API's error message."""
        body = {"error": {"code": 403, "message": "API key not valid"}}
        with mock.patch("langsync.translator.client.requests.post", return_value=fake_response(403, body)):
            res = GoogleTranslator(api_key="g-key").translate("en", "fr", ["Hello"])
        self.assertFalse(res.success)
        self.assertIn("API key not valid", res.message)

    def test_retries_network_errors_with_backoff(self):
        """Connection errors are retried with exponential backoff before giving up."""
        client = GoogleTranslator(api_key="g-key", retry_count=2, retry_backoff_seconds=1.0)
        with mock.patch("langsync.translator.client.requests.post", side_effect=requests.ConnectionError("down")) as post, \
                mock.patch("langsync.translator.client.time.sleep") as sleep:
            with self.assertRaises(TranslatorRequestError):
                client.send("en", "fr", ["Hello"])
        self.assertEqual(post.call_count, 3)
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [1.0, 2.0])

    def test_unsupported_language(self):
        """Languages without a Google code are flagged as unsupported."""
        res = GoogleTranslator(api_key="g-key").translate("en", "klingon", ["Hello"])
        self.assertFalse(res.success)
        self.assertTrue(res.lang_unsupported)

    def test_key_from_config_or_env(self):
        """The API key falls back to the config dict, then to the environment."""
        self.assertEqual(GoogleTranslator(config={"google_api_key": "cfg"}).api_key, "cfg")
        with mock.patch.dict("os.environ", {"LANGSYNC_GOOGLE_API_KEY": "env"}):
            self.assertEqual(GoogleTranslator().api_key, "env")


class TestDeepLTranslator(unittest.TestCase):
    """DeepL form-encoded requests."""

    def test_free_and_pro_hosts(self):
        """deepl_version selects the API host."""
        self.assertEqual(DeepLTranslator(api_key="k").url, FREE_URL)
        self.assertEqual(DeepLTranslator(api_key="k", config={"deepl_version": "pro"}).url, PRO_URL)

    def test_form_fields(self):
        """Every text is a repeated form field next to the auth key and language codes."""
        body = {"translations": [{"detected_source_language": "EN", "text": "Hallo"}]}
        with mock.patch("langsync.translator.client.requests.post", return_value=fake_response(body=body)) as post:
            res = DeepLTranslator(api_key="d-key").translate("en", "de", ["Hello"])
        self.assertEqual(res.data, ["Hallo"])
        form = post.call_args.kwargs["data"]
        self.assertIn(("auth_key", "d-key"), form)
        self.assertIn(("target_lang", "DE"), form)
        self.assertIn(("text", "Hello"), form)


class TestTranslatorFallback(unittest.TestCase):
    """Priority order and fallback between backends."""

    def test_no_backend_configured(self):
        """Without API keys there is nothing to call."""
        with mock.patch.dict("os.environ", {}, clear=True):
            res = Translator({"translate_api_priority": ["google", "deepl"]}).translate("en", "fr", ["Hi"])
        self.assertFalse(res.success)

    def test_falls_back_and_sticks_to_next_backend(self):
        """After a failure the next backend serves this and later calls."""
        first = StubClient([TranslatorRequestError("quota")], name="google")
        second = StubClient([["Salut"], ["Merci"]], name="deepl")
        translator = Translator(clients=[first, second])
        self.assertEqual(translator.translate("en", "fr", ["Hi"]).data, ["Salut"])
        self.assertEqual(translator.translate("en", "fr", ["Thanks"]).data, ["Merci"])
        self.assertEqual(len(first.calls), 1)

    def test_all_failed_starts_over(self):
        """When every backend failed once, the next call tries them again."""
        first = StubClient([TranslatorRequestError("timeout"), ["Bonjour"]], name="google")
        second = StubClient([TranslatorRequestError("timeout")], name="deepl")
        translator = Translator(clients=[first, second])
        self.assertFalse(translator.translate("en", "fr", ["Hi"]).success)
        res = translator.translate("en", "fr", ["Hi"])
        self.assertTrue(res.success)
        self.assertEqual(res.data, ["Bonjour"])
        self.assertEqual((len(first.calls), len(second.calls)), (2, 1))

    def test_empty_input_is_trivial_success(self):
        """No texts means no request."""
        client = StubClient([])
        res = Translator(clients=[client]).translate("en", "fr", [])
        self.assertTrue(res.success)
        self.assertEqual(client.calls, [])


if __name__ == "__main__":
    unittest.main()
