# -*- coding: utf-8 -*-
"""
Test suite for utils/config.py and the log helpers in utils/logging.py
"""
from __future__ import annotations

import json
import logging
import os
import pathlib
import tempfile
import unittest
from unittest.mock import patch

from langsync.utils.config import CONFIG_FILE_NAME, DEFAULTS, ensure_config, load_config
from langsync.utils.logging import compact_json, mask_token, sync_logger, temporarily


class ConfigTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = pathlib.Path(self._tmp.name)
        env = {k: v for k, v in os.environ.items() if not k.startswith("LANGSYNC_")}
        self._env = patch.dict(os.environ, env, clear=True)
        self._env.start()

    def tearDown(self):
        self._env.stop()
        self._tmp.cleanup()

    def write_config(self, data) -> None:
        (self.root / CONFIG_FILE_NAME).write_text(json.dumps(data), encoding="utf-8")


class TestLoadConfig(ConfigTestCase):
    """Precedence: overrides > environment > file > defaults."""

    def test_defaults_without_file(self):
        """A project without langsync.json gets the defaults."""
        cfg = load_config(self.root)
        self.assertEqual(cfg["referred_lang"], "en")
        self.assertEqual(cfg["function_names"], DEFAULTS["function_names"])
        self.assertEqual(cfg["project_root"], str(self.root.resolve()))

    def test_file_values(self):
        """Keys in the file replace the defaults."""
        self.write_config({"referred_lang": "zh-CN", "lang_dir": "src/locales"})
        cfg = load_config(self.root)
        self.assertEqual(cfg["referred_lang"], "zh-CN")
        self.assertEqual(cfg["lang_dir"], "src/locales")

    def test_environment_and_overrides(self):
        """LANGSYNC_* variables are coerced; explicit overrides win over them."""
        self.write_config({"max_key_length": 20})
        os.environ["LANGSYNC_MAX_KEY_LENGTH"] = "30"
        os.environ["LANGSYNC_QUOTE_KEYS"] = "yes"
        os.environ["LANGSYNC_STOP_WORDS"] = "the, a"
        os.environ["LANGSYNC_GOOGLE_API_KEY"] = "secret"
        cfg = load_config(self.root, {"referred_lang": "fr", "lang_dir": None})
        self.assertEqual(cfg["max_key_length"], 30)
        self.assertIs(cfg["quote_keys"], True)
        self.assertEqual(cfg["stop_words"], ["the", "a"])
        self.assertEqual(cfg["google_api_key"], "secret")
        self.assertEqual(cfg["referred_lang"], "fr")
        self.assertEqual(cfg["lang_dir"], "")

    def test_bad_values_are_ignored(self):
        """A broken file or environment value falls back without raising."""
        (self.root / CONFIG_FILE_NAME).write_text("{not json", encoding="utf-8")
        os.environ["LANGSYNC_MAX_KEY_LENGTH"] = "lots"
        with self.assertLogs(sync_logger, level="WARNING"):
            cfg = load_config(self.root)
        self.assertEqual(cfg["max_key_length"], DEFAULTS["max_key_length"])

    def test_non_object_file(self):
        """A JSON array is not a config."""
        self.write_config(["x"])
        with self.assertLogs(sync_logger, level="ERROR"):
            cfg = load_config(self.root)
        self.assertEqual(cfg["referred_lang"], "en")


class TestEnsureConfig(ConfigTestCase):
    """ensure_config only ever adds keys."""

    def test_creates_then_noop(self):
        """A fresh project gets a file; a second call writes nothing."""
        self.assertTrue(ensure_config(self.root))
        data = json.loads((self.root / CONFIG_FILE_NAME).read_text(encoding="utf-8"))
        self.assertEqual(data["key_style"], "camelCase")
        self.assertNotIn("log_level", data)
        self.assertNotIn("google_api_key", data)
        self.assertFalse(ensure_config(self.root))

    def test_existing_keys_are_kept(self):
        """User values survive while missing keys are added."""
        self.write_config({"referred_lang": "ja", "google_api_key": "k"})
        self.assertTrue(ensure_config(self.root))
        data = json.loads((self.root / CONFIG_FILE_NAME).read_text(encoding="utf-8"))
        self.assertEqual(data["referred_lang"], "ja")
        self.assertEqual(data["google_api_key"], "k")
        self.assertIn("translate_api_priority", data)


class TestLogHelpers(unittest.TestCase):
    """Masking, compaction and temporary levels."""

    def test_mask_token(self):
        """Only a short prefix of a secret is shown."""
        self.assertEqual(mask_token(None), "<none>")
        self.assertEqual(mask_token("abc"), "***")
        self.assertTrue(mask_token("abcdefghijkl").startswith("abcdef…"))
        self.assertNotIn("ghijkl", mask_token("abcdefghijkl"))

    def test_compact_json(self):
        """Long payloads are truncated."""
        self.assertEqual(compact_json({"a": 1}), '{"a":1}')
        self.assertTrue(compact_json("x" * 50, limit=10).endswith("…(truncated)"))

    def test_temporarily(self):
        """The previous level is restored afterwards."""
        old = sync_logger.level
        with temporarily(logging.DEBUG):
            self.assertEqual(sync_logger.level, logging.DEBUG)
        self.assertEqual(sync_logger.level, old)


if __name__ == "__main__":
    unittest.main()
