# -*- coding: utf-8 -*-
"""
Test suite for session.py

End-to-end runs over a throwaway project: read, census, check, fix, rewrite.
"""
from __future__ import annotations

import json
import pathlib
import tempfile
import unittest

from langsync.result import ResultCode
from langsync.session import LangSession
from langsync.translator import GoogleTranslator, TranslateResult, Translator
from langsync.utils.config import load_config


class EchoClient(GoogleTranslator):
    def send(self, source, target, texts):
        return [f"[{target}] {t}" for t in texts]


class SessionTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = pathlib.Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def write(self, rel: str, text: str) -> None:
        path = self.root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")

    def read(self, rel: str) -> str:
        return (self.root / rel).read_text(encoding="utf-8")

    def session(self, translator=None, **overrides) -> LangSession:
        cfg = load_config(self.root, overrides)
        return LangSession(self.root, cfg, translator=translator or Translator(clients=[]))

    def prepare(self, session: LangSession) -> None:
        for name in ("read", "census", "check"):
            res = getattr(session, name)()
            self.assertTrue(res.success, f"{name}: {res.message}")


class TestPipeline(SessionTestCase):
    """read -> census -> check -> fix -> rewrite."""

    def setUp(self):
        super().setUp()
        self.write("src/locales/en.json", '{\n  "hello": "Hello"\n}\n')
        self.write("src/locales/fr.json", '{\n  "hello": "Bonjour"\n}\n')
        self.write("src/app.js", 'console.log(t("hello"), t("Save"))\n')

    def test_read_detects_lang_dir(self):
        """The language directory is found without configuration."""
        session = self.session()
        res = session.read()
        self.assertTrue(res.success)
        self.assertEqual(res.data["langs"], ["en", "fr"])
        self.assertEqual(pathlib.Path(session.ctx.lang_dir), (self.root / "src" / "locales").resolve())

    def test_census_and_check(self):
        """Usage and missing translations end up on the context."""
        session = self.session()
        self.prepare(session)
        ctx = session.ctx
        self.assertEqual(ctx.used_keys, ["hello"])
        self.assertEqual(list(ctx.undefined_map), ["Save"])
        self.assertEqual(ctx.lack["fr"], [])
        snap = session.snapshot()
        self.assertEqual(snap["entry_tree"], {"hello": "hello"})
        self.assertIn("Save", snap["undefined"])

    def test_fix_and_rewrite(self):
        """A new text gets a key in every language and the call is patched."""
        session = self.session(Translator(clients=[EchoClient(api_key="x")]))
        self.prepare(session)
        res = session.fix()
        self.assertTrue(res.success, res.message)
        self.assertEqual(res.data["patched"], 1)
        res = session.rewrite()
        self.assertTrue(res.success, res.message)

        self.assertEqual(self.read("src/app.js"), 'console.log(t("hello"), t("save"))\n')
        self.assertEqual(json.loads(self.read("src/locales/en.json")), {"hello": "Hello", "save": "Save"})
        self.assertEqual(json.loads(self.read("src/locales/fr.json")), {"hello": "Bonjour", "save": "[fr] Save"})

        again = self.session()
        self.prepare(again)
        self.assertEqual(again.ctx.undefined_entries, [])
        self.assertEqual(again.fix().code, ResultCode.NoLackEntries)

    def test_fix_without_translator(self):
        """With no service configured, filling copies the reference text on request."""
        session = self.session()
        self.prepare(session)
        self.assertEqual(session.fix(entries_to_gen=False, fill_with_original=False).code, ResultCode.NoLackEntries)
        res = session.fix(fill_with_original=True)
        self.assertTrue(res.success)
        session.rewrite()
        self.assertEqual(json.loads(self.read("src/locales/fr.json"))["save"], "Save")

    def test_dry_run_reports_diffs(self):
        """Nothing is written and the report holds every change."""
        session = self.session()
        self.prepare(session)
        session.fix(fill_with_original=True)
        res = session.rewrite(dry_run=True)
        self.assertTrue(res.success)
        self.assertEqual(len(session.last_report.changes), 3)
        self.assertIn('t("Save")', self.read("src/app.js"))

    def test_modify_trim_sort(self):
        """The edit phases write through to disk."""
        session = self.session()
        self.prepare(session)
        self.assertTrue(session.modify("hello", "Salut", "fr").success)
        self.assertEqual(json.loads(self.read("src/locales/fr.json")), {"hello": "Salut"})
        self.assertEqual(session.modify("nope", "x", "fr").code, ResultCode.InvalidEntryName)
        self.assertEqual(session.trim().code, ResultCode.NoTrimEntries)
        self.assertEqual(session.sort().code, ResultCode.NoSortingApplied)
        self.assertEqual(session.sort("random").code, ResultCode.UnknownRewriteError)


class TestSessionControl(SessionTestCase):
    """Busy lock, cancellation and missing inputs."""

    def setUp(self):
        super().setUp()
        self.write("locales/en.json", '{"a": "A"}')
        self.write("locales/de.json", "{}")
        self.write("app.js", 't("New text")')

    def test_busy(self):
        """An overlapping phase returns Processing."""
        session = self.session()
        session._busy.acquire()
        try:
            self.assertTrue(session.busy)
            self.assertEqual(session.read().code, ResultCode.Processing)
        finally:
            session._busy.release()
        self.assertTrue(session.read().success)

    def test_cancel(self):
        """A cancelled session discards staged work once, then runs again."""
        session = self.session()
        self.prepare(session)
        session.cancel()
        self.assertEqual(session.fix(fill_with_original=True).code, ResultCode.Cancelled)
        self.assertEqual(session.ctx.update_payloads, [])
        self.assertTrue(session.fix(fill_with_original=True).success)

    def test_no_lang_dir(self):
        """Projects without language files cannot be read."""
        self.assertEqual(self.session(lang_dir="missing").read().code, ResultCode.NoLangPathDetected)
        empty = tempfile.TemporaryDirectory()
        self.addCleanup(empty.cleanup)
        session = LangSession(empty.name, load_config(empty.name), translator=Translator(clients=[]))
        self.assertEqual(session.read().code, ResultCode.NoLangPathDetected)

    def test_missing_reference(self):
        """A reference language with no file makes fix fail cleanly."""
        session = self.session(referred_lang="ja")
        self.prepare(session)
        self.assertEqual(session.fix().code, ResultCode.NoReferredLang)

    def test_english_keys_need_a_translator(self):
        """A German reference without a service cannot name new keys."""
        session = self.session(referred_lang="de")
        self.prepare(session)
        res = session.fix()
        self.assertEqual(res.code, ResultCode.TranslatorFailed)
        self.assertIn("No translation service", res.message)


class TestNamespaceDetection(SessionTestCase):
    """Auto namespace strategy follows what the code calls."""

    def test_file_strategy_is_picked(self):
        """Calls written as file.key select the file strategy."""
        self.write("i18n/en/pages/home.json", '{"title": "Home"}')
        self.write("i18n/fr/pages/home.json", '{"title": "Accueil"}')
        self.write("app.ts", 't("home.title")')
        session = self.session(lang_dir="i18n")
        self.prepare(session)
        self.assertEqual(session.ctx.namespace_strategy, "file")
        self.assertEqual(session.ctx.used_keys, ["home.title"])
        self.assertEqual(session.ctx.dictionary["home.title"].full_path, "pages.home.title")


class TestTranslatorWiring(SessionTestCase):
    """The session hands its translator to fix."""

    def test_translate_result_passthrough(self):
        """The session's translator is the one fix uses."""
        calls = []

        class Recorder(Translator):
            def translate(self, source, target, texts):
                calls.append(target)
                return TranslateResult(True, list(texts))

        self.write("locales/en.json", '{"a": "A"}')
        self.write("locales/it.json", "{}")
        session = self.session(Recorder(clients=[]))
        self.prepare(session)
        self.assertTrue(session.fix().success)
        self.assertEqual(calls, ["it"])


if __name__ == "__main__":
    unittest.main()
