# -*- coding: utf-8 -*-
"""
Test suite for census.py and check.py
"""
from __future__ import annotations

import pathlib
import tempfile
import unittest

from langsync.census import census
from langsync.check import check
from langsync.context import DictEntry, LangContext
from langsync.key_tree import build_dictionary


class CensusTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = pathlib.Path(self._tmp.name)
        self.trees = {
            "en": {
                "save": "Save",
                "greeting": "Hello {name}",
                "home": {"title": "Home"},
                "v1.2": "Version",
                "unused": "Never called",
            },
            "fr": {"save": "Enregistrer", "home": {"title": ""}},
        }
        self.tree, self.dictionary, self.lang_maps = build_dictionary(self.trees)

    def tearDown(self):
        self._tmp.cleanup()

    def write(self, rel: str, text: str) -> None:
        path = self.root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")

    def run_census(self, **kwargs):
        return census(self.root, self.tree, self.dictionary, **kwargs)


class TestCensus(CensusTestCase):
    """Used / unused / undefined partition."""

    def test_partition(self):
        """Every key is used or unused; unknown texts are undefined."""
        self.write("src/a.js", 't("save"); t("home.title"); t("v1.2")')
        self.write("src/b.vue", '<template>{{ t("save") }} {{ t("Brand new") }}</template>')
        result = self.run_census()
        self.assertEqual(result.scanned_files, 2)
        self.assertEqual(result.used_keys, ["save", "home.title", "v1\\.2"])
        self.assertEqual(set(result.used["save"]), {"src/a.js", "src/b.vue"})
        self.assertEqual(sorted(result.unused), ["greeting", "unused"])
        self.assertEqual(set(result.used) | set(result.unused), set(self.dictionary))
        self.assertEqual([e.name_info.text for e in result.undefined], ["Brand new"])
        self.assertEqual(list(result.undefined_map["Brand new"]), ["src/b.vue"])

    def test_spans_point_at_the_call(self):
        """Recorded offsets slice the call out of the file."""
        src = 'const x = 1;\nt("save")'
        self.write("a.ts", src)
        result = self.run_census()
        ((start, end),) = result.used["save"]["a.ts"]
        self.assertEqual(src[start:end], 't("save")')

    def test_interpolated_call_matches_by_regex(self):
        """A templated call uses every key whose name or value fits its pattern."""
        self.write("a.js", "t(`Hello ${user}`)")
        result = self.run_census()
        self.assertIn("greeting", result.used)
        self.assertEqual(result.undefined, [])

    def test_bound_name_resolves_directly(self):
        """%id% calls look the id up instead of matching by pattern."""
        self.write("a.js", 't("%save%Anything ${x}")')
        self.assertEqual(self.run_census().used_keys, ["save"])

    def test_ignore_globs_and_extensions(self):
        """Ignored paths and other extensions are not scanned."""
        self.write("src/a.js", 't("save")')
        self.write("src/gen/b.js", 't("home.title")')
        self.write("src/c.py", 't("v1.2")')
        result = self.run_census(ignore_globs=["src/gen/*"])
        self.assertEqual(result.used_keys, ["save"])

    def test_max_file_size(self):
        """Files above the limit are skipped."""
        self.write("big.js", 't("save")' + " " * 100)
        self.assertEqual(self.run_census(max_file_size=50).scanned_files, 0)

    def test_manual_marks_and_ignored_undefined(self):
        """Marked keys count as used; ignored texts are not reported."""
        self.write("a.js", 't("Brand new")')
        result = self.run_census(marked_used=["unused"], ignored_undefined=["Brand new"])
        self.assertIn("unused", result.used)
        self.assertNotIn("unused", result.unused)
        self.assertEqual(result.undefined, [])

    def test_skip_dirs(self):
        """The language directory itself is never scanned."""
        self.write("locales/en.js", 'export default { a: t("save") }')
        result = self.run_census(skip_dirs=[self.root / "locales"])
        self.assertEqual(result.scanned_files, 0)


class TestCheck(CensusTestCase):
    """lack / null / extra per language."""

    def make_ctx(self) -> LangContext:
        return LangContext(
            referred_lang="en",
            key_tree=self.tree,
            dictionary=self.dictionary,
            lang_maps=self.lang_maps,
        )

    def test_against_reference(self):
        """The reference language is the pivot by default."""
        ctx = self.make_ctx()
        lack, null, extra = check(ctx)
        self.assertEqual(lack["en"], [])
        self.assertEqual(lack["fr"], ["greeting", "v1\\.2", "unused"])
        self.assertEqual(null["fr"], ["home.title"])
        self.assertEqual(extra["fr"], [])
        self.assertIs(ctx.lack, lack)

    def test_extra_keys(self):
        """Keys only other languages have are extra."""
        self.lang_maps["fr"]["only.fr"] = "Seulement"
        _, _, extra = check(self.make_ctx())
        self.assertEqual(extra["fr"], ["only.fr"])

    def test_dictionary_pivot(self):
        """Without reference sync every dictionary key is checked."""
        self.lang_maps["fr"]["only.fr"] = "Seulement"
        self.dictionary["only.fr"] = DictEntry("only.fr")
        lack, _, extra = check(self.make_ctx(), sync_based_on_referred_entries=False)
        self.assertIn("only.fr", lack["en"])
        self.assertEqual(extra["en"], [])


if __name__ == "__main__":
    unittest.main()
