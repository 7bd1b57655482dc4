# -*- coding: utf-8 -*-
"""
Test suite for utils/strings.py
"""
from __future__ import annotations

import unittest

from langsync.utils.strings import (
    escape_segment,
    format_for_file,
    gen_key_from_text,
    generate_key,
    is_identifier,
    join_segments,
    normalize_text,
    path_segments,
    split_escaped_path,
    split_file_name,
    unescape_segment,
)


class TestEscaping(unittest.TestCase):
    """Dotted key segment escaping."""

    def test_escape_and_unescape_are_inverse(self):
        """Dots and backslashes survive a round trip in both directions."""
        for s in ["a.b", "a\\b", "\\.", ".\\", "..\\\\..", "plain", ""]:
            self.assertEqual(unescape_segment(escape_segment(s)), s)
        for s in ["a\\.b", "a\\\\b", "\\\\\\."]:
            self.assertEqual(escape_segment(unescape_segment(s)), s)

    def test_escape_segment(self):
        """Literal dots become \\. and backslashes are doubled."""
        self.assertEqual(escape_segment("v1.2"), "v1\\.2")
        self.assertEqual(escape_segment("a\\b"), "a\\\\b")

    def test_path_segments_and_join(self):
        """Only unescaped dots separate segments."""
        self.assertEqual(path_segments("home.v1\\.2.title"), ["home", "v1.2", "title"])
        self.assertEqual(join_segments(["home", "v1.2", "title"]), "home.v1\\.2.title")

    def test_dangling_backslash_raises(self):
        """A trailing lone backslash is rejected."""
        with self.assertRaises(ValueError):
            split_escaped_path("abc\\")


class TestKeyGeneration(unittest.TestCase):
    """Key styles and text-derived ids."""

    def test_styles(self):
        """Each style joins the same words differently."""
        parts = ["hello", "world"]
        self.assertEqual(generate_key(parts, "camelCase"), "helloWorld")
        self.assertEqual(generate_key(parts, "pascalCase"), "HelloWorld")
        self.assertEqual(generate_key(parts, "snake"), "hello_world")
        self.assertEqual(generate_key(parts, "kebab"), "hello-world")
        self.assertEqual(generate_key(parts, "raw"), "helloworld")

    def test_gen_key_from_text(self):
        """Punctuation is dropped and stop words are skipped."""
        self.assertEqual(gen_key_from_text("Hello world", "camelCase"), "helloWorld")
        self.assertEqual(gen_key_from_text("Save the file!", "camelCase", ["the"]), "saveFile")
        self.assertEqual(gen_key_from_text("你好", "camelCase"), "")

    def test_split_file_name(self):
        """Camel humps, underscores and dashes all split words."""
        self.assertEqual(split_file_name("HelloWorld_file-name"), ["hello", "world", "file", "name"])
        self.assertEqual(split_file_name("UserAPIPage"), ["user", "api", "page"])


class TestTextHelpers(unittest.TestCase):
    """Normalization and file output."""

    def test_normalize_text(self):
        """Case, whitespace and backslashes do not affect the dedup id."""
        self.assertEqual(normalize_text("  Save  Now "), normalize_text("save now"))
        self.assertEqual(normalize_text("a\\b"), "ab")

    def test_format_for_file(self):
        """The chosen quote, backslashes and control characters are escaped."""
        self.assertEqual(format_for_file('say "hi"\n', '"'), '"say \\"hi\\"\\n"')
        self.assertEqual(format_for_file("it's", "'"), "'it\\'s'")

    def test_is_identifier(self):
        """Bare object keys must look like JS identifiers."""
        self.assertTrue(is_identifier("helloWorld"))
        self.assertTrue(is_identifier("$t"))
        self.assertFalse(is_identifier("hello-world"))
        self.assertFalse(is_identifier("1abc"))


if __name__ == "__main__":
    unittest.main()
