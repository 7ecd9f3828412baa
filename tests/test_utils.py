from __future__ import annotations

import unittest

from seogen.utils import extract_plain_text, inner_text, normalize_url, page_url, truncate


class NormalizeUrlTests(unittest.TestCase):
    def test_adds_scheme_and_trailing_slash_for_domain(self) -> None:
        self.assertEqual(normalize_url("example.com"), "https://example.com/")

    def test_keeps_query_parameters(self) -> None:
        self.assertEqual(normalize_url("example.com/board?id=3"), "https://example.com/board?id=3")

    def test_handles_localhost_with_port(self) -> None:
        self.assertEqual(normalize_url("localhost:8000/foo"), "https://localhost:8000/foo")

    def test_rejects_relative_paths(self) -> None:
        with self.assertRaises(ValueError):
            normalize_url("/just/a/path")

    def test_rejects_blank_values(self) -> None:
        with self.assertRaises(ValueError):
            normalize_url("   ")


class PageUrlTests(unittest.TestCase):
    def test_joins_host_and_path(self) -> None:
        self.assertEqual(page_url("https", "example.com", "/faq?no=1"), "https://example.com/faq?no=1")

    def test_adds_missing_slash(self) -> None:
        self.assertEqual(page_url("http", "example.com/", "faq"), "http://example.com/faq")


class TextHelpersTests(unittest.TestCase):
    def test_plain_text_drops_script_and_style(self) -> None:
        html = "<style>p{}</style><p>Hello\n\n  <b>world</b></p><SCRIPT>\nvar x = 1;\n</SCRIPT>"
        self.assertEqual(extract_plain_text(html), "Hello world")

    def test_inner_text_unescapes_entities(self) -> None:
        self.assertEqual(inner_text(" Q&amp;A <span>board</span> "), "Q&A board")

    def test_truncate_keeps_limit(self) -> None:
        self.assertEqual(truncate("abcdef", 5), "ab...")
        self.assertEqual(truncate("abc", 5), "abc")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
