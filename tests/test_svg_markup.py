import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from svgkit import is_svg, svg_bytes, svg_filename


class TestIsSvg(unittest.TestCase):
    def test_accepts_namespaced_root(self) -> None:
        self.assertTrue(is_svg('<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 1 1"><path d="M0 0"/></svg>'))

    def test_accepts_prolog_and_whitespace(self) -> None:
        self.assertTrue(is_svg('\n  <?xml version="1.0"?>\n<svg><g/></svg>\n'))

    def test_rejects_other_root(self) -> None:
        self.assertFalse(is_svg("<div><svg/></div>"))

    def test_rejects_malformed(self) -> None:
        self.assertFalse(is_svg("<svg><g></svg>"))

    def test_rejects_non_strings_and_blank(self) -> None:
        for value in (None, 42, b"<svg/>", "", "   ", "svg"):
            self.assertFalse(is_svg(value), value)


class TestFilenames(unittest.TestCase):
    def test_appends_extension(self) -> None:
        self.assertEqual(svg_filename("logo"), "logo.svg")
        self.assertEqual(svg_filename("logo.SVG"), "logo.SVG")

    def test_blank_uses_default(self) -> None:
        self.assertEqual(svg_filename(None), "untitled.svg")
        self.assertEqual(svg_filename("  ", default="icon"), "icon.svg")

    def test_path_separators_are_replaced(self) -> None:
        self.assertEqual(svg_filename("../a/b\\c"), "__a_b_c.svg")

    def test_bytes_are_utf8(self) -> None:
        self.assertEqual(svg_bytes("<svg>é</svg>"), "<svg>é</svg>".encode("utf-8"))


if __name__ == "__main__":
    unittest.main()
