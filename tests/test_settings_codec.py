import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from svgkit.settings_codec import SettingsCodecTypeError, canonical_dumps, canonical_size, settings_fingerprint


class TestSettingsCodec(unittest.TestCase):
    def test_key_ordering_is_deterministic(self) -> None:
        a = {"svgs": [], "isSetupComplete": True}
        b = {"isSetupComplete": True, "svgs": []}
        self.assertEqual(canonical_dumps(a), canonical_dumps(b))

    def test_nested_output_is_compact(self) -> None:
        obj = {"svgs": [{"raw": "<svg/>", "id": "a"}], "svgModelId": None}
        expected = '{"svgModelId":null,"svgs":[{"id":"a","raw":"<svg/>"}]}'
        self.assertEqual(canonical_dumps(obj), expected)

    def test_size_counts_utf8_bytes(self) -> None:
        obj = {"name": "café"}
        self.assertEqual(canonical_size(obj), len('{"name":"café"}'.encode("utf-8")))
        self.assertNotIn("\\u", canonical_dumps(obj))

    def test_unsupported_type_raises(self) -> None:
        with self.assertRaises(SettingsCodecTypeError):
            canonical_dumps({"bad": {1, 2, 3}})

    def test_non_string_key_raises(self) -> None:
        with self.assertRaises(SettingsCodecTypeError):
            canonical_dumps({1: "x"})

    def test_nan_rejected(self) -> None:
        with self.assertRaises(ValueError):
            canonical_dumps({"x": float("nan")})

    def test_fingerprint_ignores_key_order(self) -> None:
        a = settings_fingerprint({"a": 1, "b": 2})
        b = settings_fingerprint({"b": 2, "a": 1})
        self.assertEqual(a, b)
        self.assertTrue(a.startswith("sha256:"))
        self.assertNotEqual(a, settings_fingerprint({"a": 1, "b": 3}))


if __name__ == "__main__":
    unittest.main()
