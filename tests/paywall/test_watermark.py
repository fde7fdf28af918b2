"""Zero-width text watermark."""
import unittest

from lockpost.paywall.watermark import (
    embed_text_watermark,
    extract_text_watermark,
    generate_watermark_id,
    strip_text_watermark,
)


class TestWatermark(unittest.TestCase):
    def test_id_is_deterministic_per_purchase(self):
        a = generate_watermark_id("r1", "p1")
        self.assertEqual(a, generate_watermark_id("r1", "p1"))
        self.assertNotEqual(a, generate_watermark_id("r1", "p2"))
        self.assertRegex(a, r"^wm-[0-9a-f]{16}$")

    def test_embed_is_invisible_and_recoverable(self):
        text = "Some paid content that is long enough."
        marked = embed_text_watermark(text, "wm-0123456789abcdef")
        self.assertNotEqual(marked, text)
        self.assertEqual(strip_text_watermark(marked), text)
        self.assertEqual(extract_text_watermark(marked), "wm-0123456789abcdef")

    def test_no_watermark(self):
        self.assertIsNone(extract_text_watermark("plain"))
