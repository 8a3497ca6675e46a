import unittest

from common.constants import LayoutType
from layoutparser.orchestration.splitter import detect_layout_type, split_lines

from layout_builders import block


class TestSplitLines(unittest.TestCase):
    def test_mqseries_is_cut_on_the_block_grid(self):
        text = block("HEADER") + "\n" + block("000001")[:300] + "\r\n" + block("000001")[300:] + "000002TAIL"
        lines = split_lines(text, LayoutType.MQSERIES, 600)
        self.assertEqual(len(lines), 3)
        self.assertTrue(lines[1].startswith("000001"))
        self.assertEqual(lines[2], "000002TAIL".ljust(600))
        self.assertTrue(all(len(line) == 600 for line in lines))

    def test_other_types_split_on_line_breaks(self):
        text = "EDI_DC40 a\r\n\r\nZRSDM_E1EDK01 b\nlast"
        self.assertEqual(split_lines(text, LayoutType.IDOC), ["EDI_DC40 a", "ZRSDM_E1EDK01 b", "last"])
        self.assertEqual(split_lines(text, "unknown"), ["EDI_DC40 a", "ZRSDM_E1EDK01 b", "last"])

    def test_empty(self):
        self.assertEqual(split_lines("", LayoutType.MQSERIES), [])
        self.assertEqual(split_lines(None), [])


class TestDetectLayoutType(unittest.TestCase):
    def test_mqseries(self):
        self.assertEqual(detect_layout_type(block("HEADER") + block("000001"), 600), LayoutType.MQSERIES)
        # A single block is not enough to tell
        self.assertEqual(detect_layout_type(block("HEADER"), 600), LayoutType.UNKNOWN)
        self.assertEqual(detect_layout_type(block("HEADER") + "000001", 600), LayoutType.UNKNOWN)

    def test_idoc(self):
        self.assertEqual(detect_layout_type("EDI_DC40 1234\nZRSDM_X 1"), LayoutType.IDOC)
        self.assertEqual(detect_layout_type("xx ZRSDM_E1EDK01 yy"), LayoutType.IDOC)
        self.assertEqual(detect_layout_type("a b c d e E1EDK01000 f"), LayoutType.IDOC)

    def test_unknown(self):
        self.assertEqual(detect_layout_type("just some words"), LayoutType.UNKNOWN)
        self.assertEqual(detect_layout_type("   "), LayoutType.UNKNOWN)
        self.assertEqual(detect_layout_type(None), LayoutType.UNKNOWN)


if __name__ == "__main__":
    unittest.main()
