import unittest

from common.constants import MatchStrategy
from common.settings import ParserSettings
from layoutparser.orchestration.resolver import LineResolver, ResolverTrace, is_numeric_marker, resolve, resolve_with_trace

from layout_builders import block, field, header_record, layout, record


class TestNumericMarker(unittest.TestCase):
    def test_is_numeric_marker(self):
        self.assertTrue(is_numeric_marker("000001"))
        self.assertFalse(is_numeric_marker("00001"))
        self.assertFalse(is_numeric_marker("00000A"))
        self.assertFalse(is_numeric_marker("HEADER"))
        self.assertFalse(is_numeric_marker("٠" * 6))
        self.assertFalse(is_numeric_marker(""))
        self.assertFalse(is_numeric_marker(None))


class TestResolverStrategies(unittest.TestCase):
    def setUp(self):
        self.settings = ParserSettings()
        self.resolver = LineResolver(self.settings)

    def _records(self, *records):
        return layout(list(records), settings=self.settings).records

    def test_sentinel_by_name(self):
        (trailer,) = self._records(record("LINHA999999", "999", [field("TOTAL", 10, 1)]))
        self.assertEqual(self.resolver.match(block("999999", "ABC"), trailer), (True, MatchStrategy.SENTINEL))
        self.assertEqual(self.resolver.match(block("000001", "999"), trailer), (False, MatchStrategy.SENTINEL))

    def test_sentinel_never_falls_through(self):
        (trailer,) = self._records(record("LINHA999999", "001"))
        matched, strategy = self.resolver.match(block("000001", "001"), trailer)
        self.assertFalse(matched)
        self.assertEqual(strategy, MatchStrategy.SENTINEL)

    def test_header_is_absolute(self):
        (header,) = self._records(header_record())
        self.assertEqual(self.resolver.match(block("HEADER"), header), (True, MatchStrategy.HEADER))
        self.assertFalse(self.resolver.match(block("000001", "HEADER"), header)[0])

    def test_foreign_absolute_is_case_insensitive(self):
        (segment,) = self._records(record("EDI_DC40", "EDI_DC40"))
        self.assertEqual(self.resolver.match("edi_dc40  000000000001", segment), (True, MatchStrategy.FOREIGN_ABSOLUTE))

    def test_foreign_flexible_segment(self):
        (segment,) = self._records(record("E1EDK01", "ZRSDM_E1EDK010 "))
        self.assertEqual(self.resolver.match("ZRSDM_E1EDK01  payload", segment), (True, MatchStrategy.FOREIGN_FLEXIBLE))
        self.assertTrue(self.resolver.match("ZRSDM_E1EDK0100 payload", segment)[0])
        self.assertFalse(self.resolver.match("ZRSDM_E1EDP01  payload", segment)[0])
        # Same segment name behind another protocol prefix
        self.assertFalse(self.resolver.match("EDI_E1EDK01  payload", segment)[0])

    def test_foreign_prefixes_are_configurable(self):
        settings = ParserSettings(foreign_prefixes=["X12_"])
        resolver = LineResolver(settings)
        (segment,) = layout([record("ISA", "X12_ISA0")], settings=settings).records
        self.assertEqual(resolver.match("X12_ISA payload", segment), (True, MatchStrategy.FOREIGN_FLEXIBLE))

    def test_offset_prefix(self):
        (line001,) = self._records(record("LINHA001", "001", [field("A", 591, 1)]))
        self.assertEqual(self.resolver.match(block("000007", "001"), line001), (True, MatchStrategy.OFFSET_PREFIX))
        self.assertFalse(self.resolver.match(block("000007", "002"), line001)[0])
        # Marker must be numeric
        self.assertFalse(self.resolver.match(block("00000X", "001"), line001)[0])
        # Line too short for the discriminator
        self.assertFalse(self.resolver.match("0000070", line001)[0])

    def test_structural_fallback(self):
        repeating, single, unnamed = self._records(
            record("LINHA005", "", [field("A", 10, 1)], max_occurs=9),
            record("LINHA006", "", max_occurs=1),
            record("DETALHE", "", max_occurs=9),
        )
        line = block("000003", "ABC005")
        self.assertEqual(self.resolver.match(line, repeating), (True, MatchStrategy.STRUCTURAL))
        self.assertFalse(self.resolver.match(block("000003", "ABC006"), repeating)[0])
        self.assertEqual(self.resolver.match(block("000003", "ABC006"), single), (False, MatchStrategy.NONE))
        self.assertFalse(self.resolver.match(line, unnamed)[0])
        self.assertFalse(self.resolver.match(block("HEADER", "ABC005"), repeating)[0])


class TestResolverSearch(unittest.TestCase):
    def setUp(self):
        self.settings = ParserSettings()
        self.grammar = layout(
            [
                header_record(),
                record("LINHA001", "001", [field("A", 591, 1)]),
                record(
                    "LINHA020",
                    "02",
                    [field("A", 10, 1), record("LINHA021", "021", [field("B", 591, 1)])],
                    max_occurs=5,
                ),
                record("LINHA001B", "001"),
                record("LINHA999999", "", [field("TOTAL", 594, 1)]),
            ],
            settings=self.settings,
        )

    def test_children_before_parent(self):
        found = resolve(block("000005", "021"), self.grammar.records, self.settings)
        self.assertEqual(found.name, "LINHA021")
        found = resolve(block("000005", "020"), self.grammar.records, self.settings)
        self.assertEqual(found.name, "LINHA020")

    def test_first_candidate_wins(self):
        found = resolve(block("000002", "001"), self.grammar.records, self.settings)
        self.assertEqual(found.name, "LINHA001")

    def test_header_and_trailer(self):
        self.assertEqual(resolve(block("HEADER"), self.grammar.records, self.settings).name, "HEADER")
        self.assertEqual(resolve(block("999999"), self.grammar.records, self.settings).name, "LINHA999999")

    def test_no_match(self):
        self.assertIsNone(resolve(block("000003", "777"), self.grammar.records, self.settings))
        self.assertIsNone(resolve("", self.grammar.records, self.settings))
        self.assertIsNone(resolve(None, self.grammar.records, self.settings))
        self.assertIsNone(resolve(block("000003", "001"), [], self.settings))

    def test_trace_lists_each_tested_candidate(self):
        found, trace = resolve_with_trace(block("000005", "021"), self.grammar.records, self.settings)
        self.assertEqual(found.name, "LINHA021")
        self.assertEqual(
            trace,
            [
                ResolverTrace("HEADER", MatchStrategy.HEADER, False),
                ResolverTrace("LINHA001", MatchStrategy.OFFSET_PREFIX, False),
                ResolverTrace("LINHA021", MatchStrategy.OFFSET_PREFIX, True),
            ],
        )

    def test_trace_for_unmatched_line(self):
        found, trace = resolve_with_trace(block("000003", "777"), self.grammar.records, self.settings)
        self.assertIsNone(found)
        self.assertEqual([t.record_name for t in trace], ["HEADER", "LINHA001", "LINHA021", "LINHA020", "LINHA001B", "LINHA999999"])
        self.assertFalse(any(t.matched for t in trace))


if __name__ == "__main__":
    unittest.main()
