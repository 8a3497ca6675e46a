import unittest
from datetime import datetime

from common.settings import ParserSettings
from layoutparser.report import layout_report_to_dataframe
from layoutparser.validation.structure import LayoutValidationCache, build_layout_report, summarize, validate_layout, validate_record

from layout_builders import e1_grammar, field, header_record, layout, record


class TestValidateRecord(unittest.TestCase):
    def setUp(self):
        self.settings = ParserSettings()

    def test_childless_record_must_fill_the_line(self):
        grammar = layout([record("LINHA001", "001", [field("A", 100, 1), field("B", 491, 2)])])
        (result,) = validate_record(grammar.records[0], 600, self.settings)
        self.assertEqual(result.total_length, 600)
        self.assertTrue(result.is_valid)
        self.assertEqual(result.difference, 0)

    def test_difference_reports_missing_and_excess(self):
        short = layout([record("LINHA001", "001", [field("A", 100, 1)])]).records[0]
        (result,) = validate_record(short, 600, self.settings)
        self.assertFalse(result.is_valid)
        self.assertEqual(result.total_length, 109)
        self.assertEqual(result.difference, 491)

        long = layout([record("LINHA002", "002", [field("A", 600, 1)])]).records[0]
        (result,) = validate_record(long, 600, self.settings)
        self.assertFalse(result.is_valid)
        self.assertEqual(result.difference, -9)

    def test_header_has_no_marker(self):
        (result,) = validate_record(e1_grammar().records[0], 600, self.settings)
        self.assertEqual(result.line_name, "HEADER")
        self.assertEqual(result.total_length, 600)
        self.assertTrue(result.is_valid)

    def test_sequencia_is_not_counted(self):
        decl = layout([record("LINHA001", "001", [field("Sequencia", 6, 99), field("A", 591, 1)])]).records[0]
        (result,) = validate_record(decl, 600, self.settings)
        self.assertEqual(result.total_length, 600)
        self.assertTrue(result.is_valid)
        self.assertEqual(result.field_count, 2)

    def test_container_only_needs_to_fit(self):
        decl = layout(
            [
                record(
                    "LINHA020",
                    "020",
                    [field("A", 100, 1), record("LINHA021", "021", [field("B", 591, 1)]), record("LINHA022", "022", [field("C", 5, 1)])],
                )
            ]
        ).records[0]
        results = validate_record(decl, 600, self.settings)
        self.assertEqual([r.line_name for r in results], ["LINHA020", "LINHA021", "LINHA022"])

        parent, child_ok, child_bad = results
        self.assertTrue(parent.has_children)
        self.assertEqual(parent.child_count, 2)
        self.assertEqual(parent.total_length, 109)
        self.assertTrue(parent.is_valid)
        self.assertTrue(child_ok.is_valid)
        self.assertFalse(child_bad.is_valid)

    def test_walk_continues_below_invalid_records(self):
        decl = layout(
            [record("R1", "1", [field("A", 999, 1), record("R11", "11", [field("B", 1, 1), record("R111", "111", [field("C", 591, 1)])])])]
        ).records[0]
        results = validate_record(decl, 600, self.settings)
        self.assertEqual([r.line_name for r in results], ["R1", "R11", "R111"])
        self.assertEqual([r.is_valid for r in results], [False, True, True])

    def test_validate_layout_flattens_roots(self):
        results = validate_layout(e1_grammar(), self.settings)
        self.assertEqual([r.line_name for r in results], ["HEADER", "LINHA000"])
        self.assertTrue(all(r.is_valid for r in results))


class TestLayoutReport(unittest.TestCase):
    def setUp(self):
        self.grammar = layout(
            [
                header_record(),
                record("LINHA001", "001", [field("A", 500, 1)]),
                record("LINHA002", "002", [field("A", 600, 1)]),
                record("LINHA003", "003", [field("A", 591, 1)]),
            ]
        )

    def test_report_errors(self):
        report = build_layout_report(self.grammar, datetime(2025, 1, 1), ParserSettings())
        self.assertFalse(report.is_valid)
        self.assertEqual(report.total_lines, 4)
        self.assertEqual(report.invalid_lines, 2)
        self.assertEqual(report.valid_lines, 2)
        missing, excess = report.errors
        self.assertEqual(missing.line_name, "LINHA001")
        self.assertEqual(missing.difference, 91)
        self.assertIn("Missing 91", missing.message)
        self.assertEqual(excess.difference, -9)
        self.assertIn("Exceeds by 9", excess.message)

    def test_summarize_buckets(self):
        grammar = layout([record("LINHA020", "020", [field("A", 10, 1), record("LINHA021", "021", [field("B", 591, 1)])]), record("LINHA030", "030", [field("A", 1, 1)])])
        summary = summarize(validate_layout(grammar, ParserSettings()))
        self.assertEqual([r.line_name for r in summary.valid], ["LINHA020", "LINHA021"])
        self.assertEqual([r.line_name for r in summary.with_children], ["LINHA020"])
        self.assertEqual([r.line_name for r in summary.variable_with_children], ["LINHA020"])
        self.assertEqual([r.line_name for r in summary.invalid], ["LINHA030"])
        self.assertEqual(summary.total, 3)
        self.assertFalse(summary.all_valid)

    def test_dataframe_export(self):
        df = layout_report_to_dataframe(validate_layout(self.grammar, ParserSettings()))
        self.assertEqual(len(df), 4)
        self.assertEqual(list(df["difference"]), [0, 91, -9, 0])
        self.assertEqual(list(df["is_valid"]), [True, False, False, True])


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestLayoutValidationCache(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.cache = LayoutValidationCache(ttl=60, clock=self.clock, settings=ParserSettings())
        self.grammar = e1_grammar()

    def test_cached_until_ttl(self):
        first = self.cache.get_or_validate(self.grammar)
        self.clock.now += 59
        self.assertIs(self.cache.get_or_validate(self.grammar), first)
        self.clock.now += 1
        self.assertIsNone(self.cache.get(self.grammar.id))
        self.assertIsNot(self.cache.get_or_validate(self.grammar), first)

    def test_force_revalidates(self):
        first = self.cache.get_or_validate(self.grammar)
        self.assertIsNot(self.cache.get_or_validate(self.grammar, force=True), first)

    def test_needs_revalidation(self):
        self.assertTrue(self.cache.needs_revalidation())
        self.cache.validate_all([self.grammar])
        self.assertFalse(self.cache.needs_revalidation())
        self.clock.now += 61
        self.assertTrue(self.cache.needs_revalidation())

    def test_invalidate_and_clear(self):
        self.cache.get_or_validate(self.grammar)
        self.assertEqual(len(self.cache), 1)
        self.cache.invalidate(self.grammar.id)
        self.assertEqual(len(self.cache), 0)
        self.cache.validate_all([self.grammar])
        self.cache.clear()
        self.assertEqual(len(self.cache), 0)
        self.assertTrue(self.cache.needs_revalidation())

    def test_caches_are_independent(self):
        other = LayoutValidationCache(ttl=60, clock=self.clock)
        self.cache.get_or_validate(self.grammar)
        self.assertIsNone(other.get(self.grammar.id))


if __name__ == "__main__":
    unittest.main()
